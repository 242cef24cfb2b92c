"""
Config Updater

Keeps a locally checked-out configuration repository in sync with its
remote branch while preserving uncommitted customizations, and rolls the
working tree back whenever an update cannot be completed.
"""

__version__ = "0.1.0"
