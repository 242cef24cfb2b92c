"""Logging, error handling and text formatting utilities."""
