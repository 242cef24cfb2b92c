"""
Main entry point for the config updater.
"""

import argparse
import sys
from typing import List, Optional

from .components.confirmation import AutoDeclineConfirmation, ConsoleConfirmation, FixedAnswerConfirmation
from .orchestrator import UpdateOrchestrator
from .services.config_manager import ConfigurationManager
from .utils.logging import get_logger, setup_logging
from .utils.text import render_result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Update a configuration repository from its remote branch"
    )

    parser.add_argument("--config", type=str, help="Path to the configuration file")
    parser.add_argument("--repo", type=str, help="Repository root (overrides the configuration)")
    parser.add_argument("--branch", type=str, help="Branch to update from (overrides the configuration)")

    answers = parser.add_mutually_exclusive_group()
    answers.add_argument("--yes", "-y", action="store_true", help="Answer yes at every decision point")
    answers.add_argument(
        "--no-input", action="store_true", help="Never prompt, decline at every decision point"
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Log to stderr at DEBUG level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run one update session and print its report."""
    args = build_parser().parse_args(argv)

    try:
        config = ConfigurationManager(args.config, repo_path=args.repo).load_config()
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.branch:
        config.update_branch = args.branch
        try:
            config.validate()
        except ValueError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 2

    setup_logging(
        log_dir=config.log_dir,
        log_level="DEBUG" if args.verbose else config.log_level,
        console=args.verbose,
    )
    logger = get_logger("main")
    logger.info("Starting config updater", extra={"repo": config.repo_path, "branch": config.update_branch})

    if args.yes:
        confirmation = FixedAnswerConfirmation(True)
    elif args.no_input:
        confirmation = AutoDeclineConfirmation()
    else:
        confirmation = ConsoleConfirmation()

    try:
        result = UpdateOrchestrator(config, confirmation=confirmation).run()
    except KeyboardInterrupt:
        print("\nUpdate interrupted by user", file=sys.stderr)
        return 130

    print(render_result(result))
    return 0 if result.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
