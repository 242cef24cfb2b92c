"""
Commit range retrieval and breaking-change classification.

The classifier lists the commits an update would bring in and picks out
those whose message matches one of the configured breaking-change
patterns, so the user can be asked before they are applied.
"""

import re
from typing import List, Optional, Sequence, Union

from dateutil import parser as date_parser

from ..interfaces import IProcessRunner, ProgressCallback
from ..models.config import DEFAULT_BREAKING_CHANGE_PATTERNS
from ..models.git import CommitRange, CommitRecord
from ..utils.logging import get_logger

logger = get_logger("change.classifier")

# Expected format: "yyyy-mm-dd: hash message"
COMMIT_LINE_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2}): ([0-9a-fA-F]+)(?:\s+(.*))?$")

LOG_FORMAT = "--pretty=format:%ad: %h %s"

PatternSpec = Union[str, re.Pattern]


def compile_patterns(patterns: Sequence[PatternSpec]) -> List[re.Pattern]:
    """Compile breaking-change patterns case-insensitively."""
    compiled = []
    for pattern in patterns:
        if isinstance(pattern, str):
            compiled.append(re.compile(pattern, re.IGNORECASE))
        else:
            compiled.append(pattern)
    return compiled


def parse_commit_line(line: str) -> CommitRecord:
    """
    Parse one `yyyy-mm-dd: shorthash message` line.

    Malformed lines produce an unset record instead of raising, so one bad
    line never aborts the batch.
    """
    match = COMMIT_LINE_PATTERN.match(line.strip())
    if not match:
        return CommitRecord.unset(raw=line)

    date_text, short_hash, message = match.groups()
    try:
        commit_date = date_parser.isoparse(date_text).date()
    except (ValueError, OverflowError):
        return CommitRecord.unset(raw=line)

    return CommitRecord(date=commit_date, short_hash=short_hash, message=(message or "").strip(), raw=line)


class ChangeClassifier:
    """Lists new commits between two references and classifies them."""

    def __init__(
        self,
        runner: IProcessRunner,
        patterns: Optional[Sequence[PatternSpec]] = None,
    ):
        """
        Initialize ChangeClassifier.

        Args:
            runner: Process runner bound to the repository root
            patterns: Breaking-change patterns, matched case-insensitively
        """
        self.runner = runner
        self.patterns = compile_patterns(
            patterns if patterns is not None else DEFAULT_BREAKING_CHANGE_PATTERNS
        )

    def commits_between(self, start_sha: str, end_sha: str) -> CommitRange:
        """
        Get the non-merge commits reachable from end_sha but not start_sha.

        Commits are returned oldest first. Identical references give an empty
        range. A failing log, an empty log or one without a single parseable
        line marks the range as diverged: after a successful fetch this means
        upstream history was rewritten, not that there is nothing to update.
        """
        if start_sha == end_sha:
            return CommitRange(start_sha=start_sha, end_sha=end_sha)

        output = self.runner.output(
            [
                "log",
                "--no-merges",
                "--reverse",
                "--date=short",
                LOG_FORMAT,
                f"{start_sha}..{end_sha}",
            ]
        )

        if output is None:
            logger.warning("Commit range could not be resolved", extra={"start": start_sha, "end": end_sha})
            return CommitRange(start_sha=start_sha, end_sha=end_sha, diverged=True)

        commits = [parse_commit_line(line) for line in output.splitlines() if line.strip()]

        if not any(commit.is_valid for commit in commits):
            logger.warning(
                "No linear history between local and remote head",
                extra={"start": start_sha, "end": end_sha, "lines": len(commits)},
            )
            return CommitRange(start_sha=start_sha, end_sha=end_sha, diverged=True)

        malformed = len([commit for commit in commits if not commit.is_valid])
        if malformed:
            logger.warning("Skipped malformed commit log lines", extra={"count": malformed})

        logger.info("Found new commits", extra={"count": len(commits)})
        return CommitRange(start_sha=start_sha, end_sha=end_sha, commits=commits)

    def classify(
        self,
        commits: List[CommitRecord],
        patterns: Optional[Sequence[PatternSpec]] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> List[CommitRecord]:
        """
        Return the commits whose message matches any breaking-change pattern.

        Args:
            commits: Commits to check, order is preserved in the result
            patterns: Patterns to use instead of the configured ones
            progress: Called as progress(current, total) after each commit

        Returns:
            The matching subsequence of commits
        """
        compiled = compile_patterns(patterns) if patterns is not None else self.patterns
        total = len(commits)
        matches = []

        for index, commit in enumerate(commits, start=1):
            text = commit.match_text
            if any(pattern.search(text) for pattern in compiled):
                matches.append(commit)

            if progress is not None:
                progress(index, total)

        logger.info("Classified commits", extra={"total": total, "breaking": len(matches)})
        return matches
