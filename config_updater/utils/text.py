"""
Plain-text formatting helpers for update reports.
"""

from typing import Dict, List

from ..models.git import CommitRecord
from ..models.session import UpdateOutcome, UpdateResult


def get_human_readables(count: int) -> Dict[str, str]:
    """Count-dependent wording for report sentences."""
    singular = count == 1
    return {
        "have": "has" if singular else "have",
        "commits": "commit" if singular else "commits",
        "change": "change" if singular else "changes",
    }


def format_commit(commit: CommitRecord) -> str:
    if not commit.is_valid:
        return commit.raw.strip()
    return f"{commit.date.isoformat()} {commit.short_hash} {commit.message}".rstrip()


def format_commit_table(commits: List[CommitRecord], indent: str = "    ") -> str:
    """One indented line per commit: date, short hash and subject."""
    return "\n".join(f"{indent}{format_commit(commit)}" for commit in commits)


def render_result(result: UpdateResult) -> str:
    """Render an update result as a short human-readable report."""
    lines = [f"Remote: {result.update_url} ({result.update_branch})"]

    if result.new_commits:
        hr = get_human_readables(len(result.new_commits))
        lines.append(f"{len(result.new_commits)} new {hr['commits']}:")
        lines.append(format_commit_table(result.new_commits))

    if result.breaking_changes:
        hr = get_human_readables(len(result.breaking_changes))
        lines.append(f"{len(result.breaking_changes)} breaking {hr['change']}:")
        lines.append(format_commit_table(result.breaking_changes))

    if result.outcome == UpdateOutcome.APPLIED:
        if result.breaking_changes_present:
            lines.append("Update applied. Review the breaking changes above, manual action may be required.")
        else:
            lines.append("Update applied.")
    elif result.outcome == UpdateOutcome.NO_CHANGES:
        if result.diverged:
            lines.append("Local and remote history have diverged, no changes applied.")
        else:
            lines.append(f"Already up to date with {result.update_branch}.")
    else:
        reason = result.error_kind.value.replace("_", " ") if result.error_kind else "unknown error"
        lines.append(f"Update failed ({reason}). {result.error_message}".rstrip())
        if result.recovered:
            lines.append("The repository was restored to its previous state.")
        else:
            lines.append("The repository could NOT be restored automatically.")

    return "\n".join(lines)
