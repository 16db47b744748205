"""
JSON Changelog Generation Module.

Builds the metadata, stats and groups of a changelog as a plain serializable
structure for programmatic consumers. No Markdown or HTML is embedded.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from analyzers.models import ChangelogMetadata, ChangelogStats, CommitGroup
from miners.models import CommitRecord


def _all_commits(groups: List[CommitGroup]) -> List[CommitRecord]:
    return [commit for group in groups for commit in group.commits]


def compute_stats(groups: List[CommitGroup]) -> ChangelogStats:
    """
    Total the commits of all groups.

    Contributors are counted by distinct author email.
    """
    commits = _all_commits(groups)
    return ChangelogStats(
        total_commits=len(commits),
        total_additions=sum(c.stats.additions for c in commits if c.stats),
        total_deletions=sum(c.stats.deletions for c in commits if c.stats),
        contributors=len({c.author.email for c in commits}),
    )


def build_metadata(
    groups: List[CommitGroup],
    repo_name: str,
    start_ref: Optional[str] = None,
    end_ref: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> ChangelogMetadata:
    """Derive changelog metadata; the date range spans the commit author dates."""
    dates = [c.author.date for c in _all_commits(groups) if c.author.date]
    return ChangelogMetadata(
        repository=repo_name,
        start_ref=start_ref,
        end_ref=end_ref,
        generated_at=generated_at or datetime.now(timezone.utc),
        start_date=min(dates) if dates else None,
        end_date=max(dates) if dates else None,
    )


def render_json(
    groups: List[CommitGroup],
    repo_name: str,
    start_ref: Optional[str] = None,
    end_ref: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Format commit groups as a JSON-serializable structure.

    Args:
        groups (List[CommitGroup]): Classified commits in emit order.
        repo_name (str): Repository name.
        start_ref (Optional[str]): Range start.
        end_ref (Optional[str]): Range end.
        generated_at (Optional[datetime]): Generation time, defaults to now.

    Returns:
        Dict[str, Any]: ``{"metadata": ..., "stats": ..., "groups": [...]}``
            containing only JSON-native types.
    """
    metadata = build_metadata(groups, repo_name, start_ref, end_ref, generated_at)
    stats = compute_stats(groups)

    return {
        "metadata": {
            "repo": metadata.repository,
            "start_ref": metadata.start_ref,
            "end_ref": metadata.end_ref,
            "start_date": metadata.start_date.isoformat() if metadata.start_date else None,
            "end_date": metadata.end_date.isoformat() if metadata.end_date else None,
            "generated_at": metadata.generated_at.isoformat(),
        },
        "stats": stats.model_dump(),
        "groups": [group.model_dump(mode="json") for group in groups],
    }
