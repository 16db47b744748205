"""
Commit classification by conventional-commit type.

Pure functions: no I/O beyond debug logging, deterministic for a given input.
"""

import re
import time
from typing import Dict, List

from config import logger
from analyzers.models import (
    COMMIT_TYPE_CATEGORIES,
    CommitCategory,
    CommitGroup,
    CommitMetadata,
)
from miners.models import CommitRecord

BREAKING_MARKERS = ("breaking change", "!:")

# type(scope)!: rest
CONVENTIONAL_PREFIX = re.compile(r"^(\w+)(\(.+?\))?!?:\s*(.+)")
PREFIX_TO_STRIP = re.compile(r"^(\w+)(\(.+?\))?!?:\s*")
HEADER_PARTS = re.compile(r"^(\w+)(?:\((.+?)\))?(!)?: (.+)")


def classify_commit(commit: CommitRecord) -> CommitCategory:
    """
    Assign a single commit to its bucket.

    Breaking-change markers win over type prefixes; a recognized
    ``type(scope)!:`` prefix comes next; everything else is OTHER.

    Args:
        commit (CommitRecord): Commit to classify.

    Returns:
        CommitCategory: The bucket for this commit.
    """
    message = commit.message.lower()

    if any(marker in message for marker in BREAKING_MARKERS):
        return CommitCategory.BREAKING

    match = CONVENTIONAL_PREFIX.match(message)
    if match:
        category = COMMIT_TYPE_CATEGORIES.get(match.group(1))
        if category:
            return category

    return CommitCategory.OTHER


def group_commits_by_type(commits: List[CommitRecord]) -> List[CommitGroup]:
    """
    Group commits into labelled buckets.

    Every input commit lands in exactly one group. Groups follow the fixed
    CommitCategory order, empty groups are omitted, and commits keep their
    input order within a group.

    Args:
        commits (List[CommitRecord]): Commits in provider order.

    Returns:
        List[CommitGroup]: Non-empty groups in emit order.
    """
    start_time = time.perf_counter()

    buckets: Dict[CommitCategory, List[CommitRecord]] = {
        category: [] for category in CommitCategory
    }
    for commit in commits:
        buckets[classify_commit(commit)].append(commit)

    groups = [
        CommitGroup(category=category.label, commits=members)
        for category, members in buckets.items()
        if members
    ]

    logger.debug(
        {
            "message": "Commits grouped successfully",
            "group_count": len(groups),
            "total_commits": len(commits),
            "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
        }
    )
    return groups


def clean_commit_message(message: str) -> str:
    """Return the first line of a message without its conventional prefix."""
    first_line = message.split("\n", 1)[0]
    return PREFIX_TO_STRIP.sub("", first_line).strip()


def extract_commit_metadata(message: str) -> CommitMetadata:
    """
    Split a conventional-commit header into its parts.

    Example:
        >>> extract_commit_metadata("feat(api)!: drop v1").scope
        'api'

    Messages without a conventional header only report whether they mention a
    breaking change.
    """
    first_line = message.split("\n", 1)[0]
    match = HEADER_PARTS.match(first_line)

    if match:
        return CommitMetadata(
            type=match.group(1),
            scope=match.group(2),
            is_breaking=bool(match.group(3)) or "breaking change" in message.lower(),
            description=match.group(4),
        )

    return CommitMetadata(
        is_breaking="breaking change" in message.lower(),
        description=first_line,
    )
