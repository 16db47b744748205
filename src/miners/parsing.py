"""
Provider Payload Parsing.

Maps untyped JSON returned by the GitHub and GitLab REST APIs into the strict
models of miners.models. Nothing loosely typed leaves this module: missing
optional fields are defaulted, missing identifying fields raise ValueError.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from miners.models import (
    CommitAuthor,
    CommitRecord,
    CommitStats,
    FileChange,
    FileStatus,
    RateLimitInfo,
    RefInfo,
    RepositoryInfo,
    Provider,
)

ADDED_LINE = re.compile(r"^\+(?!\+)", re.MULTILINE)
REMOVED_LINE = re.compile(r"^-(?!-)", re.MULTILINE)


def _require(data: Any, key: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"expected an object, got {type(data).__name__}")
    value = data.get(key)
    if value in (None, ""):
        raise ValueError(f"missing required field '{key}'")
    return value


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_list(data: Any, what: str) -> List[Any]:
    if not isinstance(data, list):
        raise ValueError(f"expected a list of {what}, got {type(data).__name__}")
    return data


def count_patch_lines(patch: Optional[str]) -> Tuple[int, int]:
    """Count added and removed lines in a unified diff body.

    Args:
        patch (Optional[str]): Diff text without file headers.

    Returns:
        Tuple[int, int]: (additions, deletions)
    """
    if not isinstance(patch, str) or not patch:
        return 0, 0
    return len(ADDED_LINE.findall(patch)), len(REMOVED_LINE.findall(patch))


def parse_github_commit(raw: Dict[str, Any]) -> CommitRecord:
    """Convert an item of the GitHub commits or compare payload to a CommitRecord.

    Args:
        raw (Dict[str, Any]): One element of ``GET /repos/{o}/{r}/commits`` or
            of the ``commits`` array of ``GET /repos/{o}/{r}/compare/{a}...{b}``.

    Returns:
        CommitRecord: Normalized record without file details.

    Raises:
        ValueError: If the payload has no sha or commit object.
    """
    sha = _require(raw, "sha")
    commit = _require(raw, "commit")
    if not isinstance(commit, dict):
        raise ValueError("commit field is not an object")
    author = commit.get("author") or {}

    return CommitRecord(
        sha=sha,
        message=commit.get("message") or "",
        author=CommitAuthor(
            name=author.get("name") or "unknown",
            email=author.get("email") or "",
            date=author.get("date"),
        ),
        url=raw.get("html_url") or "",
    )


def parse_github_file(raw: Dict[str, Any]) -> FileChange:
    """Convert one entry of a GitHub commit's ``files`` array."""
    filename = _require(raw, "filename")
    status = raw.get("status") or FileStatus.MODIFIED.value
    if not isinstance(status, str):
        raise ValueError(f"file status is not a string: {status!r}")
    return FileChange(
        filename=filename,
        status=status.lower(),
        additions=_as_int(raw.get("additions")),
        deletions=_as_int(raw.get("deletions")),
        changes=_as_int(raw.get("changes")),
        patch=raw.get("patch"),
        previous_filename=raw.get("previous_filename"),
    )


def parse_github_commit_details(
    raw: Dict[str, Any],
) -> Tuple[List[FileChange], CommitStats]:
    """Extract file changes and aggregate stats from ``GET /repos/{o}/{r}/commits/{sha}``.

    Returns:
        Tuple[List[FileChange], CommitStats]: Files in provider order and totals.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"expected an object, got {type(raw).__name__}")

    files = [parse_github_file(item) for item in _as_list(raw.get("files") or [], "files")]
    stats = raw.get("stats") or {}
    if not isinstance(stats, dict):
        raise ValueError(f"expected stats object, got {type(stats).__name__}")
    additions = _as_int(stats.get("additions"))
    deletions = _as_int(stats.get("deletions"))

    return files, CommitStats(
        additions=additions,
        deletions=deletions,
        total=_as_int(stats.get("total")) or additions + deletions,
    )


def parse_gitlab_commit(raw: Dict[str, Any]) -> CommitRecord:
    """Convert an item of ``GET /projects/:id/repository/commits`` to a CommitRecord."""
    return CommitRecord(
        sha=_require(raw, "id"),
        message=raw.get("message") or raw.get("title") or "",
        author=CommitAuthor(
            name=raw.get("author_name") or "unknown",
            email=raw.get("author_email") or "",
            date=raw.get("authored_date"),
        ),
        url=raw.get("web_url") or "",
    )


def _gitlab_status(raw: Dict[str, Any]) -> str:
    if raw.get("new_file"):
        return FileStatus.ADDED.value
    if raw.get("deleted_file"):
        return FileStatus.REMOVED.value
    if raw.get("renamed_file"):
        return FileStatus.RENAMED.value
    return FileStatus.MODIFIED.value


def parse_gitlab_diffs(raw: Any) -> Tuple[List[FileChange], CommitStats]:
    """Convert ``GET /projects/:id/repository/commits/:sha/diff`` into file changes.

    GitLab reports no per-file counts, so additions and deletions are counted
    from the diff text of each file.

    Returns:
        Tuple[List[FileChange], CommitStats]: Files in provider order and totals.
    """
    files: List[FileChange] = []
    total_additions = 0
    total_deletions = 0

    for item in _as_list(raw, "diffs"):
        new_path = _require(item, "new_path")
        old_path = item.get("old_path")
        patch = item.get("diff")
        if not isinstance(patch, str):
            patch = None
        additions, deletions = count_patch_lines(patch)
        total_additions += additions
        total_deletions += deletions

        files.append(
            FileChange(
                filename=new_path,
                status=_gitlab_status(item),
                additions=additions,
                deletions=deletions,
                changes=additions + deletions,
                patch=patch,
                previous_filename=old_path if old_path and old_path != new_path else None,
            )
        )

    return files, CommitStats(
        additions=total_additions,
        deletions=total_deletions,
        total=total_additions + total_deletions,
    )


def parse_gitlab_ref(raw: Dict[str, Any]) -> RefInfo:
    """Convert a GitLab branch or tag entry."""
    commit = raw.get("commit") or {}
    return RefInfo(
        name=_require(raw, "name"),
        sha=commit.get("id") or "",
        protected=raw.get("protected"),
    )


def parse_gitlab_project(raw: Dict[str, Any]) -> RepositoryInfo:
    """Convert an entry of ``GET /projects?membership=true``."""
    namespace = raw.get("namespace") or {}
    path_with_namespace = raw.get("path_with_namespace") or ""
    owner = namespace.get("full_path") or path_with_namespace.rpartition("/")[0]

    return RepositoryInfo(
        id=str(_require(raw, "id")),
        provider=Provider.GITLAB,
        name=raw.get("path") or raw.get("name") or "",
        owner=owner,
        full_name=path_with_namespace,
        url=raw.get("web_url"),
        default_branch=raw.get("default_branch"),
        private=raw.get("visibility") not in (None, "public"),
        description=raw.get("description"),
        updated_at=raw.get("last_activity_at"),
    )


def _header(headers: Mapping[str, Any], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def parse_rate_limit_headers(
    headers: Optional[Mapping[str, Any]], prefix: str = "x-ratelimit-"
) -> Optional[RateLimitInfo]:
    """Read ``<prefix>limit``, ``<prefix>remaining`` and ``<prefix>reset`` headers.

    GitHub uses the ``x-ratelimit-`` prefix, GitLab ``ratelimit-``. Reset
    values are epoch seconds.

    Returns:
        Optional[RateLimitInfo]: None when the provider sent no rate limit headers.
    """
    if not headers:
        return None

    remaining = _header(headers, f"{prefix}remaining")
    if remaining is None:
        return None

    limit = _header(headers, f"{prefix}limit")
    reset = _header(headers, f"{prefix}reset")
    reset_at = None
    if reset is not None and str(reset).isdigit():
        reset_at = datetime.fromtimestamp(int(reset), timezone.utc)

    return RateLimitInfo(
        limit=_as_int(limit) if limit is not None else None,
        remaining=_as_int(remaining),
        reset_at=reset_at,
    )
