"""
Markdown Changelog Generation Module.

Renders classified commit groups into a Markdown changelog: a header block,
one ``##`` section per group, one bullet per commit with its changed files
nested underneath.
"""

import time
from datetime import datetime, timezone
from typing import List, Optional

from config import logger
from analyzers.commit_classifier import clean_commit_message
from analyzers.models import CommitGroup
from miners.models import CommitRecord, FileChange, FileStatus

STATUS_BADGES = {
    FileStatus.ADDED.value: "🟢",
    FileStatus.MODIFIED.value: "🔵",
    FileStatus.REMOVED.value: "🔴",
    FileStatus.RENAMED.value: "🟡",
}
DEFAULT_BADGE = "⚪"

# Python-Markdown needs four spaces to nest a list
INDENT = "    "


def _file_lines(file: FileChange) -> List[str]:
    badge = STATUS_BADGES.get(file.status, DEFAULT_BADGE)
    change_stats = (
        f" (+{file.additions}/-{file.deletions})" if file.additions or file.deletions else ""
    )
    lines = [f"{INDENT * 2}- {badge} `{file.filename}`{change_stats}"]
    if file.previous_filename and file.status == FileStatus.RENAMED.value:
        lines.append(f"{INDENT * 3}- _Renamed from `{file.previous_filename}`_")
    return lines


def _commit_lines(commit: CommitRecord) -> List[str]:
    lines = [
        f"- **{clean_commit_message(commit.message)}** ([{commit.short_sha}]({commit.url}))",
        f"{INDENT}- _by {commit.author.name}_",
    ]
    if commit.files:
        lines.append(f"{INDENT}- **Files changed:** {len(commit.files)}")
        for file in commit.files:
            lines.extend(_file_lines(file))
    return lines


def render_markdown(
    groups: List[CommitGroup],
    repo_name: str,
    start_ref: Optional[str] = None,
    end_ref: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Format commit groups as a Markdown changelog.

    Args:
        groups (List[CommitGroup]): Classified commits in emit order.
        repo_name (str): Repository shown in the header.
        start_ref (Optional[str]): Range start; the range line needs both refs.
        end_ref (Optional[str]): Range end.
        generated_at (Optional[datetime]): Generation time, defaults to now.

    Returns:
        str: Markdown document.
    """
    start_time = time.perf_counter()
    generated_at = generated_at or datetime.now(timezone.utc)

    lines: List[str] = ["# Changelog", "", f"**Repository:** {repo_name}"]
    if start_ref and end_ref:
        lines.append(f"**Range:** {start_ref} → {end_ref}")
    lines.extend([f"**Generated:** {generated_at.date().isoformat()}", "", "---", ""])

    for group in groups:
        lines.extend([f"## {group.category}", ""])
        for commit in group.commits:
            lines.extend(_commit_lines(commit))
        lines.append("")

    markdown = "\n".join(lines) + "\n"

    logger.debug(
        {
            "message": "Markdown formatting completed",
            "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            "markdown_length": len(markdown),
        }
    )
    return markdown
