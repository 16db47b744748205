"""
Plain-Text Changelog Generation Module.

Same content as the Markdown changelog without Markdown syntax: section
titles are underlined, commits are ``*`` bullets, files carry a ``[status]``
marker.
"""

from datetime import datetime, timezone
from typing import List, Optional

from analyzers.commit_classifier import clean_commit_message
from analyzers.models import CommitGroup
from miners.models import FileStatus


def _underline(title: str, char: str) -> List[str]:
    return [title, char * len(title)]


def render_text(
    groups: List[CommitGroup],
    repo_name: str,
    start_ref: Optional[str] = None,
    end_ref: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Format commit groups as a plain-text changelog.

    Args:
        groups (List[CommitGroup]): Classified commits in emit order.
        repo_name (str): Repository shown in the header.
        start_ref (Optional[str]): Range start; the range line needs both refs.
        end_ref (Optional[str]): Range end.
        generated_at (Optional[datetime]): Generation time, defaults to now.

    Returns:
        str: Plain-text document.
    """
    generated_at = generated_at or datetime.now(timezone.utc)

    lines: List[str] = _underline("Changelog", "=")
    lines.extend(["", f"Repository: {repo_name}"])
    if start_ref and end_ref:
        lines.append(f"Range: {start_ref} -> {end_ref}")
    lines.extend([f"Generated: {generated_at.date().isoformat()}", ""])

    for group in groups:
        lines.extend(_underline(group.category, "-"))
        lines.append("")
        for commit in group.commits:
            lines.append(f"* {clean_commit_message(commit.message)} ({commit.short_sha})")
            lines.append(f"  by {commit.author.name}")
            if commit.files:
                lines.append(f"  Files changed: {len(commit.files)}")
                for file in commit.files:
                    counts = (
                        f" (+{file.additions}/-{file.deletions})"
                        if file.additions or file.deletions
                        else ""
                    )
                    lines.append(f"    [{file.status}] {file.filename}{counts}")
                    if file.previous_filename and file.status == FileStatus.RENAMED.value:
                        lines.append(f"      renamed from {file.previous_filename}")
        lines.append("")

    return "\n".join(lines) + "\n"
