"""
Shared fixtures and factories for the changelog test suite.
"""

from datetime import datetime, timezone
from typing import List, Optional

import pytest

from miners.models import CommitAuthor, CommitRecord, CommitStats, FileChange


def make_commit(
    sha: str,
    message: str,
    author_name: str = "Ada Lovelace",
    author_email: str = "ada@example.com",
    date: Optional[datetime] = None,
    files: Optional[List[FileChange]] = None,
    stats: Optional[CommitStats] = None,
) -> CommitRecord:
    """Build a CommitRecord with sensible defaults."""
    return CommitRecord(
        sha=sha,
        message=message,
        author=CommitAuthor(
            name=author_name,
            email=author_email,
            date=date or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        ),
        url=f"https://github.com/octo/repo/commit/{sha}",
        stats=stats,
        files=files or [],
    )


def github_commit_payload(sha: str, message: str, email: str = "ada@example.com") -> dict:
    """Build one element of a GitHub commits payload."""
    return {
        "sha": sha,
        "commit": {
            "message": message,
            "author": {
                "name": "Ada Lovelace",
                "email": email,
                "date": "2024-05-01T12:00:00Z",
            },
        },
        "html_url": f"https://github.com/octo/repo/commit/{sha}",
    }


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def generated_at():
    return datetime(2024, 5, 1, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def sample_commits():
    """A small mixed history: feature with files, fix, breaking change, chore."""
    return [
        make_commit(
            "a1b2c3d4e5f6a7b8c9d0",
            "feat(auth): add login page\n\nLong description",
            files=[
                FileChange(filename="src/login.py", status="added", additions=10, changes=10),
                FileChange(
                    filename="src/auth.py",
                    status="renamed",
                    additions=2,
                    deletions=1,
                    changes=3,
                    previous_filename="src/old_auth.py",
                ),
            ],
            stats=CommitStats(additions=12, deletions=1, total=13),
            date=datetime(2024, 4, 28, 9, 0, tzinfo=timezone.utc),
        ),
        make_commit(
            "b2c3d4e5f6a7b8c9d0e1",
            "fix: handle empty token",
            author_name="Grace Hopper",
            author_email="grace@example.com",
            stats=CommitStats(additions=3, deletions=2, total=5),
            date=datetime(2024, 4, 30, 9, 0, tzinfo=timezone.utc),
        ),
        make_commit(
            "c3d4e5f6a7b8c9d0e1f2",
            "feat!: drop legacy API",
            stats=CommitStats(additions=0, deletions=40, total=40),
        ),
        make_commit("d4e5f6a7b8c9d0e1f2a3", "chore: bump dependencies"),
    ]
