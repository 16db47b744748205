"""
Commit Mining Data Models.

Defines the common data models used across different commit mining implementations.
Uses Pydantic for validation and serialization.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    """Supported source-control providers."""

    GITHUB = "github"
    GITLAB = "gitlab"


class FileStatus(str, Enum):
    """Change status of a file within a commit."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


class FileChange(BaseModel):
    """One file touched by a commit."""

    model_config = ConfigDict(frozen=True)

    filename: str
    # Providers may report statuses outside FileStatus (e.g. "copied")
    status: str
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: Optional[str] = None
    previous_filename: Optional[str] = None


class CommitAuthor(BaseModel):
    """Commit author as recorded in the commit itself."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    date: Optional[datetime] = None


class CommitStats(BaseModel):
    """Aggregate line counts for a commit."""

    model_config = ConfigDict(frozen=True)

    additions: int = 0
    deletions: int = 0
    total: int = 0


class CommitRecord(BaseModel):
    """Provider-independent representation of a single commit."""

    model_config = ConfigDict(frozen=True)

    sha: str
    message: str
    author: CommitAuthor
    url: str
    stats: Optional[CommitStats] = None
    files: List[FileChange] = Field(default_factory=list)

    @property
    def subject(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


class RepositoryCoordinates(BaseModel):
    """Owner and name locating a repository on its provider."""

    model_config = ConfigDict(frozen=True)

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class RefInfo(BaseModel):
    """A branch or tag and the commit it points at."""

    name: str
    sha: str
    protected: Optional[bool] = None


class RepositoryInfo(BaseModel):
    """A repository (GitHub) or project (GitLab) visible to a token."""

    id: str
    provider: Provider
    name: str
    owner: str
    full_name: str
    url: Optional[str] = None
    default_branch: Optional[str] = None
    private: bool = False
    description: Optional[str] = None
    updated_at: Optional[datetime] = None


class RateLimitInfo(BaseModel):
    """Rate limit headers reported by the last primary provider call."""

    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: Optional[datetime] = None


class TokenHealthReason(str, Enum):
    """Why a provider token was judged unusable."""

    NOT_FOUND = "not_found"
    INVALID_OR_EXPIRED = "invalid_or_expired"
    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"


class TokenHealthStatus(BaseModel):
    """Result of probing a provider token."""

    valid: bool
    reason: Optional[TokenHealthReason] = None
    last_checked: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    remaining_requests: Optional[int] = None
    reset_at: Optional[datetime] = None
    scopes: Optional[List[str]] = None
