"""
Changelog Data Models.

Defines the classification buckets and the changelog document produced from
them. Uses Pydantic for validation and serialization.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from miners.models import CommitRecord


class CommitCategory(Enum):
    """
    Classification of commits, declared in changelog emit order.

    Attributes:
        BREAKING: Breaking changes, regardless of type prefix
        FEATURES: ``feat`` commits
        FIXES: ``fix`` commits
        PERFORMANCE: ``perf`` commits
        DOCS: ``docs`` commits
        STYLE: ``style`` commits
        REFACTOR: ``refactor`` commits
        TEST: ``test`` commits
        BUILD: ``build`` commits
        CI: ``ci`` commits
        CHORE: ``chore`` commits
        OTHER: Everything without a recognized prefix
    """

    BREAKING = "breaking"
    FEATURES = "features"
    FIXES = "fixes"
    PERFORMANCE = "performance"
    DOCS = "docs"
    STYLE = "style"
    REFACTOR = "refactor"
    TEST = "test"
    BUILD = "build"
    CI = "ci"
    CHORE = "chore"
    OTHER = "other"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS: Dict[CommitCategory, str] = {
    CommitCategory.BREAKING: "🚨 Breaking Changes",
    CommitCategory.FEATURES: "✨ Features",
    CommitCategory.FIXES: "🐛 Bug Fixes",
    CommitCategory.PERFORMANCE: "⚡ Performance",
    CommitCategory.DOCS: "📝 Documentation",
    CommitCategory.STYLE: "💄 Styling",
    CommitCategory.REFACTOR: "♻️ Refactoring",
    CommitCategory.TEST: "✅ Tests",
    CommitCategory.BUILD: "📦 Build",
    CommitCategory.CI: "👷 CI/CD",
    CommitCategory.CHORE: "🔧 Chores",
    CommitCategory.OTHER: "📌 Other Changes",
}

# Conventional-commit type token -> bucket
COMMIT_TYPE_CATEGORIES: Dict[str, CommitCategory] = {
    "feat": CommitCategory.FEATURES,
    "fix": CommitCategory.FIXES,
    "perf": CommitCategory.PERFORMANCE,
    "docs": CommitCategory.DOCS,
    "style": CommitCategory.STYLE,
    "refactor": CommitCategory.REFACTOR,
    "test": CommitCategory.TEST,
    "build": CommitCategory.BUILD,
    "ci": CommitCategory.CI,
    "chore": CommitCategory.CHORE,
}


class CommitGroup(BaseModel):
    """One classification bucket and its commits in source order."""

    model_config = ConfigDict(frozen=True)

    category: str
    commits: List[CommitRecord]


class CommitMetadata(BaseModel):
    """Parsed conventional-commit header of a message."""

    type: Optional[str] = None
    scope: Optional[str] = None
    is_breaking: bool = False
    description: str


class ChangelogMetadata(BaseModel):
    """Where a changelog came from and which period it covers."""

    model_config = ConfigDict(frozen=True)

    repository: str
    start_ref: Optional[str] = None
    end_ref: Optional[str] = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ChangelogStats(BaseModel):
    """Totals over every commit in a changelog."""

    model_config = ConfigDict(frozen=True)

    total_commits: int
    total_additions: int
    total_deletions: int
    contributors: int


class ChangelogDocument(BaseModel):
    """
    A generated changelog with every rendered body. Immutable.

    The JSON body is kept serialized; ``json_data`` parses a fresh copy on each
    access, so callers can never alter a cached document through it.
    """

    model_config = ConfigDict(frozen=True)

    metadata: ChangelogMetadata
    stats: ChangelogStats
    groups: List[CommitGroup]
    markdown: str
    html: str
    text: str
    json_text: str
    ai_generated: bool = False

    @property
    def json_data(self) -> Dict[str, Any]:
        return json.loads(self.json_text)
