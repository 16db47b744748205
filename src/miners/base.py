"""
Abstract Base Class for Commit Miners.

Defines the interface for commit data mining implementations.
All commit miners (GitHub, GitLab) implement this interface and share one
output contract: an ordered list of CommitRecord.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from config import logger
from errors import ChangelogError, DetailFetchWarning
from miners.models import (
    CommitRecord,
    CommitStats,
    FileChange,
    Provider,
    RateLimitInfo,
    RefInfo,
    RepositoryCoordinates,
    RepositoryInfo,
    TokenHealthStatus,
)


class CommitMiner(ABC):
    """
    Abstract base class for commit miners.

    Defines the contract for mining commit data from different providers.
    Implementations should handle:
    - Authentication with the provider
    - Fetching the primary commit list or ref comparison
    - Fetching per-commit file details
    - Translating provider failures to ProviderError / NetworkError

    The detail fan-out and its failure policy live here so both providers
    degrade identically.
    """

    provider: Provider

    def __init__(self) -> None:
        self.rate_limit: Optional[RateLimitInfo] = None

    async def __aenter__(self) -> "CommitMiner":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release network resources held by the miner."""

    @abstractmethod
    async def _fetch_commit_list(
        self,
        coordinates: RepositoryCoordinates,
        from_ref: Optional[str],
        to_ref: Optional[str],
    ) -> List[CommitRecord]:
        """
        Fetch the primary, provider-ordered commit list.

        Raises:
            ProviderError: On a non-2xx answer or malformed payload.
            NetworkError: On transport failure.
        """

    @abstractmethod
    async def _fetch_commit_details(
        self, coordinates: RepositoryCoordinates, sha: str
    ) -> Tuple[List[FileChange], CommitStats]:
        """Fetch file changes and aggregate stats for one commit."""

    @abstractmethod
    async def list_tags(self, coordinates: RepositoryCoordinates) -> List[RefInfo]:
        """List the first page of tags."""

    @abstractmethod
    async def list_branches(self, coordinates: RepositoryCoordinates) -> List[RefInfo]:
        """List the first page of branches."""

    @abstractmethod
    async def list_repositories(self) -> List[RepositoryInfo]:
        """List repositories visible to the token, most recently updated first."""

    @abstractmethod
    async def check_token_health(self) -> TokenHealthStatus:
        """Probe the token against the provider. Never raises."""

    async def fetch_commits(
        self,
        coordinates: RepositoryCoordinates,
        from_ref: Optional[str] = None,
        to_ref: Optional[str] = None,
        include_details: bool = True,
    ) -> List[CommitRecord]:
        """
        Fetch commits for a repository, optionally enriched with file details.

        Args:
            coordinates (RepositoryCoordinates): Repository owner and name.
            from_ref (Optional[str]): Start of the range (exclusive).
            to_ref (Optional[str]): End of the range (inclusive).
            include_details (bool): Fetch per-commit file data concurrently.

        Returns:
            List[CommitRecord]: Commits in the order the provider returned them.

        Raises:
            ProviderError: If the primary call fails.
            NetworkError: If the provider cannot be reached.
        """
        logger.info(
            {
                "message": "Starting commit mining",
                "provider": self.provider.value,
                "repository": coordinates.full_name,
                "from_ref": from_ref,
                "to_ref": to_ref,
                "include_details": include_details,
            }
        )

        try:
            commits = await self._fetch_commit_list(coordinates, from_ref, to_ref)
        except ChangelogError as e:
            logger.error(
                {
                    "message": "Commit mining failed",
                    "provider": self.provider.value,
                    "repository": coordinates.full_name,
                    "error": str(e),
                }
            )
            raise

        if include_details and commits:
            # gather preserves argument order, so records stay positionally aligned
            commits = list(
                await asyncio.gather(
                    *(self._enrich(coordinates, commit) for commit in commits)
                )
            )

        logger.info(
            {
                "message": "Commit mining finished",
                "provider": self.provider.value,
                "repository": coordinates.full_name,
                "commit_count": len(commits),
            }
        )
        return commits

    async def _enrich(
        self, coordinates: RepositoryCoordinates, commit: CommitRecord
    ) -> CommitRecord:
        try:
            files, stats = await self._fetch_commit_details(coordinates, commit.sha)
        except (ChangelogError, ValueError, TypeError, AttributeError) as e:
            warning = DetailFetchWarning(commit.sha, str(e))
            logger.warning(
                {
                    "message": str(warning),
                    "category": type(warning).__name__,
                    "provider": self.provider.value,
                    "repository": coordinates.full_name,
                    "sha": commit.sha,
                }
            )
            return commit.model_copy(update={"files": [], "stats": CommitStats()})

        return commit.model_copy(update={"files": files, "stats": stats})

    def _log_rate_limit(self, check_name: str) -> None:
        """
        Log the provider rate limit reported by the last primary call.

        Args:
            check_name (str): Identifier for the rate limit check point.
        """
        rate_limit = self.rate_limit
        if rate_limit is None or rate_limit.remaining is None:
            return

        logger.info(
            {
                "message": f"{check_name} API rate limit status",
                "provider": self.provider.value,
                "remaining_points": rate_limit.remaining,
                "total_points": rate_limit.limit,
                "reset_time": rate_limit.reset_at.isoformat() if rate_limit.reset_at else None,
            }
        )

        # If less than 10% of rate limit remains, log a warning
        if rate_limit.limit and rate_limit.remaining < rate_limit.limit * 0.1:
            logger.warning(
                {
                    "message": f"{self.provider.value} API rate limit running low",
                    "remaining_points": rate_limit.remaining,
                    "reset_time": rate_limit.reset_at.isoformat() if rate_limit.reset_at else None,
                }
            )
