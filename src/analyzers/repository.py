"""
Repository Discovery and Token Health Services.

Cached front ends for the provider calls a user interface needs besides
changelog generation:

- listing the repositories a token can access
- listing the branches or tags of a repository
- probing whether a stored token still works
"""

from typing import List, Optional, Union

from config import logger
from miners.factory import create_miner
from miners.models import (
    Provider,
    RefInfo,
    RepositoryCoordinates,
    RepositoryInfo,
    TokenHealthReason,
    TokenHealthStatus,
)
from analyzers.changelog import MinerFactory
from storage.caches import CacheRegistry

REF_KINDS = ("branches", "tags")


class RepositoryService:
    """
    Repository listing with a per-user cache.

    Attributes:
        caches (CacheRegistry): Supplies the ``repos`` cache.
        miner_factory (MinerFactory): Builds a miner for a provider and token.
    """

    def __init__(self, caches: CacheRegistry, miner_factory: MinerFactory = create_miner):
        self.caches = caches
        self.miner_factory = miner_factory

    async def list_repositories(
        self, user_id: str, provider: Union[Provider, str], token: str
    ) -> List[RepositoryInfo]:
        """
        List repositories accessible to a user's token, most recently updated first.

        Results are cached per ``{userId, provider}``.
        """
        provider = Provider(provider)
        params = {"userId": user_id, "provider": provider}

        repositories = self.caches.repos.get(params)
        if repositories is not None:
            return repositories

        async with self.miner_factory(provider, token) as miner:
            repositories = await miner.list_repositories()

        self.caches.repos.set(params, repositories)
        logger.info(
            {
                "message": "Repositories discovered",
                "provider": provider.value,
                "repository_count": len(repositories),
            }
        )
        return repositories

    async def list_refs(
        self,
        provider: Union[Provider, str],
        token: str,
        coordinates: RepositoryCoordinates,
        kind: str = "branches",
    ) -> List[RefInfo]:
        """
        List the branches or tags of a repository.

        Args:
            provider (Union[Provider, str]): Hosting provider.
            token (str): Already-decrypted access token.
            coordinates (RepositoryCoordinates): Repository owner and name.
            kind (str): ``branches`` or ``tags``.

        Raises:
            ValueError: If ``kind`` is neither ``branches`` nor ``tags``.
        """
        if kind not in REF_KINDS:
            raise ValueError(f"Unknown ref kind '{kind}', expected one of {', '.join(REF_KINDS)}")

        async with self.miner_factory(Provider(provider), token) as miner:
            if kind == "tags":
                return await miner.list_tags(coordinates)
            return await miner.list_branches(coordinates)

    def invalidate_user(self, user_id: str, provider: Optional[Union[Provider, str]] = None) -> None:
        """Drop cached repository listings after a repository is connected or removed."""
        self.caches.on_repository_changed(user_id, provider=Provider(provider) if provider else None)


class TokenHealthService:
    """Token validity probes, cached per ``{userId, provider}``."""

    def __init__(self, caches: CacheRegistry, miner_factory: MinerFactory = create_miner):
        self.caches = caches
        self.miner_factory = miner_factory

    async def check(
        self, user_id: str, provider: Union[Provider, str], token: Optional[str]
    ) -> TokenHealthStatus:
        """
        Check whether a user's provider token works.

        A missing token reports ``not_found`` without contacting the provider.
        Every result, healthy or not, is cached until it expires or the token
        changes.

        Args:
            user_id (str): Owner of the token.
            provider (Union[Provider, str]): Hosting provider.
            token (Optional[str]): Already-decrypted token, None if none is stored.

        Returns:
            TokenHealthStatus: Probe result.
        """
        provider = Provider(provider)
        params = {"userId": user_id, "provider": provider}

        status = self.caches.token_health.get(params)
        if status is not None:
            return status

        if not token:
            status = TokenHealthStatus(valid=False, reason=TokenHealthReason.NOT_FOUND)
        else:
            async with self.miner_factory(provider, token) as miner:
                status = await miner.check_token_health()

        self.caches.token_health.set(params, status)
        logger.info(
            {
                "message": "Token health checked",
                "provider": provider.value,
                "valid": status.valid,
                "reason": status.reason.value if status.reason else None,
            }
        )
        return status

    def invalidate(self, user_id: str, provider: Optional[Union[Provider, str]] = None) -> None:
        """Drop cached probes and listings after a token is stored, replaced or deleted."""
        self.caches.on_token_updated(user_id, provider=Provider(provider) if provider else None)
