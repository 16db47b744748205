"""
Cache Registry.

Constructs the four purpose-specific cache instances from settings. A registry
is created once per process (or per test) and handed to the services that use
it; nothing here is module-level state.

Invalidation never cascades between instances. Mutation sites call the
matching hook explicitly:

- repository connected or removed: ``on_repository_changed``
- repository history rewritten or resynced: ``on_repository_content_changed``
- provider token stored, replaced or deleted: ``on_token_updated``

The service-level invalidation methods delegate to these hooks.
"""

from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from config import Settings, settings as default_settings, logger
from storage.cache import TTLCache


def _user_params(user_id: str, provider: Optional[Union[Enum, str]]) -> Dict[str, Any]:
    params: Dict[str, Any] = {"userId": user_id}
    if provider:
        params["provider"] = provider
    return params


class CacheRegistry:
    """
    Owner of the commit, repository, changelog and token-health caches.

    Attributes:
        commits (TTLCache): Commit lists keyed by ``{repoId, fromRef, toRef, includeDetails}``.
        repos (TTLCache): Repository listings keyed by ``{userId, provider}``.
        changelogs (TTLCache): Rendered documents keyed by
            ``{repoId, fromRef, toRef, includeDetails, ai}``.
        token_health (TTLCache): Token probes keyed by ``{userId, provider}``.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Build all cache instances.

        Args:
            config (Optional[Settings]): Settings supplying TTLs and capacities.
            clock (Optional[Callable[[], float]]): Clock shared by all caches.
        """
        config = config or default_settings
        extra = {"clock": clock} if clock else {}

        self.commits: TTLCache = TTLCache(
            "commits",
            config.commits_cache_ttl_seconds,
            config.commits_cache_max_entries,
            **extra,
        )
        self.repos: TTLCache = TTLCache(
            "repos",
            config.repos_cache_ttl_seconds,
            config.repos_cache_max_entries,
            **extra,
        )
        self.changelogs: TTLCache = TTLCache(
            "changelog",
            config.changelogs_cache_ttl_seconds,
            config.changelogs_cache_max_entries,
            **extra,
        )
        self.token_health: TTLCache = TTLCache(
            "tokenHealth",
            config.token_health_cache_ttl_seconds,
            config.token_health_cache_max_entries,
            **extra,
        )

    def on_repository_changed(
        self,
        user_id: str,
        repo_id: Optional[str] = None,
        provider: Optional[Union[Enum, str]] = None,
    ) -> None:
        """Invalidate after a repository is connected to or removed from an account."""
        self.repos.invalidate(_user_params(user_id, provider))
        if repo_id:
            self.on_repository_content_changed(repo_id)

    def on_repository_content_changed(self, repo_id: str) -> None:
        """Invalidate the commits and changelogs of one repository."""
        self.commits.invalidate({"repoId": repo_id})
        self.changelogs.invalidate({"repoId": repo_id})

    def on_token_updated(
        self, user_id: str, provider: Optional[Union[Enum, str]] = None
    ) -> None:
        """Invalidate after a user's provider token changes."""
        params = _user_params(user_id, provider)
        self.token_health.invalidate(params)
        self.repos.invalidate(params)

    def clear_all(self) -> None:
        for cache in (self.commits, self.repos, self.changelogs, self.token_health):
            cache.clear()
        logger.info({"message": "All caches cleared"})

    def stats(self) -> Dict[str, Dict[str, int]]:
        return {
            "commits": self.commits.stats(),
            "repos": self.repos.stats(),
            "changelogs": self.changelogs.stats(),
            "tokenHealth": self.token_health.stats(),
        }
