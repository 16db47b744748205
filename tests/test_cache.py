"""
Cache Layer Test Suite.

Covers:
- Deterministic key derivation
- Time-to-live expiry at the exact boundary
- Least-recently-used eviction
- Fragment invalidation
- Registry hooks and statistics
"""

import pytest

from config import Settings
from miners.models import Provider
from storage.cache import TTLCache, build_cache_key
from storage.caches import CacheRegistry


@pytest.fixture
def cache(clock):
    """Create a commits-style cache with a 15 minute lifetime."""
    return TTLCache("commits", ttl=900, max_entries=3, clock=clock)


def test_key_is_independent_of_parameter_order(cache):
    """Test field order does not change the key."""
    assert cache.key_for({"repoId": "abc", "toRef": "v2"}) == cache.key_for(
        {"toRef": "v2", "repoId": "abc"}
    )
    assert build_cache_key("commits", {"toRef": "v2", "repoId": "abc"}) == (
        "commits:repoId:abc|toRef:v2"
    )


def test_key_encodes_none_and_enums():
    """Test None encodes as empty and enums by value."""
    key = build_cache_key("repos", {"userId": "u1", "provider": Provider.GITHUB, "fromRef": None})
    assert key == "repos:fromRef:|provider:github|userId:u1"


def test_entry_expires_at_ttl_boundary(cache, clock):
    """Test an entry is served just before its TTL and missed just after."""
    cache.set({"repoId": "abc"}, ["commit"])

    clock.now = 899.999
    assert cache.get({"repoId": "abc"}) == ["commit"]

    clock.now = 900.001
    assert cache.get({"repoId": "abc"}) is None
    assert len(cache) == 0


def test_entry_is_missed_exactly_at_expiry(cache, clock):
    """Test an entry whose expiry equals now is a miss."""
    cache.set({"repoId": "abc"}, "value")
    clock.now = 900
    assert cache.get({"repoId": "abc"}) is None


def test_get_missing_key_returns_none(cache):
    """Test a miss never raises."""
    assert cache.get({"repoId": "missing"}) is None


def test_set_overwrites_and_refreshes_expiry(cache, clock):
    """Test setting an existing key replaces value and expiry."""
    cache.set({"repoId": "abc"}, "old")
    clock.now = 800
    cache.set({"repoId": "abc"}, "new")

    clock.now = 1600
    assert cache.get({"repoId": "abc"}) == "new"
    assert len(cache) == 1


def test_lru_eviction_prefers_least_recently_used(cache):
    """Test the least recently read entry is evicted when full."""
    cache.set({"repoId": "a"}, 1)
    cache.set({"repoId": "b"}, 2)
    cache.set({"repoId": "c"}, 3)

    # Touch "a" so "b" becomes the least recently used
    assert cache.get({"repoId": "a"}) == 1
    cache.set({"repoId": "d"}, 4)

    assert cache.get({"repoId": "b"}) is None
    assert cache.get({"repoId": "a"}) == 1
    assert cache.get({"repoId": "c"}) == 3
    assert cache.get({"repoId": "d"}) == 4
    assert len(cache) == 3


def test_invalidate_matches_every_fragment(clock):
    """Test invalidation removes all entries for a user across providers."""
    repos = TTLCache("repos", ttl=300, max_entries=10, clock=clock)
    repos.set({"userId": "u1", "provider": "github"}, ["gh"])
    repos.set({"userId": "u1", "provider": "gitlab"}, ["gl"])
    repos.set({"userId": "u2", "provider": "github"}, ["other"])

    removed = repos.invalidate({"userId": "u1"})

    assert removed == 2
    assert repos.get({"userId": "u1", "provider": "github"}) is None
    assert repos.get({"userId": "u1", "provider": "gitlab"}) is None
    assert repos.get({"userId": "u2", "provider": "github"}) == ["other"]


def test_invalidate_requires_all_fragments(clock):
    """Test a multi-field fragment only removes entries matching all of them."""
    repos = TTLCache("repos", ttl=300, max_entries=10, clock=clock)
    repos.set({"userId": "u1", "provider": "github"}, ["gh"])
    repos.set({"userId": "u1", "provider": "gitlab"}, ["gl"])

    assert repos.invalidate({"userId": "u1", "provider": Provider.GITLAB}) == 1
    assert repos.get({"userId": "u1", "provider": "github"}) == ["gh"]


def test_invalidate_does_not_match_value_prefixes(cache):
    """Test ``repoId:ab`` does not remove ``repoId:abc``."""
    cache.set({"repoId": "abc", "fromRef": None, "toRef": None}, "keep")
    assert cache.invalidate({"repoId": "ab"}) == 0
    assert cache.get({"repoId": "abc", "fromRef": None, "toRef": None}) == "keep"


def test_delimiters_inside_values_are_escaped(cache):
    """Test a ref containing key delimiters cannot match another parameter."""
    cache.set({"repoId": "xyz", "fromRef": "x|repoId:abc", "toRef": None}, "keep")

    assert cache.invalidate({"repoId": "abc"}) == 0
    assert cache.get({"repoId": "xyz", "fromRef": "x|repoId:abc", "toRef": None}) == "keep"
    assert cache.key_for({"a": "1|b:2"}) != cache.key_for({"a": "1", "b": "2"})
    assert build_cache_key("commits", {"repoId": "github:octo/repo"}) == (
        "commits:repoId:github%3Aocto/repo"
    )
    assert cache.invalidate({"fromRef": "x|repoId:abc"}) == 1


def test_invalid_configuration_rejected():
    """Test non-positive ttl and capacity are rejected."""
    with pytest.raises(ValueError):
        TTLCache("bad", ttl=0, max_entries=1)
    with pytest.raises(ValueError):
        TTLCache("bad", ttl=1, max_entries=0)


@pytest.fixture
def registry(clock):
    """Create a registry with default settings and a fake clock."""
    return CacheRegistry(Settings(), clock=clock)


def test_registry_builds_caches_from_settings(registry):
    """Test instance names, lifetimes and capacities."""
    assert registry.commits.ttl == 900
    assert registry.repos.ttl == 300
    assert registry.changelogs.ttl == 1800
    assert registry.token_health.ttl == 600
    assert registry.stats() == {
        "commits": {"size": 0, "max": 500},
        "repos": {"size": 0, "max": 1000},
        "changelogs": {"size": 0, "max": 200},
        "tokenHealth": {"size": 0, "max": 100},
    }


def test_registry_repository_hook(registry):
    """Test repository changes clear listings, commits and changelogs of that repo."""
    registry.repos.set({"userId": "u1", "provider": "github"}, [])
    registry.commits.set({"repoId": "r1", "fromRef": None, "toRef": None}, ["c"])
    registry.commits.set({"repoId": "r2", "fromRef": None, "toRef": None}, ["c"])
    registry.changelogs.set({"repoId": "r1", "fromRef": None, "toRef": None, "ai": False}, "doc")

    registry.on_repository_changed("u1", repo_id="r1")

    assert len(registry.repos) == 0
    assert len(registry.changelogs) == 0
    assert registry.commits.get({"repoId": "r2", "fromRef": None, "toRef": None}) == ["c"]
    assert len(registry.commits) == 1


def test_registry_content_hook_keeps_listings(registry):
    """Test a repository content change clears only that repository's entries."""
    registry.repos.set({"userId": "u1", "provider": "github"}, [])
    registry.commits.set({"repoId": "r1", "fromRef": None, "toRef": None}, ["c"])

    registry.on_repository_content_changed("r1")

    assert len(registry.commits) == 0
    assert len(registry.repos) == 1


def test_registry_token_hook_does_not_touch_commits(registry):
    """Test token updates clear only token health and listings."""
    registry.token_health.set({"userId": "u1", "provider": "github"}, "status")
    registry.repos.set({"userId": "u1", "provider": "github"}, [])
    registry.commits.set({"repoId": "r1", "fromRef": None, "toRef": None}, ["c"])

    registry.on_token_updated("u1", provider="github")

    assert len(registry.token_health) == 0
    assert len(registry.repos) == 0
    assert len(registry.commits) == 1


def test_registry_clear_all(registry):
    """Test every instance is emptied."""
    registry.commits.set({"repoId": "r1"}, ["c"])
    registry.token_health.set({"userId": "u1", "provider": "github"}, "status")

    registry.clear_all()

    assert all(stats["size"] == 0 for stats in registry.stats().values())
