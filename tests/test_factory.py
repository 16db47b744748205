"""
Commit Miner Selection Test Suite.
"""

import pytest

from errors import UnsupportedProviderError
from miners.factory import create_miner
from miners.github_miner import GitHubMiner
from miners.gitlab_miner import GitLabMiner
from miners.models import Provider


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "provider, expected",
    [("github", GitHubMiner), (Provider.GITHUB, GitHubMiner), ("gitlab", GitLabMiner)],
)
async def test_create_miner_dispatches_on_provider(provider, expected):
    """Test each provider gets its miner."""
    async with create_miner(provider, "token", timeout=5) as miner:
        assert isinstance(miner, expected)


def test_create_miner_rejects_unknown_provider():
    """Test unknown providers raise UnsupportedProviderError."""
    with pytest.raises(UnsupportedProviderError) as exc_info:
        create_miner("bitbucket", "token")

    assert exc_info.value.provider == "bitbucket"
