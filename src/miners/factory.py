"""
Commit Miner Selection.

Maps the ``provider`` discriminant of a repository to the concrete miner.
"""

from typing import Dict, Type, Union

from errors import UnsupportedProviderError
from miners.base import CommitMiner
from miners.github_miner import GitHubMiner
from miners.gitlab_miner import GitLabMiner
from miners.models import Provider

MINERS: Dict[Provider, Type[CommitMiner]] = {
    Provider.GITHUB: GitHubMiner,
    Provider.GITLAB: GitLabMiner,
}


def create_miner(provider: Union[Provider, str], token: str, **kwargs) -> CommitMiner:
    """
    Build the commit miner for a provider.

    Args:
        provider (Union[Provider, str]): "github" or "gitlab".
        token (str): Already-decrypted access token.
        **kwargs: Forwarded to the miner constructor (base_url, timeout, ...).

    Returns:
        CommitMiner: A miner owning its HTTP resources; use it with ``async with``.

    Raises:
        UnsupportedProviderError: For any other provider name.
    """
    try:
        provider = Provider(provider)
    except ValueError:
        raise UnsupportedProviderError(str(provider)) from None
    return MINERS[provider](token, **kwargs)
