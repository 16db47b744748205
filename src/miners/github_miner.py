"""
GitHub Commit Mining Module.

This module handles the extraction of commit history from GitHub repositories
through PyGithub. Commit lists, ref comparisons and commit details are fetched
as raw JSON through the client's requester and mapped by miners.parsing;
repositories, tags and branches use PyGithub's object model directly.

PyGithub is synchronous, so each call runs in a worker thread and the
per-commit detail fetches of one batch proceed concurrently.
"""

import asyncio
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import quote

import requests
from github import Auth, Github, GithubException
from github.Branch import Branch
from github.GithubException import BadCredentialsException, RateLimitExceededException
from github.Repository import Repository
from github.Tag import Tag

from config import settings, logger
from errors import NetworkError, ProviderError
from miners.base import CommitMiner
from miners.models import (
    CommitRecord,
    CommitStats,
    FileChange,
    Provider,
    RefInfo,
    RepositoryCoordinates,
    RepositoryInfo,
    TokenHealthReason,
    TokenHealthStatus,
)
from miners.parsing import (
    parse_github_commit,
    parse_github_commit_details,
    parse_rate_limit_headers,
)


def _exception_message(error: GithubException) -> str:
    if isinstance(error.data, dict) and error.data.get("message"):
        return str(error.data["message"])
    return str(error)


@contextmanager
def _translated_errors() -> Iterator[None]:
    """Translate PyGithub and transport exceptions into the changelog taxonomy."""
    try:
        yield
    except GithubException as e:
        raise ProviderError(e.status, _exception_message(e), Provider.GITHUB.value) from e
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"GitHub request failed: {e}") from e


class GitHubMiner(CommitMiner):
    """
    GitHubMiner is responsible for mining commits from GitHub repositories.

    With both refs given it uses the compare endpoint so only the commits
    unique to ``from_ref...to_ref`` are returned. Without a range it returns
    the first page of commits on the default branch.
    """

    provider = Provider.GITHUB

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        per_page: Optional[int] = None,
        timeout: Optional[float] = None,
        github: Optional[Github] = None,
    ):
        """Initialize GitHub miner with authentication and configuration.

        Args:
            token (str): Already-decrypted GitHub access token.
            base_url (Optional[str]): API base URL, for GitHub Enterprise.
            per_page (Optional[int]): Commits per (single) page.
            timeout (Optional[float]): Request timeout in seconds.
            github (Optional[Github]): Preconfigured client, mainly for tests.
        """
        super().__init__()
        self.per_page = per_page or settings.commits_per_page
        # retry=None: a failed primary call fails the request immediately
        self.github = github or Github(
            auth=Auth.Token(token),
            base_url=base_url or settings.github_api_url,
            per_page=self.per_page,
            timeout=int(timeout or settings.provider_timeout),
            retry=None,
        )

    async def aclose(self) -> None:
        await asyncio.to_thread(self.github.close)

    def _request_json(
        self, url: str, parameters: Optional[Dict[str, Any]] = None
    ) -> Tuple[Dict[str, Any], Any]:
        with _translated_errors():
            return self.github.requester.requestJsonAndCheck(
                "GET", url, parameters=parameters
            )

    @staticmethod
    def _repo_path(coordinates: RepositoryCoordinates) -> str:
        return f"/repos/{quote(coordinates.owner, safe='')}/{quote(coordinates.name, safe='')}"

    def _list_commits(
        self,
        coordinates: RepositoryCoordinates,
        from_ref: Optional[str],
        to_ref: Optional[str],
    ) -> List[CommitRecord]:
        path = self._repo_path(coordinates)

        if from_ref:
            head = to_ref or "HEAD"
            url = f"{path}/compare/{quote(from_ref, safe='/')}...{quote(head, safe='/')}"
            headers, data = self._request_json(url)
            raw_commits = data.get("commits") if isinstance(data, dict) else None
        else:
            parameters: Dict[str, Any] = {"per_page": self.per_page}
            if to_ref:
                parameters["sha"] = to_ref
            headers, raw_commits = self._request_json(f"{path}/commits", parameters)

        self.rate_limit = parse_rate_limit_headers(headers)
        self._log_rate_limit("Commit mining")

        if not isinstance(raw_commits, list):
            raise ProviderError(
                502, "Malformed commit payload: expected a list of commits", self.provider.value
            )

        try:
            return [parse_github_commit(raw) for raw in raw_commits]
        except ValueError as e:
            raise ProviderError(
                502, f"Malformed commit payload: {e}", self.provider.value
            ) from e

    async def _fetch_commit_list(
        self,
        coordinates: RepositoryCoordinates,
        from_ref: Optional[str],
        to_ref: Optional[str],
    ) -> List[CommitRecord]:
        return await asyncio.to_thread(self._list_commits, coordinates, from_ref, to_ref)

    def _commit_details(
        self, coordinates: RepositoryCoordinates, sha: str
    ) -> Tuple[List[FileChange], CommitStats]:
        _, data = self._request_json(f"{self._repo_path(coordinates)}/commits/{sha}")
        return parse_github_commit_details(data)

    async def _fetch_commit_details(
        self, coordinates: RepositoryCoordinates, sha: str
    ) -> Tuple[List[FileChange], CommitStats]:
        return await asyncio.to_thread(self._commit_details, coordinates, sha)

    def _get_ref_info(self, ref: Any) -> RefInfo:
        """Convert a GitHub Tag or Branch object to a Pydantic model.

        Args:
            ref (Tag | Branch): The PyGithub ref object.

        Returns:
            RefInfo: Name and target commit of the ref.
        """
        return RefInfo(
            name=ref.name,
            sha=ref.commit.sha,
            protected=ref.protected if isinstance(ref, Branch) else None,
        )

    def _get_repository_info(self, repo: Repository) -> RepositoryInfo:
        """Convert a GitHub Repository object to a Pydantic model.

        Args:
            repo (Repository): The PyGithub repository object.

        Returns:
            RepositoryInfo: Provider-independent repository description.
        """
        return RepositoryInfo(
            id=str(repo.id),
            provider=Provider.GITHUB,
            name=repo.name,
            owner=repo.owner.login,
            full_name=repo.full_name,
            url=repo.html_url,
            default_branch=repo.default_branch,
            private=bool(repo.private),
            description=repo.description,
            updated_at=repo.updated_at,
        )

    def _list_tags(self, coordinates: RepositoryCoordinates) -> List[RefInfo]:
        with _translated_errors():
            repo = self.github.get_repo(coordinates.full_name, lazy=True)
            tags: List[Tag] = repo.get_tags().get_page(0)
            return [self._get_ref_info(tag) for tag in tags]

    def _list_branches(self, coordinates: RepositoryCoordinates) -> List[RefInfo]:
        with _translated_errors():
            repo = self.github.get_repo(coordinates.full_name, lazy=True)
            branches: List[Branch] = repo.get_branches().get_page(0)
            return [self._get_ref_info(branch) for branch in branches]

    def _list_repositories(self) -> List[RepositoryInfo]:
        with _translated_errors():
            repos = self.github.get_user().get_repos(sort="updated").get_page(0)
            return [self._get_repository_info(repo) for repo in repos]

    async def list_tags(self, coordinates: RepositoryCoordinates) -> List[RefInfo]:
        return await asyncio.to_thread(self._list_tags, coordinates)

    async def list_branches(self, coordinates: RepositoryCoordinates) -> List[RefInfo]:
        return await asyncio.to_thread(self._list_branches, coordinates)

    async def list_repositories(self) -> List[RepositoryInfo]:
        return await asyncio.to_thread(self._list_repositories)

    def _check_token_health(self) -> TokenHealthStatus:
        try:
            headers, _ = self.github.requester.requestJsonAndCheck("GET", "/user")
        except BadCredentialsException:
            logger.warning({"message": "GitHub token is invalid or expired"})
            return TokenHealthStatus(valid=False, reason=TokenHealthReason.INVALID_OR_EXPIRED)
        except RateLimitExceededException as e:
            logger.warning({"message": "GitHub token is rate limited"})
            rate_limit = parse_rate_limit_headers(e.headers)
            return TokenHealthStatus(
                valid=False,
                reason=TokenHealthReason.RATE_LIMITED,
                reset_at=rate_limit.reset_at if rate_limit else None,
            )
        except GithubException as e:
            if e.status == 403:
                logger.warning({"message": "GitHub token is rate limited"})
                return TokenHealthStatus(valid=False, reason=TokenHealthReason.RATE_LIMITED)
            logger.error({"message": "Unexpected GitHub token check answer", "status": e.status})
            return TokenHealthStatus(valid=False, reason=TokenHealthReason.NETWORK_ERROR)
        except requests.exceptions.RequestException as e:
            logger.error({"message": "Error testing GitHub token", "error": str(e)})
            return TokenHealthStatus(valid=False, reason=TokenHealthReason.NETWORK_ERROR)

        rate_limit = parse_rate_limit_headers(headers)
        scopes = next(
            (value for key, value in headers.items() if key.lower() == "x-oauth-scopes"),
            None,
        )
        logger.info(
            {
                "message": "GitHub token is valid",
                "remaining_requests": rate_limit.remaining if rate_limit else None,
            }
        )
        return TokenHealthStatus(
            valid=True,
            remaining_requests=rate_limit.remaining if rate_limit else None,
            reset_at=rate_limit.reset_at if rate_limit else None,
            scopes=[scope.strip() for scope in scopes.split(",") if scope.strip()]
            if scopes
            else None,
        )

    async def check_token_health(self) -> TokenHealthStatus:
        return await asyncio.to_thread(self._check_token_health)
