"""
GitLab Commit Mining Module.

Extracts commit history from GitLab projects through the REST API v4 using an
asynchronous httpx client.

GitLab offers no equivalent of GitHub's two-ref compare for commit listings,
so a range is approximated by the commits reachable from ``to_ref`` (or the
default branch); ``from_ref`` does not narrow the result.
"""

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

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
    parse_gitlab_commit,
    parse_gitlab_diffs,
    parse_gitlab_project,
    parse_gitlab_ref,
    parse_rate_limit_headers,
)


class GitLabMiner(CommitMiner):
    """Client for mining commits from GitLab REST API v4."""

    provider = Provider.GITLAB

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        per_page: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize GitLab miner

        Args:
            token: Already-decrypted GitLab access token
            base_url: GitLab instance URL (defaults to settings.gitlab_url)
            per_page: Commits per (single) page
            timeout: Request timeout in seconds
            transport: Optional httpx transport, mainly for tests
        """
        super().__init__()
        self.base_url = (base_url or settings.gitlab_url).rstrip("/")
        self.per_page = per_page or settings.commits_per_page
        self.client = httpx.AsyncClient(
            base_url=f"{self.base_url}/api/v4",
            headers={"PRIVATE-TOKEN": token},
            timeout=httpx.Timeout(timeout or settings.provider_timeout, connect=10.0),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _project_path(coordinates: RepositoryCoordinates) -> str:
        return f"/projects/{quote(coordinates.full_name, safe='')}"

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.reason_phrase or "Unknown error"
        if isinstance(data, dict):
            message = data.get("message") or data.get("error")
            if message:
                return str(message)
        return response.reason_phrase or "Unknown error"

    async def _request(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Tuple[httpx.Response, Any]:
        """Make an authenticated GET request and decode the JSON body."""
        try:
            response = await self.client.get(path, params=params)
        except httpx.RequestError as e:
            raise NetworkError(f"GitLab request failed: {e}") from e

        if not response.is_success:
            raise ProviderError(
                response.status_code, self._error_message(response), self.provider.value
            )

        try:
            return response, response.json()
        except ValueError as e:
            raise ProviderError(
                502, f"Malformed JSON payload: {e}", self.provider.value
            ) from e

    async def _fetch_commit_list(
        self,
        coordinates: RepositoryCoordinates,
        from_ref: Optional[str],
        to_ref: Optional[str],
    ) -> List[CommitRecord]:
        params: Dict[str, Any] = {"per_page": self.per_page}
        if to_ref:
            params["ref_name"] = to_ref
        if from_ref:
            logger.debug(
                {
                    "message": "GitLab range approximated by commits reachable from to_ref",
                    "repository": coordinates.full_name,
                    "from_ref": from_ref,
                    "to_ref": to_ref,
                }
            )

        response, data = await self._request(
            f"{self._project_path(coordinates)}/repository/commits", params
        )
        self.rate_limit = parse_rate_limit_headers(response.headers, prefix="ratelimit-")
        self._log_rate_limit("Commit mining")

        if not isinstance(data, list):
            raise ProviderError(
                502, "Malformed commit payload: expected a list of commits", self.provider.value
            )

        try:
            return [parse_gitlab_commit(raw) for raw in data]
        except ValueError as e:
            raise ProviderError(
                502, f"Malformed commit payload: {e}", self.provider.value
            ) from e

    async def _fetch_commit_details(
        self, coordinates: RepositoryCoordinates, sha: str
    ) -> Tuple[List[FileChange], CommitStats]:
        _, data = await self._request(
            f"{self._project_path(coordinates)}/repository/commits/{sha}/diff"
        )
        return parse_gitlab_diffs(data)

    async def _list_refs(self, coordinates: RepositoryCoordinates, kind: str) -> List[RefInfo]:
        _, data = await self._request(
            f"{self._project_path(coordinates)}/repository/{kind}",
            {"per_page": self.per_page},
        )
        try:
            return [parse_gitlab_ref(raw) for raw in data]
        except (AttributeError, TypeError, ValueError) as e:
            raise ProviderError(502, f"Malformed {kind} payload: {e}", self.provider.value) from e

    async def list_tags(self, coordinates: RepositoryCoordinates) -> List[RefInfo]:
        return await self._list_refs(coordinates, "tags")

    async def list_branches(self, coordinates: RepositoryCoordinates) -> List[RefInfo]:
        return await self._list_refs(coordinates, "branches")

    async def list_repositories(self) -> List[RepositoryInfo]:
        _, data = await self._request(
            "/projects",
            {"membership": "true", "per_page": self.per_page, "order_by": "updated_at"},
        )
        try:
            return [parse_gitlab_project(raw) for raw in data]
        except (AttributeError, TypeError, ValueError) as e:
            raise ProviderError(502, f"Malformed projects payload: {e}", self.provider.value) from e

    async def check_token_health(self) -> TokenHealthStatus:
        try:
            response = await self.client.get("/user")
        except httpx.RequestError as e:
            logger.error({"message": "Error testing GitLab token", "error": str(e)})
            return TokenHealthStatus(valid=False, reason=TokenHealthReason.NETWORK_ERROR)

        rate_limit = parse_rate_limit_headers(response.headers, prefix="ratelimit-")

        if response.is_success:
            logger.info(
                {
                    "message": "GitLab token is valid",
                    "remaining_requests": rate_limit.remaining if rate_limit else None,
                }
            )
            return TokenHealthStatus(
                valid=True,
                remaining_requests=rate_limit.remaining if rate_limit else None,
                reset_at=rate_limit.reset_at if rate_limit else None,
            )

        if response.status_code == 401:
            logger.warning({"message": "GitLab token is invalid or expired"})
            return TokenHealthStatus(valid=False, reason=TokenHealthReason.INVALID_OR_EXPIRED)

        if response.status_code == 429:
            logger.warning({"message": "GitLab token is rate limited"})
            return TokenHealthStatus(
                valid=False,
                reason=TokenHealthReason.RATE_LIMITED,
                reset_at=rate_limit.reset_at if rate_limit else None,
            )

        logger.error(
            {"message": "Unexpected GitLab token check answer", "status": response.status_code}
        )
        return TokenHealthStatus(valid=False, reason=TokenHealthReason.NETWORK_ERROR)
