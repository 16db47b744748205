"""
GitLab Miner Test Suite.

Covers:
- Commit listing parameters and range approximation
- Diff enrichment with line counting and rename tracking
- Error translation for primary calls
- Refs, projects and token health
"""

import httpx
import pytest

from errors import NetworkError, ProviderError
from miners.gitlab_miner import GitLabMiner
from miners.models import RepositoryCoordinates, TokenHealthReason

COORDS = RepositoryCoordinates(owner="group", name="project")

COMMITS = [
    {
        "id": f"{i}" * 40,
        "message": message,
        "author_name": "Ada Lovelace",
        "author_email": "ada@example.com",
        "authored_date": "2024-05-01T12:00:00Z",
        "web_url": f"https://gitlab.example.com/group/project/-/commit/{i}",
    }
    for i, message in enumerate(["feat: first", "fix: second", "docs: third"], start=1)
]

DIFFS = [
    {
        "old_path": "src/app.py",
        "new_path": "src/app.py",
        "new_file": False,
        "renamed_file": False,
        "deleted_file": False,
        "diff": "@@ -1,2 +1,3 @@\n-old line\n+new line\n+another line\n context",
    },
    {
        "old_path": "docs/old.md",
        "new_path": "docs/new.md",
        "new_file": False,
        "renamed_file": True,
        "deleted_file": False,
        "diff": "",
    },
]


class GitLabAPI:
    """Records requests and answers like the GitLab REST API."""

    def __init__(self):
        self.requests = []
        self.failing_diffs = set()
        self.diff_overrides = {}
        self.commit_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/repository/commits"):
            if self.commit_status != 200:
                return httpx.Response(self.commit_status, json={"message": "404 Project Not Found"})
            return httpx.Response(
                200,
                json=COMMITS,
                headers={"RateLimit-Remaining": "1999", "RateLimit-Limit": "2000"},
            )
        if path.endswith("/diff"):
            sha = path.split("/")[-2]
            if sha in self.failing_diffs:
                return httpx.Response(500, json={"message": "500 Internal Server Error"})
            return httpx.Response(200, json=self.diff_overrides.get(sha, DIFFS))
        if path.endswith("/repository/tags"):
            return httpx.Response(
                200, json=[{"name": "v1.0.0", "commit": {"id": "abc"}, "protected": False}]
            )
        if path.endswith("/repository/branches"):
            return httpx.Response(
                200, json=[{"name": "main", "commit": {"id": "def"}, "protected": True}]
            )
        if path.endswith("/projects"):
            return httpx.Response(
                200,
                json=[
                    {
                        "id": 7,
                        "path": "project",
                        "name": "Project",
                        "path_with_namespace": "group/project",
                        "namespace": {"full_path": "group"},
                        "web_url": "https://gitlab.example.com/group/project",
                        "default_branch": "main",
                        "visibility": "private",
                        "last_activity_at": "2024-05-01T12:00:00Z",
                    }
                ],
            )
        raise AssertionError(f"unexpected path {path}")

    def commit_requests(self):
        return [r for r in self.requests if r.url.path.endswith("/repository/commits")]


@pytest.fixture
def api():
    return GitLabAPI()


@pytest.fixture
def miner(api):
    return GitLabMiner(
        "glpat-test",
        base_url="https://gitlab.example.com/",
        per_page=20,
        transport=httpx.MockTransport(api),
    )


@pytest.mark.asyncio
async def test_fetch_commits_sends_token_and_paging(miner, api):
    """Test the commit listing request and parsed records."""
    async with miner:
        commits = await miner.fetch_commits(COORDS, include_details=False)

    assert [c.message for c in commits] == ["feat: first", "fix: second", "docs: third"]
    assert commits[0].author.email == "ada@example.com"
    (request,) = api.commit_requests()
    assert request.headers["PRIVATE-TOKEN"] == "glpat-test"
    assert request.url.host == "gitlab.example.com"
    assert request.url.params["per_page"] == "20"
    assert "ref_name" not in request.url.params
    assert miner.rate_limit.remaining == 1999


@pytest.mark.asyncio
async def test_range_uses_end_ref_only(miner, api):
    """Test the start ref is not sent and the end ref selects the history."""
    async with miner:
        await miner.fetch_commits(COORDS, "v1.0.0", "v1.1.0", include_details=False)

    (request,) = api.commit_requests()
    assert request.url.params["ref_name"] == "v1.1.0"
    assert "v1.0.0" not in str(request.url)


@pytest.mark.asyncio
async def test_details_count_lines_and_track_renames(miner):
    """Test diff entries become file changes with counted lines."""
    async with miner:
        commits = await miner.fetch_commits(COORDS)

    files = commits[0].files
    assert files[0].filename == "src/app.py"
    assert files[0].status == "modified"
    assert (files[0].additions, files[0].deletions) == (2, 1)
    assert files[1].status == "renamed"
    assert files[1].previous_filename == "docs/old.md"
    assert commits[0].stats.additions == 2
    assert commits[0].stats.deletions == 1


@pytest.mark.asyncio
async def test_partial_detail_failure(miner, api):
    """Test a failing diff fetch only empties that commit."""
    api.failing_diffs.add(COMMITS[1]["id"])

    async with miner:
        commits = await miner.fetch_commits(COORDS)

    assert len(commits) == 3
    assert commits[1].files == []
    assert commits[1].stats.total == 0
    assert commits[0].files and commits[2].files


@pytest.mark.asyncio
async def test_non_string_diff_counts_no_lines(miner, api):
    """Test a diff body that is not text keeps the file with zero counts."""
    api.diff_overrides[COMMITS[1]["id"]] = [{"new_path": "bin/tool", "diff": {"binary": True}}]

    async with miner:
        commits = await miner.fetch_commits(COORDS)

    (tool,) = commits[1].files
    assert tool.filename == "bin/tool"
    assert (tool.additions, tool.deletions, tool.patch) == (0, 0, None)
    assert commits[0].stats.additions == 2


@pytest.mark.asyncio
async def test_malformed_diff_entry_degrades_single_record(miner, api):
    """Test a diff entry that is not an object only empties that commit."""
    api.diff_overrides[COMMITS[1]["id"]] = ["not an object"]

    async with miner:
        commits = await miner.fetch_commits(COORDS)

    assert [c.sha for c in commits] == [c["id"] for c in COMMITS]
    assert commits[1].files == []
    assert commits[0].files and commits[2].files


@pytest.mark.asyncio
async def test_primary_failure_raises_provider_error(miner, api):
    """Test a failed commit listing carries status and message."""
    api.commit_status = 404

    async with miner:
        with pytest.raises(ProviderError) as exc_info:
            await miner.fetch_commits(COORDS)

    assert exc_info.value.status == 404
    assert exc_info.value.message == "404 Project Not Found"


@pytest.mark.asyncio
async def test_transport_failure_raises_network_error():
    """Test connection errors surface as NetworkError."""

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with GitLabMiner("glpat-test", transport=httpx.MockTransport(refuse)) as miner:
        with pytest.raises(NetworkError):
            await miner.fetch_commits(COORDS)


@pytest.mark.asyncio
async def test_list_refs_and_projects(miner):
    """Test tags, branches and projects are mapped."""
    async with miner:
        tags = await miner.list_tags(COORDS)
        branches = await miner.list_branches(COORDS)
        projects = await miner.list_repositories()

    assert (tags[0].name, tags[0].sha) == ("v1.0.0", "abc")
    assert branches[0].protected is True
    assert projects[0].full_name == "group/project"
    assert projects[0].owner == "group"
    assert projects[0].private is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, valid, reason",
    [
        (200, True, None),
        (401, False, TokenHealthReason.INVALID_OR_EXPIRED),
        (429, False, TokenHealthReason.RATE_LIMITED),
        (503, False, TokenHealthReason.NETWORK_ERROR),
    ],
)
async def test_token_health(status, valid, reason):
    """Test probe answers map to token health results."""

    def user(request):
        assert request.url.path == "/api/v4/user"
        return httpx.Response(status, json={"id": 1}, headers={"RateLimit-Remaining": "10"})

    async with GitLabMiner("glpat-test", transport=httpx.MockTransport(user)) as miner:
        health = await miner.check_token_health()

    assert health.valid is valid
    assert health.reason is reason
    if valid:
        assert health.remaining_requests == 10
