"""
Changelog Generation Pipeline.

Ties the pieces together for one request: cached commit mining, classification,
rendering every format and caching the finished document.
"""

import json
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel, SecretStr

from config import logger
from analyzers.commit_classifier import group_commits_by_type
from analyzers.models import ChangelogDocument, CommitGroup
from errors import EmptyResultError, SummaryGenerationError
from miners.base import CommitMiner
from miners.factory import create_miner
from miners.models import CommitRecord, Provider, RepositoryCoordinates
from renderers.ai_generator import AISummaryGenerator
from renderers.html_generator import markdown_to_html
from renderers.json_generator import build_metadata, compute_stats, render_json
from renderers.markdown_generator import render_markdown
from renderers.text_generator import render_text
from storage.caches import CacheRegistry

MinerFactory = Callable[[Provider, str], CommitMiner]


class ChangelogRequest(BaseModel):
    """
    Parameters of one changelog generation.

    Attributes:
        repo_id (str): Stable identifier of the connected repository.
        provider (Provider): Hosting provider.
        owner (str): Repository owner or namespace.
        name (str): Repository name.
        access_token (SecretStr): Already-decrypted provider token.
        from_ref (Optional[str]): Range start, exclusive.
        to_ref (Optional[str]): Range end, inclusive.
        include_details (bool): Fetch per-commit file data.
        use_ai (bool): Have the AI generator write the Markdown body.
    """

    repo_id: str
    provider: Provider
    owner: str
    name: str
    access_token: SecretStr
    from_ref: Optional[str] = None
    to_ref: Optional[str] = None
    include_details: bool = True
    use_ai: bool = False

    @property
    def coordinates(self) -> RepositoryCoordinates:
        return RepositoryCoordinates(owner=self.owner, name=self.name)


def build_changelog_document(
    groups: List[CommitGroup],
    repo_name: str,
    start_ref: Optional[str] = None,
    end_ref: Optional[str] = None,
    markdown: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> ChangelogDocument:
    """
    Render every format of a changelog into one immutable document.

    Args:
        groups (List[CommitGroup]): Classified commits.
        repo_name (str): Repository full name.
        start_ref (Optional[str]): Range start.
        end_ref (Optional[str]): Range end.
        markdown (Optional[str]): AI-written Markdown replacing the rule-based body.
        generated_at (Optional[datetime]): Generation time, defaults to now.

    Returns:
        ChangelogDocument: Document whose HTML derives from the chosen Markdown.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    ai_generated = markdown is not None
    if markdown is None:
        markdown = render_markdown(groups, repo_name, start_ref, end_ref, generated_at)

    return ChangelogDocument(
        metadata=build_metadata(groups, repo_name, start_ref, end_ref, generated_at),
        stats=compute_stats(groups),
        groups=groups,
        markdown=markdown,
        html=markdown_to_html(markdown, title=f"Changelog - {repo_name}"),
        text=render_text(groups, repo_name, start_ref, end_ref, generated_at),
        json_text=json.dumps(
            render_json(groups, repo_name, start_ref, end_ref, generated_at),
            indent=2,
            ensure_ascii=False,
        ),
        ai_generated=ai_generated,
    )


class ChangelogGenerator:
    """
    Generates changelogs with caching in front of the provider and the renderers.

    Attributes:
        caches (CacheRegistry): Commit and changelog caches.
        ai_generator (Optional[AISummaryGenerator]): Writer for AI changelogs.
        miner_factory (MinerFactory): Builds a miner for a provider and token.
    """

    def __init__(
        self,
        caches: CacheRegistry,
        ai_generator: Optional[AISummaryGenerator] = None,
        miner_factory: MinerFactory = create_miner,
    ):
        self.caches = caches
        self.ai_generator = ai_generator
        self.miner_factory = miner_factory

    async def _get_commits(self, request: ChangelogRequest) -> List[CommitRecord]:
        params = {
            "repoId": request.repo_id,
            "fromRef": request.from_ref,
            "toRef": request.to_ref,
            "includeDetails": request.include_details,
        }
        commits = self.caches.commits.get(params)
        if commits is not None:
            return commits

        async with self.miner_factory(
            request.provider, request.access_token.get_secret_value()
        ) as miner:
            commits = await miner.fetch_commits(
                request.coordinates,
                from_ref=request.from_ref,
                to_ref=request.to_ref,
                include_details=request.include_details,
            )

        if commits:
            self.caches.commits.set(params, commits)
        return commits

    async def generate(self, request: ChangelogRequest) -> ChangelogDocument:
        """
        Generate (or return the cached) changelog for a repository range.

        Args:
            request (ChangelogRequest): What to generate.

        Returns:
            ChangelogDocument: The generated changelog.

        Raises:
            EmptyResultError: If the range contains no commits.
            SummaryGenerationError: If AI output was requested and failed.
            ProviderError: If the provider rejected the commit request.
            NetworkError: If the provider could not be reached.
        """
        start_time = time.perf_counter()
        repo_name = request.coordinates.full_name
        changelog_params = {
            "repoId": request.repo_id,
            "fromRef": request.from_ref,
            "toRef": request.to_ref,
            "includeDetails": request.include_details,
            "ai": request.use_ai,
        }

        cached = self.caches.changelogs.get(changelog_params)
        if cached is not None:
            logger.info({"message": "Returning cached changelog", "repository": repo_name})
            return cached

        commits = await self._get_commits(request)
        if not commits:
            raise EmptyResultError(repo_name, request.from_ref, request.to_ref)

        groups = group_commits_by_type(commits)

        markdown = None
        if request.use_ai:
            if self.ai_generator is None:
                raise SummaryGenerationError("AI generation requested but no AI generator is configured")
            markdown = await self.ai_generator.generate(groups, repo_name)

        document = build_changelog_document(
            groups, repo_name, request.from_ref, request.to_ref, markdown=markdown
        )
        self.caches.changelogs.set(changelog_params, document)

        logger.info(
            {
                "message": "Changelog generated",
                "repository": repo_name,
                "commit_count": document.stats.total_commits,
                "group_count": len(groups),
                "ai_generated": document.ai_generated,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            }
        )
        return document

    def invalidate_repository(self, repo_id: str) -> None:
        """Drop cached commits and changelogs of a repository."""
        self.caches.on_repository_content_changed(repo_id)
