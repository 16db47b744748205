"""
AI Changelog Generation Module.

Sends classified commit groups to an OpenAI chat model and returns the
narrative Markdown changelog it writes. The output replaces the rule-based
Markdown body; callers decide what to do when generation fails, this module
never falls back on its own.
"""

import time
from typing import List, Optional

import openai
from openai import AsyncOpenAI
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base
from tiktoken import Encoding

from config import settings, logger
from analyzers.commit_classifier import clean_commit_message
from analyzers.models import CommitGroup
from errors import SummaryGenerationError, SummaryNetworkError
from miners.models import CommitRecord

SYSTEM_PROMPT = (
    "You are a professional technical writer specializing in clear, concise "
    "changelogs for software projects. You explain the impact of changes for "
    "the people who use the software, not just what the commit messages say."
)

USER_PROMPT_TEMPLATE = """Write a changelog for the repository "{repo_name}".

Below are the commits grouped by type, with changed files when available:

{commit_summary}

Produce Markdown that:
1. Starts with a short executive summary paragraph of the release
2. Has one section per category, keeping the category headings given above
3. Uses bullet points that explain the impact of each change, merging related commits
4. Calls out breaking changes first and prominently
5. Uses clear, user-facing language

Return only the Markdown document."""

PATCH_EXCERPT_LINES = 6

# Transient failures worth another attempt
RETRYABLE_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class AISummaryGenerator:
    """
    Narrative changelog writer backed by an OpenAI chat model.

    Attributes:
        client (AsyncOpenAI): OpenAI API client
        encoding (tiktoken.Encoding): Token encoder used to budget the prompt
        max_prompt_tokens (int): Upper bound for the user prompt
        max_attempts (int): Attempts per generation before giving up
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        encoding: Encoding,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        max_prompt_tokens: Optional[int] = None,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        """
        Initialize the generator.

        Args:
            client (AsyncOpenAI): OpenAI API client
            encoding (Encoding): Token encoder for the model
            model (Optional[str]): Chat model, defaults to settings
            temperature (Optional[float]): Sampling temperature
            max_tokens (Optional[int]): Completion token limit
            max_prompt_tokens (Optional[int]): Prompt token budget
            max_attempts (Optional[int]): Attempts per request
            timeout (Optional[float]): Request timeout in seconds
            retry_wait (Optional[wait_base]): Wait strategy between attempts
        """
        self.client = client
        self.encoding = encoding
        self.model = model or settings.openai_llm_model
        self.temperature = (
            settings.openai_temperature if temperature is None else temperature
        )
        self.max_tokens = max_tokens or settings.openai_max_tokens
        self.max_prompt_tokens = max_prompt_tokens or settings.openai_max_prompt_tokens
        self.max_attempts = max_attempts or settings.openai_max_attempts
        self.timeout = timeout or settings.openai_timeout
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)

    def _count_tokens(self, text: str) -> int:
        return len(self.encoding.encode(text))

    def _format_commit(self, commit: CommitRecord, include_diffs: bool) -> List[str]:
        lines = [f"- {clean_commit_message(commit.message)} ({commit.author.name})"]
        if not include_diffs:
            return lines

        for file in commit.files:
            lines.append(
                f"  - {file.status} {file.filename} (+{file.additions}/-{file.deletions})"
            )
            if file.patch:
                excerpt = file.patch.splitlines()[:PATCH_EXCERPT_LINES]
                lines.extend(f"    {line}" for line in excerpt)
        return lines

    def _render_prompt(
        self,
        groups: List[CommitGroup],
        repo_name: str,
        include_diffs: bool,
        commit_limit: Optional[int] = None,
    ) -> str:
        remaining = commit_limit
        sections = []
        for group in groups:
            shown = group.commits if remaining is None else group.commits[:remaining]
            lines = [f"{group.category}:"]
            for commit in shown:
                lines.extend(self._format_commit(commit, include_diffs))
            omitted = len(group.commits) - len(shown)
            if omitted:
                lines.append(f"- ...and {omitted} more commits in this category")
            if remaining is not None:
                remaining -= len(shown)
            sections.append("\n".join(lines))

        return USER_PROMPT_TEMPLATE.format(
            repo_name=repo_name, commit_summary="\n\n".join(sections)
        )

    def build_prompt(self, groups: List[CommitGroup], repo_name: str) -> str:
        """
        Build the user prompt within the token budget.

        File and diff excerpts are dropped first. If the prompt is still too
        large, trailing commits are replaced by a per-category count.

        Args:
            groups (List[CommitGroup]): Classified commits in emit order
            repo_name (str): Repository name

        Returns:
            str: Prompt text
        """
        prompt = self._render_prompt(groups, repo_name, include_diffs=True)
        if self._count_tokens(prompt) <= self.max_prompt_tokens:
            return prompt

        prompt = self._render_prompt(groups, repo_name, include_diffs=False)
        limit = sum(len(group.commits) for group in groups)
        while self._count_tokens(prompt) > self.max_prompt_tokens and limit > 0:
            limit //= 2
            prompt = self._render_prompt(
                groups, repo_name, include_diffs=False, commit_limit=limit
            )

        logger.warning(
            {
                "message": "AI prompt truncated to fit token budget",
                "commits_kept": limit,
                "prompt_tokens": self._count_tokens(prompt),
                "max_prompt_tokens": self.max_prompt_tokens,
            }
        )
        return prompt

    async def generate(self, groups: List[CommitGroup], repo_name: str) -> str:
        """
        Generate a narrative Markdown changelog.

        Args:
            groups (List[CommitGroup]): Classified commits in emit order
            repo_name (str): Repository name

        Returns:
            str: Markdown changelog written by the model

        Raises:
            SummaryNetworkError: If the OpenAI API cannot be reached
            SummaryGenerationError: If the call fails or returns no content
        """
        start_time = time.perf_counter()
        prompt = self.build_prompt(groups, repo_name)
        logger.debug({"message": "AI prompt prepared", "prompt_tokens": self._count_tokens(prompt)})

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self.retry_wait,
                retry=retry_if_exception_type(RETRYABLE_ERRORS),
                reraise=True,
            ):
                with attempt:
                    response = await self.client.chat.completions.create(
                        model=self.model,
                        messages=[
                            {"role": "system", "content": SYSTEM_PROMPT},
                            {"role": "user", "content": prompt},
                        ],
                        temperature=self.temperature,
                        max_tokens=self.max_tokens,
                        timeout=self.timeout,
                    )
        except openai.APIConnectionError as e:
            logger.error({"message": "OpenAI API unreachable", "error": str(e)})
            raise SummaryNetworkError(f"Failed to reach OpenAI API: {e}") from e
        except openai.OpenAIError as e:
            logger.error({"message": "AI summary generation failed", "error": str(e)})
            raise SummaryGenerationError(f"Failed to generate AI summary: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            logger.error({"message": "AI summary generation returned no content"})
            raise SummaryGenerationError("AI summary generation returned no content")

        logger.info(
            {
                "message": "AI summary generated",
                "model": self.model,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            }
        )
        return content.strip() + "\n"
