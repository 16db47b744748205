"""
Main Application Entry Point.

Command-line front end of the changelog generator. It wires the caches, the
commit miners and, when requested, the AI generator from settings, generates a
changelog for one repository range and writes it in the requested format.

Usage (example):
    changelogger --provider github --owner octocat --repo Hello-World \\
        --from-ref v1.0.0 --to-ref v1.1.0 --format html
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

from openai import AsyncOpenAI
import tiktoken

from config import settings, logger
from analyzers.changelog import ChangelogGenerator, ChangelogRequest
from errors import ChangelogError, SummaryGenerationError
from miners.models import Provider
from renderers.ai_generator import AISummaryGenerator
from renderers.exporter import SUPPORTED_FORMATS, export_changelog
from storage.caches import CacheRegistry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="changelogger",
        description="Generate a changelog from GitHub or GitLab commit history.",
    )
    parser.add_argument(
        "--provider", "-p", required=True, choices=[p.value for p in Provider], help="Hosting provider"
    )
    parser.add_argument("--owner", "-u", required=True, help="Repository owner or namespace")
    parser.add_argument("--repo", "-r", required=True, help="Repository name")
    parser.add_argument("--from-ref", help="Range start (tag, branch or SHA), exclusive")
    parser.add_argument("--to-ref", help="Range end (tag, branch or SHA), inclusive")
    parser.add_argument(
        "--format", "-f", default="markdown", choices=SUPPORTED_FORMATS, help="Export format"
    )
    parser.add_argument("--token", "-t", help="Access token, defaults to the configured provider token")
    parser.add_argument(
        "--ai", action="store_true", default=settings.ai_based, help="Let the AI model write the changelog"
    )
    parser.add_argument("--no-details", action="store_true", help="Skip per-commit file details")
    parser.add_argument("--output", "-o", help="Output file, defaults to the report directory")
    return parser


def resolve_token(provider: Provider, token: Optional[str]) -> Optional[str]:
    if token:
        return token
    configured = settings.github_token if provider is Provider.GITHUB else settings.gitlab_token
    return configured.get_secret_value() if configured else None


def build_ai_generator() -> AISummaryGenerator:
    """Initialize the OpenAI-backed generator from settings."""
    if settings.openai_api_key is None:
        raise SummaryGenerationError("AI generation requested but OPENAI_API_KEY is not set")

    logger.debug({"message": "initializing openai client"})
    openai_client = AsyncOpenAI(
        api_key=settings.openai_api_key.get_secret_value(),
        timeout=settings.openai_timeout,
    )
    encoding = tiktoken.get_encoding(settings.openai_encoding_name)
    return AISummaryGenerator(openai_client, encoding)


async def main(args: argparse.Namespace, token: str) -> str:
    """
    Generate, export and write one changelog.

    Returns:
        str: Path of the written file.

    Raises:
        ChangelogError: If generation or export fails.
    """
    provider = Provider(args.provider)
    logger.info(
        {
            "message": "Starting changelog generation",
            "provider": provider.value,
            "repository": f"{args.owner}/{args.repo}",
            "ai": args.ai,
        }
    )

    generator = ChangelogGenerator(
        CacheRegistry(), ai_generator=build_ai_generator() if args.ai else None
    )
    request = ChangelogRequest(
        repo_id=f"{provider.value}:{args.owner}/{args.repo}",
        provider=provider,
        owner=args.owner,
        name=args.repo,
        access_token=token,
        from_ref=args.from_ref,
        to_ref=args.to_ref,
        include_details=not args.no_details,
        use_ai=args.ai,
    )

    document = await generator.generate(request)
    exported = export_changelog(document, args.format)

    output = args.output
    if not output:
        os.makedirs(settings.report_output_dir, exist_ok=True)
        output = os.path.join(settings.report_output_dir, exported.filename)

    with open(output, "w", encoding="utf-8") as f:
        f.write(exported.content)

    logger.info({"message": "Changelog written", "path": output, "format": args.format})
    return output


def run(argv: Optional[List[str]] = None) -> None:
    """Console script entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    token = resolve_token(Provider(args.provider), args.token)
    if not token:
        parser.error(f"no {args.provider} token given and none configured")

    try:
        output = asyncio.run(main(args, token))
    except ChangelogError as e:
        logger.error({"message": "Changelog generation failed", "error": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info({"message": "Changelog generation interrupted by user"})
        sys.exit(1)

    print(f"Changelog written to {output}")


if __name__ == "__main__":
    run()
