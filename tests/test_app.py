"""
Command-Line Entry Point Test Suite.

Covers argument parsing, file output and exit status on generation errors.
"""

from unittest.mock import AsyncMock

import pytest

import app
from analyzers.changelog import build_changelog_document
from analyzers.commit_classifier import group_commits_by_type
from errors import EmptyResultError

BASE_ARGS = ["--provider", "github", "--owner", "octo", "--repo", "repo", "--token", "ghp_test"]


@pytest.fixture
def document(sample_commits, generated_at):
    return build_changelog_document(
        group_commits_by_type(sample_commits), "octo/repo", generated_at=generated_at
    )


@pytest.fixture
def fake_generator(monkeypatch, document):
    """Replace the changelog generator with one returning a fixed document."""
    generate = AsyncMock(return_value=document)

    class FakeGenerator:
        def __init__(self, caches, ai_generator=None):
            self.ai_generator = ai_generator
            self.generate = generate

    monkeypatch.setattr(app, "ChangelogGenerator", FakeGenerator)
    return generate


def test_parser_defaults():
    """Test optional arguments default sensibly."""
    args = app.build_parser().parse_args(BASE_ARGS)

    assert args.format == "markdown"
    assert args.from_ref is None
    assert args.no_details is False


def test_parser_rejects_unknown_format():
    """Test unsupported formats are rejected by the parser."""
    with pytest.raises(SystemExit):
        app.build_parser().parse_args(BASE_ARGS + ["--format", "pdf"])


def test_run_writes_requested_format(tmp_path, fake_generator, capsys):
    """Test a successful run writes the exported changelog."""
    output = tmp_path / "CHANGELOG.html"

    app.run(BASE_ARGS + ["--from-ref", "v1", "--to-ref", "v2", "--format", "html", "--output", str(output)])

    assert output.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")
    request = fake_generator.call_args.args[0]
    assert request.repo_id == "github:octo/repo"
    assert (request.from_ref, request.to_ref) == ("v1", "v2")
    assert request.include_details is True
    assert "Changelog written to" in capsys.readouterr().out


def test_run_exits_on_changelog_error(tmp_path, fake_generator):
    """Test generation errors exit with status 1."""
    fake_generator.side_effect = EmptyResultError("octo/repo")

    with pytest.raises(SystemExit) as exc_info:
        app.run(BASE_ARGS + ["--no-details", "--output", str(tmp_path / "out.md")])

    assert exc_info.value.code == 1
    assert not (tmp_path / "out.md").exists()
