"""
Changelog Error Taxonomy.

Fatal errors derive from ChangelogError and propagate unchanged to whoever
invoked the generation pipeline. DetailFetchWarning is the only non-fatal
condition: it is logged where it occurs and never raised to callers.
"""

from typing import Iterable, Optional


class ChangelogError(Exception):
    """Base class for every fatal changelog generation error."""


class ProviderError(ChangelogError):
    """A primary provider call answered with a non-2xx status."""

    def __init__(self, status: int, message: str, provider: Optional[str] = None):
        self.status = status
        self.message = message
        self.provider = provider
        prefix = f"{provider} " if provider else ""
        super().__init__(f"{prefix}API error {status}: {message}")


class NetworkError(ChangelogError):
    """Transport-level failure reaching a provider or the generative-text service."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DetailFetchWarning(UserWarning):
    """A per-commit detail fetch failed; the record keeps empty file data."""

    def __init__(self, sha: str, reason: str):
        self.sha = sha
        self.reason = reason
        super().__init__(f"Failed to fetch details for commit {sha}: {reason}")


class SummaryGenerationError(ChangelogError):
    """The AI changelog could not be produced."""


class SummaryNetworkError(SummaryGenerationError, NetworkError):
    """The generative-text service could not be reached."""

    def __init__(self, message: str):
        NetworkError.__init__(self, message)


class InvalidFormatError(ChangelogError):
    """An export format outside the supported set was requested."""

    def __init__(self, requested: str, valid_formats: Iterable[str]):
        self.requested = requested
        self.valid_formats = list(valid_formats)
        super().__init__(
            f"Invalid format '{requested}'. Supported formats: "
            f"{', '.join(self.valid_formats)}"
        )


class EmptyResultError(ChangelogError):
    """The requested range contains no commits."""

    def __init__(
        self,
        repository: str,
        from_ref: Optional[str] = None,
        to_ref: Optional[str] = None,
    ):
        self.repository = repository
        self.from_ref = from_ref
        self.to_ref = to_ref
        if from_ref or to_ref:
            scope = f" between {from_ref or 'the beginning'} and {to_ref or 'HEAD'}"
        else:
            scope = ""
        super().__init__(f"No commits found for {repository}{scope}")


class UnsupportedProviderError(ChangelogError):
    """No commit miner exists for the requested provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unsupported provider: {provider}")
