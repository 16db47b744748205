"""
Application Configuration Module.

Loads changelogger settings from the environment and an optional .env file
through pydantic-settings, and builds the shared application logger.

Settings groups:
- Application and logging
- Provider endpoints, timeouts and paging
- OpenAI model, prompt budget and retries
- Cache lifetimes and capacities
"""

import os
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from logger import LogManager


class Settings(BaseSettings):
    """
    Changelogger settings.

    Groups:
    - Application identification and logging
    - GitHub and GitLab endpoints
    - OpenAI configuration for narrative changelogs
    - Cache time-to-live and capacity per cache type
    - Output directory configuration

    Every field carries a default so the application can be imported without
    an environment file. Provider tokens are only read by the command line
    entry point; library callers pass already-decrypted tokens explicitly.
    """

    # Application settings
    app_name: str = Field(default="Changelogger", description="Application name")
    dev: bool = Field(default=False, description="Debug mode")
    log_dir: str = Field(default="logs", description="Logging directory")
    log_level: int = Field(default=20, description="Logging level, default info")

    report_output_dir: str = Field(
        default="reports", description="Changelog export output directory"
    )

    # Provider configuration
    github_api_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    gitlab_url: str = Field(default="https://gitlab.com", description="GitLab base URL")
    provider_timeout: float = Field(
        default=30.0, description="Provider request timeout in seconds"
    )
    commits_per_page: int = Field(
        default=100, description="Commits fetched per request (single page)"
    )
    github_token: Optional[SecretStr] = Field(default=None, description="GitHub token")
    gitlab_token: Optional[SecretStr] = Field(default=None, description="GitLab token")

    # OpenAI configuration
    openai_api_key: Optional[SecretStr] = Field(default=None, description="OpenAI API key")
    openai_llm_model: str = Field(default="gpt-4o-mini", description="OpenAI LLM model")
    openai_encoding_name: str = Field(default="o200k_base", description="Encoding name")
    openai_temperature: float = Field(default=0.7, description="Sampling temperature")
    openai_max_tokens: int = Field(default=2000, description="Completion token limit")
    openai_max_prompt_tokens: int = Field(
        default=12000, description="Token budget for the changelog prompt"
    )
    openai_max_attempts: int = Field(default=3, description="Attempts per AI request")
    openai_timeout: float = Field(default=120.0, description="OpenAI timeout in seconds")

    # AI Analysis configuration
    ai_based: bool = Field(default=False, description="Use AI-written changelogs")

    # Cache configuration
    commits_cache_ttl_seconds: int = Field(default=15 * 60)
    commits_cache_max_entries: int = Field(default=500)
    repos_cache_ttl_seconds: int = Field(default=5 * 60)
    repos_cache_max_entries: int = Field(default=1000)
    changelogs_cache_ttl_seconds: int = Field(default=30 * 60)
    changelogs_cache_max_entries: int = Field(default=200)
    token_health_cache_ttl_seconds: int = Field(default=10 * 60)
    token_health_cache_max_entries: int = Field(default=100)

    @field_validator("report_output_dir")
    def ensure_absolute_path(cls, v: str) -> str:
        """
        Resolve the report directory against the working directory.

        Args:
            v (str): Configured directory

        Returns:
            str: Absolute directory path
        """
        if not os.path.isabs(v):
            return os.path.abspath(v)
        return v

    @field_validator("github_api_url", "gitlab_url")
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs so paths can be appended directly."""
        return v.rstrip("/")

    # .env is optional; unknown keys are ignored
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Create global settings instance
settings = Settings()

# Initialize logging configuration
logger = LogManager(
    app_name=settings.app_name.lower(),
    log_dir=settings.log_dir,
    development=settings.dev,
    level=settings.log_level,
).logger
