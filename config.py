"""Application configuration and settings helpers."""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when required process-wide settings are absent."""


class Settings(BaseSettings):
    """Centralised configuration loaded from environment variables or .env."""

    app_secret: Optional[str] = Field(
        None,
        description="Shared secret required in incoming requests.",
    )
    github_token: Optional[str] = Field(
        None,
        description="GitHub personal access token used for repo automation.",
    )
    github_owner: Optional[str] = Field(
        None,
        description="GitHub username or organisation that will own generated repos.",
    )
    github_default_branch: str = Field(
        "main",
        description="Branch used for the generated repositories.",
    )
    github_base_url: str = Field(
        "https://api.github.com",
        description="Base URL for the GitHub REST API.",
    )
    github_html_url: str = Field(
        "https://github.com",
        description="Web host used when synthesising repository URLs.",
    )
    github_pages_host: str = Field(
        "github.io",
        description="Host suffix used when constructing GitHub Pages URLs.",
    )
    repo_description: str = Field(
        "Auto-generated application using LLM",
        description="Description attached to newly created repositories.",
    )
    callback_timeout_seconds: float = Field(
        10.0,
        description="HTTP timeout when notifying the evaluation URL.",
    )
    notify_max_attempts: int = Field(
        5,
        ge=1,
        description="Delivery attempts made against the evaluation URL.",
    )
    notify_base_delay_seconds: float = Field(
        1.0,
        ge=0.0,
        description="Delay after the first failed callback; doubles per attempt.",
    )
    log_level: str = Field(
        "INFO",
        description="Application log level.",
    )
    openai_api_key: Optional[str] = Field(
        None,
        description="OpenAI-compatible API key for LLM powered generation.",
    )
    ai_pipe_token: Optional[str] = Field(
        None,
        description="API token for AI Pipe proxy (used if OPENAI_API_KEY is unset).",
    )
    openai_model: str = Field(
        "gpt-4o-mini",
        description="Model identifier used when invoking the OpenAI API.",
    )
    openai_base_url: Optional[str] = Field(
        None,
        description="Override the OpenAI API base URL (e.g., for compatible providers).",
    )
    openai_temperature: float = Field(
        0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for the LLM.",
    )
    openai_max_tokens_app: int = Field(
        4096,
        description="Completion budget for the generated index.html.",
    )
    openai_max_tokens_readme: int = Field(
        2000,
        description="Completion budget for the generated README.md.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def missing_required(self) -> List[str]:
        """Return the environment names of required settings that are unset."""

        missing = [
            env_name
            for env_name, value in (
                ("GITHUB_OWNER", self.github_owner),
                ("GITHUB_TOKEN", self.github_token),
                ("APP_SECRET", self.app_secret),
            )
            if not value
        ]
        if not (self.openai_api_key or self.ai_pipe_token):
            missing.append("OPENAI_API_KEY")
        return missing

    def ensure_complete(self) -> None:
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(
                f"Server missing required settings: {', '.join(missing)}",
            )


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
