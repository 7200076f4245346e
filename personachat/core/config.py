"""Configuration management for personachat."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
import yaml


class PersonaChatConfig(BaseSettings):
    """
    Configuration for the personachat service.

    Can be loaded from:
    - Environment variables (prefix: PERSONACHAT_)
    - YAML file
    - Direct initialization

    Example:
        >>> config = PersonaChatConfig(llm_provider="ollama", llm_model="gemma2")
        >>> config = PersonaChatConfig.from_yaml("config.yaml")
        >>> config = PersonaChatConfig()
    """

    model_config = SettingsConfigDict(
        env_prefix="PERSONACHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    host: str = Field(
        default="127.0.0.1",
        description="HTTP bind address",
    )
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="HTTP port",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level used by the CLI entry point",
    )

    llm_provider: str = Field(
        default="openrouter",
        description="Text generation backend (openrouter, ollama, echo)",
    )
    llm_model: str = Field(
        default="anthropic/claude-haiku-4.5",
        description="Model name passed to the backend",
    )
    llm_api_key: str | None = Field(
        default=None,
        description="API key for the backend (required for OpenRouter)",
    )
    llm_base_url: str | None = Field(
        default=None,
        description="Backend base URL override",
    )
    llm_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for persona replies",
    )
    llm_max_tokens: int = Field(
        default=1000,
        ge=1,
        description="Maximum completion tokens per reply",
    )
    llm_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Per-request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts per backend call for retryable failures",
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay in seconds for exponential backoff",
    )
    response_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Upper bound in seconds for one persona's reply pipeline",
    )

    context_message_limit: int = Field(
        default=50,
        ge=1,
        description="Recent messages included in a reply prompt",
    )
    replay_queue_size: int = Field(
        default=10,
        ge=0,
        description="Broadcast payloads kept per channel for late subscribers",
    )
    max_group_participants: int = Field(
        default=9,
        ge=1,
        description="Maximum personas in a group chat",
    )
    hidden_content_tags: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["initial_understanding", "thinking", "post_response"],
        description="Tags removed from replies together with their content",
    )

    site_url: str = Field(
        default="http://localhost:8000",
        description="Sent to the backend as HTTP-Referer",
    )
    app_title: str = Field(
        default="personachat",
        description="Sent to the backend as X-Title",
    )
    request_log_dir: Path | None = Field(
        default=None,
        description="Directory for daily generation request logs (None = disabled)",
    )

    @field_validator("hidden_content_tags", mode="before")
    @classmethod
    def split_tags(cls, v: object) -> object:
        """Accept a comma-separated string from the environment."""
        if isinstance(v, str):
            return [tag.strip() for tag in v.split(",") if tag.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def find_config_yaml(cls) -> Path | None:
        """
        Search for config.yaml in standard locations.

        Search order:
        1. Current working directory
        2. Project root (parent of personachat package)
        3. User home directory

        Returns:
            Path to config.yaml if found, None otherwise
        """
        search_paths = [
            Path.cwd() / "config.yaml",
            Path(__file__).parent.parent.parent / "config.yaml",
            Path.home() / ".personachat" / "config.yaml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> PersonaChatConfig:
        """
        Load configuration from YAML file.

        Environment variables win over values from the file.

        Args:
            path: Path to YAML configuration file. If None, searches standard locations.

        Returns:
            PersonaChatConfig instance

        Raises:
            FileNotFoundError: If no file is found
        """
        if path is None:
            path = cls.find_config_yaml()
            if path is None:
                raise FileNotFoundError(
                    "Config file not found. Searched:\n"
                    "  1. ./config.yaml\n"
                    "  2. <project_root>/config.yaml\n"
                    "  3. ~/.personachat/config.yaml"
                )
        else:
            path = Path(path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        result_data = {}
        for key, value in yaml_data.items():
            if f"PERSONACHAT_{key.upper()}" in os.environ:
                continue
            result_data[key] = value

        return cls(**result_data)

    @classmethod
    def load(cls) -> PersonaChatConfig:
        """YAML config if one is found, otherwise environment and defaults."""
        try:
            return cls.from_yaml()
        except FileNotFoundError:
            return cls()

    def to_yaml(self, path: Path | str) -> None:
        """
        Save configuration to YAML file.

        Args:
            path: Path to save YAML configuration
        """
        path = Path(path)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(mode="json"),
                f,
                default_flow_style=False,
                sort_keys=False,
            )

    def __repr__(self) -> str:
        return (
            f"PersonaChatConfig(llm_provider={self.llm_provider!r}, "
            f"llm_model={self.llm_model!r}, port={self.port})"
        )
