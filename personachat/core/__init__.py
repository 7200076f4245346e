"""Core module for personachat - configuration, models, errors and events."""

from personachat.core.config import PersonaChatConfig
from personachat.core.exceptions import (
    ConfigurationError,
    GenerationError,
    InvalidChannelError,
    NonRetryableGenerationError,
    NotFoundError,
    PersonaChatError,
    RetryableGenerationError,
    ValidationError,
)

__all__ = [
    "ConfigurationError",
    "GenerationError",
    "InvalidChannelError",
    "NonRetryableGenerationError",
    "NotFoundError",
    "PersonaChatConfig",
    "PersonaChatError",
    "RetryableGenerationError",
    "ValidationError",
]
