"""Custom exceptions for personachat."""


class PersonaChatError(Exception):
    """Base exception for all personachat errors."""


class ConfigurationError(PersonaChatError):
    """Raised when configuration is invalid."""


class ValidationError(PersonaChatError):
    """Raised when input validation fails."""


class InvalidChannelError(ValidationError):
    """Raised when a channel string is not of the form ``<type>:<id>``."""

    def __init__(self, message: str, channel: str | None = None) -> None:
        super().__init__(message)
        self.channel = channel


class NotFoundError(PersonaChatError):
    """Raised when a message, conversation or persona does not exist."""

    def __init__(self, message: str, entity_id: str | None = None) -> None:
        super().__init__(message)
        self.entity_id = entity_id


class GenerationError(PersonaChatError):
    """Raised when the text-generation backend fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryableGenerationError(GenerationError):
    """Network errors, timeouts, 5xx and 429 responses."""


class NonRetryableGenerationError(GenerationError):
    """Client-side errors that will fail the same way on every attempt."""
