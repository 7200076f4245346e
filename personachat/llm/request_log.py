"""
Generation request log.

One JSON object per line in ``<dir>/ai-requests-YYYY-MM-DD.jsonl`` (UTC
date). Used to troubleshoot prompts and backend failures after the fact.
Writing never raises: a broken log must not break reply generation.
"""

from datetime import UTC, date, datetime
import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


class RequestUsage(BaseModel):
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


class RequestLogEntry(BaseModel):
    """One backend call."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    provider: str
    model: str
    temperature: float
    messages: list[dict[str, str]] = Field(default_factory=list)
    response: str = ""
    duration_ms: float = 0.0
    status: Literal["success", "error"] = "success"
    error: str | None = None
    finish_reason: str | None = None
    usage: RequestUsage | None = None
    attempts: int = 1


class RequestLog:
    """
    Daily JSONL request log.

    Example:
        >>> log = RequestLog("logs/ai-requests")
        >>> log.record(RequestLogEntry(provider="openrouter", model="m", temperature=0.7))
        >>> log.failed_requests()
        []
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def path_for(self, day: date) -> Path:
        return self.directory / f"ai-requests-{day.isoformat()}.jsonl"

    def record(self, entry: RequestLogEntry) -> None:
        """Append one entry to the file for the entry's UTC date."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            day = entry.timestamp.astimezone(UTC).date()
            with open(self.path_for(day), "a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError:
            logger.exception("Failed to write generation request log")

    def read_requests(self, day: date | None = None) -> list[RequestLogEntry]:
        """Entries for one UTC date (today by default), oldest first."""
        path = self.path_for(day or datetime.now(UTC).date())
        if not path.exists():
            return []

        entries = []
        with open(path, encoding="utf-8") as f:
            for line_no, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    entries.append(RequestLogEntry.model_validate_json(line))
                except PydanticValidationError:
                    logger.warning("Skipping malformed request log line %s:%d", path, line_no)
        return entries

    def failed_requests(self, day: date | None = None) -> list[RequestLogEntry]:
        return [entry for entry in self.read_requests(day) if entry.status == "error"]

    def summary(self, day: date | None = None) -> dict[str, Any]:
        entries = self.read_requests(day)
        failed = sum(1 for entry in entries if entry.status == "error")
        return {
            "total": len(entries),
            "failed": failed,
            "succeeded": len(entries) - failed,
        }


__all__ = ["RequestLog", "RequestLogEntry", "RequestUsage"]
