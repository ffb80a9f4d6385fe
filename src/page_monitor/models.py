"""Data exchanged between the engine, its callers and extraction services."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator

from page_monitor.errors import ClassifiedError, ErrorCategory, classify_error


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FetchResult(BaseModel):
    """Outcome of one fetch invocation."""

    content: str = ""
    error: ClassifiedError | None = None
    last_updated: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _error_clears_content(self) -> "FetchResult":
        if self.error is not None and self.content:
            self.content = ""
        return self

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def matches(self) -> list[str]:
        """Content split into one entry per matched element."""
        return [line for line in self.content.split("\n") if line] if self.content else []

    @classmethod
    def failure(
        cls,
        message: str,
        category: ErrorCategory | None = None,
        last_updated: datetime | None = None,
    ) -> "FetchResult":
        error = classify_error(message, category)
        if last_updated is None:
            return cls(error=error)
        return cls(error=error, last_updated=last_updated)


class WaitFor(BaseModel):
    """Wait instructions sent to the extraction service."""

    load_state: str | None = None
    wait_for_selector: str | None = None
    wait_time: float | None = None


class ExtractionRequest(BaseModel):
    """Request body of ``POST /extract``."""

    url: str
    selector: str
    timeout: int = 45
    first_only: bool = True
    render_js: bool | None = None
    wait_for: WaitFor | None = None

    def to_payload(self) -> dict:
        """JSON body with unset optional fields left out."""
        return self.model_dump(exclude_none=True)


class ExtractionItem(BaseModel):
    text: str | None = None
    html: str | None = None


class ExtractionResponseEnvelope(BaseModel):
    """Successful response body of ``POST /extract``."""

    results: list[ExtractionItem]
