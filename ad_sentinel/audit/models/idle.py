"""Models for idle network periods found during ad loading."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class Cause(str, Enum):
    """Probable cause of an idle network period."""
    LONG_TASK = "long_task"
    TIMEOUT = "timeout"
    RENDER_BLOCKING_RESOURCE = "render_blocking_resource"
    DOM_CONTENT_LOADED = "dom_content_loaded"
    LOAD_EVENT = "load_event"
    OTHER = "other"


CAUSE_LABELS = {
    Cause.LONG_TASK: "Long task",
    Cause.TIMEOUT: "Timeout",
    Cause.RENDER_BLOCKING_RESOURCE: "Render blocking resource",
    Cause.DOM_CONTENT_LOADED: "Waiting on DOMContentLoaded",
    Cause.LOAD_EVENT: "Waiting on page load",
    Cause.OTHER: "Other",
}


class RequestInterval(BaseModel):
    """A blocking request's busy interval, in ms relative to page start."""

    start_time: float = Field(description="Start in ms relative to page start")
    end_time: float = Field(description="End in ms relative to page start")
    url: str = Field(default="", description="Request URL")


class IdlePeriod(BaseModel):
    """A gap in ad-critical network activity."""

    start_time: float = Field(description="Start in ms relative to page start")
    end_time: float = Field(description="End in ms relative to page start")
    cause: Cause = Field(default=Cause.OTHER, description="Probable cause")
    url: str = Field(default="", description="Attributable resource URL, or empty")
    timeout_ms: Optional[float] = Field(
        default=None,
        description="Declared timer timeout when the cause is a timeout"
    )

    @computed_field
    @property
    def duration(self) -> float:
        """Length of the period in milliseconds."""
        return self.end_time - self.start_time

    @property
    def cause_label(self) -> str:
        """Human readable cause, including the timeout value for timers."""
        label = CAUSE_LABELS[self.cause]
        if self.cause == Cause.TIMEOUT and self.timeout_ms is not None:
            label = f"{label} ({self.timeout_ms:g} ms)"
        return label
