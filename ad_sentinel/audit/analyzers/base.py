"""Base analyzer class and report models for ad-loading analysis.

Every analyzer takes one recorded page load and returns a report. Reports
carry the analysis result plus informational notes; "not applicable"
outcomes (no ads, nothing blocking) are reports with ``applicable=False``,
never exceptions.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.idle import IdlePeriod, RequestInterval
from ..models.trace import NetworkRequest, PageTrace


class NoteSeverity(str, Enum):
    """Severity levels for analyzer notes."""
    INFO = "info"
    WARNING = "warning"


class AnalysisNote(BaseModel):
    """Informational messages and warnings from an analysis."""

    severity: NoteSeverity = Field(description="Severity level of the note")
    message: str = Field(description="Human-readable note message")
    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context and debug information"
    )


class AnalysisReport(BaseModel):
    """Common output fields for all analyzers."""

    analyzer_name: str = Field(description="Name of the analyzer")
    analyzer_version: str = Field(default="1.0.0", description="Version of the analyzer")
    page_url: str = Field(default="", description="Page that was analyzed")
    applicable: bool = Field(
        default=True,
        description="False when the page has nothing to analyze (e.g. no ads)"
    )
    notes: List[AnalysisNote] = Field(default_factory=list, description="Analysis notes")
    processing_time_ms: Optional[int] = Field(
        default=None,
        description="Time spent processing in milliseconds"
    )
    analyzed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When analysis was performed"
    )

    def add_info_note(self, message: str, **details) -> None:
        """Add an info-level note."""
        self.notes.append(AnalysisNote(severity=NoteSeverity.INFO, message=message, details=details))

    def add_warning_note(self, message: str, **details) -> None:
        """Add a warning-level note."""
        self.notes.append(AnalysisNote(severity=NoteSeverity.WARNING, message=message, details=details))

    @property
    def has_warnings(self) -> bool:
        return any(note.severity == NoteSeverity.WARNING for note in self.notes)


class CriticalGraphReport(AnalysisReport):
    """Requests that gated the first ad request."""

    ad_request: Optional[NetworkRequest] = Field(
        default=None,
        description="First ad request on the page"
    )
    bid_requests: List[NetworkRequest] = Field(
        default_factory=list,
        description="Bids that completed before the ad request started"
    )
    critical_requests: List[NetworkRequest] = Field(
        default_factory=list,
        description="Ad-critical requests, sorted by start time"
    )

    @property
    def critical_urls(self) -> List[str]:
        return [r.url for r in self.critical_requests]


class IdleNetworkReport(AnalysisReport):
    """Idle gaps in ad-critical network activity and their causes."""

    periods: List[IdlePeriod] = Field(default_factory=list, description="Reported idle periods")
    blocking_requests: List[RequestInterval] = Field(
        default_factory=list,
        description="Blocking request intervals, sorted by start time"
    )
    max_idle_time: float = Field(default=0.0, description="Longest single idle period in ms")
    total_idle_time: float = Field(default=0.0, description="Sum of idle periods in ms")
    failing_gap_ms: float = Field(default=400, description="Single gap failure threshold")
    failing_total_idle_ms: float = Field(default=1500, description="Total idle failure threshold")

    @property
    def exceeds_max_idle_gap(self) -> bool:
        return self.max_idle_time > self.failing_gap_ms

    @property
    def exceeds_total_idle_time(self) -> bool:
        return self.total_idle_time > self.failing_total_idle_ms

    @property
    def exceeds_thresholds(self) -> bool:
        """Whether the idle times are bad enough to fail an audit."""
        return self.exceeds_max_idle_gap or self.exceeds_total_idle_time


class BaseAnalyzer(ABC):
    """Abstract base class providing common analyzer functionality."""

    def __init__(self, name: str, version: str = "1.0.0"):
        self._name = name
        self._version = version

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._version

    @abstractmethod
    def analyze(self, trace: PageTrace) -> AnalysisReport:
        """Analyze one recorded page load."""
        ...

    def _create_report(self, report_class: type, trace: PageTrace) -> AnalysisReport:
        """Create a new report with metadata populated."""
        return report_class(
            analyzer_name=self.name,
            analyzer_version=self.version,
            page_url=trace.url,
        )

    @staticmethod
    def _elapsed_ms(start_time: datetime) -> int:
        return int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)
