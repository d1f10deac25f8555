"""Idle network gap detection and cause attribution during ad loading.

Ad-critical requests are merged into a busy timeline; gaps between them that
exceed a noise threshold are reported and attributed, in priority order, to a
long task, a timer, a render blocking tag, or a page lifecycle event.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set, Tuple

from ..models.idle import Cause, IdlePeriod, RequestInterval
from ..models.trace import (
    MainThreadTask,
    NetworkRequest,
    PageTimings,
    PageTrace,
    ResourceType,
    TagBlockingFirstPaint,
    TraceEvent,
)
from .base import BaseAnalyzer, IdleNetworkReport
from .classification import ResourceClassifier
from .config import IdleNetworkConfig, AnalysisConfig, get_config
from .graph import get_ad_critical_graph
from .performance import monitor_performance
from .tasks import (
    TIMER_FIRE,
    build_main_thread_tasks,
    collect_timer_events,
    find_timer_install,
    get_attributable_url,
)
from .timing import resolve_page_start_time, to_relative_ms


logger = logging.getLogger(__name__)

MINIMUM_NOTEWORTHY_IDLE_GAP_MS = 150

BLOCKING_RESOURCE_TYPES = (
    ResourceType.SCRIPT,
    ResourceType.XHR,
    ResourceType.FETCH,
    ResourceType.EVENTSTREAM,
    ResourceType.EVENTSOURCE,
    ResourceType.DOCUMENT,
)


def get_overlap_time(a_start: float, a_end: float, b_start: float, b_end: float) -> float:
    """Length of the intersection of two intervals; negative if disjoint."""
    return min(a_end, b_end) - max(a_start, b_start)


def get_blocking_intervals(requests: Iterable[NetworkRequest], page_start_time: float,
                           resource_types: Iterable[ResourceType] = BLOCKING_RESOURCE_TYPES
                           ) -> List[RequestInterval]:
    """Intervals of requests that can hold up ad loading, sorted by start.

    Stylesheets and requests without a positive start time are skipped. Times
    are converted to ms relative to page start.
    """
    resource_types = set(resource_types)
    intervals = [
        RequestInterval(
            start_time=to_relative_ms(r.start_time, page_start_time),
            end_time=to_relative_ms(r.end_time, page_start_time),
            url=r.url,
        )
        for r in requests
        if r.resource_type in resource_types
        and r.mime_type != "text/css"
        and r.start_time > 0
    ]
    intervals.sort(key=lambda i: i.start_time)
    return intervals


def find_idle_periods(intervals: List[RequestInterval],
                      noteworthy_gap_ms: float = MINIMUM_NOTEWORTHY_IDLE_GAP_MS) -> List[IdlePeriod]:
    """Sweep sorted intervals and report gaps longer than the threshold.

    The busy-until watermark only ever moves forward, so an interval nested
    inside an earlier one neither splits nor shortens a gap.
    """
    periods: List[IdlePeriod] = []
    watermark: Optional[float] = None
    for interval in sorted(intervals, key=lambda i: i.start_time):
        if watermark is not None and interval.start_time - watermark > noteworthy_gap_ms:
            periods.append(IdlePeriod(start_time=watermark, end_time=interval.start_time))
        if watermark is None or interval.end_time > watermark:
            watermark = interval.end_time
    return periods


def summarize_idle_time(periods: List[IdlePeriod]) -> Tuple[float, float]:
    """Returns (max_idle_time, total_idle_time) in ms."""
    durations = [p.duration for p in periods]
    return (max(durations, default=0.0), sum(durations))


class IdleCauseClassifier:
    """Attributes idle periods to their most probable cause.

    Causes are tried in priority order and the first match wins: long task,
    timer, render blocking tag, DOMContentLoaded, load. Anything else is
    ``Cause.OTHER``.
    """

    def __init__(self, tasks: List[MainThreadTask], timer_events: List[TraceEvent],
                 timings: Optional[PageTimings], blocking_tags: List[TagBlockingFirstPaint],
                 page_start_time: float, config: Optional[IdleNetworkConfig] = None,
                 known_scripts: Optional[Set[str]] = None):
        self.tasks = sorted(tasks, key=lambda t: t.start_time)
        self.timer_events = timer_events
        self.timings = timings or PageTimings()
        self.blocking_tags = blocking_tags
        self.page_start_time = page_start_time
        self.config = config or IdleNetworkConfig()
        self.known_scripts = known_scripts or set()

    def classify(self, period: IdlePeriod) -> IdlePeriod:
        """Set the cause and attributable URL of a period, in place."""
        matched = (
            self._check_long_tasks(period) or
            self._check_timers(period) or
            self._check_blocking_tags(period) or
            self._check_lifecycle_events(period)
        )
        if not matched:
            period.cause = Cause.OTHER
            period.url = ""
        logger.debug(f"Idle period {period.start_time:.0f}-{period.end_time:.0f} ms: {period.cause.value}")
        return period

    def _covers(self, start: float, end: float, period: IdlePeriod) -> bool:
        overlap = get_overlap_time(start, end, period.start_time, period.end_time)
        return overlap / period.duration > self.config.overlap_threshold

    def _check_long_tasks(self, period: IdlePeriod) -> bool:
        for task in self.tasks:
            if task.duration > self.config.long_task_ms and \
                    self._covers(task.start_time, task.end_time, period):
                period.cause = Cause.LONG_TASK
                period.url = get_attributable_url(task, self.known_scripts)
                return True
            if task.start_time > period.end_time:
                break
        return False

    def _check_timers(self, period: IdlePeriod) -> bool:
        for task in self.tasks:
            if task.event.name == TIMER_FIRE and \
                    period.end_time - task.start_time < self.config.proximity_ms:
                timer_id = task.event.data.get("timerId")
                install = find_timer_install(self.timer_events, timer_id)
                if install is None:
                    logger.warning(f"No TimerInstall found for timer {timer_id}")
                else:
                    timeout = install.data.get("timeout")
                    if timeout is not None and timeout / period.duration > self.config.overlap_threshold:
                        period.cause = Cause.TIMEOUT
                        period.timeout_ms = timeout
                        urls = install.stack_trace_urls
                        period.url = urls[0] if urls else ""
                        return True
            if task.start_time > period.end_time:
                break
        return False

    def _check_blocking_tags(self, period: IdlePeriod) -> bool:
        for tag in self.blocking_tags:
            start = to_relative_ms(tag.start_time, self.page_start_time)
            end = to_relative_ms(tag.end_time, self.page_start_time)
            if self._covers(start, end, period):
                period.cause = Cause.RENDER_BLOCKING_RESOURCE
                period.url = tag.url
                return True
        return False

    def _check_lifecycle_events(self, period: IdlePeriod) -> bool:
        dcl = self.timings.dom_content_loaded
        if dcl is not None and period.end_time > dcl and \
                period.end_time - dcl < self.config.proximity_ms:
            period.cause = Cause.DOM_CONTENT_LOADED
            return True
        load = self.timings.load
        if load is not None and period.end_time > load and \
                period.end_time - load < self.config.proximity_ms:
            period.cause = Cause.LOAD_EVENT
            return True
        return False


class IdleNetworkAnalyzer(BaseAnalyzer):
    """Finds and explains idle network time while ads load."""

    def __init__(self, config: Optional[AnalysisConfig] = None,
                 classifier: Optional[ResourceClassifier] = None,
                 name: str = "IdleNetworkAnalyzer"):
        super().__init__(name, "1.0.0")
        self.config = config or get_config()
        self.classifier = classifier or self.config.classifier.build_classifier()

    @monitor_performance("idle_network_analysis")
    def analyze(self, trace: PageTrace) -> IdleNetworkReport:
        """Analyze a page load for idle gaps in ad-critical requests.

        Args:
            trace: Recorded page load

        Returns:
            Report with idle periods and aggregates; not applicable when the
            page has no ad-critical requests
        """
        started = datetime.now(timezone.utc)
        settings = self.config.idle_network
        report = self._create_report(IdleNetworkReport, trace)
        report.failing_gap_ms = settings.failing_gap_ms
        report.failing_total_idle_ms = settings.failing_total_idle_ms

        critical = get_ad_critical_graph(trace.requests, trace.trace_events, self.classifier)
        page_start_time = resolve_page_start_time(trace.requests, trace.timings)
        intervals = get_blocking_intervals(critical, page_start_time, settings.blocking_resource_types)
        report.blocking_requests = intervals

        if not intervals:
            report.applicable = False
            report.add_info_note("No ad-related requests found")
            report.processing_time_ms = self._elapsed_ms(started)
            return report

        periods = find_idle_periods(intervals, settings.noteworthy_gap_ms)
        if periods:
            cause_classifier = IdleCauseClassifier(
                tasks=build_main_thread_tasks(trace.trace_events, page_start_time),
                timer_events=collect_timer_events(trace.trace_events),
                timings=trace.timings,
                blocking_tags=trace.blocking_tags,
                page_start_time=page_start_time,
                config=settings,
                known_scripts={r.url for r in critical},
            )
            for period in periods:
                cause_classifier.classify(period)

        report.periods = periods
        report.max_idle_time, report.total_idle_time = summarize_idle_time(periods)
        if report.exceeds_thresholds:
            report.add_warning_note(
                "Idle network time delays ad loading",
                max_idle_time=report.max_idle_time,
                total_idle_time=report.total_idle_time,
            )

        logger.info(
            f"Idle network analysis for {trace.url}: {len(periods)} periods, "
            f"max {report.max_idle_time:.0f} ms, total {report.total_idle_time:.0f} ms"
        )
        report.processing_time_ms = self._elapsed_ms(started)
        return report
