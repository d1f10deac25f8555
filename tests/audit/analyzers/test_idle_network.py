"""Unit tests for idle network detection and cause attribution."""

import logging

import pytest

from ad_sentinel.audit.analyzers.base import NoteSeverity
from ad_sentinel.audit.analyzers.config import AnalysisConfig, IdleNetworkConfig
from ad_sentinel.audit.analyzers.idle_network import (
    IdleCauseClassifier,
    IdleNetworkAnalyzer,
    find_idle_periods,
    get_blocking_intervals,
    get_overlap_time,
    summarize_idle_time,
)
from ad_sentinel.audit.analyzers.tasks import build_main_thread_tasks
from ad_sentinel.audit.models import (
    Cause,
    IdlePeriod,
    MainThreadTask,
    PageTimings,
    PageTrace,
    RequestInterval,
    ResourceType,
    TagBlockingFirstPaint,
    TraceEvent,
)


RUBICON_URL = "https://fastlane.rubiconproject.com/a/api/fastlane.json?account_id=1"


def intervals(*spans):
    return [RequestInterval(start_time=start, end_time=end) for start, end in spans]


class TestFindIdlePeriods:
    """Test the idle gap sweep."""

    def test_gap_threshold_is_strict(self):
        """Test that a gap equal to the threshold is not reported."""
        assert find_idle_periods(intervals((0, 100), (250, 300))) == []

        periods = find_idle_periods(intervals((0, 100), (251, 300)))

        assert len(periods) == 1
        assert periods[0].start_time == 100
        assert periods[0].end_time == 251
        assert periods[0].duration == 151

    def test_watermark_never_moves_backwards(self):
        """Test that a nested interval does not open a gap."""
        spans = intervals((0, 500), (100, 150), (600, 700))

        periods = find_idle_periods(spans, noteworthy_gap_ms=50)

        assert [(p.start_time, p.end_time) for p in periods] == [(500, 600)]
        assert find_idle_periods(spans) == []

    def test_unsorted_input(self):
        periods = find_idle_periods(intervals((600, 700), (0, 200)))

        assert [(p.start_time, p.end_time) for p in periods] == [(200, 600)]

    def test_empty_and_single(self):
        assert find_idle_periods([]) == []
        assert find_idle_periods(intervals((0, 100))) == []

    def test_summarize_idle_time(self):
        periods = find_idle_periods(intervals((0, 100), (400, 500), (1000, 1100)))

        assert summarize_idle_time(periods) == (500, 800)
        assert summarize_idle_time([]) == (0.0, 0)


class TestGetBlockingIntervals:
    """Test blocking request filtering."""

    def test_filters_and_shifts(self, make_request):
        """Test type, MIME and start time filtering and ms conversion."""
        requests = [
            make_request("https://example.com/b.js", 1.5, 1.75),
            make_request("https://example.com/api", 1.25, 1.5, ResourceType.XHR),
            make_request("https://example.com/a.css", 1.0, 1.25, mime_type="text/css"),
            make_request("https://example.com/img.png", 1.0, 1.25, ResourceType.IMAGE),
            make_request("https://example.com/early.js", 0, 1.0),
        ]

        result = get_blocking_intervals(requests, page_start_time=1.0)

        assert [i.url for i in result] == ["https://example.com/api", "https://example.com/b.js"]
        assert result[0].start_time == pytest.approx(250)
        assert result[1].end_time == pytest.approx(750)

    def test_custom_resource_types(self, make_request):
        requests = [make_request("https://example.com/api", 1.25, 1.5, ResourceType.XHR)]

        assert get_blocking_intervals(requests, 1.0, [ResourceType.SCRIPT]) == []


class TestIdleCauseClassifier:
    """Test idle period cause attribution."""

    def setup_method(self):
        self.heavy_url = "https://cdn.example.com/heavy.js"
        self.timer_url = "https://cdn.example.com/slow.js"
        self.tag_url = "https://cdn.example.com/blocking.js"

    def period(self):
        return IdlePeriod(start_time=1000, end_time=1200)

    def long_task(self, start=1010, end=1190):
        return MainThreadTask(
            event=TraceEvent(name="RunTask", ts=start * 1000, dur=(end - start) * 1000),
            start_time=start,
            end_time=end,
            attributable_urls=[self.heavy_url],
        )

    def timer_fire(self, timer_id=7, start=1195):
        return MainThreadTask(
            event=TraceEvent(name="TimerFire", ts=start * 1000, dur=2000,
                             args={"data": {"timerId": timer_id}}),
            start_time=start,
            end_time=start + 2,
        )

    def timer_install(self, timer_id=7, timeout=180):
        return TraceEvent(name="TimerInstall", ts=1_000_000, args={"data": {
            "timerId": timer_id,
            "timeout": timeout,
            "stackTrace": [{"url": self.timer_url}],
        }})

    def blocking_tag(self):
        return TagBlockingFirstPaint(url=self.tag_url, start_time=1.0, end_time=1.2)

    def classifier(self, tasks=(), timer_events=(), timings=None, tags=()):
        return IdleCauseClassifier(
            tasks=list(tasks),
            timer_events=list(timer_events),
            timings=timings,
            blocking_tags=list(tags),
            page_start_time=0.0,
        )

    def test_long_task(self):
        period = self.classifier(tasks=[self.long_task()]).classify(self.period())

        assert period.cause == Cause.LONG_TASK
        assert period.url == self.heavy_url

    def test_long_task_takes_priority_over_tag(self):
        """Test that a gap covered by both a long task and a tag is a long task."""
        classifier = self.classifier(tasks=[self.long_task()], tags=[self.blocking_tag()])

        assert classifier.classify(self.period()).cause == Cause.LONG_TASK

    def test_long_task_takes_priority_over_timer(self):
        """Test that a long task wins over a timer and a tag covering the same gap."""
        classifier = self.classifier(
            tasks=[self.long_task(), self.timer_fire()],
            timer_events=[self.timer_install()],
            tags=[self.blocking_tag()],
        )

        period = classifier.classify(self.period())

        assert period.cause == Cause.LONG_TASK
        assert period.timeout_ms is None

    def test_timer_takes_priority_over_tag(self):
        classifier = self.classifier(tasks=[self.timer_fire()], timer_events=[self.timer_install()],
                                     tags=[self.blocking_tag()])

        period = classifier.classify(self.period())

        assert period.cause == Cause.TIMEOUT
        assert period.url == self.timer_url

    def test_long_task_attributed_to_longest_child(self, make_trace_event):
        """Test attribution for a task built from trace events with several scripts."""
        events = [make_trace_event("RunTask", 0, dur=300_000, children=[
            make_trace_event("FunctionCall", 1_000, dur=1_000, data={"url": "https://example.com/short.js"}),
            make_trace_event("FunctionCall", 5_000, dur=280_000, data={"url": self.heavy_url}),
        ])]
        classifier = self.classifier(tasks=build_main_thread_tasks(events, page_start_time=0.0))

        period = classifier.classify(IdlePeriod(start_time=10, end_time=290))

        assert period.cause == Cause.LONG_TASK
        assert period.url == self.heavy_url

    def test_short_task_is_ignored(self):
        period = self.classifier(tasks=[self.long_task(1100, 1190)]).classify(self.period())

        assert period.cause == Cause.OTHER

    def test_timer(self):
        classifier = self.classifier(tasks=[self.timer_fire()], timer_events=[self.timer_install()])

        period = classifier.classify(self.period())

        assert period.cause == Cause.TIMEOUT
        assert period.timeout_ms == 180
        assert period.url == self.timer_url
        assert period.cause_label == "Timeout (180 ms)"

    def test_timer_with_short_timeout(self):
        classifier = self.classifier(tasks=[self.timer_fire()],
                                     timer_events=[self.timer_install(timeout=100)])

        assert classifier.classify(self.period()).cause == Cause.OTHER

    def test_timer_fired_too_early(self):
        classifier = self.classifier(tasks=[self.timer_fire(start=1100)], timer_events=[self.timer_install()])

        assert classifier.classify(self.period()).cause == Cause.OTHER

    def test_missing_timer_install_falls_through(self, caplog):
        """Test that a TimerFire without a TimerInstall degrades to the next check."""
        classifier = self.classifier(tasks=[self.timer_fire(timer_id=99)],
                                     timer_events=[self.timer_install()],
                                     tags=[self.blocking_tag()])

        with caplog.at_level(logging.WARNING):
            period = classifier.classify(self.period())

        assert period.cause == Cause.RENDER_BLOCKING_RESOURCE
        assert "No TimerInstall found for timer 99" in caplog.text

    def test_blocking_tag(self):
        period = self.classifier(tags=[self.blocking_tag()]).classify(self.period())

        assert period.cause == Cause.RENDER_BLOCKING_RESOURCE
        assert period.url == self.tag_url

    def test_dom_content_loaded(self):
        period = self.classifier(timings=PageTimings(dom_content_loaded=1180, load=1190)).classify(self.period())

        assert period.cause == Cause.DOM_CONTENT_LOADED
        assert period.url == ""

    def test_load_event(self):
        period = self.classifier(timings=PageTimings(dom_content_loaded=500, load=1190)).classify(self.period())

        assert period.cause == Cause.LOAD_EVENT

    def test_lifecycle_event_after_gap_is_ignored(self):
        period = self.classifier(timings=PageTimings(dom_content_loaded=1210)).classify(self.period())

        assert period.cause == Cause.OTHER

    def test_no_evidence(self):
        period = self.classifier().classify(self.period())

        assert period.cause == Cause.OTHER
        assert period.cause_label == "Other"

    def test_overlap_time(self):
        assert get_overlap_time(0, 100, 50, 150) == 50
        assert get_overlap_time(0, 100, 200, 300) < 0


class TestIdleNetworkAnalyzer:
    """Test IdleNetworkAnalyzer end to end."""

    def setup_method(self):
        self.analyzer = IdleNetworkAnalyzer(config=AnalysisConfig(environment="test"))

    def gap_page(self, ad_page_requests, make_request, trace_events=()):
        """Ad page with a bid loaded at [400, 450] ms, leaving a gap after the impl script."""
        document, tag, impl, _ = ad_page_requests
        bid = make_request(RUBICON_URL, 1.40, 1.45, ResourceType.XHR, request_id="5", stack_urls=[impl.url])
        ad = make_request(ad_page_requests[3].url, 1.50, 1.51, ResourceType.XHR, request_id="4",
                          stack_urls=[impl.url])
        return PageTrace(
            url=document.url,
            requests=[document, tag, impl, bid, ad],
            trace_events=list(trace_events),
        )

    def test_no_noteworthy_gaps(self, ad_page_trace):
        """Test the document, tag, impl, ad scenario has no idle periods."""
        report = self.analyzer.analyze(ad_page_trace)

        assert report.applicable
        assert [i.url for i in report.blocking_requests] == [r.url for r in ad_page_trace.requests[:3]]
        assert report.periods == []
        assert report.max_idle_time == 0
        assert report.total_idle_time == 0
        assert not report.exceeds_thresholds

    def test_not_applicable_without_ads(self, ad_page_requests):
        trace = PageTrace(url="https://example.com/", requests=ad_page_requests[:3])

        report = self.analyzer.analyze(trace)

        assert not report.applicable
        assert report.periods == []
        assert report.notes[0].severity == NoteSeverity.INFO

    def test_gap_with_unknown_cause(self, ad_page_requests, make_request):
        report = self.analyzer.analyze(self.gap_page(ad_page_requests, make_request))

        assert len(report.periods) == 1
        period = report.periods[0]
        assert period.start_time == pytest.approx(120)
        assert period.end_time == pytest.approx(400)
        assert period.cause == Cause.OTHER
        assert report.max_idle_time == pytest.approx(280)
        assert report.total_idle_time == pytest.approx(280)
        assert not report.exceeds_max_idle_gap

    def test_gap_explained_by_long_task(self, ad_page_requests, make_request, make_trace_event):
        """Test a long task from the trace stream explaining the gap."""
        heavy_url = "https://cdn.example.com/heavy.js"
        task = make_trace_event("RunTask", 1_130_000, dur=260_000, children=[
            make_trace_event("FunctionCall", 1_131_000, dur=250_000, data={"url": heavy_url}),
        ])

        report = self.analyzer.analyze(self.gap_page(ad_page_requests, make_request, [task]))

        assert report.periods[0].cause == Cause.LONG_TASK
        assert report.periods[0].url == heavy_url

    def test_failing_thresholds(self, ad_page_requests, make_request):
        config = AnalysisConfig(environment="test", idle_network=IdleNetworkConfig(failing_gap_ms=200))
        analyzer = IdleNetworkAnalyzer(config=config)

        report = analyzer.analyze(self.gap_page(ad_page_requests, make_request))

        assert report.exceeds_max_idle_gap
        assert report.has_warnings
        assert report.failing_gap_ms == 200
