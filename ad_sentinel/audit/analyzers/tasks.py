"""Main thread task extraction and attribution from trace events."""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from ..models.trace import MainThreadTask, TraceEvent, iter_trace_events
from .timing import trace_ts_to_relative_ms


logger = logging.getLogger(__name__)

TIMER_INSTALL = "TimerInstall"
TIMER_FIRE = "TimerFire"
THREAD_NAME = "thread_name"
RENDERER_MAIN_THREAD = "CrRendererMain"


def _event_urls(event: TraceEvent) -> List[str]:
    urls = []
    url = event.data.get("url")
    if isinstance(url, str) and url:
        urls.append(url)
    urls.extend(event.stack_trace_urls)
    return urls


def _collect_attributable_urls(event: TraceEvent) -> List[str]:
    urls: List[str] = []
    for nested in event.walk():
        for url in _event_urls(nested):
            if url not in urls:
                urls.append(url)
    return urls


def find_main_thread(trace_events: List[TraceEvent]) -> Optional[Tuple[Optional[int], Optional[int]]]:
    """(pid, tid) of the renderer main thread, from thread name metadata.

    Returns None when the trace carries no such metadata.
    """
    for event in trace_events:
        if event.name == THREAD_NAME and event.args.get("name") == RENDERER_MAIN_THREAD:
            return event.pid, event.tid
    return None


def build_main_thread_tasks(trace_events: List[TraceEvent],
                            page_start_time: float) -> List[MainThreadTask]:
    """Turn complete main thread events into tasks timed relative to page start.

    Only events on the renderer main thread are used when the trace names
    it; traces without thread metadata are taken to be main thread only.
    Nested events with a duration become tasks of their own, so a TimerFire
    inside a RunTask is visible to timer attribution.

    Args:
        trace_events: Trace events; nested work lives in child_events
        page_start_time: Page start in seconds on the network clock

    Returns:
        Tasks sorted by start time
    """
    main_thread = find_main_thread(trace_events)
    if main_thread is not None:
        trace_events = [e for e in trace_events if (e.pid, e.tid) == main_thread]

    tasks = []
    for event in iter_trace_events(trace_events):
        if event.dur is None:
            continue
        start_time = trace_ts_to_relative_ms(event.ts, page_start_time)
        tasks.append(MainThreadTask(
            event=event,
            start_time=start_time,
            end_time=start_time + event.dur / 1000,
            children=list(event.child_events),
            attributable_urls=_collect_attributable_urls(event),
        ))

    tasks.sort(key=lambda t: t.start_time)
    logger.debug(f"Built {len(tasks)} main thread tasks from {len(trace_events)} top-level events")
    return tasks


def get_attributable_url(task: MainThreadTask,
                         known_scripts: Optional[Set[str]] = None) -> str:
    """Best-effort URL of the script responsible for a task.

    Prefers a known script among the task's attributable URLs, then the
    longest event within the task that carries a URL, then the first
    attributable URL.
    """
    known_scripts = known_scripts or set()
    for url in task.attributable_urls:
        if url in known_scripts:
            return url

    best_url = ""
    best_duration = -1.0
    for event in [task.event] + list(iter_trace_events(task.children)):
        urls = _event_urls(event)
        if urls and (event.dur or 0) > best_duration:
            best_url = urls[0]
            best_duration = event.dur or 0
    if best_url:
        return best_url
    return task.attributable_urls[0] if task.attributable_urls else ""


def collect_timer_events(trace_events: Iterable[TraceEvent]) -> List[TraceEvent]:
    """All timer related events, including nested ones."""
    return [e for e in iter_trace_events(list(trace_events)) if e.name.startswith("Timer")]


def find_timer_install(timer_events: List[TraceEvent], timer_id) -> Optional[TraceEvent]:
    """Find the TimerInstall event for a timer id."""
    if timer_id is None:
        return None
    for event in timer_events:
        if event.name == TIMER_INSTALL and event.data.get("timerId") == timer_id:
            return event
    return None
