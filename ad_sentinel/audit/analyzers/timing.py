"""Clock helpers for reconciling network and trace timestamps."""

from typing import List, Optional

from ..models.trace import MICROSECONDS_PER_SECOND, NetworkRequest, PageTimings


def get_page_start_time(requests: List[NetworkRequest], default: float = -1) -> float:
    """Start time of the first successful request, in seconds.

    Args:
        requests: Network log in log order
        default: Value returned when no request succeeded

    Returns:
        Page start time on the network clock
    """
    for request in requests:
        if request.status_code == 200:
            return request.start_time
    return default


def resolve_page_start_time(requests: List[NetworkRequest],
                            timings: Optional[PageTimings] = None) -> float:
    """Navigation start if supplied, else the first successful request, else 0."""
    if timings is not None and timings.navigation_start is not None:
        return timings.navigation_start
    return get_page_start_time(requests, default=0.0)


def to_relative_ms(seconds: float, page_start_time: float) -> float:
    """Convert a network clock time to milliseconds after page start."""
    return (seconds - page_start_time) * 1000


def trace_ts_to_seconds(ts: float) -> float:
    """Convert a trace timestamp (microseconds) to network clock seconds."""
    return ts / MICROSECONDS_PER_SECOND


def trace_ts_to_relative_ms(ts: float, page_start_time: float) -> float:
    """Convert a trace timestamp to milliseconds after page start."""
    return to_relative_ms(trace_ts_to_seconds(ts), page_start_time)
