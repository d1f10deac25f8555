"""Lookup structures over one page load's network log and trace events."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from ..models.trace import NetworkRequest, TraceEvent, iter_trace_events
from .errors import InconsistentTraceError
from .performance import monitor_performance


logger = logging.getLogger(__name__)


@dataclass
class NetworkSummary:
    """Indexes used by the critical graph resolver.

    ``requests_by_url`` is last-write-wins when a URL was requested more than
    once. ``xhr_edges`` maps an XHR URL to the call frame URLs seen in the
    trace events describing that XHR's call site.
    """

    requests_by_url: Dict[str, NetworkRequest] = field(default_factory=dict)
    requests_by_id: Dict[str, NetworkRequest] = field(default_factory=dict)
    xhr_edges: Dict[str, Set[str]] = field(default_factory=dict)
    all_records: List[NetworkRequest] = field(default_factory=list)

    def get_request(self, url: Optional[str]) -> Optional[NetworkRequest]:
        if not url:
            return None
        return self.requests_by_url.get(url)

    def get_initiator_request(self, request: NetworkRequest) -> Optional[NetworkRequest]:
        """Resolve the request's initiator reference; dangling ids resolve to None."""
        if not request.initiator_request_id:
            return None
        return self.requests_by_id.get(request.initiator_request_id)

    def get_xhr_callers(self, url: str) -> Set[str]:
        return self.xhr_edges.get(url, set())


@monitor_performance("build_network_summary")
def build_network_summary(requests: List[NetworkRequest],
                          trace_events: List[TraceEvent]) -> NetworkSummary:
    """Index a network log and its trace events.

    Args:
        requests: Network log in log order
        trace_events: Trace events for the same page load

    Returns:
        NetworkSummary over all requests

    Raises:
        InconsistentTraceError: If the inputs cannot describe one page load
    """
    summary = NetworkSummary(all_records=list(requests))

    for request in requests:
        if not isinstance(request, NetworkRequest):
            raise InconsistentTraceError(
                f"Network log contains a {type(request).__name__}, expected NetworkRequest"
            )
        existing = summary.requests_by_id.get(request.request_id)
        if existing is not None and existing.url != request.url:
            raise InconsistentTraceError(
                f"Request id {request.request_id} refers to both {existing.url} and {request.url}"
            )
        summary.requests_by_url[request.url] = request
        summary.requests_by_id[request.request_id] = request

    for event in iter_trace_events(trace_events):
        if not event.name.startswith("XHR"):
            continue
        url = event.data.get("url")
        if not url:
            continue
        summary.xhr_edges.setdefault(url, set()).update(event.stack_trace_urls)

    logger.debug(
        f"Built network summary: {len(summary.requests_by_url)} urls, "
        f"{len(summary.xhr_edges)} xhr call sites"
    )
    return summary
