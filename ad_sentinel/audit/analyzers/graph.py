"""Critical request graph reconstruction for ad loading.

Browser initiator stacks are incomplete and async call chains are only
partially captured, so causality is triangulated from three signals: the
explicit initiator request, the initiator call stack frames, and XHR call
sites recorded in the trace. The union of all three is taken, and the ad
critical graph is then cut down to requests that finished before the first
ad request started.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Generator, Iterator, List, Optional, Set

from ..models.trace import NetworkRequest, PageTrace, ResourceType, TraceEvent
from .base import BaseAnalyzer, CriticalGraphReport
from .classification import ResourceClassifier, default_classifier, is_gpt_ad_request
from .errors import PreconditionError
from .network_summary import NetworkSummary, build_network_summary
from .performance import monitor_performance


logger = logging.getLogger(__name__)

# Requests a critical script may have issued on the ad's behalf.
INITIATED_REQUEST_TYPES = (ResourceType.SCRIPT, ResourceType.XHR)


class CriticalRequestSet:
    """Requests known to gate a target, keyed by request id.

    Membership only grows; adding a request twice is a no-op.
    """

    def __init__(self, requests: Optional[List[NetworkRequest]] = None):
        self._requests: Dict[str, NetworkRequest] = {}
        self._urls: Set[str] = set()
        for request in requests or []:
            self.add(request)

    def add(self, request: NetworkRequest) -> bool:
        """Add a request, returning False if it was already present."""
        if request.request_id in self._requests:
            return False
        self._requests[request.request_id] = request
        self._urls.add(request.url)
        return True

    def __contains__(self, request: object) -> bool:
        return isinstance(request, NetworkRequest) and request.request_id in self._requests

    def __iter__(self) -> Iterator[NetworkRequest]:
        return iter(list(self._requests.values()))

    def __len__(self) -> int:
        return len(self._requests)

    @property
    def urls(self) -> Set[str]:
        return set(self._urls)

    def has_url(self, url: str) -> bool:
        return url in self._urls

    def to_set(self) -> Set[NetworkRequest]:
        return set(self._requests.values())


class NodeState(str, Enum):
    PENDING = "pending"
    DONE = "done"


# A visit yields the requests it depends on; each one is fully resolved
# before the visit resumes.
Visit = Generator[Optional[NetworkRequest], None, None]


class CriticalGraphResolver:
    """Resolves the set of requests that causally gated a target request.

    Traversal uses an explicit stack of visits rather than recursion, so deep
    or cyclic initiator chains are bounded by the number of requests.
    """

    def __init__(self, summary: NetworkSummary):
        if summary is None:
            raise PreconditionError("A network summary is required to resolve critical graphs")
        self.summary = summary
        self.states: Dict[str, NodeState] = {}

    @monitor_performance("resolve_critical_graph")
    def resolve(self, target: Optional[NetworkRequest],
                critical: Optional[CriticalRequestSet] = None) -> CriticalRequestSet:
        """Accumulate the critical graph of ``target`` into ``critical``.

        Args:
            target: Request to resolve; None is a no-op
            critical: Set to accumulate into, shared across calls

        Returns:
            The accumulated set
        """
        if critical is None:
            critical = CriticalRequestSet()

        stack: List[tuple] = []
        self._push(target, critical, stack)
        while stack:
            request, visit = stack[-1]
            try:
                dependency = next(visit)
            except StopIteration:
                stack.pop()
                self.states[request.request_id] = NodeState.DONE
                continue
            self._push(dependency, critical, stack)

        return critical

    def _push(self, request: Optional[NetworkRequest], critical: CriticalRequestSet,
              stack: List[tuple]) -> None:
        if request is None or request in critical:
            return
        critical.add(request)
        self.states[request.request_id] = NodeState.PENDING
        stack.append((request, self._visit(request, critical)))

    def _visit(self, target: NetworkRequest, critical: CriticalRequestSet) -> Visit:
        seen: Set[str] = set()
        for stack in target.initiator.iter_stacks():
            for frame in stack.call_frames:
                if frame.url in seen:
                    continue
                seen.add(frame.url)

                request = self.summary.get_request(frame.url)
                if request is None:
                    continue
                yield request

                if request.resource_type == ResourceType.SCRIPT:
                    script_request = self.summary.get_request(stack.top_url)
                    if script_request is not None:
                        yield from self._visit_initiated_requests(script_request, target, critical)

        # The initiator request covers gaps in the captured stacks.
        yield self.summary.get_initiator_request(target)

    def _visit_initiated_requests(self, script: NetworkRequest, target: NetworkRequest,
                                  critical: CriticalRequestSet) -> Visit:
        """Yield requests issued by ``script`` that plausibly gated ``target``.

        XHRs must prove causality through a call site already known to be
        critical; other script initiated requests are assumed to matter.
        """
        initiated = [
            r for r in self.summary.all_records
            if r.resource_type in INITIATED_REQUEST_TYPES
            and r.end_time < target.start_time
            and self._was_initiated_by(r, script)
        ]

        for request in initiated:
            if request.resource_type == ResourceType.XHR:
                blocking = self.is_xhr_critical(request, critical)
            else:
                blocking = True
            if blocking:
                logger.debug(f"{request.url} initiated by {script.url} is blocking")
                yield request

    def _was_initiated_by(self, request: NetworkRequest, script: NetworkRequest) -> bool:
        if request.initiator_request_id == script.request_id:
            return True
        if request.initiator.url and request.initiator.url == script.url:
            return True
        if script.url in self.summary.get_xhr_callers(request.url):
            return True
        return script.url in request.initiator.stack_urls()

    def is_xhr_critical(self, xhr: NetworkRequest, critical: CriticalRequestSet) -> bool:
        """Checks if a known critical request appears among the XHR's callers."""
        callers = self.summary.xhr_edges.get(xhr.url)
        if not callers:
            return False
        return any(critical.has_url(url) for url in callers)


def get_critical_graph(summary: NetworkSummary, target: Optional[NetworkRequest],
                       critical: Optional[CriticalRequestSet] = None) -> CriticalRequestSet:
    """Returns the set of requests in the critical path of the target request."""
    return CriticalGraphResolver(summary).resolve(target, critical)


def find_first_ad_request(requests: List[NetworkRequest]) -> Optional[NetworkRequest]:
    """The first ad request in log order, if any."""
    return next((r for r in requests if is_gpt_ad_request(r)), None)


def find_qualifying_bid_requests(requests: List[NetworkRequest], ad_request: NetworkRequest,
                                 classifier: Optional[ResourceClassifier] = None) -> List[NetworkRequest]:
    """Bid requests that completed by the time the ad request started."""
    if ad_request is None:
        raise PreconditionError("An ad request is required to select bid requests")
    classifier = classifier or default_classifier
    return [
        r for r in requests
        if classifier.is_bid_request(r) and r.end_time <= ad_request.start_time
    ]


@monitor_performance("ad_critical_graph")
def get_ad_critical_graph(requests: List[NetworkRequest], trace_events: List[TraceEvent],
                          classifier: Optional[ResourceClassifier] = None) -> Set[NetworkRequest]:
    """Returns all requests in the loading graph of the first ad request.

    Returns the empty set if the page made no ad request.
    """
    first_ad_request = find_first_ad_request(requests)
    if first_ad_request is None:
        logger.info("No ad request found; ad critical graph is empty")
        return set()

    bid_requests = find_qualifying_bid_requests(requests, first_ad_request, classifier)
    summary = build_network_summary(requests, trace_events)
    resolver = CriticalGraphResolver(summary)

    critical = CriticalRequestSet()
    for request in [first_ad_request] + bid_requests:
        resolver.resolve(request, critical)

    result = {r for r in critical if r.end_time < first_ad_request.start_time}
    logger.info(
        f"Ad critical graph: {len(result)} requests "
        f"({len(critical)} reached, {len(bid_requests)} bids seeded)"
    )
    return result


class AdCriticalGraphAnalyzer(BaseAnalyzer):
    """Reports the requests that gated the first ad request on a page."""

    def __init__(self, classifier: Optional[ResourceClassifier] = None,
                 name: str = "AdCriticalGraphAnalyzer"):
        super().__init__(name, "1.0.0")
        self.classifier = classifier or default_classifier

    def analyze(self, trace: PageTrace) -> CriticalGraphReport:
        started = datetime.now(timezone.utc)
        report = self._create_report(CriticalGraphReport, trace)

        ad_request = find_first_ad_request(trace.requests)
        if ad_request is None:
            report.applicable = False
            report.add_info_note("No ad requests found on page")
            report.processing_time_ms = self._elapsed_ms(started)
            return report

        report.ad_request = ad_request
        report.bid_requests = find_qualifying_bid_requests(trace.requests, ad_request, self.classifier)
        critical = get_ad_critical_graph(trace.requests, trace.trace_events, self.classifier)
        report.critical_requests = sorted(critical, key=lambda r: r.start_time)

        if not report.critical_requests:
            report.add_info_note("Ad request has no resolvable dependencies", ad_url=ad_request.url)

        report.processing_time_ms = self._elapsed_ms(started)
        return report
