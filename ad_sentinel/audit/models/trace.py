"""Pydantic models for recorded page loads: network requests and trace events.

These records are produced by the artifact collection layer (network log
parsing and trace capture) and consumed read-only by the analyzers. Network
timings are seconds on the trace clock; trace event timestamps are
microseconds on the same clock.
"""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


MICROSECONDS_PER_SECOND = 1_000_000


class ResourceType(str, Enum):
    """Types of network resources, spelled as the DevTools protocol does."""
    DOCUMENT = "Document"
    STYLESHEET = "Stylesheet"
    IMAGE = "Image"
    MEDIA = "Media"
    FONT = "Font"
    SCRIPT = "Script"
    TEXTTRACK = "TextTrack"
    XHR = "XHR"
    FETCH = "Fetch"
    EVENTSOURCE = "EventSource"
    EVENTSTREAM = "EventStream"
    WEBSOCKET = "WebSocket"
    MANIFEST = "Manifest"
    OTHER = "Other"


class InitiatorType(str, Enum):
    """Why a request was issued."""
    PARSER = "parser"
    PRELOAD = "preload"
    SCRIPT = "script"
    OTHER = "other"


class CallFrame(BaseModel):
    """A single frame of a captured JavaScript call stack."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(default="", description="Script URL for this frame")
    function_name: Optional[str] = Field(default=None, description="Function name")
    line_number: Optional[int] = Field(default=None, description="Zero-based line")
    column_number: Optional[int] = Field(default=None, description="Zero-based column")

    @classmethod
    def from_dict(cls, frame: Dict[str, Any]) -> "CallFrame":
        """Create a CallFrame from a DevTools call frame dict."""
        return cls(
            url=frame.get("url") or "",
            function_name=frame.get("functionName"),
            line_number=frame.get("lineNumber"),
            column_number=frame.get("columnNumber"),
        )


class InitiatorStack(BaseModel):
    """Call stack of an initiator, innermost frame first.

    ``parent`` is the async continuation stack, forming a singly linked list.
    """

    model_config = ConfigDict(frozen=True)

    call_frames: List[CallFrame] = Field(
        default_factory=list,
        description="Call frames, innermost first"
    )
    parent: Optional["InitiatorStack"] = Field(
        default=None,
        description="Async parent stack, if captured"
    )

    @classmethod
    def from_dict(cls, stack: Optional[Dict[str, Any]]) -> Optional["InitiatorStack"]:
        """Create a stack chain from a DevTools ``stackTrace`` dict."""
        # Built iteratively from the outermost parent inward.
        levels = []
        seen = set()
        while stack and id(stack) not in seen:
            seen.add(id(stack))
            levels.append(stack)
            stack = stack.get("parent")

        result = None
        for level in reversed(levels):
            result = cls(
                call_frames=[CallFrame.from_dict(f) for f in level.get("callFrames", [])],
                parent=result,
            )
        return result

    def iter_chain(self) -> Iterator["InitiatorStack"]:
        """Walk this stack and its async parents."""
        seen = set()
        stack: Optional[InitiatorStack] = self
        while stack is not None and id(stack) not in seen:
            seen.add(id(stack))
            yield stack
            stack = stack.parent

    @property
    def top_url(self) -> Optional[str]:
        """URL of the innermost frame, if any."""
        return self.call_frames[0].url if self.call_frames else None


class Initiator(BaseModel):
    """Record describing what caused a request to be issued."""

    model_config = ConfigDict(frozen=True)

    type: InitiatorType = Field(default=InitiatorType.OTHER, description="Initiator type")
    url: Optional[str] = Field(default=None, description="Initiating document or script URL")
    stack: Optional[InitiatorStack] = Field(
        default=None,
        description="Call stack for script initiated requests"
    )

    def iter_stacks(self) -> Iterator[InitiatorStack]:
        """Walk the initiator stack chain, if any."""
        if self.stack is not None:
            yield from self.stack.iter_chain()

    def stack_urls(self) -> List[str]:
        """All distinct call frame URLs across the stack chain, in order."""
        urls: List[str] = []
        for stack in self.iter_stacks():
            for frame in stack.call_frames:
                if frame.url and frame.url not in urls:
                    urls.append(frame.url)
        return urls

    @classmethod
    def from_dict(cls, initiator: Optional[Dict[str, Any]]) -> "Initiator":
        """Create an Initiator from a DevTools initiator dict."""
        if not initiator:
            return cls()
        try:
            initiator_type = InitiatorType(initiator.get("type", "other"))
        except ValueError:
            initiator_type = InitiatorType.OTHER
        return cls(
            type=initiator_type,
            url=initiator.get("url"),
            stack=InitiatorStack.from_dict(initiator.get("stack")),
        )


CACHEABLE_STATUS_CODES = {200, 203, 206}


class NetworkRequest(BaseModel):
    """A completed network request from the page's network log."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(default="", description="Unique id within the log; defaults to the URL")
    url: str = Field(description="Absolute request URL")
    start_time: float = Field(description="Start time in seconds on the trace clock")
    end_time: float = Field(description="End time in seconds on the trace clock")
    resource_type: ResourceType = Field(
        default=ResourceType.OTHER,
        description="Type of requested resource"
    )
    mime_type: str = Field(default="", description="Response MIME type")
    initiator: Initiator = Field(default_factory=Initiator, description="Why the request fired")
    initiator_request_id: Optional[str] = Field(
        default=None,
        description="Id of the request whose response triggered this one"
    )
    frame_id: Optional[str] = Field(default=None, description="Frame that issued the request")
    status_code: Optional[int] = Field(default=None, description="HTTP status code")
    resource_size: Optional[int] = Field(default=None, description="Decoded body size in bytes")
    transfer_size: Optional[int] = Field(default=None, description="Bytes on the wire")
    from_disk_cache: bool = Field(default=False, description="Served from disk cache")
    from_memory_cache: bool = Field(default=False, description="Served from memory cache")
    response_headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Response headers, lower-cased names"
    )

    @model_validator(mode="before")
    @classmethod
    def default_request_id(cls, data: Any) -> Any:
        """Use the URL as the identity when the log carries no request id."""
        if isinstance(data, dict) and not data.get("request_id"):
            data = {**data, "request_id": data.get("url", "")}
        return data

    def __hash__(self) -> int:
        return hash(self.request_id)

    @property
    def duration(self) -> float:
        """Request duration in seconds."""
        return self.end_time - self.start_time

    @property
    def from_cache(self) -> bool:
        """Whether the response was served from a browser cache."""
        return self.from_disk_cache or self.from_memory_cache

    @property
    def is_cacheable(self) -> bool:
        """Whether the response was, or could be, served from cache."""
        if self.from_cache:
            return True
        if self.status_code not in CACHEABLE_STATUS_CODES:
            return False

        cache_control = self.response_headers.get("cache-control", "").lower()
        if any(d in cache_control for d in ("no-cache", "no-store", "must-revalidate")):
            return False
        for directive in cache_control.split(","):
            name, _, value = directive.strip().partition("=")
            if name == "max-age":
                try:
                    return int(value) > 0
                except ValueError:
                    return False
        return False

    @classmethod
    def from_devtools(cls, record: Dict[str, Any]) -> "NetworkRequest":
        """Create a NetworkRequest from a DevTools-style network record dict."""
        initiator_request = record.get("initiatorRequest")
        if isinstance(initiator_request, dict):
            initiator_request = initiator_request.get("requestId") or initiator_request.get("url")

        headers = record.get("responseHeaders") or {}
        if isinstance(headers, list):
            headers = {h.get("name", ""): h.get("value", "") for h in headers}

        try:
            resource_type = ResourceType(record.get("resourceType") or "Other")
        except ValueError:
            resource_type = ResourceType.OTHER

        return cls(
            request_id=record.get("requestId") or "",
            url=record["url"],
            start_time=record.get("startTime", 0.0),
            end_time=record.get("endTime", record.get("startTime", 0.0)),
            resource_type=resource_type,
            mime_type=record.get("mimeType") or "",
            initiator=Initiator.from_dict(record.get("initiator")),
            initiator_request_id=initiator_request,
            frame_id=record.get("frameId"),
            status_code=record.get("statusCode"),
            resource_size=record.get("resourceSize"),
            transfer_size=record.get("transferSize"),
            from_disk_cache=bool(record.get("fromDiskCache", False)),
            from_memory_cache=bool(record.get("fromMemoryCache", False)),
            response_headers={str(k).lower(): str(v) for k, v in headers.items()},
        )


class TraceEvent(BaseModel):
    """A trace event from the CPU/trace stream."""

    name: str = Field(description="Event name")
    ts: float = Field(description="Timestamp in microseconds")
    dur: Optional[float] = Field(default=None, description="Duration in microseconds")
    ph: Optional[str] = Field(default=None, description="Trace event phase")
    pid: Optional[int] = Field(default=None, description="Process id")
    tid: Optional[int] = Field(default=None, description="Thread id")
    args: Dict[str, Any] = Field(default_factory=dict, description="Event arguments")
    child_events: List["TraceEvent"] = Field(
        default_factory=list,
        description="Nested events within this event"
    )

    @property
    def data(self) -> Dict[str, Any]:
        """The ``args.data`` payload, or an empty dict."""
        data = self.args.get("data")
        return data if isinstance(data, dict) else {}

    @property
    def stack_trace_urls(self) -> List[str]:
        """URLs of the ``args.data.stackTrace`` frames, in order."""
        frames = self.data.get("stackTrace") or []
        return [f.get("url") for f in frames if isinstance(f, dict) and f.get("url")]

    def walk(self) -> Iterator["TraceEvent"]:
        """Yield this event and all nested child events, depth first."""
        stack = [self]
        while stack:
            event = stack.pop()
            yield event
            stack.extend(reversed(event.child_events))

    @classmethod
    def from_dict(cls, event: Dict[str, Any]) -> "TraceEvent":
        """Create a TraceEvent from a raw trace dict."""
        children = event.get("childEvents") or event.get("child_events") or []
        return cls(
            name=event.get("name", ""),
            ts=event.get("ts", 0),
            dur=event.get("dur"),
            ph=event.get("ph"),
            pid=event.get("pid"),
            tid=event.get("tid"),
            args=event.get("args") or {},
            child_events=[cls.from_dict(c) for c in children],
        )


def iter_trace_events(events: List[TraceEvent]) -> Iterator[TraceEvent]:
    """Yield every event in a list, including nested child events."""
    for event in events:
        yield from event.walk()


class TagBlockingFirstPaint(BaseModel):
    """A tag that blocked first paint, as reported by the DOM collector."""

    url: str = Field(description="URL of the blocking resource")
    start_time: float = Field(description="Start time in seconds on the trace clock")
    end_time: float = Field(description="End time in seconds on the trace clock")
    transfer_size: Optional[int] = Field(default=None, description="Bytes on the wire")


class PageTimings(BaseModel):
    """Page lifecycle timestamps supplied by the trace processing layer."""

    navigation_start: Optional[float] = Field(
        default=None,
        description="Navigation start in seconds on the network clock"
    )
    dom_content_loaded: Optional[float] = Field(
        default=None,
        description="DOMContentLoaded in ms relative to navigation start"
    )
    load: Optional[float] = Field(
        default=None,
        description="Load event in ms relative to navigation start"
    )


class MainThreadTask(BaseModel):
    """A top-level main thread task, timed in ms relative to page start."""

    event: TraceEvent = Field(description="Trace event for the task")
    start_time: float = Field(description="Start in ms relative to page start")
    end_time: float = Field(description="End in ms relative to page start")
    children: List[TraceEvent] = Field(default_factory=list, description="Nested events")
    attributable_urls: List[str] = Field(
        default_factory=list,
        description="Script URLs found within the task"
    )

    @property
    def duration(self) -> float:
        """Task duration in milliseconds."""
        return self.end_time - self.start_time


class PageTrace(BaseModel):
    """All recorded artifacts for one page load."""

    url: str = Field(description="Page URL that was recorded")
    requests: List[NetworkRequest] = Field(
        default_factory=list,
        description="Network log, in log order"
    )
    trace_events: List[TraceEvent] = Field(
        default_factory=list,
        description="Trace event stream, in trace order"
    )
    timings: PageTimings = Field(default_factory=PageTimings, description="Lifecycle timings")
    blocking_tags: List[TagBlockingFirstPaint] = Field(
        default_factory=list,
        description="Tags that blocked first paint"
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageTrace":
        """Load a PageTrace from DevTools-style JSON artifacts."""
        timings = data.get("timings") or {}
        return cls(
            url=data.get("url", ""),
            requests=[NetworkRequest.from_devtools(r) for r in data.get("networkRecords", [])],
            trace_events=[TraceEvent.from_dict(e) for e in data.get("traceEvents", [])],
            timings=PageTimings(
                navigation_start=timings.get("navigationStart"),
                dom_content_loaded=timings.get("domContentLoaded"),
                load=timings.get("load"),
            ),
            blocking_tags=[
                TagBlockingFirstPaint(
                    url=(t.get("tag") or {}).get("url", t.get("url", "")),
                    start_time=t["startTime"],
                    end_time=t["endTime"],
                    transfer_size=t.get("transferSize"),
                )
                for t in data.get("tagsBlockingFirstPaint", [])
            ],
        )


InitiatorStack.model_rebuild()
TraceEvent.model_rebuild()
