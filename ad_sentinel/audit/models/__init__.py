"""Audit data models package."""

from .trace import (
    CallFrame,
    InitiatorStack,
    Initiator,
    InitiatorType,
    NetworkRequest,
    ResourceType,
    TraceEvent,
    TagBlockingFirstPaint,
    PageTimings,
    MainThreadTask,
    PageTrace,
    iter_trace_events,
    MICROSECONDS_PER_SECOND,
)

from .idle import (
    Cause,
    CAUSE_LABELS,
    IdlePeriod,
    RequestInterval,
)

__all__ = [
    # Trace models
    'CallFrame',
    'InitiatorStack',
    'Initiator',
    'InitiatorType',
    'NetworkRequest',
    'ResourceType',
    'TraceEvent',
    'TagBlockingFirstPaint',
    'PageTimings',
    'MainThreadTask',
    'PageTrace',
    'iter_trace_events',
    'MICROSECONDS_PER_SECOND',

    # Idle network models
    'Cause',
    'CAUSE_LABELS',
    'IdlePeriod',
    'RequestInterval',
]
