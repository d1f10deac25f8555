"""Exceptions raised by the ad-loading analyzers.

Missing or partial trace data is never an error: analyzers degrade to empty
results. Only broken internal contracts raise.
"""


class AnalysisError(Exception):
    """Base class for analyzer errors."""
    pass


class PreconditionError(AnalysisError):
    """An internal contract was violated, e.g. a required request was None."""
    pass


class InconsistentTraceError(AnalysisError):
    """The network log and trace events do not describe the same page load."""
    pass
