"""Ad Sentinel: ad-loading critical path and idle network analysis."""

__version__ = "1.0.0"
