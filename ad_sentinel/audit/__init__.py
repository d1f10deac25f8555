"""Audit engine package for Ad Sentinel.

This package provides the models and analyzers used to audit how ads load
on a recorded page.
"""

from .models import PageTrace, NetworkRequest, TraceEvent, IdlePeriod, Cause
from .analyzers import AdCriticalGraphAnalyzer, IdleNetworkAnalyzer

__all__ = [
    # Models
    'PageTrace',
    'NetworkRequest',
    'TraceEvent',
    'IdlePeriod',
    'Cause',

    # Analyzers
    'AdCriticalGraphAnalyzer',
    'IdleNetworkAnalyzer',
]
