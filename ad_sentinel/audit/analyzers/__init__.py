"""Ad-loading analysis framework.

This module reconstructs the critical request graph behind a page's first ad
request and finds idle periods in that graph's network activity, attributing
each to a probable cause.
"""

from .base import (
    BaseAnalyzer,
    AnalysisReport,
    AnalysisNote,
    NoteSeverity,
    CriticalGraphReport,
    IdleNetworkReport,
)

from .errors import (
    AnalysisError,
    PreconditionError,
    InconsistentTraceError,
)

# Import classification utilities
from .classification import (
    BidderPattern,
    ResourceClassifier,
    default_classifier,
    get_header_bidder,
    is_ad_request,
    is_ad_script,
    is_bid_request,
    is_gpt_ad_request,
)

from .network_summary import NetworkSummary, build_network_summary
from .graph import (
    AdCriticalGraphAnalyzer,
    CriticalGraphResolver,
    CriticalRequestSet,
    get_ad_critical_graph,
    get_critical_graph,
)
from .idle_network import (
    IdleCauseClassifier,
    IdleNetworkAnalyzer,
    find_idle_periods,
    get_blocking_intervals,
)

# Import configuration system
from .config import (
    AnalysisConfig,
    IdleNetworkConfig,
    ClassifierConfig,
    ConfigManager,
    get_config,
    load_config,
    ConfigurationError,
)

# Import performance utilities
from .performance import (
    get_performance_summary,
    reset_performance_metrics,
    PerformanceMetrics,
    monitor_performance,
)

__all__ = [
    # Base classes
    'BaseAnalyzer',
    'AnalysisReport',
    'AnalysisNote',
    'NoteSeverity',
    'CriticalGraphReport',
    'IdleNetworkReport',

    # Errors
    'AnalysisError',
    'PreconditionError',
    'InconsistentTraceError',

    # Classification
    'BidderPattern',
    'ResourceClassifier',
    'default_classifier',
    'get_header_bidder',
    'is_ad_request',
    'is_ad_script',
    'is_bid_request',
    'is_gpt_ad_request',

    # Critical graph
    'NetworkSummary',
    'build_network_summary',
    'AdCriticalGraphAnalyzer',
    'CriticalGraphResolver',
    'CriticalRequestSet',
    'get_ad_critical_graph',
    'get_critical_graph',

    # Idle network
    'IdleCauseClassifier',
    'IdleNetworkAnalyzer',
    'find_idle_periods',
    'get_blocking_intervals',

    # Configuration
    'AnalysisConfig',
    'IdleNetworkConfig',
    'ClassifierConfig',
    'ConfigManager',
    'get_config',
    'load_config',
    'ConfigurationError',

    # Performance
    'get_performance_summary',
    'reset_performance_metrics',
    'PerformanceMetrics',
    'monitor_performance',
]
