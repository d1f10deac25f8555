"""Shared test fixtures and configuration for Ad Sentinel tests."""

import pytest
from pathlib import Path
import sys

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ad_sentinel.audit.analyzers.config import AnalysisConfig
from ad_sentinel.audit.models import (
    CallFrame,
    Initiator,
    InitiatorStack,
    InitiatorType,
    NetworkRequest,
    PageTrace,
    ResourceType,
    TraceEvent,
)


PAGE_URL = "https://news.example.com/article"
TAG_URL = "https://securepubads.g.doubleclick.net/tag/js/gpt.js"
IMPL_URL = "https://securepubads.g.doubleclick.net/gpt/pubads_impl_2024010101.js"
AD_URL = "https://securepubads.g.doubleclick.net/gampad/ads?iu=/1234/news&sz=300x250"
BID_URL = "https://fastlane.rubiconproject.com/a/api/fastlane.json?account_id=1"


def build_request(url, start_time, end_time, resource_type=ResourceType.SCRIPT,
                  request_id=None, stack_urls=None, initiator_type=None,
                  initiator_request_id=None, status_code=200, initiator_url=None, **kwargs):
    """Build a NetworkRequest; ``stack_urls`` become the innermost-first call frames."""
    stack = None
    if stack_urls:
        stack = InitiatorStack(call_frames=[CallFrame(url=u) for u in stack_urls])
    if initiator_type is None:
        initiator_type = InitiatorType.SCRIPT if stack else InitiatorType.PARSER
    return NetworkRequest(
        request_id=request_id or url,
        url=url,
        start_time=start_time,
        end_time=end_time,
        resource_type=resource_type,
        initiator=Initiator(type=initiator_type, url=initiator_url, stack=stack),
        initiator_request_id=initiator_request_id,
        status_code=status_code,
        **kwargs
    )


@pytest.fixture
def make_request():
    """Factory for NetworkRequest objects."""
    return build_request


@pytest.fixture
def make_trace_event():
    """Factory for TraceEvent objects; ``data`` lands in ``args.data``."""
    def _make(name, ts, dur=None, data=None, children=None):
        return TraceEvent(
            name=name,
            ts=ts,
            dur=dur,
            ph="X" if dur is not None else "I",
            args={"data": data} if data is not None else {},
            child_events=children or [],
        )
    return _make


@pytest.fixture
def ad_page_requests():
    """Document, GPT tag, impl script and ad request, starting at t=1.0s.

    In ms after page start: document [0, 50], tag [50, 80], impl [80, 120],
    ad request [150, 160].
    """
    document = build_request(PAGE_URL, 1.0, 1.05, ResourceType.DOCUMENT,
                             request_id="1", initiator_type=InitiatorType.OTHER)
    tag = build_request(TAG_URL, 1.05, 1.08, request_id="2", initiator_request_id="1")
    impl = build_request(IMPL_URL, 1.08, 1.12, request_id="3", stack_urls=[TAG_URL])
    ad = build_request(AD_URL, 1.15, 1.16, ResourceType.XHR, request_id="4", stack_urls=[IMPL_URL])
    return [document, tag, impl, ad]


@pytest.fixture
def ad_page_trace(ad_page_requests):
    return PageTrace(url=PAGE_URL, requests=ad_page_requests)


@pytest.fixture
def test_config():
    """Default analysis configuration, independent of the environment."""
    return AnalysisConfig(environment="test")
