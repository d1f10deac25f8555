"""Resource classification for ad tags, ad requests and header bids.

URL predicates are pure module-level functions. Bid detection depends on a
bidder pattern table, so it lives on ``ResourceClassifier``, an immutable
value object built once from the table. A default classifier backed by the
bundled table is available as ``default_classifier``.
"""

import re
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern, Tuple, Union
from urllib.parse import ParseResult, urlparse

from pydantic import BaseModel, Field, field_validator

from ..models.trace import InitiatorType, NetworkRequest, ResourceType
from .bidders import DEFAULT_BIDDER_PATTERNS


UrlLike = Union[str, ParseResult]

GOOGLE_ADS_HOST = re.compile(r"(^|\.)(doubleclick\.net|google(syndication|tagservices)\.com)$")
ADSENSE_HOST = "pagead2.googlesyndication.com"
ADSENSE_TAG_PATHS = ("/pagead/js/adsbygoogle.js", "/pagead/show_ads.js")
ADSENSE_IMPL_PATH = re.compile(r"^/pagead/js/.*/show_ads_impl.*?\.js")
ADSENSE_AD_HOST = "googleads.g.doubleclick.net"
ADSENSE_AD_PATH = "/pagead/ads"
GPT_HOSTS = ("www.googletagservices.com", "securepubads.g.doubleclick.net")
GPT_TAG_PATHS = ("/tag/js/gpt.js", "/tag/js/gpt_mobile.js")
# pubads_impl_<n>.js and variants, but not pubads_impl_rendering_<n>.js
GPT_IMPL_PATH = re.compile(r"^/gpt/pubads_impl([a-z_]*)((?<!rendering)_)\d+\.js")
GPT_AD_HOST = "securepubads.g.doubleclick.net"
GPT_AD_PATH = "/gampad/ads"
IMPRESSION_HOSTS = ("securepubads.g.doubleclick.net", "googleads4.g.doubleclick.net")
IMPRESSION_PATHS = ("/pcs/view", "/pagead/adview")
STATIC_INITIATOR_TYPES = (InitiatorType.PARSER, InitiatorType.PRELOAD, InitiatorType.OTHER)
PATH_MAX = 60


@lru_cache(maxsize=4096)
def _parse(url: str) -> ParseResult:
    return urlparse(url)


def to_url(url: UrlLike) -> ParseResult:
    """Parse the URL unless it is already parsed."""
    return _parse(url) if isinstance(url, str) else url


def _host(url: ParseResult) -> str:
    return url.netloc.lower()


def is_google_ads(url: UrlLike) -> bool:
    """Checks if the url is served from a Google ads host."""
    return bool(GOOGLE_ADS_HOST.search(to_url(url).hostname or ""))


def is_adsense_tag(url: UrlLike) -> bool:
    """Checks if the url loads the AdSense loader script."""
    parsed = to_url(url)
    return _host(parsed) == ADSENSE_HOST and parsed.path in ADSENSE_TAG_PATHS


def is_adsense_impl_tag(url: UrlLike) -> bool:
    """Checks if the url loads the AdSense implementation script."""
    parsed = to_url(url)
    return _host(parsed) == ADSENSE_HOST and bool(ADSENSE_IMPL_PATH.search(parsed.path))


def is_adsense(url: UrlLike) -> bool:
    return is_adsense_tag(url) or is_adsense_impl_tag(url)


def is_adsense_ad_request(request: Optional[NetworkRequest]) -> bool:
    """Checks if a network request is an AdSense ad request."""
    if request is None:
        return False
    parsed = to_url(request.url)
    return parsed.path == ADSENSE_AD_PATH and _host(parsed) == ADSENSE_AD_HOST


def is_gpt_tag(url: UrlLike) -> bool:
    """Checks if the url loads gpt.js."""
    parsed = to_url(url)
    return _host(parsed) in GPT_HOSTS and parsed.path in GPT_TAG_PATHS


def is_gpt_impl_tag(url: UrlLike) -> bool:
    """Checks if the url loads the pubads implementation script.

    The rendering variant of the implementation script is not a match.
    """
    return bool(GPT_IMPL_PATH.search(to_url(url).path))


def is_gpt(url: UrlLike) -> bool:
    return is_gpt_tag(url) or is_gpt_impl_tag(url)


def is_gpt_ad_request(request: Optional[NetworkRequest]) -> bool:
    """Checks if a network request is a GPT ad request."""
    if request is None:
        return False
    parsed = to_url(request.url)
    return (
        parsed.path == GPT_AD_PATH and
        _host(parsed) == GPT_AD_HOST and
        request.resource_type == ResourceType.XHR
    )


def is_ad_tag(url: UrlLike) -> bool:
    """Checks if the url loads an AdSense or GPT loader script."""
    return is_adsense_tag(url) or is_gpt_tag(url)


def is_ad_script(url: UrlLike) -> bool:
    """Checks if the url loads an AdSense or GPT loader or impl script."""
    return is_adsense(url) or is_gpt(url)


def is_ad_request(request: Optional[NetworkRequest]) -> bool:
    return is_adsense_ad_request(request) or is_gpt_ad_request(request)


def is_impl_tag(url: UrlLike) -> bool:
    """Checks if the url loads either the AdSense or GPT impl script."""
    return is_adsense_tag(url) or is_gpt_impl_tag(url)


def is_impression_ping(url: UrlLike) -> bool:
    parsed = to_url(url)
    return _host(parsed) in IMPRESSION_HOSTS and parsed.path in IMPRESSION_PATHS


def has_impression_path(url: UrlLike) -> bool:
    return to_url(url).path in IMPRESSION_PATHS


def contains_any_substring(text: str, substrings: Iterable[str]) -> bool:
    return any(substring in text for substring in substrings)


def is_static_request(request: NetworkRequest) -> bool:
    """Checks if the request was issued by the parser rather than a script."""
    return request.initiator.type in STATIC_INITIATOR_TYPES


def is_possible_bid_request(request: NetworkRequest) -> bool:
    """Checks that a request looks like a real bid: a non-empty, uncached, non-image response."""
    return (
        (request.resource_size is None or request.resource_size > 0) and
        request.resource_type != ResourceType.IMAGE and
        not request.is_cacheable
    )


def trim_url(url: str) -> str:
    """Removes the query string and truncates long paths."""
    parsed = to_url(url)
    path = parsed.path
    if len(path) > PATH_MAX:
        path = path[:PATH_MAX] + "..."
    return f"{parsed.scheme}://{parsed.netloc}{path}"


def get_abbreviated_url(url: str) -> str:
    """Returns the URL with no query string and at most three path segments."""
    trimmed = urlparse(trim_url(url))
    parts = trimmed.path.split("/")
    path = trimmed.path
    if len(parts) > 4:
        path = "/".join(parts[:4] + ["..."])
    return f"{trimmed.scheme}://{trimmed.netloc}{path}"


class BidderPattern(BaseModel):
    """URL patterns identifying one header bidder."""

    label: str = Field(description="Human readable bidder name")
    patterns: List[str] = Field(description="Regular expressions matched against full URLs")

    @field_validator("patterns")
    @classmethod
    def validate_patterns(cls, v):
        """Reject patterns that do not compile."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid bidder pattern {pattern!r}: {e}")
        return v


class ResourceClassifier:
    """Bid classification parameterized by a bidder pattern table."""

    def __init__(self, bidder_patterns: Optional[Iterable[Union[BidderPattern, dict]]] = None):
        if bidder_patterns is None:
            bidder_patterns = DEFAULT_BIDDER_PATTERNS

        compiled: List[Tuple[str, Tuple[Pattern[str], ...]]] = []
        for bidder in bidder_patterns:
            if not isinstance(bidder, BidderPattern):
                bidder = BidderPattern(**bidder)
            compiled.append((bidder.label, tuple(re.compile(p) for p in bidder.patterns)))
        self._bidders = tuple(compiled)

    @property
    def bidder_labels(self) -> List[str]:
        return [label for label, _ in self._bidders]

    def get_header_bidder(self, url: str) -> Optional[str]:
        """Returns the bidder label for the url, or None if it is not a bid."""
        for label, patterns in self._bidders:
            for pattern in patterns:
                if pattern.search(url):
                    return label
        return None

    def is_bid_related_request(self, request_or_url: Union[NetworkRequest, str]) -> bool:
        """Checks whether the request is a bid or related to bidding (e.g. a bidder script)."""
        url = request_or_url if isinstance(request_or_url, str) else request_or_url.url
        return self.get_header_bidder(url) is not None

    def is_bid_request(self, request: NetworkRequest) -> bool:
        return self.is_bid_related_request(request) and is_possible_bid_request(request)


default_classifier = ResourceClassifier()


def get_header_bidder(url: str) -> Optional[str]:
    return default_classifier.get_header_bidder(url)


def is_bid_related_request(request_or_url: Union[NetworkRequest, str]) -> bool:
    return default_classifier.is_bid_related_request(request_or_url)


def is_bid_request(request: NetworkRequest) -> bool:
    return default_classifier.is_bid_request(request)
