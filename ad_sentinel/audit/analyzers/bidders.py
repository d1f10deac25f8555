"""Default header bidder URL patterns.

Each entry tags a list of regular expressions with a human readable bidder
label. Patterns are searched against the full absolute request URL.
"""

from typing import Any, Dict, List


DEFAULT_BIDDER_PATTERNS: List[Dict[str, Any]] = [
    {
        "label": "AppNexus",
        "patterns": [r"^https?://ib\.adnxs\.com/ut/v3/prebid", r"^https?://ib\.adnxs\.com/jpt"],
    },
    {
        "label": "Rubicon",
        "patterns": [r"^https?://fastlane\.rubiconproject\.com/a/api/fastlane\.json"],
    },
    {
        "label": "Index Exchange",
        "patterns": [r"^https?://(?:as-sec|htlb)\.casalemedia\.com/(?:cygnus|openrtb)"],
    },
    {
        "label": "OpenX",
        "patterns": [r"^https?://[\w-]+\.openx\.net/w/1\.0/arj", r"^https?://rtb\.openx\.net/openrtbb/prebidjs"],
    },
    {
        "label": "PubMatic",
        "patterns": [r"^https?://hbopenbid\.pubmatic\.com/translator"],
    },
    {
        "label": "Criteo",
        "patterns": [r"^https?://bidder\.criteo\.com/cdb"],
    },
    {
        "label": "Amazon",
        "patterns": [r"^https?://[\w.-]*amazon-adsystem\.com/e/dtb/bid"],
    },
    {
        "label": "TripleLift",
        "patterns": [r"^https?://tlx\.3lift\.com/header/auction"],
    },
    {
        "label": "Sovrn",
        "patterns": [r"^https?://ap\.lijit\.com/rtb/bid"],
    },
    {
        "label": "Sonobi",
        "patterns": [r"^https?://apex\.go\.sonobi\.com/trinity\.json"],
    },
    {
        "label": "Yieldmo",
        "patterns": [r"^https?://ads\.yieldmo\.com/exchange/prebid"],
    },
    {
        "label": "Teads",
        "patterns": [r"^https?://a\.teads\.tv/hb/bid-request"],
    },
    {
        "label": "Media.net",
        "patterns": [r"^https?://prebid\.media\.net/rtb/prebid"],
    },
    {
        "label": "Sharethrough",
        "patterns": [r"^https?://btlr\.sharethrough\.com/"],
    },
]
