"""
UTM Parameter Utilities

Tracking links are shared with campaign parameters attached
(``/lnk-aB3xK9mN?utm_source=google``). The redirect copies those parameters
onto whichever destination was drawn so the landing page still sees them.
"""

from typing import Dict, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

UTM_PARAM_KEYS = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
)


def extract_utm_params(query_params: Mapping[str, str]) -> Dict[str, str]:
    """
    Extract UTM parameters from a query mapping.
    
    Returns only the keys that are present and non-empty, with surrounding
    whitespace removed.
    """
    result = {}
    for key in UTM_PARAM_KEYS:
        value = query_params.get(key)
        if value and value.strip():
            result[key] = value.strip()
    return result


def append_utm_params(destination_url: str, utm_params: Mapping[str, str]) -> str:
    """
    Append UTM parameters to a destination URL.
    
    Existing query parameters are preserved, and UTM parameters already
    present on the destination are not overridden.
    
    Example:
        append_utm_params("https://example.com?utm_source=facebook", {"utm_source": "google"})
        -> "https://example.com?utm_source=facebook"
    """
    entries = [(k, v) for k, v in utm_params.items() if v and v.strip()]
    if not entries:
        return destination_url
    
    parts = urlsplit(destination_url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    present = {key for key, _ in query}
    
    for key, value in entries:
        if key not in present:
            query.append((key, value))
    
    return urlunsplit(parts._replace(query=urlencode(query)))
