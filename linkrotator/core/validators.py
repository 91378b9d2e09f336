"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs.
Rule ids end up in URL paths and database keys, destinations end up in
Location headers, so both are checked before they are stored.

Security Considerations:
- Input validation prevents injection attacks
- Only http/https destinations are ever redirected to
- Length limits prevent DoS attacks
"""

import re
from typing import Optional
from urllib.parse import urlparse

MAX_RULE_ID_LENGTH = 64
MAX_URL_LENGTH = 2048

_RULE_ID_PATTERN = re.compile(r'^[0-9a-zA-Z]+(?:-[0-9a-zA-Z]+)*$')

# Paths served by the app itself; a rule with one of these ids could never be reached
RESERVED_RULE_IDS = frozenset({"health", "docs", "redoc"})


def sanitize_rule_id(rule_id: str) -> Optional[str]:
    """
    Sanitize and validate a routing rule id.
    
    Generated ids look like ``lnk-aB3xK9mN``: base62 characters, optionally
    joined by single hyphens. Operator-chosen ids follow the same shape.
    
    Args:
        rule_id: The rule id to sanitize
    
    Returns:
        Sanitized rule id if valid, None otherwise
    """
    if not rule_id or not isinstance(rule_id, str):
        return None
    
    rule_id = rule_id.strip()
    
    if len(rule_id) > MAX_RULE_ID_LENGTH:
        return None
    
    if not _RULE_ID_PATTERN.match(rule_id):
        return None
    
    return rule_id


def is_reserved_rule_id(rule_id: str) -> bool:
    return rule_id in RESERVED_RULE_IDS


def validate_url_length(url: str, max_length: int = MAX_URL_LENGTH) -> bool:
    """
    Validate URL length to prevent DoS attacks.
    
    Args:
        url: The URL to validate
        max_length: Maximum allowed length (default: 2048 per RFC 7230)
    
    Returns:
        True if URL length is valid, False otherwise
    """
    return bool(url) and len(url) <= max_length


def is_valid_url(url: str) -> bool:
    """
    Validate destination URL format and security.
    
    Checks that URL uses http/https, has valid domain, and doesn't contain
    malicious patterns. Prevents javascript:, file:, and other dangerous schemes.
    
    Args:
        url: The URL string to validate
    
    Returns:
        True if valid and safe, False otherwise
    """
    if not isinstance(url, str) or not validate_url_length(url):
        return False
    
    try:
        result = urlparse(url)
        
        if not result.scheme or not result.netloc:
            return False
        
        if result.scheme.lower() not in {'http', 'https'}:
            return False
        
        domain = result.netloc.split(':')[0]
        if domain != 'localhost' and '.' not in domain:
            return False
        
        malicious_patterns = ['javascript:', 'data:', 'file:', 'vbscript:']
        url_lower = url.lower()
        if any(pattern in url_lower for pattern in malicious_patterns):
            return False
        
        return True
    except ValueError:
        return False
