"""
Secure Unique Slug Generator

Generates short, URL-safe, cryptographically random identifiers for new
routing rules and their projects.

Algorithm: Rejection Sampling with Base62 Encoding
1. Draw random bytes from the operating system (``secrets.token_bytes``)
2. Discard every byte >= 248, the largest multiple of 62 that fits in a byte
3. Map accepted bytes to the alphabet with ``byte % 62``
4. Check the candidate against the already issued names and retry on a
   collision, up to a fixed number of attempts

Why rejection sampling?
- 256 is not a multiple of 62, so a plain ``byte % 62`` would make the first
  8 symbols slightly more likely than the rest
- Dropping the top 8 byte values leaves 248 = 62 * 4 values, each symbol
  then has exactly four byte values mapping to it

Entropy (8 characters):
- 62^8 ~ 2.18e14 combinations, ~47.6 bits
- Birthday bound (50% collision) ~ 14.8 million identifiers
"""

import logging
import math
import secrets
import string
from typing import Callable, Collection, Iterable

from linkrotator.core.exceptions import SlugExhaustedError

logger = logging.getLogger(__name__)

BASE62_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
BASE62_LENGTH = len(BASE62_ALPHABET)

# Largest multiple of 62 that fits in a byte (248 = 62 * 4)
BIAS_THRESHOLD = 256 - (256 % BASE62_LENGTH)

DEFAULT_SLUG_LENGTH = 8
MAX_ATTEMPTS = 10

LINK_PREFIX = "lnk-"
PROJECT_PREFIX = "prj-"

RandomBytes = Callable[[int], bytes]


def generate_random_slug(length: int = DEFAULT_SLUG_LENGTH, random_bytes: RandomBytes = secrets.token_bytes) -> str:
    """
    Generate a random base62 string of the given length.
    
    Args:
        length: Number of characters to generate (default: 8)
        random_bytes: Byte source, ``secrets.token_bytes`` unless testing
    
    Returns:
        A random base62 string
    
    Raises:
        ValueError: If length is smaller than 1
    """
    if length < 1:
        raise ValueError(f"Slug length must be at least 1, got {length}")
    
    result = []
    
    while len(result) < length:
        # Over-request by ~30% to cover rejected bytes
        needed = length - len(result)
        for byte in random_bytes(needed + math.ceil(needed * 0.3) + 2):
            if byte < BIAS_THRESHOLD:
                result.append(BASE62_ALPHABET[byte % BASE62_LENGTH])
                if len(result) == length:
                    break
    
    return "".join(result)


def generate_unique_slug(
    existing_names: Iterable[str],
    prefix: str = "",
    length: int = DEFAULT_SLUG_LENGTH,
    max_attempts: int = MAX_ATTEMPTS,
    random_bytes: RandomBytes = secrets.token_bytes,
) -> str:
    """
    Generate an identifier that is not already in ``existing_names``.
    
    ``existing_names`` is only read; the caller records the new name once
    it has been saved.
    
    Args:
        existing_names: Names already issued in this namespace
        prefix: Optional prefix (e.g., "lnk-" or "prj-")
        length: Length of the random portion (default: 8)
        max_attempts: Collision retries before giving up (default: 10)
        random_bytes: Byte source, ``secrets.token_bytes`` unless testing
    
    Returns:
        A unique slug string
    
    Raises:
        SlugExhaustedError: If every attempt collided
    """
    if isinstance(existing_names, (set, frozenset, dict)):
        taken: Collection[str] = existing_names
    else:
        taken = frozenset(existing_names)
    
    for attempt in range(1, max_attempts + 1):
        slug = f"{prefix}{generate_random_slug(length, random_bytes)}"
        
        if slug not in taken:
            return slug
        
        logger.warning(f"Slug collision detected on attempt {attempt}: '{slug}'")
    
    logger.error(f"Failed to generate unique slug with prefix '{prefix}' after {max_attempts} attempts")
    raise SlugExhaustedError(max_attempts, prefix)


def generate_unique_link_slug(existing_names: Iterable[str], length: int = DEFAULT_SLUG_LENGTH) -> str:
    """Unique routing rule id, e.g. ``lnk-aB3xK9mN``."""
    return generate_unique_slug(existing_names, LINK_PREFIX, length)


def generate_unique_project_slug(existing_names: Iterable[str], length: int = DEFAULT_SLUG_LENGTH) -> str:
    """Unique project id, e.g. ``prj-Qw7nFp2R``."""
    return generate_unique_slug(existing_names, PROJECT_PREFIX, length)
