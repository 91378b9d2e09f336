"""
Tests for identifier generation.
"""

import itertools
from collections import Counter

import pytest

from linkrotator.core.exceptions import SlugExhaustedError
from linkrotator.services.slug_generator import (
    BASE62_ALPHABET,
    BIAS_THRESHOLD,
    LINK_PREFIX,
    PROJECT_PREFIX,
    generate_random_slug,
    generate_unique_link_slug,
    generate_unique_project_slug,
    generate_unique_slug,
)


def cycling_bytes(values):
    """Byte source repeating ``values`` forever."""
    it = itertools.cycle(values)
    return lambda n: bytes(next(it) for _ in range(n))


def chunked_bytes(*chunks):
    """Byte source returning one chunk per call."""
    it = iter(chunks)
    return lambda n: next(it)


class TestRandomSlug:

    def test_alphabet_and_threshold(self):
        """Test the base62 alphabet and the rejection threshold."""
        assert len(BASE62_ALPHABET) == 62
        assert len(set(BASE62_ALPHABET)) == 62
        assert BIAS_THRESHOLD == 248

    def test_length_and_characters(self):
        """Test slug length and character set."""
        for length in (1, 8, 32):
            slug = generate_random_slug(length)
            assert len(slug) == length
            assert set(slug) <= set(BASE62_ALPHABET)

    def test_bytes_at_or_above_threshold_are_rejected(self):
        """Test that bytes 248-255 never map to a symbol."""
        source = cycling_bytes([248, 255, 0, 61, 62, 247])
        assert generate_random_slug(4, source) == "a9a9"

    def test_only_rejected_bytes_keep_drawing(self):
        """Test that generation draws again until enough bytes are accepted."""
        source = chunked_bytes(bytes([250] * 7), bytes([252] * 7), bytes([1, 2, 3, 4, 5, 6, 7]))
        assert generate_random_slug(4, source) == "bcde"

    @pytest.mark.parametrize("length", [0, -3])
    def test_invalid_length(self, length):
        """Test that lengths below 1 raise ValueError."""
        with pytest.raises(ValueError):
            generate_random_slug(length)

    def test_symbols_are_uniform_at_every_position(self):
        """Test per-position uniformity with a chi-square bound."""
        samples = 20_000
        slugs = [generate_random_slug(8) for _ in range(samples)]
        expected = samples / 62

        for position in range(8):
            counts = Counter(slug[position] for slug in slugs)
            assert set(counts) == set(BASE62_ALPHABET)
            chi_square = sum((counts[s] - expected) ** 2 / expected for s in BASE62_ALPHABET)
            # 61 degrees of freedom; a modulo-biased mapping lands far above this
            assert chi_square < 130, f"position {position}: chi2={chi_square:.1f}"

            # Plain byte % 62 would favour the first 8 symbols by 25%
            head_share = sum(counts[s] for s in BASE62_ALPHABET[:8]) / samples
            assert head_share == pytest.approx(8 / 62, abs=0.012)


class TestUniqueSlug:

    def test_prefix_and_length(self):
        """Test that the prefix is prepended to the random part."""
        slug = generate_unique_slug(set(), prefix="lnk-", length=8)
        assert slug.startswith("lnk-")
        assert len(slug) == 12

    def test_never_returns_an_existing_name(self):
        """Test uniqueness over 10k issued names."""
        issued = set()
        for _ in range(10_000):
            slug = generate_unique_slug(issued, length=8)
            assert slug not in issued
            issued.add(slug)
        assert len(issued) == 10_000

    def test_collision_is_retried(self):
        """Test that a collision triggers another draw."""
        source = chunked_bytes(bytes([0] * 4), bytes([1] * 4))
        assert generate_unique_slug({"a"}, length=1, random_bytes=source) == "b"

    def test_saturated_namespace_raises(self):
        """Test exhaustion when every one-character name is taken."""
        existing = set(BASE62_ALPHABET)
        snapshot = set(existing)
        with pytest.raises(SlugExhaustedError) as exc_info:
            generate_unique_slug(existing, length=1)
        assert exc_info.value.attempts == 10
        assert existing == snapshot

    def test_saturated_prefixed_namespace_raises(self):
        """Test exhaustion reporting for a prefixed namespace."""
        existing = [f"prj-{c}" for c in BASE62_ALPHABET]
        with pytest.raises(SlugExhaustedError) as exc_info:
            generate_unique_slug(existing, prefix="prj-", length=1, max_attempts=3)
        assert exc_info.value.attempts == 3
        assert exc_info.value.prefix == "prj-"

    def test_accepts_any_iterable_of_names(self):
        """Test that a list of names is accepted and left unchanged."""
        existing = ["lnk-aaaaaaaa"]
        slug = generate_unique_slug(existing, prefix="lnk-")
        assert slug != "lnk-aaaaaaaa"
        assert existing == ["lnk-aaaaaaaa"]

    def test_namespace_helpers(self):
        """Test the lnk- and prj- helpers."""
        assert generate_unique_link_slug(set()).startswith(LINK_PREFIX)
        assert generate_unique_project_slug(set()).startswith(PROJECT_PREFIX)
        assert len(generate_unique_project_slug(set())) == len(PROJECT_PREFIX) + 8
