"""Unit tests for path splitting and listener pattern parsing."""

import pytest

from resync.util import path_pattern
from resync.util.path_pattern import (
    PathPattern,
    PatternError,
    configure_pattern_cache,
    join_path,
    normalize_pattern,
    parse_pattern,
    split_path,
)


@pytest.mark.unit
def test_split_path_handles_strings_ints_and_sequences():
    """split_path accepts dotted strings, ints and segment sequences"""
    assert split_path("posts.1.title") == ("posts", "1", "title")
    assert split_path(3) == ("3",)
    assert split_path(["posts", 1]) == ("posts", "1")
    assert split_path(None) == ()
    assert split_path("") == ()


@pytest.mark.unit
def test_join_path_concatenates_parts_and_skips_empty_ones():
    """join_path concatenates segments from several path parts"""
    assert join_path(("posts",), "1.title") == ("posts", "1", "title")
    assert join_path("posts", None, "") == ("posts",)


@pytest.mark.unit
def test_normalize_pattern_rewrites_legacy_tail_wildcard():
    """A bare `**` suffix is normalized to `.**`"""
    assert normalize_pattern("posts**") == "posts.**"
    assert normalize_pattern("posts.**") == "posts.**"
    assert normalize_pattern("**") == "**"


@pytest.mark.unit
def test_parse_pattern_records_capture_positions():
    """Single wildcards and the tail wildcard are located in the pattern"""
    pattern = parse_pattern("posts.*.comments.*.**")

    assert pattern.segments == ("posts", "*", "comments", "*", "**")
    assert pattern.capture_indices == (1, 3)
    assert pattern.remaining_index == 4
    assert pattern.has_captures


@pytest.mark.unit
def test_parse_pattern_without_wildcards_has_no_captures():
    """Literal patterns capture nothing"""
    pattern = parse_pattern("posts.1")

    assert not pattern.has_captures
    assert pattern.captures(("posts", "1")) == []


@pytest.mark.unit
def test_parse_pattern_returns_cached_instance():
    """Parsing the same pattern twice returns the cached result"""
    assert parse_pattern("users.*.name") is parse_pattern("users.*.name")


@pytest.mark.unit
def test_parse_pattern_treats_legacy_and_dotted_forms_alike():
    """`a**` and `a.**` parse to the same pattern"""
    assert parse_pattern("posts**") == parse_pattern("posts.**")


@pytest.mark.unit
@pytest.mark.parametrize("bad", ["", "posts.**.title", "posts..title", "**.**"])
def test_parse_pattern_rejects_malformed_patterns(bad):
    """Empty patterns, empty segments and non-final `**` are rejected"""
    with pytest.raises(PatternError):
        parse_pattern(bad)


@pytest.mark.unit
def test_pattern_error_is_a_value_error():
    """PatternError can be caught as ValueError"""
    assert issubclass(PatternError, ValueError)


@pytest.mark.unit
def test_captures_for_tail_wildcard_join_remaining_segments():
    """The tail wildcard captures the remaining dotted suffix"""
    pattern = parse_pattern("posts.**")

    assert pattern.captures(("posts",)) == [""]
    assert pattern.captures(("posts", "1")) == ["1"]
    assert pattern.captures(("posts", "1", "title")) == ["1.title"]


@pytest.mark.unit
def test_captures_for_bare_tail_wildcard_capture_full_path():
    """A bare `**` pattern captures the whole path"""
    pattern = parse_pattern("**")

    assert pattern.is_match_all
    assert pattern.captures(("posts", "1")) == ["posts.1"]


@pytest.mark.unit
def test_path_pattern_str_is_dotted():
    """str() of a pattern gives the dotted form"""
    assert str(PathPattern(("posts", "*"), (1,))) == "posts.*"


@pytest.mark.unit
def test_pattern_cache_only_grows_and_keeps_entries():
    """Models asking for different cache sizes don't wipe each other's patterns"""
    parsed = parse_pattern("rooms.*.members.**")

    configure_pattern_cache(16)
    assert parse_pattern("rooms.*.members.**") is parsed

    configure_pattern_cache(4096)
    assert parse_pattern("rooms.*.members.**") is parsed
    assert path_pattern._pattern_cache.maxsize >= 4096
