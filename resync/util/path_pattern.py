"""
Path Patterns - Dotted Path Parsing and Wildcard Validation
===========================================================

This module turns dotted path strings into the segment tuples used by the
listener tree, and validates listener patterns before they reach the tree.

Pattern syntax:
- Literal segments match exactly: ``"users.1.name"``
- ``*`` matches exactly one segment and is captured: ``"users.*.name"``
- ``**`` matches zero or more trailing segments and captures the remaining
  dotted suffix as a single string. It is only legal as the final segment.

Parsed patterns are cached in an LRU cache, since render-heavy applications
register the same handful of patterns many times over.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union

from cachetools import LRUCache

SINGLE_WILDCARD = "*"
TAIL_WILDCARD = "**"

PathLike = Union[str, int, Sequence[Union[str, int]], None]


class PatternError(ValueError):
    """Raised when a listener pattern is malformed."""

    pass


@dataclass(frozen=True)
class PathPattern:
    """
    A validated listener pattern.

    Attributes:
        segments: Pattern segments, literals plus ``*`` / ``**`` tokens
        capture_indices: Positions of ``*`` segments, in order
        remaining_index: Position of the trailing ``**``, or None
    """

    segments: Tuple[str, ...]
    capture_indices: Tuple[int, ...] = ()
    remaining_index: Optional[int] = None

    @property
    def has_captures(self) -> bool:
        return bool(self.capture_indices) or self.remaining_index is not None

    @property
    def is_match_all(self) -> bool:
        """True for the bare ``**`` pattern, which matches every path."""
        return self.segments == (TAIL_WILDCARD,)

    def captures(self, path_segments: Sequence[str]) -> list:
        """Extract captured values from a concrete path matched by this pattern."""
        if self.is_match_all:
            return [".".join(path_segments)]
        captures = [path_segments[i] for i in self.capture_indices]
        if self.remaining_index is not None:
            captures.append(".".join(path_segments[self.remaining_index :]))
        return captures

    def __str__(self) -> str:
        return ".".join(self.segments)


def split_path(path: PathLike) -> Tuple[str, ...]:
    """
    Split a dotted path into segments.

    Accepts a dotted string, an int (array index), or a sequence of
    segments. None and the empty string both mean the root path.
    """
    if path is None or path == "":
        return ()
    if isinstance(path, int):
        return (str(path),)
    if isinstance(path, str):
        return tuple(path.split("."))
    return tuple(str(segment) for segment in path)


def join_path(*parts: PathLike) -> Tuple[str, ...]:
    """Concatenate several paths into one segment tuple."""
    segments: Tuple[str, ...] = ()
    for part in parts:
        segments += split_path(part)
    return segments


def normalize_pattern(pattern: str) -> str:
    """
    Rewrite the legacy ``foo**`` form to ``foo.**``.

    Both spellings are treated the same; the dotted form is preferred.
    """
    if (
        len(pattern) > 2
        and pattern.endswith(TAIL_WILDCARD)
        and pattern[-3] != "."
    ):
        return pattern[:-2] + "." + TAIL_WILDCARD
    return pattern


_pattern_cache: LRUCache = LRUCache(maxsize=1024)


def configure_pattern_cache(maxsize: int) -> None:
    """
    Make room for at least ``maxsize`` parsed patterns.

    The cache is shared by every model in the process, so it only ever grows;
    cached entries are carried over when it does.
    """
    global _pattern_cache
    if maxsize <= _pattern_cache.maxsize:
        return
    cache = LRUCache(maxsize=maxsize)
    cache.update(_pattern_cache)
    _pattern_cache = cache


def parse_pattern(pattern: Union[str, Iterable[str]]) -> PathPattern:
    """
    Parse and validate a listener pattern.

    Args:
        pattern: Dotted pattern string or iterable of segments

    Returns:
        PathPattern with capture positions resolved

    Raises:
        PatternError: If the pattern is empty, has an empty segment, or
            contains ``**`` anywhere but the last position
    """
    if isinstance(pattern, str):
        key = normalize_pattern(pattern)
    else:
        key = ".".join(pattern)

    cached = _pattern_cache.get(key)
    if cached is not None:
        return cached

    if not key:
        raise PatternError("Path pattern may not be empty")

    segments = tuple(key.split("."))
    capture_indices = []
    remaining_index = None
    last = len(segments) - 1
    for i, segment in enumerate(segments):
        if segment == "":
            raise PatternError(f"Path pattern has an empty segment: {key!r}")
        if segment == SINGLE_WILDCARD:
            capture_indices.append(i)
        elif segment == TAIL_WILDCARD:
            if i != last:
                raise PatternError(
                    f"Path pattern may contain `**` at end only: {key!r}"
                )
            remaining_index = i

    parsed = PathPattern(
        segments=segments,
        capture_indices=tuple(capture_indices),
        remaining_index=remaining_index,
    )
    _pattern_cache[key] = parsed
    return parsed
