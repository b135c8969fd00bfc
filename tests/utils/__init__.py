"""
Test utilities for resync.

This package contains shared testing utilities to help write
better, more maintainable tests.
"""

from .fakes import FakeConnection, FakeQuery, FakeShareDoc
from .memory_utils import assert_released, assert_no_object_leak, count_types

__all__ = [
    "FakeConnection",
    "FakeQuery",
    "FakeShareDoc",
    "assert_released",
    "assert_no_object_leak",
    "count_types",
]
