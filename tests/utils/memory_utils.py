"""
Memory testing utilities for listener registries.

These helpers check that listeners and tree nodes are released once they are
removed, so long-running processes that add and remove listeners per render do
not accumulate garbage.

Examples:
    Basic leak detection:

        >>> from tests.utils.memory_utils import assert_no_object_leak
        >>> def churn():
        ...     listener = model.on("change", "posts.1", handler)
        ...     model.remove_listener("change", listener)
        >>> assert_no_object_leak(churn, "MutationListener")
"""

import gc
import weakref
from collections import defaultdict
from typing import Callable, Dict, Optional


def assert_released(
    obj_ref: weakref.ref, description: str = "Object should be released"
) -> None:
    """Assert that the referent of a weak reference has been garbage collected.

    Take the weak reference while the object is alive, drop every strong
    reference the test holds, then call this.

    Args:
        obj_ref: Weak reference to the object
        description: Custom description for the assertion failure
    """
    gc.collect()

    assert obj_ref() is None, f"{description}: object was not cleaned up"


def count_types() -> Dict[str, int]:
    """Count instances of each object type currently tracked by the gc."""
    gc.collect()
    counts = defaultdict(int)
    for obj in gc.get_objects():
        counts[type(obj).__name__] += 1
    return counts


def assert_no_object_leak(
    operation: Callable[[], None],
    type_name: str,
    tolerance: int = 5,
    description: Optional[str] = None,
) -> None:
    """Assert that an operation doesn't leave objects of a type behind.

    Args:
        operation: Function to execute that should not create persistent objects
        type_name: Name of the object type to monitor (e.g., 'MutationListener')
        tolerance: Allowed variance in object count
        description: Custom description for assertion failures
    """
    if description is None:
        description = f"Operation should not leak {type_name} objects"

    initial_count = count_types().get(type_name, 0)

    operation()

    final_count = count_types().get(type_name, 0)

    assert (
        abs(final_count - initial_count) <= tolerance
    ), f"{description}: {type_name} count changed from {initial_count} to {final_count}"
