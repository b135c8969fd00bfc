"""Join several completion callbacks into a single one."""

from typing import Callable, Optional


class AsyncGroup:
    """
    Fan-in for node-style ``callback(err, *results)`` completions.

    Each call to the group hands out a new member callback. The final callback
    runs once: immediately with the first error any member reports, or with
    None after every member has completed without error.

    Usage:
        group = AsyncGroup(on_done)
        finished = group()
        for doc in docs:
            doc.fetch(group())
        finished()
    """

    def __init__(self, callback: Callable[[Optional[BaseException]], None]):
        self._callback = callback
        self._pending = 0
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self) -> Callable[..., None]:
        self._pending += 1

        def member(err: Optional[BaseException] = None, *args) -> None:
            self._pending -= 1
            if self._done:
                return
            if err is not None:
                self._done = True
                self._callback(err)
                return
            if self._pending > 0:
                return
            self._done = True
            self._callback(None)

        return member
