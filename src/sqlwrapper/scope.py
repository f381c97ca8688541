"""
Cancellation and deadlines for database calls.

A `Scope` is passed as the `scope` keyword of any operation. It can be
cancelled explicitly or expire after a timeout; children inherit the
earlier of their own and their parent's deadline and are cancelled with
their parent.

    scope = Scope(timeout=5)
    db.query_multiple(rows, User, scope=scope)

While a statement runs, `watch()` arms the driver's cancel hook so an expiry
or `cancel()` aborts the statement on the server. Between rows the scanners
call `check()`.
"""
import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Self

from sqlwrapper.exceptions import CancelledError, DeadlineExceededError

__all__ = ['Scope', 'background']

logger = logging.getLogger(__name__)


class Scope:
    """Cancellation token with an optional deadline."""

    def __init__(self, timeout: float | None = None, parent: 'Scope | None' = None) -> None:
        self.parent = parent
        deadline = time.monotonic() + timeout if timeout is not None else None
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []
        self._children: list[Scope] = []
        self._lock = threading.Lock()
        if parent is not None:
            parent._adopt(self)

    def _adopt(self, child: 'Scope') -> None:
        with self._lock:
            cancelled = self._cancelled
            if not cancelled:
                self._children.append(child)
        if cancelled:
            child.cancel()

    def _detach(self, child: 'Scope') -> None:
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def child(self, timeout: float | None = None) -> 'Scope':
        return Scope(timeout, parent=self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self) -> None:
        """Cancel this scope and its children, firing watched callbacks.

        A cancelled scope is detached from its parent.
        """
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []
            children, self._children = self._children, []
        for callback in callbacks:
            callback()
        for child in children:
            child.cancel()
        if self.parent is not None:
            self.parent._detach(self)

    def check(self) -> None:
        """Raise when the scope is cancelled or past its deadline.

        Raises
            DeadlineExceededError: the deadline passed
            CancelledError: the scope was cancelled
        """
        if self.expired:
            raise DeadlineExceededError('deadline exceeded')
        if self._cancelled:
            raise CancelledError('scope cancelled')

    @contextmanager
    def watch(self, on_cancel: Callable[[], None] | None) -> Iterator[Self]:
        """Call `on_cancel` if the scope is cancelled or expires within the block.
        """
        if on_cancel is None:
            yield self
            return
        timer = None
        remaining = self.remaining()
        if remaining is not None:
            timer = threading.Timer(remaining, on_cancel)
            timer.daemon = True
            timer.start()
        with self._lock:
            self._callbacks.append(on_cancel)
        try:
            yield self
        finally:
            if timer is not None:
                timer.cancel()
            with self._lock:
                if on_cancel in self._callbacks:
                    self._callbacks.remove(on_cancel)

    def __repr__(self) -> str:
        return f'Scope(cancelled={self._cancelled}, remaining={self.remaining()})'


def background() -> Scope:
    """Scope that never expires and is never cancelled by anyone else."""
    return Scope()
