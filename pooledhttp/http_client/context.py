import threading
import time
from typing import Callable, List, Optional, Type

from .exceptions import CancelledError, ContextError, DeadlineExceededError


class Context:
    """A cancellable, deadline-bearing execution context.

    Contexts form a tree: a child inherits its parent's deadline (the earlier
    of the two wins) and is cancelled when its parent is cancelled. Expiry is
    detected lazily, whenever err() or done() is consulted; code that must be
    woken at the deadline arms its own timer calling expire().

    Deadlines are expressed on the time.monotonic() clock.

    Example:
        with Context.background().with_timeout(2.0) as ctx:
            body = client.get(ctx, "https://example.com")
    """

    def __init__(self, parent: Optional["Context"] = None, deadline: Optional[float] = None):
        self._parent = parent
        self._lock = threading.Lock()
        self._err_type: Optional[Type[ContextError]] = None
        self._callbacks: List[Callable[["Context"], None]] = []
        self._children: List["Context"] = []

        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self._deadline = deadline

        if parent is not None:
            parent._attach(self)

    @classmethod
    def background(cls) -> "Context":
        """Return a root context that is never cancelled and has no deadline."""
        return cls()

    def with_cancel(self) -> "Context":
        return Context(parent=self)

    def with_deadline(self, deadline: float) -> "Context":
        return Context(parent=self, deadline=deadline)

    def with_timeout(self, seconds: Optional[float]) -> "Context":
        """Derive a child that expires `seconds` from now.

        A missing or non-positive timeout means no extra limit; the child then
        only carries its parent's deadline.
        """
        if not seconds or seconds <= 0:
            return Context(parent=self)
        return Context(parent=self, deadline=time.monotonic() + seconds)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def done(self) -> bool:
        return self.err() is not None

    def err(self) -> Optional[ContextError]:
        """Return the error describing why this context ended, or None."""
        if self._err_type is None and self._deadline is not None and time.monotonic() >= self._deadline:
            self._finish(DeadlineExceededError)
        if self._err_type is None:
            return None
        return self._err_type()

    def cancel(self):
        """Cancel this context and every context derived from it."""
        self._finish(CancelledError)

    def expire(self):
        """End this context and its descendants as if the deadline elapsed."""
        self._finish(DeadlineExceededError)

    def add_done_callback(self, fn: Callable[["Context"], None]):
        """Register `fn` to run once when the context ends.

        If the context has already ended, `fn` runs immediately.
        """
        with self._lock:
            if self._err_type is None:
                self._callbacks.append(fn)
                return
        fn(self)

    def remove_done_callback(self, fn: Callable[["Context"], None]):
        with self._lock:
            if fn in self._callbacks:
                self._callbacks.remove(fn)

    def _attach(self, child: "Context"):
        with self._lock:
            err_type = self._err_type
            if err_type is None:
                self._children.append(child)
        if err_type is not None:
            child._finish(err_type)

    def _detach(self, child: "Context"):
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def _finish(self, err_type: Type[ContextError]):
        with self._lock:
            if self._err_type is not None:
                return
            self._err_type = err_type
            callbacks, self._callbacks = self._callbacks, []
            children, self._children = self._children, []

        if self._parent is not None:
            self._parent._detach(self)
        for child in children:
            child._finish(err_type)
        for fn in callbacks:
            fn(self)

    def __enter__(self) -> "Context":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cancel()

    def __repr__(self) -> str:
        state = "active" if self._err_type is None else self._err_type.__name__
        return f"Context(deadline={self._deadline}, state={state})"
