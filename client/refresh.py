import threading
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class _Call(Generic[T]):
    def __init__(self):
        self.done = threading.Event()
        self.result: Optional[T] = None
        self.error: Optional[BaseException] = None


class SingleFlight(Generic[T]):
    """Coalesce concurrent calls into one in-flight call whose outcome is shared.

    The first caller runs ``fn``; callers arriving while it is running block
    until it finishes and then get the same result, or the same exception.
    Once the call completes the slot is cleared, so a later call runs again.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Optional[_Call[T]] = None

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._pending is not None

    def do(self, fn: Callable[[], T]) -> T:
        with self._lock:
            call = self._pending
            leader = call is None
            if leader:
                call = _Call()
                self._pending = call

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result

        try:
            call.result = fn()
        except BaseException as exc:
            call.error = exc
            raise
        finally:
            with self._lock:
                self._pending = None
            call.done.set()
        return call.result
