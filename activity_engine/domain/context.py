from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from activity_engine.domain.errors import OperationCancelledError


@dataclass(frozen=True)
class CallContext:
    """Timeout and cancellation carried by every call into the data store.

    ``deadline`` is a ``time.monotonic()`` instant; ``cancel_event`` is shared
    with the caller, who may set it at any time.
    """

    deadline: float | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def with_timeout(
        cls,
        timeout_seconds: float | None,
        cancel_event: threading.Event | None = None,
    ) -> CallContext:
        deadline = None if timeout_seconds is None else time.monotonic() + max(timeout_seconds, 0.0)
        if cancel_event is None:
            return cls(deadline=deadline)
        return cls(deadline=deadline, cancel_event=cancel_event)

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def is_expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self) -> None:
        if self.is_cancelled():
            raise OperationCancelledError("operation cancelled")
        if self.is_expired():
            raise OperationCancelledError("operation timed out")

    def cancel(self) -> None:
        self.cancel_event.set()
