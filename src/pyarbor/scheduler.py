"""
Host scheduling capability that drives simulation steps.

The system never owns a timer. The host hands it a Scheduler, which is asked
to call a parameterless callback periodically and to cancel that request
later. Any timer, animation-frame callback or event-loop tick can be wrapped
this way.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol


class Scheduler(Protocol):
    """Interface for periodic callback scheduling."""

    def schedule_periodic(self, interval: float, callback: Callable[[], Any]) -> Any:
        """
        Request that callback be invoked every interval milliseconds.

        Returns:
            Handle to pass to cancel()
        """
        ...

    def cancel(self, handle: Any) -> None:
        """Cancel a previously scheduled callback. Unknown handles are ignored."""
        ...


class ManualScheduler:
    """
    Scheduler whose callbacks only run when the host fires them.

    Useful for hosts that already own a loop, for headless batch layout and
    for tests. Callbacks may cancel themselves (or others) while firing.
    """

    def __init__(self):
        self._callbacks: dict[int, tuple[float, Callable[[], Any]]] = {}
        self._next_handle = 0

    def schedule_periodic(self, interval: float, callback: Callable[[], Any]) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._callbacks[handle] = (interval, callback)
        return handle

    def cancel(self, handle: Any) -> None:
        self._callbacks.pop(handle, None)

    def pending(self) -> int:
        """Number of active periodic callbacks."""
        return len(self._callbacks)

    def interval(self, handle: int) -> Optional[float]:
        """Interval a handle was scheduled with, None if not active."""
        entry = self._callbacks.get(handle)
        return entry[0] if entry is not None else None

    def fire(self) -> int:
        """
        Invoke every active callback once.

        Returns:
            Number of callbacks invoked
        """
        fired = 0
        for handle in list(self._callbacks):
            entry = self._callbacks.get(handle)
            if entry is None:
                continue
            entry[1]()
            fired += 1
        return fired

    def run(self, max_steps: Optional[int] = None) -> int:
        """
        Fire repeatedly until nothing is scheduled or max_steps is reached.

        Returns:
            Number of rounds fired
        """
        steps = 0
        while self._callbacks and (max_steps is None or steps < max_steps):
            self.fire()
            steps += 1
        return steps
