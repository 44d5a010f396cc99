"""Bounded polling for the two waiting loops of the protocol."""

import threading
import time
from collections.abc import Callable

from siteseal.exceptions import OperationCancelled, PollTimeoutError


class Poller:
    """Sleeps between polling attempts, enforcing a deadline and cancellation.

    Args:
        interval: Seconds to sleep between attempts.
        timeout: Seconds after which a loop gives up.
        sleep: Sleep function, replaceable in tests.
        clock: Monotonic clock, replaceable in tests.
        cancel: Event the caller sets to abort between attempts.
    """

    def __init__(
        self,
        interval: float,
        timeout: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        cancel: threading.Event | None = None,
    ):
        self.interval = interval
        self.timeout = timeout
        self.sleep = sleep
        self.clock = clock
        self.cancel = cancel

    def start(self) -> float:
        """Return the deadline for a loop starting now."""
        return self.clock() + self.timeout

    def check_cancelled(self, what: str) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise OperationCancelled(f"{what} was cancelled.")

    def wait(self, deadline: float, what: str) -> None:
        """Sleep one interval before the next attempt.

        Raises:
            OperationCancelled: If the cancel event is set.
            PollTimeoutError: If the deadline has passed.
        """
        self.check_cancelled(what)
        if self.clock() >= deadline:
            raise PollTimeoutError(f"{what} did not complete within {self.timeout:g} seconds.")
        self.sleep(self.interval)
        self.check_cancelled(what)
