"""Unit tests for the bounded poller."""

import threading

import pytest

from siteseal.exceptions import OperationCancelled, PollTimeoutError
from siteseal.polling import Poller


class FakeClock:
    """Clock and sleep that advance together."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestPoller:
    """Tests for the bounded poller."""

    def test_deadline(self):
        """The deadline is now plus the timeout."""
        clock = FakeClock()
        poller = Poller(interval=1, timeout=30, sleep=clock.sleep, clock=clock)
        assert poller.start() == 130.0

    def test_wait_sleeps_one_interval(self):
        """Each wait sleeps exactly one interval."""
        clock = FakeClock()
        poller = Poller(interval=2, timeout=30, sleep=clock.sleep, clock=clock)

        deadline = poller.start()
        poller.wait(deadline, "Issuance")
        poller.wait(deadline, "Issuance")

        assert clock.sleeps == [2, 2]

    def test_timeout(self):
        """Waiting past the deadline raises PollTimeoutError."""
        clock = FakeClock()
        poller = Poller(interval=10, timeout=25, sleep=clock.sleep, clock=clock)
        deadline = poller.start()

        poller.wait(deadline, "Validation of example.org")
        poller.wait(deadline, "Validation of example.org")
        poller.wait(deadline, "Validation of example.org")

        with pytest.raises(PollTimeoutError, match="Validation of example.org did not complete within 25 seconds"):
            poller.wait(deadline, "Validation of example.org")
        assert len(clock.sleeps) == 3

    def test_cancelled_before_sleep(self):
        """A set cancel event aborts without sleeping."""
        clock = FakeClock()
        cancel = threading.Event()
        cancel.set()
        poller = Poller(interval=1, timeout=30, sleep=clock.sleep, clock=clock, cancel=cancel)

        with pytest.raises(OperationCancelled) as exc_info:
            poller.wait(poller.start(), "Issuance")

        assert exc_info.value.code == "operation_cancelled"
        assert clock.sleeps == []

    def test_cancelled_during_sleep(self):
        """Cancellation during the sleep is noticed right after it."""
        cancel = threading.Event()
        poller = Poller(interval=1, timeout=30, sleep=lambda s: cancel.set(), cancel=cancel)

        with pytest.raises(OperationCancelled, match="Issuance was cancelled"):
            poller.wait(poller.start(), "Issuance")

    def test_no_cancel_event(self):
        """Without an event nothing is ever cancelled."""
        Poller(interval=0, timeout=1).check_cancelled("anything")
