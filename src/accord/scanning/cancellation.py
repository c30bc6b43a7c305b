"""Cooperative cancellation for assessment runs."""

from __future__ import annotations

import threading


class AssessmentCanceledError(Exception):
    """Raised inside a phase when its assessment has been canceled."""

    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__(f"Assessment canceled{': ' + reason if reason else ''}")


class CancellationToken:
    """
    Thread-safe cancellation flag shared by the orchestrator and its phases.

    Phases call raise_if_canceled() between units of work; the orchestrator
    checks is_canceled before starting each phase.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> None:
        """Request cancellation. Subsequent calls keep the first reason."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_canceled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_canceled(self) -> None:
        """
        Raises:
            AssessmentCanceledError: If cancellation was requested
        """
        if self._event.is_set():
            raise AssessmentCanceledError(self._reason)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until canceled or timeout. Returns True if canceled."""
        return self._event.wait(timeout)
