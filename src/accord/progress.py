"""
Progress tracking for Accord.

Reports assessment progress before and after each phase to a sink. A sink
is either a plain callable taking an AssessmentProgress or a
ProgressRenderer. Sink failures never affect the assessment.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssessmentProgress:
    """
    Snapshot of assessment progress.

    Attributes:
        total_phases: Number of declared phases
        completed_phases: Phases finished so far (including degraded ones)
        current_phase: Domain of the phase being reported
        message: Human readable status message
    """

    total_phases: int
    completed_phases: int
    current_phase: str = ""
    message: str = ""

    @property
    def percent(self) -> float:
        """Get completion percentage."""
        if self.total_phases == 0:
            return 100.0
        return min(100.0, (self.completed_phases / self.total_phases) * 100)

    @property
    def is_complete(self) -> bool:
        return self.completed_phases >= self.total_phases

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_phases": self.total_phases,
            "completed_phases": self.completed_phases,
            "current_phase": self.current_phase,
            "message": self.message,
            "percent": round(self.percent, 1),
        }


class ProgressRenderer(ABC):
    """
    Abstract base for progress renderers.

    Renderers display progress information to different outputs
    (logs, callbacks, etc.).
    """

    @abstractmethod
    def render(self, progress: AssessmentProgress) -> None:
        """
        Render progress update.

        Args:
            progress: Current progress state
        """
        pass

    def finish(self, progress: AssessmentProgress) -> None:
        """Render final state. Defaults to render()."""
        self.render(progress)


class LoggingProgressRenderer(ProgressRenderer):
    """Writes progress updates to a logger."""

    def __init__(self, log: logging.Logger | None = None, level: int = logging.INFO):
        self._log = log or logger
        self._level = level

    def render(self, progress: AssessmentProgress) -> None:
        self._log.log(
            self._level,
            f"[{progress.completed_phases}/{progress.total_phases}] "
            f"{progress.current_phase}: {progress.message}",
        )

    def finish(self, progress: AssessmentProgress) -> None:
        self._log.log(self._level, f"Assessment progress complete: {progress.message}")


class CallbackProgressRenderer(ProgressRenderer):
    """
    Renders progress via callbacks.

    Useful for integration with UI frameworks or job status tables.
    """

    def __init__(
        self,
        on_update: Callable[[AssessmentProgress], None] | None = None,
        on_complete: Callable[[AssessmentProgress], None] | None = None,
    ):
        """
        Initialize callback renderer.

        Args:
            on_update: Callback for progress updates
            on_complete: Callback for completion
        """
        self._on_update = on_update
        self._on_complete = on_complete

    def render(self, progress: AssessmentProgress) -> None:
        """Call update callback."""
        if self._on_update:
            self._on_update(progress)

    def finish(self, progress: AssessmentProgress) -> None:
        """Call completion callback."""
        if self._on_complete:
            self._on_complete(progress)


class QuietProgressRenderer(ProgressRenderer):
    """Silent progress renderer that does nothing."""

    def render(self, progress: AssessmentProgress) -> None:
        """No-op."""
        pass

    def finish(self, progress: AssessmentProgress) -> None:
        """No-op."""
        pass


ProgressSink = Union[ProgressRenderer, Callable[[AssessmentProgress], None]]


class ProgressTracker:
    """
    Counts completed phases and notifies a sink.

    Safe to call from worker threads. Notifications are fire-and-forget:
    exceptions raised by the sink are logged and discarded.
    """

    def __init__(self, total_phases: int, sink: ProgressSink | None = None):
        """
        Initialize progress tracker.

        Args:
            total_phases: Number of declared phases
            sink: Renderer or callable receiving AssessmentProgress
        """
        self.total_phases = total_phases
        self._sink = sink
        self._completed = 0
        self._lock = threading.Lock()

    @property
    def completed_phases(self) -> int:
        with self._lock:
            return self._completed

    def phase_started(self, domain: str) -> None:
        with self._lock:
            snapshot = AssessmentProgress(
                self.total_phases, self._completed, domain, f"Starting {domain}"
            )
        self._notify(snapshot)

    def phase_finished(self, domain: str, message: str = "") -> None:
        with self._lock:
            self._completed += 1
            snapshot = AssessmentProgress(
                self.total_phases,
                self._completed,
                domain,
                message or f"Finished {domain}",
            )
        self._notify(snapshot)

    def finish(self, message: str) -> None:
        with self._lock:
            snapshot = AssessmentProgress(
                self.total_phases, self._completed, "", message
            )
        self._notify(snapshot, final=True)

    def _notify(self, progress: AssessmentProgress, final: bool = False) -> None:
        if self._sink is None:
            return
        try:
            if isinstance(self._sink, ProgressRenderer):
                if final:
                    self._sink.finish(progress)
                else:
                    self._sink.render(progress)
            elif not final:
                self._sink(progress)
        except Exception as e:
            logger.warning(f"Progress sink failed: {e}")


def create_progress_renderer(
    quiet: bool = False,
    callback: Callable[[AssessmentProgress], None] | None = None,
) -> ProgressRenderer:
    """
    Create a progress renderer.

    Args:
        quiet: Suppress progress output
        callback: Optional callback for progress updates

    Returns:
        Callback renderer when a callback is given, otherwise a quiet or
        logging renderer
    """
    if callback:
        return CallbackProgressRenderer(on_update=callback)
    if quiet:
        return QuietProgressRenderer()
    return LoggingProgressRenderer()
