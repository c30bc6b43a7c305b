"""
Tests for progress tracking.
"""

from __future__ import annotations

import logging
import threading
from unittest.mock import MagicMock

import pytest

from accord.progress import (
    AssessmentProgress,
    CallbackProgressRenderer,
    LoggingProgressRenderer,
    ProgressRenderer,
    ProgressTracker,
    QuietProgressRenderer,
    create_progress_renderer,
)


class TestAssessmentProgress:
    """Tests for AssessmentProgress."""

    @pytest.mark.parametrize(
        "total,completed,percent",
        [(4, 0, 0.0), (4, 1, 25.0), (3, 2, 66.7), (4, 4, 100.0), (0, 0, 100.0)],
    )
    def test_percent(self, total, completed, percent):
        progress = AssessmentProgress(total, completed)
        assert progress.to_dict()["percent"] == percent

    def test_is_complete(self):
        assert not AssessmentProgress(2, 1).is_complete
        assert AssessmentProgress(2, 2).is_complete


class TestProgressTracker:
    """Tests for ProgressTracker."""

    def test_sequence_with_callable(self):
        updates = []
        tracker = ProgressTracker(2, updates.append)

        tracker.phase_started("identity")
        tracker.phase_finished("identity", "Score 80.0")
        tracker.phase_started("network")
        tracker.phase_finished("network")
        tracker.finish("done")

        assert [(u.completed_phases, u.current_phase, u.message) for u in updates] == [
            (0, "identity", "Starting identity"),
            (1, "identity", "Score 80.0"),
            (1, "network", "Starting network"),
            (2, "network", "Finished network"),
        ]
        assert tracker.completed_phases == 2

    def test_renderer_receives_finish(self):
        renderer = MagicMock(spec=ProgressRenderer)
        tracker = ProgressTracker(1, renderer)

        tracker.phase_finished("identity")
        tracker.finish("Assessment completed")

        renderer.render.assert_called_once()
        final = renderer.finish.call_args[0][0]
        assert final.message == "Assessment completed"
        assert final.is_complete

    def test_sink_errors_are_swallowed(self, caplog):
        tracker = ProgressTracker(1, MagicMock(side_effect=RuntimeError("ui gone")))

        with caplog.at_level(logging.WARNING, logger="accord.progress"):
            tracker.phase_started("identity")
            tracker.phase_finished("identity")

        assert tracker.completed_phases == 1
        assert "ui gone" in caplog.text

    def test_no_sink(self):
        tracker = ProgressTracker(1)
        tracker.phase_finished("identity")
        tracker.finish("done")
        assert tracker.completed_phases == 1

    def test_thread_safe_counting(self):
        tracker = ProgressTracker(40)
        threads = [
            threading.Thread(target=tracker.phase_finished, args=(f"phase-{i}",))
            for i in range(40)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert tracker.completed_phases == 40


class TestRenderers:
    """Tests for progress renderers."""

    def test_logging_renderer(self, caplog):
        renderer = LoggingProgressRenderer(logging.getLogger("accord.test.progress"))

        with caplog.at_level(logging.INFO, logger="accord.test.progress"):
            renderer.render(AssessmentProgress(3, 1, "network", "Starting network"))
            renderer.finish(AssessmentProgress(3, 3, "", "Assessment completed"))

        assert caplog.messages == [
            "[1/3] network: Starting network",
            "Assessment progress complete: Assessment completed",
        ]

    def test_callback_renderer(self):
        on_update, on_complete = MagicMock(), MagicMock()
        renderer = CallbackProgressRenderer(on_update, on_complete)
        progress = AssessmentProgress(1, 1)

        renderer.render(progress)
        renderer.finish(progress)

        on_update.assert_called_once_with(progress)
        on_complete.assert_called_once_with(progress)

    def test_callback_renderer_without_callbacks(self):
        renderer = CallbackProgressRenderer()
        renderer.render(AssessmentProgress(1, 0))
        renderer.finish(AssessmentProgress(1, 1))

    def test_factory(self):
        callback = MagicMock()

        assert isinstance(create_progress_renderer(callback=callback), CallbackProgressRenderer)
        assert isinstance(create_progress_renderer(quiet=True), QuietProgressRenderer)
        assert isinstance(create_progress_renderer(), LoggingProgressRenderer)
