"""
Tests for run metrics in tracerunner.metrics.

Each test uses its own registry so counters start from zero.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from tracerunner.metrics import OUTCOME_SUCCESS, RunMetrics
from tracerunner.supervisor import InterruptState


class TestRunMetrics:
    """Tests for RunMetrics."""

    def test_record_run(self) -> None:
        metrics = RunMetrics()

        metrics.record_run("bpftrace", OUTCOME_SUCCESS, 1.5)
        metrics.record_run("bpftrace", OUTCOME_SUCCESS, 0.5)

        assert metrics.registry.get_sample_value(
            "tracerunner_runs_total", {"tracer": "bpftrace", "outcome": "success"}
        ) == 2.0
        assert metrics.registry.get_sample_value(
            "tracerunner_run_duration_seconds_count", {"tracer": "bpftrace"}
        ) == 2.0
        assert metrics.registry.get_sample_value(
            "tracerunner_run_duration_seconds_sum", {"tracer": "bpftrace"}
        ) == 2.0

    def test_record_interrupt(self) -> None:
        metrics = RunMetrics()

        metrics.record_interrupt(InterruptState.FLUSH_REQUESTED)
        metrics.record_interrupt(InterruptState.TERMINATING)

        assert metrics.registry.get_sample_value("tracerunner_interrupts_total") == 2.0

    def test_record_flamegraph(self) -> None:
        metrics = RunMetrics()

        metrics.record_flamegraph(2048)

        assert metrics.registry.get_sample_value("tracerunner_flamegraph_bytes") == 2048.0

    def test_registries_are_independent(self) -> None:
        first = RunMetrics()
        second = RunMetrics()

        first.record_interrupt()

        assert second.registry.get_sample_value("tracerunner_interrupts_total") == 0.0

    @patch("tracerunner.metrics.start_http_server")
    def test_serve_disabled(self, mock_server: MagicMock) -> None:
        RunMetrics().serve("0.0.0.0", 0)

        mock_server.assert_not_called()

    @patch("tracerunner.metrics.start_http_server")
    def test_serve(self, mock_server: MagicMock) -> None:
        metrics = RunMetrics()

        metrics.serve("127.0.0.1", 9100)

        mock_server.assert_called_once_with(9100, addr="127.0.0.1", registry=metrics.registry)
