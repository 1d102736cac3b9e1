# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from tracerunner.logger import COLORS, get_logger

logger = get_logger("metrics", COLORS.green_code)

OUTCOME_SUCCESS = "success"


class RunMetrics:
    """
    Prometheus metrics of trace invocations.

    Kept in a private registry so several runners (and tests) can coexist.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.runs = Counter(
            "tracerunner_runs_total",
            "Total trace invocations by tracer and outcome",
            ["tracer", "outcome"],
            registry=self.registry,
        )
        self.interrupts = Counter(
            "tracerunner_interrupts_total",
            "Interrupts received while a tracer was running",
            registry=self.registry,
        )
        self.duration = Histogram(
            "tracerunner_run_duration_seconds",
            "Wall clock duration of trace invocations",
            ["tracer"],
            registry=self.registry,
        )
        self.flamegraph_bytes = Gauge(
            "tracerunner_flamegraph_bytes",
            "Size of the last rendered flame graph",
            registry=self.registry,
        )

    def serve(self, host: str, port: int) -> None:
        """Expose the registry over HTTP; a non-positive port disables it"""
        if port <= 0:
            return
        start_http_server(port, addr=host, registry=self.registry)
        logger.info(f"Prometheus /metrics listening on {host}:{port}")

    def record_interrupt(self, state=None) -> None:
        self.interrupts.inc()

    def record_run(self, tracer: str, outcome: str, duration: float) -> None:
        self.runs.labels(tracer=tracer, outcome=outcome).inc()
        self.duration.labels(tracer=tracer).observe(duration)

    def record_flamegraph(self, size: int) -> None:
        self.flamegraph_bytes.set(size)
