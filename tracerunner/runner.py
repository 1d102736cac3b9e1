# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

"""
Trace Runner

Drives one trace invocation: locate the container process when the
request is container scoped, build the tracer command, supervise the
tracer, and render a flame graph when one was asked for.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from tracerunner.config import RuntimeSettings
from tracerunner.dispatcher import TracerCommand, TracerDispatcher
from tracerunner.errors import OutputError, TraceRunnerError
from tracerunner.flamegraph import FLAMEGRAPH_FILE_NAME, OutputPipeline
from tracerunner.locator import ProcessLocator
from tracerunner.logger import COLORS, get_logger
from tracerunner.metrics import OUTCOME_SUCCESS, RunMetrics
from tracerunner.request import TraceRequest
from tracerunner.supervisor import ExitOutcome, ProcessSupervisor

logger = get_logger("runner", COLORS.green_code)


@dataclass
class RunResult:
    argv: List[str]
    exit: ExitOutcome
    pid: Optional[int] = None
    output_path: Optional[Path] = None
    artifacts: List[str] = field(default_factory=list)


class TraceRunner:
    """Compose locator, dispatcher, supervisor and pipeline for one request"""

    def __init__(self, settings: Optional[RuntimeSettings] = None,
                 locator: Optional[ProcessLocator] = None,
                 dispatcher: Optional[TracerDispatcher] = None,
                 supervisor: Optional[ProcessSupervisor] = None,
                 pipeline: Optional[OutputPipeline] = None,
                 metrics: Optional[RunMetrics] = None) -> None:
        self.settings = settings or RuntimeSettings()
        self.metrics = metrics or RunMetrics()
        self.locator = locator or ProcessLocator(self.settings.proc_root)
        self.dispatcher = dispatcher or TracerDispatcher(self.settings.dispatch_config())
        self.supervisor = supervisor or ProcessSupervisor(on_interrupt=self.metrics.record_interrupt)
        self.pipeline = pipeline or OutputPipeline(
            self.settings.stackcollapse_binary, self.settings.flamegraph_binary,
        )

    def resolve(self, request: TraceRequest) -> Optional[int]:
        if not request.is_container_scoped:
            return None
        return self.locator.locate(request.pod_uid, request.container_name)

    async def run(self, request: TraceRequest, stdin=None) -> RunResult:
        """
        Execute the request. Every failure propagates as a TraceRunnerError.
        """
        request.validate()
        started = time.monotonic()
        outcome = OUTCOME_SUCCESS
        try:
            return await self._run(request, stdin)
        except TraceRunnerError as exc:
            outcome = type(exc).__name__
            raise
        finally:
            self.metrics.record_run(request.tracer_kind.value, outcome, time.monotonic() - started)

    async def _run(self, request: TraceRequest, stdin) -> RunResult:
        pid = self.resolve(request)
        command = self.dispatcher.dispatch(request, pid)
        artifacts = list(command.artifacts)
        try:
            if request.wants_flamegraph:
                exit_outcome, output_path = await self._run_flamegraph(request, command, stdin)
            else:
                exit_outcome, output_path = await self._run_stream(request, command, stdin)
        finally:
            if self.settings.keep_artifacts:
                logger.info(f"Keeping rendered program(s): {', '.join(artifacts) or 'none'}")
            else:
                command.cleanup()

        return RunResult(
            argv=command.argv,
            exit=exit_outcome,
            pid=pid,
            output_path=output_path,
            artifacts=artifacts,
        )

    async def _run_stream(self, request: TraceRequest, command: TracerCommand, stdin):
        output_path = request.output_destination.resolve(f"{request.tracer_kind.value}.out")
        if output_path is None:
            exit_outcome = await self.supervisor.run(command, stdin=stdin)
            return exit_outcome, None

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            sink = open(output_path, "wb")
        except OSError as exc:
            raise OutputError(f"failed to open output {output_path}: {exc}") from exc

        with sink:
            exit_outcome = await self.supervisor.run(command, stdin=stdin, stdout=sink)
        logger.info(f"Tracer output saved to {output_path}")
        return exit_outcome, output_path

    async def _run_flamegraph(self, request: TraceRequest, command: TracerCommand, stdin):
        output_path = request.output_destination.resolve(FLAMEGRAPH_FILE_NAME)
        exit_outcome = await self.supervisor.run(command, stdin=stdin, capture_stdout=True)
        image = await self.pipeline.finish(exit_outcome.stdout, output_path)
        self.metrics.record_flamegraph(len(image))
        return exit_outcome, output_path
