# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

import os
import tempfile
from typing import Optional

from tracerunner.errors import DispatchError
from tracerunner.request import TraceRequest, TracerKind
from tracerunner.tracers.base import TracerBase, TracerCommand

CONTAINER_PID_PLACEHOLDER = "$container_pid"
RENDERED_PROGRAM_PREFIX = "program-container-"
RENDERED_PROGRAM_SUFFIX = ".bt"


def render_placeholder(source: str, pid: int) -> str:
    """Replace every occurrence of the container pid placeholder"""
    return source.replace(CONTAINER_PID_PLACEHOLDER, str(pid))


class BpftraceTracer(TracerBase):
    """Runs a bpftrace script, rewritten for the container pid when needed"""

    kind = TracerKind.BPFTRACE

    def build_command(self, request: TraceRequest, pid: Optional[int]) -> TracerCommand:
        if request.program_args:
            self.logger.debug("program-args are ignored by bpftrace")

        if not request.is_container_scoped:
            return TracerCommand(self.config.bpftrace_binary, [request.program])

        rendered = self.render_program(request.program, pid)
        return TracerCommand(self.config.bpftrace_binary, [rendered], artifacts=[rendered])

    def render_program(self, program_path: str, pid: int) -> str:
        """
        Write a copy of the program with the pid substituted.

        The copy gets a unique name in the configured temp directory so
        concurrent invocations on one host never share it. The original
        program file is left untouched.
        """
        try:
            with open(program_path, "r", encoding="utf-8") as fh:
                source = fh.read()
        except OSError as exc:
            raise DispatchError(f"failed to read program {program_path}: {exc}") from exc

        try:
            fd, rendered_path = tempfile.mkstemp(
                prefix=RENDERED_PROGRAM_PREFIX,
                suffix=RENDERED_PROGRAM_SUFFIX,
                dir=self.config.render_dir,
            )
        except OSError as exc:
            raise DispatchError(f"failed to create rendered program in {self.config.render_dir}: {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(render_placeholder(source, pid))
        except OSError as exc:
            os.unlink(rendered_path)
            raise DispatchError(f"failed to write rendered program {rendered_path}: {exc}") from exc

        self.logger.info(f"Rendered {program_path} for pid {pid} into {rendered_path}")
        return rendered_path
