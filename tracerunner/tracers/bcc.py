# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

import os
from typing import Optional

from tracerunner.request import TraceRequest, TracerKind
from tracerunner.tracers.base import TracerBase, TracerCommand


class BccTracer(TracerBase):
    """Runs a bcc tool with the caller's arguments passed through"""

    kind = TracerKind.BCC

    def resolve_tool(self, program: str) -> str:
        # bare tool names are looked up in the bcc tools directory first
        if os.sep in program or not self.config.bcc_tools_dir:
            return program
        candidate = os.path.join(self.config.bcc_tools_dir, program)
        if os.path.exists(candidate):
            return candidate
        return program

    def build_command(self, request: TraceRequest, pid: Optional[int]) -> TracerCommand:
        if pid is not None:
            self.logger.info(f"Container resolved to pid {pid}; pass it through program-args if the tool needs it")
        return TracerCommand(self.resolve_tool(request.program), request.split_program_args())
