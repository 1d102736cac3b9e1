# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

"""
Trace request model

A TraceRequest is the fully described input of one invocation: which
backend runs, what it is attached to, and where its output goes. It is
validated before any process table scan, file write or subprocess launch.
"""

from __future__ import annotations

import enum
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from tracerunner.errors import MissingIdentityError, RequestValidationError, TracerNotImplementedError


class TracerKind(enum.Enum):
    BPFTRACE = "bpftrace"
    BCC = "bcc"

    @classmethod
    def parse(cls, value: Union[str, "TracerKind"]) -> "TracerKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise TracerNotImplementedError(str(value)) from None


class TargetScope(enum.Enum):
    NODE = "node"
    POD = "pod"
    CONTAINER = "container"


class OutputMode(enum.Enum):
    STREAM = "stream"
    FLAMEGRAPH = "flamegraph"


class OutputKind(enum.Enum):
    STDOUT = "stdout"
    FILE = "file"
    DIRECTORY = "directory"


def _parse_enum(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise RequestValidationError(f"invalid {what} '{value}' (expected one of: {choices})") from None


@dataclass(frozen=True)
class OutputDestination:
    """Where tracer output or the rendered flame graph ends up"""

    kind: OutputKind = OutputKind.STDOUT
    path: Optional[str] = None

    @classmethod
    def create(cls, kind: Union[str, OutputKind], path: Optional[str] = None) -> "OutputDestination":
        return cls(kind=_parse_enum(OutputKind, kind, "output"), path=path or None)

    @property
    def is_stdout(self) -> bool:
        return self.kind is OutputKind.STDOUT

    def validate(self) -> None:
        if self.kind is not OutputKind.STDOUT and not self.path:
            raise RequestValidationError(f"output-path must be specified when output is {self.kind.value}")

    def resolve(self, default_name: str) -> Optional[Path]:
        """
        Return the concrete file to write, or None for standard output.

        Directory destinations get default_name appended.
        """
        if self.kind is OutputKind.STDOUT:
            return None
        path = Path(self.path)
        if self.kind is OutputKind.DIRECTORY:
            return path / default_name
        return path


@dataclass(frozen=True)
class TraceRequest:
    """Immutable input of one trace invocation"""

    tracer_kind: TracerKind
    program: str
    target_scope: TargetScope = TargetScope.NODE
    pod_uid: str = ""
    container_name: str = ""
    program_args: str = ""
    output_mode: OutputMode = OutputMode.STREAM
    output_destination: OutputDestination = field(default_factory=OutputDestination)

    @classmethod
    def create(cls, tracer: Union[str, TracerKind], program: str,
               target: Union[str, TargetScope] = TargetScope.NODE,
               pod_uid: str = "", container_name: str = "", program_args: str = "",
               flamegraph: bool = False,
               output_destination: Optional[OutputDestination] = None) -> "TraceRequest":
        """Build a request from loosely typed values, rejecting unknown choices"""
        return cls(
            tracer_kind=TracerKind.parse(tracer),
            program=program,
            target_scope=_parse_enum(TargetScope, target, "target"),
            pod_uid=(pod_uid or "").strip(),
            container_name=(container_name or "").strip(),
            program_args=program_args or "",
            output_mode=OutputMode.FLAMEGRAPH if flamegraph else OutputMode.STREAM,
            output_destination=output_destination or OutputDestination(),
        )

    @property
    def is_container_scoped(self) -> bool:
        return self.target_scope is TargetScope.CONTAINER

    @property
    def wants_flamegraph(self) -> bool:
        return self.output_mode is OutputMode.FLAMEGRAPH

    def split_program_args(self) -> List[str]:
        try:
            return shlex.split(self.program_args)
        except ValueError as exc:
            raise RequestValidationError(f"invalid program-args '{self.program_args}': {exc}") from exc

    def validate(self) -> None:
        """
        Check the request is internally consistent.

        Raises a RequestValidationError subclass; touches neither the
        filesystem nor the process table.
        """
        if not isinstance(self.tracer_kind, TracerKind):
            raise TracerNotImplementedError(str(self.tracer_kind))
        if not isinstance(self.target_scope, TargetScope):
            raise RequestValidationError(f"invalid target '{self.target_scope}'")
        if self.is_container_scoped and (not self.pod_uid or not self.container_name):
            raise MissingIdentityError()
        if not self.program:
            raise RequestValidationError("program must be specified")
        self.split_program_args()
        self.output_destination.validate()
