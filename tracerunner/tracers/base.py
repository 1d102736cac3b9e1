# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

import abc
import os
from dataclasses import dataclass, field
from typing import List, Optional

from tracerunner.config import DispatchConfig
from tracerunner.logger import COLORS, get_logger
from tracerunner.request import TraceRequest, TracerKind


@dataclass
class TracerCommand:
    """
    A runnable tracer invocation.

    artifacts are files created for this invocation only (rendered
    programs); the command owns them and removes them in cleanup().
    """

    executable: str
    args: List[str] = field(default_factory=list)
    artifacts: List[str] = field(default_factory=list)

    @property
    def argv(self) -> List[str]:
        return [self.executable, *self.args]

    def cleanup(self) -> None:
        while self.artifacts:
            path = self.artifacts.pop()
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass


class TracerBase(abc.ABC):
    """Base class for all tracer backends"""

    kind: TracerKind = NotImplemented

    def __init__(self, config: DispatchConfig):
        self.name = self.__class__.__name__.lower().replace("tracer", "")
        self.config = config
        self.logger = get_logger(self.name, COLORS.blue)

    def __str__(self):
        return f"{self.__class__.__name__}(kind={self.kind.value})"

    __repr__ = __str__

    @abc.abstractmethod
    def build_command(self, request: TraceRequest, pid: Optional[int]) -> TracerCommand:
        """Turn a validated request into a command line"""
        pass
