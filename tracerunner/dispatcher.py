# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

from typing import Dict, Optional, Type

from stevedore import driver
from stevedore.exception import NoMatches

from tracerunner.config import DispatchConfig
from tracerunner.errors import DispatchError, TracerNotImplementedError
from tracerunner.logger import COLORS, get_logger
from tracerunner.request import TraceRequest, TracerKind
from tracerunner.tracers import BccTracer, BpftraceTracer, TracerBase, TracerCommand

logger = get_logger("dispatcher", COLORS.blue)

ENTRYPOINT_GROUP = "tracerunner.tracers"

# Used when the package runs from a source tree without installed entry points
BUILTIN_TRACERS: Dict[TracerKind, Type[TracerBase]] = {
    TracerKind.BPFTRACE: BpftraceTracer,
    TracerKind.BCC: BccTracer,
}

__all__ = ["TracerDispatcher", "TracerCommand", "ENTRYPOINT_GROUP", "BUILTIN_TRACERS", "load_tracer"]


def load_tracer(kind: TracerKind, config: DispatchConfig) -> TracerBase:
    """Instantiate the backend registered for a tracer kind"""
    try:
        mgr = driver.DriverManager(
            namespace=ENTRYPOINT_GROUP,
            name=kind.value,
            invoke_on_load=True,
            invoke_kwds=dict(config=config),
        )
        backend = mgr.driver
    except NoMatches:
        plugin = BUILTIN_TRACERS.get(kind)
        if plugin is None:
            raise TracerNotImplementedError(kind.value) from None
        backend = plugin(config=config)

    if backend.kind is not kind:
        raise DispatchError(f"tracer registered as '{kind.value}' implements '{backend.kind.value}'")
    return backend


class TracerDispatcher:
    """
    Validate a request and build the command line of its tracer backend.
    """

    def __init__(self, config: Optional[DispatchConfig] = None):
        self.config = config or DispatchConfig()
        self._backends: Dict[TracerKind, TracerBase] = {}

    def __str__(self):
        return f"{self.__class__.__name__}(bpftrace={self.config.bpftrace_binary}, bcc_tools_dir={self.config.bcc_tools_dir})"

    def backend(self, kind: TracerKind) -> TracerBase:
        if not isinstance(kind, TracerKind):
            raise TracerNotImplementedError(str(kind))
        if kind not in self._backends:
            self._backends[kind] = load_tracer(kind, self.config)
        return self._backends[kind]

    def dispatch(self, request: TraceRequest, pid: Optional[int] = None) -> TracerCommand:
        """
        Return the TracerCommand for a request.

        Container scoped requests need the pid resolved by ProcessLocator;
        without it dispatch fails instead of silently tracing the node.
        """
        request.validate()
        if request.is_container_scoped and pid is None:
            raise DispatchError("container target requires a resolved process id")

        backend = self.backend(request.tracer_kind)
        command = backend.build_command(request, pid if request.is_container_scoped else None)
        logger.debug(f"Dispatched {request.tracer_kind.value}: {' '.join(command.argv)}")
        return command
