# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

from typing import Optional


class TraceRunnerError(Exception):
    """Base class for every error raised by a trace invocation"""
    pass


class RequestValidationError(TraceRunnerError):
    """The trace request is inconsistent and was rejected before any action"""
    pass


class MissingIdentityError(RequestValidationError):
    """Container scope was requested without pod UID or container name"""

    def __init__(self, message: str = "poduid and container must be specified when target is container"):
        super().__init__(message)


class TracerNotImplementedError(RequestValidationError):
    """The requested tracer backend does not exist"""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"tracer '{kind}' is not implemented")


class ProcessNotFoundError(TraceRunnerError):
    """No process in the process table belongs to the pod container"""

    def __init__(self, pod_uid: str, container_name: str):
        self.pod_uid = pod_uid
        self.container_name = container_name
        super().__init__(
            f"no process found for pod '{pod_uid}' and container '{container_name}'"
        )


class ProcessTableError(TraceRunnerError):
    """The process table itself could not be listed"""
    pass


class DispatchError(TraceRunnerError):
    """The tracer command could not be built"""
    pass


class TracerExecutionError(TraceRunnerError):
    """The tracer child process did not complete successfully"""
    pass


class TracerLaunchError(TracerExecutionError):
    """The tracer binary could not be started"""
    pass


class TracerExitError(TracerExecutionError):
    """The tracer exited with a non-zero status"""

    def __init__(self, executable: str, returncode: int):
        self.executable = executable
        self.returncode = returncode
        super().__init__(f"{executable} exited with status {returncode}")


class TracerTerminatedError(TracerExecutionError):
    """The tracer was killed after the second interrupt"""

    def __init__(self, executable: str):
        self.executable = executable
        super().__init__(f"{executable} was terminated after the second interrupt")


class PipelineError(TraceRunnerError):
    """A flame graph stage failed"""

    def __init__(self, stage: str, returncode: Optional[int] = None, stderr: str = ""):
        self.stage = stage
        self.returncode = returncode
        self.stderr = stderr
        message = f"flame graph stage '{stage}' failed"
        if returncode is not None:
            message += f" with status {returncode}"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)


class OutputError(TraceRunnerError):
    """The output destination could not be opened"""
    pass
