# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

"""
TraceRunner Tracers Package

One backend per supported tracer kind. Each turns a validated trace
request into a concrete command line.
"""

from .base import TracerBase, TracerCommand
from .bcc import BccTracer
from .bpftrace import BpftraceTracer

__all__ = ['TracerBase', 'TracerCommand', 'BccTracer', 'BpftraceTracer']
