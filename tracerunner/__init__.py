# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

"""
TraceRunner - in-node execution agent for dynamic tracing

Resolves the process behind a pod container, launches bpftrace or a bcc
tool against it as a supervised subprocess, and optionally renders the
collected stacks as a flame graph.
"""

__version__ = "1.0.0"
__author__ = "TraceRunner Development Team"
