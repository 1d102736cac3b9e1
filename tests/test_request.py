"""
Tests for the trace request model in tracerunner.request.

These tests verify enum parsing, output destination resolution and
request validation rules.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from tracerunner.errors import MissingIdentityError, RequestValidationError, TracerNotImplementedError
from tracerunner.request import (
    OutputDestination,
    OutputKind,
    OutputMode,
    TargetScope,
    TraceRequest,
    TracerKind,
)


class TestTracerKind:
    """Tests for TracerKind.parse."""

    def test_parse_bpftrace(self) -> None:
        assert TracerKind.parse("bpftrace") is TracerKind.BPFTRACE

    def test_parse_bcc(self) -> None:
        assert TracerKind.parse("bcc") is TracerKind.BCC

    def test_parse_is_case_insensitive(self) -> None:
        assert TracerKind.parse(" BPFTrace ") is TracerKind.BPFTRACE

    def test_parse_enum_member(self) -> None:
        assert TracerKind.parse(TracerKind.BCC) is TracerKind.BCC

    def test_unknown_kind_identifies_request(self) -> None:
        """Unsupported tracers fail with an error naming the kind."""
        with pytest.raises(TracerNotImplementedError) as exc_info:
            TracerKind.parse("dtrace")

        assert exc_info.value.kind == "dtrace"
        assert "dtrace" in str(exc_info.value)

    def test_not_implemented_is_validation_error(self) -> None:
        with pytest.raises(RequestValidationError):
            TracerKind.parse("systemtap")


class TestOutputDestination:
    """Tests for OutputDestination."""

    def test_default_is_stdout(self) -> None:
        destination = OutputDestination()

        assert destination.is_stdout
        assert destination.resolve("flamegraph.svg") is None

    def test_file_resolves_to_path(self) -> None:
        destination = OutputDestination.create("file", "/tmp/out.svg")

        assert destination.resolve("flamegraph.svg") == Path("/tmp/out.svg")

    def test_directory_appends_default_name(self) -> None:
        destination = OutputDestination.create("directory", "/data/traces")

        assert destination.resolve("flamegraph.svg") == Path("/data/traces/flamegraph.svg")

    def test_file_without_path_fails(self) -> None:
        destination = OutputDestination.create(OutputKind.FILE)

        with pytest.raises(RequestValidationError):
            destination.validate()

    def test_unknown_kind_fails(self) -> None:
        with pytest.raises(RequestValidationError) as exc_info:
            OutputDestination.create("s3")

        assert "s3" in str(exc_info.value)


class TestTraceRequestCreate:
    """Tests for TraceRequest.create."""

    def test_defaults(self) -> None:
        request = TraceRequest.create("bpftrace", "program.bt")

        assert request.tracer_kind is TracerKind.BPFTRACE
        assert request.target_scope is TargetScope.NODE
        assert request.output_mode is OutputMode.STREAM
        assert request.output_destination.is_stdout
        assert not request.is_container_scoped

    def test_flamegraph_flag(self) -> None:
        request = TraceRequest.create("bpftrace", "program.bt", flamegraph=True)

        assert request.output_mode is OutputMode.FLAMEGRAPH
        assert request.wants_flamegraph

    def test_identity_is_stripped(self) -> None:
        request = TraceRequest.create(
            "bpftrace", "program.bt", target="container",
            pod_uid="  abc123 ", container_name=" web",
        )

        assert request.pod_uid == "abc123"
        assert request.container_name == "web"

    def test_invalid_target(self) -> None:
        with pytest.raises(RequestValidationError):
            TraceRequest.create("bpftrace", "program.bt", target="cluster")

    def test_request_is_immutable(self) -> None:
        request = TraceRequest.create("bpftrace", "program.bt")

        with pytest.raises(AttributeError):
            request.program = "other.bt"  # type: ignore[misc]


class TestTraceRequestValidate:
    """Tests for TraceRequest.validate."""

    def test_node_scope_is_valid(self) -> None:
        TraceRequest.create("bpftrace", "program.bt").validate()

    def test_container_scope_with_identity_is_valid(self) -> None:
        TraceRequest.create(
            "bpftrace", "program.bt", target="container", pod_uid="abc123", container_name="web",
        ).validate()

    def test_container_scope_without_pod_uid(self) -> None:
        """target=container and an empty poduid fail validation."""
        request = TraceRequest.create(
            "bpftrace", "program.bt", target="container", pod_uid="", container_name="web",
        )

        with pytest.raises(MissingIdentityError):
            request.validate()

    def test_container_scope_without_container(self) -> None:
        request = TraceRequest.create(
            "bpftrace", "program.bt", target="container", pod_uid="abc123",
        )

        with pytest.raises(MissingIdentityError):
            request.validate()

    def test_pod_scope_does_not_need_identity(self) -> None:
        TraceRequest.create("bpftrace", "program.bt", target="pod").validate()

    def test_empty_program(self) -> None:
        with pytest.raises(RequestValidationError):
            TraceRequest.create("bcc", "").validate()

    def test_unbalanced_program_args(self) -> None:
        request = TraceRequest.create("bcc", "execsnoop", program_args="-n 'unterminated")

        with pytest.raises(RequestValidationError):
            request.validate()

    def test_output_without_path(self) -> None:
        request = TraceRequest.create(
            "bpftrace", "program.bt", output_destination=OutputDestination.create("directory"),
        )

        with pytest.raises(RequestValidationError):
            request.validate()

    def test_unsupported_kind_set_directly(self) -> None:
        request = TraceRequest(tracer_kind="dtrace", program="program.d")  # type: ignore[arg-type]

        with pytest.raises(TracerNotImplementedError) as exc_info:
            request.validate()

        assert exc_info.value.kind == "dtrace"


class TestSplitProgramArgs:
    """Tests for TraceRequest.split_program_args."""

    def test_empty(self) -> None:
        assert TraceRequest.create("bcc", "opensnoop").split_program_args() == []

    def test_quoted_arguments_are_kept_together(self) -> None:
        request = TraceRequest.create("bcc", "trace", program_args="-p 4821 'do_sys_open \"%s\", arg2'")

        assert request.split_program_args() == ["-p", "4821", 'do_sys_open "%s", arg2']
