# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

import argparse
import asyncio
import os
import sys

from tracerunner import __version__
from tracerunner.config import (
    DEFAULT_CONFIG_PATH,
    RuntimeSettings,
    build_runtime_settings,
    load_config_file,
)
from tracerunner.errors import RequestValidationError, TraceRunnerError
from tracerunner.logger import COLORS, add_log_file, get_logger, set_log_level
from tracerunner.metrics import RunMetrics
from tracerunner.request import OutputDestination, OutputKind, TargetScope, TraceRequest
from tracerunner.runner import TraceRunner

logger = get_logger("main", COLORS.white)

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


conf_parser = argparse.ArgumentParser(
    prog="tracerunner",
    description="Run a bpftrace program or bcc tool on this node, optionally inside a pod container.",
)
conf_parser.add_argument(
    "--tracer", default="bpftrace",
    help="Tracer backend to run (bpftrace or bcc)."
)
conf_parser.add_argument(
    "--target", default=TargetScope.NODE.value,
    choices=[s.value for s in TargetScope],
    help="Scope of the trace. 'container' requires --poduid and --container."
)
conf_parser.add_argument(
    "--inpod", action="store_true",
    help="Run in a pod's container process namespace (same as --target container)."
)
conf_parser.add_argument(
    "-p", "--poduid", default="",
    help="Specify the pod UID."
)
conf_parser.add_argument(
    "-c", "--container", default="",
    help="Specify the container."
)
conf_parser.add_argument(
    "-f", "--program", default="program.bt",
    help="bpftrace program path, or bcc tool name."
)
conf_parser.add_argument(
    "--program-args", default="",
    help="Arguments passed verbatim to the bcc tool."
)
conf_parser.add_argument(
    "--output", default=None,
    choices=[k.value for k in OutputKind],
    help="Destination of the results."
)
conf_parser.add_argument(
    "--output-path", default=None,
    help="File or directory receiving the results. Implies --output file when --output is not given."
)
conf_parser.add_argument(
    "--flamegraph", action="store_true",
    help="Generate and save a Flame Graph (only works with stack, kstack and ustack)."
)
conf_parser.add_argument(
    "--flamegraph-output-path", default=None,
    help="Where to save the generated flamegraph when no --output is given."
)
conf_parser.add_argument(
    "-b", "--bpftracebinary", default=None,
    help="Specify the bpftrace binary path."
)
conf_parser.add_argument(
    "--bcc-tools-dir", default=None,
    help="Directory holding the bcc tools."
)
conf_parser.add_argument(
    "--flamegraphbinary", default=None,
    help="Specify the flamegraph generator binary path."
)
conf_parser.add_argument(
    "--stackcollapsebinary", default=None,
    help="Specify the stackcollapse-bpftrace binary path (used for Flame Graphs)."
)
conf_parser.add_argument(
    "--keep-artifacts", action="store_true",
    help="Do not remove the rendered program after the run."
)
conf_parser.add_argument(
    "--exit-zero-on-failure", action="store_true",
    help="Report success even when the tracer run failed."
)
conf_parser.add_argument(
    "--prometheus-port", type=int, default=None,
    help="Expose run metrics on this port (0 disables)."
)
conf_parser.add_argument(
    "--log-file", default=None,
    help="Also write log records to this file."
)
conf_parser.add_argument(
    "--debug", action="store_true",
    help="Enable debug prints."
)
conf_parser.add_argument(
    "-C", "--cfg", default=None,
    help=f"Config yaml (default: {DEFAULT_CONFIG_PATH} when present)."
)


def build_request(args: argparse.Namespace, settings: RuntimeSettings) -> TraceRequest:
    """Translate parsed arguments into a TraceRequest"""
    target = TargetScope.CONTAINER.value if args.inpod else args.target

    output = args.output
    output_path = args.output_path
    if args.flamegraph and output is None:
        output = OutputKind.FILE.value
        output_path = output_path or settings.flamegraph_output_path
    elif output is None and output_path:
        output = OutputKind.FILE.value

    return TraceRequest.create(
        tracer=args.tracer,
        program=args.program,
        target=target,
        pod_uid=args.poduid,
        container_name=args.container,
        program_args=args.program_args,
        flamegraph=args.flamegraph,
        output_destination=OutputDestination.create(output or OutputKind.STDOUT.value, output_path),
    )


async def _exec(argv=None) -> int:
    """Parse arguments, run one trace and translate its outcome into an exit status"""
    args = conf_parser.parse_args(argv)

    if args.cfg and not os.path.isfile(args.cfg):
        conf_parser.error(f"config file not found: {args.cfg}")
    cfg = load_config_file(args.cfg or DEFAULT_CONFIG_PATH)
    settings = build_runtime_settings(args, cfg)

    set_log_level(settings.log_level)
    if settings.log_file:
        add_log_file(settings.log_file, settings.log_max_size_mb, settings.log_max_backups)

    try:
        request = build_request(args, settings)
        request.validate()
    except RequestValidationError as e:
        conf_parser.error(str(e))

    display_options = [
        ("tracer", request.tracer_kind.value),
        ("target", request.target_scope.value),
        ("program", request.program),
        ("output", request.output_destination.kind.value),
        ("flamegraph", request.wants_flamegraph),
        ("config", args.cfg),
    ]
    logger.info(f"TraceRunner<{COLORS.intense_blue(__version__)}> initialization")
    logger.info(
        f"Configuration options: "
        f"{', '.join(f'{k}={v}' for k, v in display_options)}"
    )

    metrics = RunMetrics()
    metrics.serve(settings.prometheus_host, settings.prometheus_port)
    runner = TraceRunner(settings, metrics=metrics)

    try:
        await runner.run(request)
    except TraceRunnerError as e:
        print(str(e))
        if settings.exit_zero_on_failure:
            return 0
        return EXIT_FAILURE
    return 0


def main(argv=None) -> int:
    """Main entry point"""
    try:
        return asyncio.run(_exec(argv))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
