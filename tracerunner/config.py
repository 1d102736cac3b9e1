from __future__ import annotations

import argparse
import os
import sys
import tempfile
from dataclasses import dataclass
from typing import Any, Dict

import yaml


DEFAULT_CONFIG_PATH = "/etc/tracerunner/config.yaml"

DEFAULT_BPFTRACE_BINARY = "/bin/bpftrace"
DEFAULT_BCC_TOOLS_DIR = "/usr/share/bcc/tools"
DEFAULT_STACKCOLLAPSE_BINARY = "/bin/stackcollapse-bpftrace"
DEFAULT_FLAMEGRAPH_BINARY = "/bin/flamegraph"
DEFAULT_FLAMEGRAPH_OUTPUT_PATH = "/tmp/flamegraph.svg"
DEFAULT_PROC_ROOT = "/proc"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_MAX_MB = 10
DEFAULT_LOG_BACKUPS = 3
DEFAULT_PROM_HOST = "0.0.0.0"
DEFAULT_PROM_PORT = 0


@dataclass(frozen=True)
class DispatchConfig:
    """
    Binary locations and scratch directory used to build tracer commands.
    """

    bpftrace_binary: str = DEFAULT_BPFTRACE_BINARY
    bcc_tools_dir: str = DEFAULT_BCC_TOOLS_DIR
    temp_dir: str = ""

    @property
    def render_dir(self) -> str:
        return self.temp_dir or tempfile.gettempdir()


@dataclass
class RuntimeSettings:
    bpftrace_binary: str = DEFAULT_BPFTRACE_BINARY
    bcc_tools_dir: str = DEFAULT_BCC_TOOLS_DIR
    stackcollapse_binary: str = DEFAULT_STACKCOLLAPSE_BINARY
    flamegraph_binary: str = DEFAULT_FLAMEGRAPH_BINARY
    flamegraph_output_path: str = DEFAULT_FLAMEGRAPH_OUTPUT_PATH
    proc_root: str = DEFAULT_PROC_ROOT
    temp_dir: str = ""
    keep_artifacts: bool = False
    exit_zero_on_failure: bool = False
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: str = ""
    log_max_size_mb: int = DEFAULT_LOG_MAX_MB
    log_max_backups: int = DEFAULT_LOG_BACKUPS
    prometheus_host: str = DEFAULT_PROM_HOST
    prometheus_port: int = DEFAULT_PROM_PORT

    def dispatch_config(self) -> DispatchConfig:
        return DispatchConfig(
            bpftrace_binary=self.bpftrace_binary,
            bcc_tools_dir=self.bcc_tools_dir,
            temp_dir=self.temp_dir,
        )


def _fail(msg: str) -> None:
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


def _safe_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _safe_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on")
    return bool(value)


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = cfg.get(name, {}) if isinstance(cfg, dict) else {}
    return section if isinstance(section, dict) else {}


def load_config_file(path: str) -> Dict[str, Any]:
    """
    Load YAML config if present; return {} if file is absent.
    """
    if not path:
        return {}

    if not os.path.isfile(path):
        return {}

    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        _fail(f"failed to read config file {path}: {exc}")
        raise

    if not isinstance(data, dict):
        _fail(f"config file {path} must contain a YAML mapping/object")

    return data


def build_runtime_settings(args: argparse.Namespace, cfg: Dict[str, Any]) -> RuntimeSettings:
    """
    Merge defaults -> config -> CLI overrides into a RuntimeSettings object.
    """
    settings = RuntimeSettings()

    bin_cfg = _section(cfg, "binaries")
    settings.bpftrace_binary = bin_cfg.get("bpftrace") or settings.bpftrace_binary
    settings.bcc_tools_dir = bin_cfg.get("bcc_tools_dir") or settings.bcc_tools_dir

    fg_cfg = _section(cfg, "flamegraph")
    settings.stackcollapse_binary = fg_cfg.get("stackcollapse") or settings.stackcollapse_binary
    settings.flamegraph_binary = fg_cfg.get("render") or settings.flamegraph_binary
    settings.flamegraph_output_path = fg_cfg.get("output_path") or settings.flamegraph_output_path

    run_cfg = _section(cfg, "runner")
    settings.proc_root = run_cfg.get("proc_root") or settings.proc_root
    settings.temp_dir = run_cfg.get("temp_dir") or settings.temp_dir
    settings.keep_artifacts = _safe_bool(run_cfg.get("keep_artifacts"), settings.keep_artifacts)
    settings.exit_zero_on_failure = _safe_bool(run_cfg.get("exit_zero_on_failure"), settings.exit_zero_on_failure)

    log_cfg = _section(cfg, "logging")
    settings.log_level = str(log_cfg.get("level") or settings.log_level).upper()
    settings.log_file = log_cfg.get("file") or settings.log_file
    settings.log_max_size_mb = _safe_int(log_cfg.get("max_size_mb"), settings.log_max_size_mb)
    settings.log_max_backups = _safe_int(log_cfg.get("max_backups"), settings.log_max_backups)

    prom_cfg = _section(cfg, "prometheus")
    settings.prometheus_host = prom_cfg.get("host") or settings.prometheus_host
    settings.prometheus_port = _safe_int(prom_cfg.get("port"), settings.prometheus_port)

    # CLI overrides have final say
    if getattr(args, "bpftracebinary", None):
        settings.bpftrace_binary = args.bpftracebinary
    if getattr(args, "bcc_tools_dir", None):
        settings.bcc_tools_dir = args.bcc_tools_dir
    if getattr(args, "stackcollapsebinary", None):
        settings.stackcollapse_binary = args.stackcollapsebinary
    if getattr(args, "flamegraphbinary", None):
        settings.flamegraph_binary = args.flamegraphbinary
    if getattr(args, "flamegraph_output_path", None):
        settings.flamegraph_output_path = args.flamegraph_output_path
    if getattr(args, "keep_artifacts", False):
        settings.keep_artifacts = True
    if getattr(args, "exit_zero_on_failure", False):
        settings.exit_zero_on_failure = True
    if getattr(args, "debug", False):
        settings.log_level = "DEBUG"
    if getattr(args, "log_file", None):
        settings.log_file = args.log_file
    if getattr(args, "prometheus_port", None) is not None:
        settings.prometheus_port = args.prometheus_port

    return settings
