"""
Shared pytest fixtures for tracerunner test suite.
"""

from __future__ import annotations

import stat
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest


MOUNTINFO_HOST = (
    "22 1 8:1 / / rw,relatime shared:1 - ext4 /dev/sda1 rw\n"
    "23 22 0:5 / /dev rw,nosuid shared:2 - devtmpfs udev rw\n"
)


def container_mountinfo(root: str) -> str:
    return (
        f"1021 980 0:120 {root} / rw,relatime - overlay overlay rw\n"
        "1022 1021 0:123 / /proc rw,nosuid,nodev,noexec,relatime - proc proc rw\n"
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_proc(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """
    Build a fake /proc tree.

    Takes a mapping of entry name to mountinfo content; a None content
    creates the process directory without a mountinfo file.
    """

    def _make(entries: Dict[str, str]) -> Path:
        proc_dir = temp_dir / "proc"
        proc_dir.mkdir(exist_ok=True)
        for name, mountinfo in entries.items():
            pid_dir = proc_dir / name
            pid_dir.mkdir()
            if mountinfo is not None:
                (pid_dir / "mountinfo").write_text(mountinfo)
        # non-process entries found in a real /proc
        (proc_dir / "self").mkdir(exist_ok=True)
        (proc_dir / "uptime").write_text("1234.56 789.01\n")
        return proc_dir

    return _make


@pytest.fixture
def pod_proc_dir(make_proc) -> Path:
    """A process table holding host processes and one container process."""
    return make_proc({
        "1": MOUNTINFO_HOST,
        "977": MOUNTINFO_HOST,
        "4821": container_mountinfo("/var/lib/containers/pod-abc123/container-web/rootfs"),
    })


@pytest.fixture
def make_script(temp_dir: Path) -> Callable[[str, str], Path]:
    """Write an executable shell script into a bin directory."""
    bin_dir = temp_dir / "bin"
    bin_dir.mkdir()

    def _make(name: str, body: str) -> Path:
        path = bin_dir / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def stage_log(temp_dir: Path) -> Path:
    """File the fake flame graph stages append their names to."""
    return temp_dir / "stages.log"


@pytest.fixture
def flamegraph_bins(make_script, stage_log: Path) -> Dict[str, Path]:
    """Fake stackcollapse and flamegraph binaries."""
    collapse = make_script(
        "stackcollapse-bpftrace",
        f"echo stackcollapse >> {stage_log}\nsed 's/^/collapsed;/'",
    )
    render = make_script(
        "flamegraph",
        f"echo flamegraph >> {stage_log}\necho '<svg>'\ncat\necho '</svg>'",
    )
    failing = make_script(
        "flamegraph-broken",
        f"echo flamegraph >> {stage_log}\necho 'cannot render' >&2\nexit 2",
    )
    return {"collapse": collapse, "render": render, "failing": failing}


@pytest.fixture
def bpftrace_program(temp_dir: Path) -> Path:
    """A bpftrace program using the container pid placeholder."""
    program = temp_dir / "program.bt"
    program.write_text(
        'uprobe:/proc/$container_pid/root/usr/bin/ruby:rb_call /pid == $container_pid/ { @[ustack] = count(); }\n'
    )
    return program


@pytest.fixture
def sample_yaml_config(temp_dir: Path) -> Path:
    """Create a sample YAML configuration file."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text(
        """
binaries:
  bpftrace: /usr/local/bin/bpftrace
  bcc_tools_dir: /opt/bcc/tools

flamegraph:
  stackcollapse: /usr/local/bin/stackcollapse-bpftrace
  render: /usr/local/bin/flamegraph.pl
  output_path: /var/tmp/out.svg

runner:
  proc_root: /host/proc
  temp_dir: /var/tmp/tracerunner
  keep_artifacts: true
  exit_zero_on_failure: false

logging:
  level: debug
  file: /var/log/tracerunner.log
  max_size_mb: 50
  max_backups: 2

prometheus:
  host: 127.0.0.1
  port: 9100
"""
    )
    return config_path
