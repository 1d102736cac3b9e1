# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

from __future__ import annotations

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Optional

from tracerunner.config import DEFAULT_FLAMEGRAPH_BINARY, DEFAULT_STACKCOLLAPSE_BINARY
from tracerunner.errors import PipelineError
from tracerunner.logger import COLORS, get_logger

logger = get_logger("flamegraph", COLORS.yellow_code)

FLAMEGRAPH_FILE_NAME = "flamegraph.svg"
ARTIFACT_MODE = 0o644


class OutputPipeline:
    """
    Render raw stack samples as a flame graph.

    The samples go through a collapse stage and then a render stage, each an
    external program reading stdin and writing stdout.
    """

    def __init__(self, stackcollapse_binary: str = DEFAULT_STACKCOLLAPSE_BINARY,
                 flamegraph_binary: str = DEFAULT_FLAMEGRAPH_BINARY) -> None:
        self.stackcollapse_binary = stackcollapse_binary
        self.flamegraph_binary = flamegraph_binary

    def __str__(self):
        return (
            f"{self.__class__.__name__}"
            f"(stackcollapse={self.stackcollapse_binary},"
            f" flamegraph={self.flamegraph_binary})"
        )

    async def _stage(self, name: str, binary: str, data: bytes) -> bytes:
        try:
            proc = await asyncio.create_subprocess_exec(
                binary,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise PipelineError(name, stderr=str(exc)) from exc

        out, err = await proc.communicate(data)
        if proc.returncode != 0:
            raise PipelineError(name, proc.returncode, err.decode("utf-8", "replace"))
        logger.debug(f"Stage {name} turned {len(data)} bytes into {len(out)} bytes")
        return out

    async def generate(self, raw_output: bytes) -> bytes:
        """Run collapse then render and return the rendered image"""
        collapsed = await self._stage("stackcollapse", self.stackcollapse_binary, raw_output)
        return await self._stage("flamegraph", self.flamegraph_binary, collapsed)

    async def finish(self, raw_output: bytes, destination: Optional[Path]) -> bytes:
        """
        Render the flame graph and write it to destination.

        destination None means standard output. Files are written next to
        the destination and renamed into place only once rendering succeeded.
        """
        image = await self.generate(raw_output)
        if destination is None:
            sys.stdout.buffer.write(image)
            sys.stdout.buffer.flush()
        else:
            try:
                write_artifact(destination, image)
            except OSError as exc:
                raise PipelineError("write", stderr=str(exc)) from exc
            logger.info(f"Flame graph saved to {destination}")
        return image


def write_artifact(destination: Path, data: bytes) -> None:
    """Atomically replace destination with data"""
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{destination.name}.", dir=str(destination.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            # mkstemp creates 0600; collectors outside the pod read the artifact
            os.fchmod(fh.fileno(), ARTIFACT_MODE)
            fh.write(data)
        os.replace(tmp_path, destination)
    except BaseException:
        _remove_quietly(tmp_path)
        raise


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
