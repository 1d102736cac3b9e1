from __future__ import annotations

import os
import re
from typing import Iterator, List, Optional

from tracerunner.config import DEFAULT_PROC_ROOT
from tracerunner.errors import ProcessNotFoundError, ProcessTableError
from tracerunner.logger import COLORS, get_logger

logger = get_logger("locator", COLORS.cyan)

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


def _unescape(field: str) -> str:
    # mountinfo escapes space, tab, newline and backslash as \ooo
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


def parse_mount_roots(text: str) -> List[str]:
    """
    Extract the root field of every record of a mountinfo file.

    A record reads ``id parent major:minor root mount-point options ...``;
    malformed lines are ignored.
    """
    roots = []
    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 5:
            continue
        roots.append(_unescape(fields[3]))
    return roots


def _read_mount_roots(proc_root: str, pid: str) -> Optional[List[str]]:
    try:
        with open(os.path.join(proc_root, pid, "mountinfo"), "r", encoding="utf-8", errors="replace") as fh:
            data = fh.read()
    except OSError:
        return None
    return parse_mount_roots(data)


class ProcessLocator:
    """
    Find the host pid of a container by scanning the process table.

    A process belongs to the container when one of its mount roots contains
    both the pod UID and the container name. The result is a point in time
    answer; the process may exit right after it is returned.
    """

    def __init__(self, proc_root: str = DEFAULT_PROC_ROOT) -> None:
        self.proc_root = proc_root

    def _iter_pids(self) -> Iterator[str]:
        try:
            entries = os.scandir(self.proc_root)
        except OSError as exc:
            raise ProcessTableError(f"failed to list process table {self.proc_root}: {exc}") from exc

        with entries:
            for entry in entries:
                if not entry.name.isdigit():
                    continue
                try:
                    if not entry.is_dir():
                        continue
                except OSError:
                    continue
                yield entry.name

    def locate(self, pod_uid: str, container_name: str) -> int:
        """
        Return the first pid whose mount namespace root matches the identity.

        Processes that vanish or cannot be read during the scan are skipped.
        Raises ProcessNotFoundError when nothing matches.
        """
        scanned = 0
        for pid in self._iter_pids():
            roots = _read_mount_roots(self.proc_root, pid)
            if roots is None:
                logger.debug(f"Skipping unreadable process {pid}")
                continue
            scanned += 1
            for root in roots:
                if pod_uid in root and container_name in root:
                    logger.info(f"Resolved pod {pod_uid} container {container_name} to pid {pid}")
                    return int(pid)

        logger.debug(f"Scanned {scanned} process(es) under {self.proc_root} without a match")
        raise ProcessNotFoundError(pod_uid, container_name)
