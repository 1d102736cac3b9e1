# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025

"""
Tracer Process Supervisor

Launches the tracer as a child process and runs the two stage interrupt
protocol: the first SIGINT lets tracers that aggregate into maps print
them, the second one kills the child.

Interrupts are published by SignalListener onto a bounded queue and
consumed by InterruptStateMachine, which sets a cancellation event when
the child has to be stopped.
"""

from __future__ import annotations

import asyncio
import enum
import signal
import time
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

import psutil

from tracerunner.errors import TracerExitError, TracerLaunchError, TracerTerminatedError
from tracerunner.logger import COLORS, get_logger
from tracerunner.tracers import TracerCommand

logger = get_logger("supervisor", COLORS.magenta)

MAPS_HINT = (
    "if your program has maps to print, send a SIGINT using Ctrl-C, "
    "if you want to interrupt the execution send SIGINT two times"
)
FLUSH_MESSAGE = "first SIGINT received, now if your program had maps and did not free them it should print them out"
TERMINATE_MESSAGE = "second SIGINT received, terminating the tracer"

INTERRUPT = "interrupt"
DEFAULT_QUEUE_SIZE = 8


class InterruptState(enum.Enum):
    IDLE = "idle"
    FLUSH_REQUESTED = "flush_requested"
    TERMINATING = "terminating"


class InterruptStateMachine:
    """
    Count interrupts and turn the second one into cancellation.

    The first interrupt is never forwarded to the child: when it comes from
    the terminal the child already got it from the process group.
    """

    def __init__(self, events: asyncio.Queue, cancelled: asyncio.Event,
                 on_interrupt: Optional[Callable[[InterruptState], None]] = None) -> None:
        self.events = events
        self.cancelled = cancelled
        self.on_interrupt = on_interrupt
        self.state = InterruptState.IDLE
        self.interrupts = 0

    def handle_interrupt(self) -> InterruptState:
        self.interrupts += 1
        if self.state is InterruptState.IDLE:
            self.state = InterruptState.FLUSH_REQUESTED
            logger.info(FLUSH_MESSAGE)
        elif self.state is InterruptState.FLUSH_REQUESTED:
            self.state = InterruptState.TERMINATING
            logger.warning(TERMINATE_MESSAGE)
            self.cancelled.set()
        if self.on_interrupt is not None:
            self.on_interrupt(self.state)
        return self.state

    async def run(self) -> InterruptState:
        """Consume interrupt events until the child has to be terminated"""
        while self.state is not InterruptState.TERMINATING:
            await self.events.get()
            self.handle_interrupt()
        return self.state


class SignalListener:
    """Publish OS interrupt signals as events on a bounded queue"""

    def __init__(self, events: asyncio.Queue, loop: asyncio.AbstractEventLoop,
                 signals: Iterable[int] = (signal.SIGINT,)) -> None:
        self.events = events
        self.loop = loop
        self.signals = tuple(signals)
        self._previous: Dict[int, Any] = {}
        self._installed = False

    def publish(self) -> None:
        try:
            self.events.put_nowait(INTERRUPT)
        except asyncio.QueueFull:
            # more interrupts than the queue holds behave like the last one
            logger.debug("Interrupt queue is full, dropping event")

    def start(self) -> None:
        if self._installed:
            return
        for sig in self.signals:
            try:
                self.loop.add_signal_handler(sig, self.publish)
            except (NotImplementedError, RuntimeError):
                self._previous[sig] = signal.signal(
                    sig, lambda signum, frame: self.loop.call_soon_threadsafe(self.publish)
                )
        self._installed = True

    def stop(self) -> None:
        if not self._installed:
            return
        for sig in self.signals:
            if sig in self._previous:
                signal.signal(sig, self._previous.pop(sig))
            else:
                self.loop.remove_signal_handler(sig)
        self._installed = False


@dataclass
class ExitOutcome:
    returncode: int
    final_state: InterruptState
    interrupts: int
    duration: float
    stdout: bytes = b""


def kill_process_tree(pid: int) -> None:
    """Kill a child process and everything it spawned"""
    try:
        children = psutil.Process(pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []
    for child in children:
        with suppress(psutil.NoSuchProcess):
            child.kill()
    with suppress(ProcessLookupError, psutil.NoSuchProcess):
        psutil.Process(pid).kill()


class ProcessSupervisor:
    """
    Run one tracer command to completion under the interrupt protocol.

    Failures are raised as TracerExecutionError subclasses and never
    retried; a tracer run attaches probes and is not idempotent.
    """

    def __init__(self, listen_signals: bool = True, queue_size: int = DEFAULT_QUEUE_SIZE,
                 on_interrupt: Optional[Callable[[InterruptState], None]] = None) -> None:
        self.listen_signals = listen_signals
        self.queue_size = queue_size
        self.on_interrupt = on_interrupt

    def __str__(self):
        return f"{self.__class__.__name__}(listen_signals={self.listen_signals}, queue_size={self.queue_size})"

    async def _launch(self, command: TracerCommand, stdin, stdout, stderr) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *command.argv, stdin=stdin, stdout=stdout, stderr=stderr,
            )
        except OSError as exc:
            raise TracerLaunchError(f"failed to start {command.executable}: {exc}") from exc

    async def run(self, command: TracerCommand, stdin=None, stdout=None, stderr=None,
                  capture_stdout: bool = False,
                  interrupts: Optional[asyncio.Queue] = None) -> ExitOutcome:
        """
        Launch the command and wait for it.

        stdin/stdout/stderr accept anything asyncio subprocesses accept; None
        inherits the agent's own streams. With capture_stdout the child's
        output is collected and returned in ExitOutcome.stdout.
        interrupts may be given to inject interrupt events directly.
        """
        loop = asyncio.get_running_loop()
        events = interrupts if interrupts is not None else asyncio.Queue(maxsize=self.queue_size)
        cancelled = asyncio.Event()
        machine = InterruptStateMachine(events, cancelled, on_interrupt=self.on_interrupt)

        # listen before the child exists so no early interrupt is lost
        listener = SignalListener(events, loop) if self.listen_signals else None
        if listener is not None:
            listener.start()

        machine_task = None
        proc = None
        killed = False
        started = time.monotonic()
        try:
            logger.info(MAPS_HINT)
            proc = await self._launch(
                command, stdin, asyncio.subprocess.PIPE if capture_stdout else stdout, stderr,
            )
            logger.debug(f"Started {command.executable} as pid {proc.pid}")
            machine_task = asyncio.ensure_future(machine.run())
            child = asyncio.ensure_future(proc.communicate())
            cancel_wait = asyncio.ensure_future(cancelled.wait())
            try:
                await asyncio.wait({child, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
                if not child.done():
                    killed = True
                    kill_process_tree(proc.pid)
                out, _ = await child
            finally:
                cancel_wait.cancel()
        finally:
            if proc is not None and proc.returncode is None:
                kill_process_tree(proc.pid)
            if machine_task is not None:
                machine_task.cancel()
                with suppress(asyncio.CancelledError):
                    await machine_task
            if listener is not None:
                listener.stop()

        duration = time.monotonic() - started
        if killed:
            raise TracerTerminatedError(command.executable)
        if proc.returncode != 0:
            raise TracerExitError(command.executable, proc.returncode)

        logger.debug(f"{command.executable} exited after {duration:.2f}s")
        return ExitOutcome(
            returncode=proc.returncode,
            final_state=machine.state,
            interrupts=machine.interrupts,
            duration=duration,
            stdout=out or b"",
        )
