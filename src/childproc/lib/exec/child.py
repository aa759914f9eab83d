"""Child process wrapper translating native callbacks into events."""

from __future__ import annotations

import asyncio
from enum import StrEnum
from signal import Signals

import structlog

from childproc.lib.events import EventTarget
from childproc.lib.exec import native
from childproc.lib.exec.errors import ChildStateError, spawn_error_from_native
from childproc.lib.exec.native import NativeRequest, ProcessHandle, StdinChunk
from childproc.lib.exec.options import SpawnRequest, normalize_env

logger = structlog.get_logger(__name__)

SPAWN_FAILED_EXIT_CODE = -1


def _signal_name(signum: int) -> str:
    try:
        return Signals(signum).name
    except ValueError:
        return f"SIG{signum}"


class ChildState(StrEnum):
    PENDING = "pending"
    SPAWNING = "spawning"
    RUNNING = "running"
    EXITED = "exited"
    SPAWN_FAILED = "spawn-failed"


class Child(EventTarget):
    """One spawned OS process and its three stdio streams.

    A Child is built inert. `start()` schedules the native spawn on the
    running event loop instead of performing it inline, so listeners attached
    right after `start()` returns observe every event.

    Events on the Child:
        spawn ()                       process is running, `pid` is set
        error (SpawnError)             native spawn failed
        exit (None, signal)            `kill()` was requested
        close (code, signal)           terminal event, delivered at most once

    `stdout` and `stderr` emit `data` with decoded text. Callers emit `data`
    (str or bytes) and `end` into `stdin`; input sent before the process
    exists is queued.
    """

    def __init__(self, request: SpawnRequest) -> None:
        super().__init__()
        self.request = request
        self.stdin = EventTarget()
        self.stdout = EventTarget()
        self.stderr = EventTarget()
        self.pid: int | None = None
        self.state = ChildState.PENDING
        self.killed = False
        self.exit_code: int | None = None
        self.signal_code: str | None = None

        self._handle: ProcessHandle | None = None
        self._kill_signal: str | None = None
        self._stdin_queue: asyncio.Queue[StdinChunk] = asyncio.Queue()
        self._closed: asyncio.Future[tuple[int | None, str | None]] | None = None
        self._spawn_task: asyncio.Task[None] | None = None

        self.stdin.on("data", self._queue_stdin)
        self.stdin.on("end", self._end_stdin)

    def start(self) -> Child:
        """Schedule the native spawn. Requires a running event loop."""

        if self._spawn_task is not None:
            raise ChildStateError(f"Child already started (state={self.state}).")
        loop = asyncio.get_running_loop()
        self.state = ChildState.SPAWNING
        self._closed = loop.create_future()
        self._spawn_task = loop.create_task(self._spawn())
        return self

    async def wait(self) -> tuple[int | None, str | None]:
        """Wait for `close` and return its `(code, signal)` pair."""

        if self._closed is None:
            raise ChildStateError("Child has not been started.")
        return await asyncio.shield(self._closed)

    def kill(self, signal: str = "SIGTERM") -> None:
        """Request termination and emit `exit(None, signal)`.

        Completion is only confirmed by the later `close` event. Killing a
        child that has already exited does nothing.
        """

        if self._handle is None:
            raise ChildStateError(
                f"Cannot kill child before it has spawned (state={self.state})."
            )
        if self.state is ChildState.EXITED:
            logger.debug("Ignoring kill for exited child.", pid=self.pid, signal=signal)
            return
        self.killed = True
        self._kill_signal = signal
        logger.debug("Killing child process.", pid=self.pid, signal=signal)
        self._handle.kill(signal)
        self.emit("exit", None, signal)

    async def _spawn(self) -> None:
        options = self.request.options
        try:
            handle = await native.start(
                NativeRequest(
                    command=self.request.file,
                    arguments=self.request.args,
                    environment=normalize_env(options.env),
                    workdir=options.cwd,
                    charset=options.encoding,
                    stdin=self._stdin_queue,
                    on_stdout=lambda chunk: self.stdout.emit("data", chunk),
                    on_stderr=lambda chunk: self.stderr.emit("data", chunk),
                    on_done=self._on_done,
                    read_chunk_size=options.read_chunk_size,
                )
            )
        except (OSError, ValueError) as exc:
            self._on_spawn_failure(exc)
            return

        self._handle = handle
        self.pid = handle.pid
        self.state = ChildState.RUNNING
        logger.debug("Child process running.", file=self.request.file, pid=self.pid)
        self.emit("spawn")

    def _on_spawn_failure(self, exc: Exception) -> None:
        self.state = ChildState.SPAWN_FAILED
        error = spawn_error_from_native(self.request.file, exc)
        logger.debug("Child process failed to spawn.", file=self.request.file, error=str(error))
        self.stderr.emit("data", str(error))
        self.emit("error", error)
        self._close(SPAWN_FAILED_EXIT_CODE, None)

    def _on_done(self, exit_code: int) -> None:
        self.state = ChildState.EXITED
        if exit_code >= 0:
            self._close(exit_code, None)
            return
        # Negative return codes mean the process died from signal -exit_code.
        if self._kill_signal is not None:
            self._close(None, self._kill_signal)
            return
        self._close(None, _signal_name(-exit_code))

    def _close(self, code: int | None, signal: str | None) -> None:
        if self._closed is None or self._closed.done():
            return
        self.exit_code = code
        self.signal_code = signal
        self._closed.set_result((code, signal))
        logger.debug("Child process closed.", pid=self.pid, code=code, signal=signal)
        self.emit("close", code, signal)

    def _queue_stdin(self, chunk: str | bytes) -> None:
        self._stdin_queue.put_nowait(chunk)

    def _end_stdin(self, *_: object) -> None:
        self._stdin_queue.put_nowait(None)
