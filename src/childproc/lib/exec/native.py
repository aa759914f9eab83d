"""Native process primitive backed by asyncio subprocess transports."""

from __future__ import annotations

import asyncio
import codecs
import os
import signal
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias

import structlog

logger = structlog.get_logger(__name__)

StdinChunk: TypeAlias = str | bytes | None


@dataclass(frozen=True, slots=True)
class NativeRequest:
    """Inputs for one native spawn call.

    `environment` holds `KEY=VALUE` entries merged over the inherited
    environment, or `None` to inherit it unchanged. `stdin` yields queued
    chunks; `None` in the queue means end of input.
    """

    command: str
    arguments: tuple[str, ...]
    environment: tuple[str, ...] | None
    workdir: str | Path | None
    charset: str
    stdin: asyncio.Queue[StdinChunk]
    on_stdout: Callable[[str], None]
    on_stderr: Callable[[str], None]
    on_done: Callable[[int], None]
    read_chunk_size: int = 1024


def resolve_signal(name: str) -> signal.Signals:
    """Map a signal name to a platform signal, falling back to SIGTERM."""

    normalized = name.strip().upper()
    if normalized and not normalized.startswith("SIG"):
        normalized = f"SIG{normalized}"
    resolved = getattr(signal, normalized, None)
    if isinstance(resolved, signal.Signals):
        return resolved
    logger.warning("Unknown kill signal, falling back to SIGTERM.", requested=name)
    return signal.SIGTERM


def merge_environment(entries: tuple[str, ...] | None) -> dict[str, str] | None:
    if entries is None:
        return None
    merged = dict(os.environ)
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid environment entry {entry!r}: expected KEY=VALUE.")
        merged[key] = value
    return merged


class ProcessHandle:
    """Running native process: pumps stdio and reports completion once."""

    def __init__(self, process: asyncio.subprocess.Process, request: NativeRequest) -> None:
        self._process = process
        self._request = request
        self._tasks: list[asyncio.Task[None]] = []
        self._done_reported = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    def kill(self, signal_name: str) -> None:
        if self._process.returncode is not None:
            return
        try:
            self._process.send_signal(resolve_signal(signal_name))
        except ProcessLookupError:
            # The child exited between the returncode check and delivery.
            return

    def _start_pumps(self) -> None:
        process = self._process
        if process.stdout is None or process.stderr is None or process.stdin is None:
            raise RuntimeError("Subprocess did not expose stdin/stdout/stderr pipes.")

        readers = [
            asyncio.create_task(self._pump_output(process.stdout, self._request.on_stdout)),
            asyncio.create_task(self._pump_output(process.stderr, self._request.on_stderr)),
        ]
        self._tasks = [
            *readers,
            asyncio.create_task(self._pump_stdin(process.stdin)),
            asyncio.create_task(self._watch_exit(readers)),
        ]
        for task in self._tasks:
            task.add_done_callback(self._log_task_failure)

    def _log_task_failure(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Process pump task failed.", pid=self.pid, exc_info=exc)

    async def _pump_output(
        self,
        reader: asyncio.StreamReader,
        deliver: Callable[[str], None],
    ) -> None:
        decoder = codecs.getincrementaldecoder(self._request.charset)(errors="replace")
        while True:
            chunk = await reader.read(self._request.read_chunk_size)
            if not chunk:
                break
            text = decoder.decode(chunk)
            if text:
                deliver(text)
        tail = decoder.decode(b"", final=True)
        if tail:
            deliver(tail)

    async def _pump_stdin(self, writer: asyncio.StreamWriter) -> None:
        queue = self._request.stdin
        try:
            while True:
                chunk = await queue.get()
                if chunk is None:
                    break
                data = chunk.encode(self._request.charset) if isinstance(chunk, str) else chunk
                writer.write(data)
                await writer.drain()
            writer.close()
            await writer.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Child closed stdin before all input was written.", pid=self.pid)

    async def _watch_exit(self, readers: list[asyncio.Task[None]]) -> None:
        await asyncio.gather(*readers, return_exceptions=True)
        exit_code = await self._process.wait()
        stdin_task = self._tasks[2]
        if not stdin_task.done():
            stdin_task.cancel()
        if self._done_reported:
            return
        self._done_reported = True
        self._request.on_done(exit_code)


async def start(request: NativeRequest) -> ProcessHandle:
    """Spawn one process and start streaming its output.

    Raises OSError when the process cannot be started.
    """

    process = await asyncio.create_subprocess_exec(
        request.command,
        *request.arguments,
        cwd=None if request.workdir is None else str(request.workdir),
        env=merge_environment(request.environment),
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    handle = ProcessHandle(process, request)
    handle._start_pumps()
    logger.debug("Spawned native process.", command=request.command, pid=process.pid)
    return handle
