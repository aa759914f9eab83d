"""spawn/exec/execFile entry points and the buffering policy engine."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeAlias

import structlog

from childproc.lib.exec.child import Child
from childproc.lib.exec.errors import (
    ChildStateError,
    ExecError,
    ExecTimeoutError,
    KilledBySignalError,
    MaxBufferExceededError,
    NonZeroExitError,
    normalize_error,
)
from childproc.lib.exec.options import ExecOptions, build_request

logger = structlog.get_logger(__name__)

ExecCallback: TypeAlias = Callable[[ExecError | None, str, str], object]


@dataclass(frozen=True, slots=True)
class ExecResult:
    """Normalized outcome of one exec/execFile invocation."""

    error: ExecError | None
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def _is_windows() -> bool:
    return sys.platform.startswith("win")


def shell_invocation(command: str, shell: str | None = None) -> tuple[str, tuple[str, ...]]:
    """Return the interpreter file and arguments that run `command`."""

    if _is_windows():
        file, args = "cmd.exe", ("/s", "/c", f'"{command}"')
    else:
        file, args = "/bin/sh", ("-c", command)
    if shell:
        file = shell
    return file, args


def spawn(file: str, args: Sequence[str] = (), options: ExecOptions | None = None) -> Child:
    """Create and start a Child without buffering its output."""

    return Child(build_request(file, args, options)).start()


def spawn_with_args(
    file: str,
    args: Sequence[str],
    options: ExecOptions | None = None,
) -> Child:
    return spawn(file, args, options)


def spawn_with_options(file: str, options: ExecOptions) -> Child:
    return spawn(file, (), options)


class _ExecInvocation:
    """Accumulates one Child's output and resolves exactly once."""

    def __init__(
        self,
        child: Child,
        options: ExecOptions,
        callback: ExecCallback | None,
    ) -> None:
        self._child = child
        self._options = options
        self._callback = callback
        self._stdout: list[str] = []
        self._stderr: list[str] = []
        self._stdout_len = 0
        self._stderr_len = 0
        self._pending_error: ExecError | None = None
        self._loop = asyncio.get_running_loop()
        self._timer: asyncio.TimerHandle | None = None
        self.result: asyncio.Future[ExecResult] = self._loop.create_future()

    def attach(self) -> None:
        self._child.stdout.on("data", self._on_stdout)
        self._child.stderr.on("data", self._on_stderr)
        self._child.on("spawn", self._on_spawn)
        self._child.on("close", self._on_close)
        self._child.on("error", self._on_error)

    def detach(self) -> None:
        self._child.stdout.off("data", self._on_stdout)
        self._child.stderr.off("data", self._on_stderr)
        self._child.off("spawn", self._on_spawn)
        self._child.off("close", self._on_close)
        self._child.off("error", self._on_error)

    def _on_spawn(self) -> None:
        timeout = self._options.timeout_seconds
        if timeout is not None and not self.result.done():
            self._timer = self._loop.call_later(timeout, self._on_timeout, timeout)

    def _on_timeout(self, timeout: float) -> None:
        self._timer = None
        if self.result.done():
            return
        logger.debug("Command timed out.", pid=self._child.pid, timeout_seconds=timeout)
        self._kill_with_policy(ExecTimeoutError(timeout))

    def _on_stdout(self, chunk: str) -> None:
        self._stdout.append(chunk)
        self._stdout_len += len(chunk)
        self._check_max_buffer()

    def _on_stderr(self, chunk: str) -> None:
        self._stderr.append(chunk)
        self._stderr_len += len(chunk)
        self._check_max_buffer()

    def _check_max_buffer(self) -> None:
        limit = self._options.max_buffer
        if limit is None or self._pending_error is not None or self.result.done():
            return
        if self._stdout_len > limit:
            stream = "stdout"
        elif self._stderr_len > limit:
            stream = "stderr"
        else:
            return
        logger.debug("Command output exceeded maxBuffer.", pid=self._child.pid, stream=stream)
        self._kill_with_policy(MaxBufferExceededError(stream, limit))

    def _kill_with_policy(self, error: ExecError) -> None:
        if self._pending_error is None:
            self._pending_error = error
        try:
            self._child.kill(self._options.kill_signal)
        except ChildStateError:
            logger.debug("Policy kill skipped: child is not running.", state=self._child.state)

    def _on_error(self, error: ExecError) -> None:
        self._pending_error = error
        self._finish(None, None)

    def _on_close(self, code: int | None, signal: str | None) -> None:
        self._finish(code, signal)

    def _finish(self, code: int | None, signal: str | None) -> None:
        if self.result.done():
            return
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        stdout = "".join(self._stdout)
        stderr = "".join(self._stderr)
        killed = self._child.killed
        error = self._pending_error
        if error is not None:
            error = normalize_error(error, code=code, signal=signal, killed=killed)
        elif signal is not None:
            error = normalize_error(
                KilledBySignalError(stderr), code=code, signal=signal, killed=killed
            )
        elif code != 0:
            error = normalize_error(
                NonZeroExitError(stderr), code=code, signal=signal, killed=killed
            )

        self.result.set_result(ExecResult(error=error, stdout=stdout, stderr=stderr))
        try:
            if self._callback is not None:
                self._callback(error, stdout, stderr)
        finally:
            self.detach()


def _start_exec(
    file: str,
    args: Sequence[str],
    options: ExecOptions | None,
    callback: ExecCallback | None,
) -> tuple[Child, _ExecInvocation]:
    resolved = options or ExecOptions()
    child = Child(build_request(file, args, resolved))
    invocation = _ExecInvocation(child, resolved, callback)
    invocation.attach()
    child.start()
    return child, invocation


def exec_file(
    file: str,
    args: Sequence[str] = (),
    options: ExecOptions | None = None,
    callback: ExecCallback | None = None,
) -> Child:
    """Run `file` directly and report `(error, stdout, stderr)` once.

    Returns the Child so callers can also observe raw `exit`/`close`.
    """

    child, _ = _start_exec(file, args, options, callback)
    return child


def exec_command(
    command: str,
    options: ExecOptions | None = None,
    callback: ExecCallback | None = None,
) -> Child:
    """Run `command` through the platform shell; see `exec_file`."""

    resolved = options or ExecOptions()
    file, args = shell_invocation(command, resolved.shell)
    return exec_file(file, args, resolved, callback)


async def run_file(
    file: str,
    args: Sequence[str] = (),
    options: ExecOptions | None = None,
) -> ExecResult:
    child, invocation = _start_exec(file, args, options, None)
    try:
        return await asyncio.shield(invocation.result)
    except asyncio.CancelledError:
        # Caller cancellation must not leave an orphaned child behind.
        if child.pid is not None and child.exit_code is None:
            child.kill(child.request.options.kill_signal)
        raise


async def run_command(command: str, options: ExecOptions | None = None) -> ExecResult:
    resolved = options or ExecOptions()
    file, args = shell_invocation(command, resolved.shell)
    return await run_file(file, args, resolved)
