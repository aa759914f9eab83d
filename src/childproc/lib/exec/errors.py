"""Error values reported by exec/execFile and lifecycle usage errors."""

from __future__ import annotations

import errno
import re
from typing import TypeVar

_ERRNO_TOKEN_RE = re.compile(r"\b(E[A-Z0-9]+)\b")
_KNOWN_ERRNO_TOKENS = frozenset(errno.errorcode.values())


class ChildStateError(RuntimeError):
    """Raised when a Child is used out of lifecycle order."""


class ExecError(Exception):
    """Base error passed to exec callbacks.

    `code`, `signal` and `killed` are always present so callers can branch
    on them without existence checks.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.code: int | str | None = None
        self.signal: str | None = None
        self.killed = False

    @property
    def message(self) -> str:
        return str(self)


class SpawnError(ExecError):
    """The native layer could not start the process."""


class CommandFailedError(ExecError):
    """The process ran but did not finish cleanly."""

    def __init__(self, stderr: str) -> None:
        super().__init__(f"Command failed: {stderr}")


class NonZeroExitError(CommandFailedError):
    pass


class KilledBySignalError(CommandFailedError):
    pass


class ExecTimeoutError(ExecError, TimeoutError):
    """Raised through the callback when the timeout policy killed the process."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Command timed out after {timeout_seconds:.3f}s")


class MaxBufferExceededError(ExecError):
    def __init__(self, stream: str, max_buffer: int) -> None:
        self.stream = stream
        self.max_buffer = max_buffer
        super().__init__(f"{stream} maxBuffer exceeded")


def native_error_token(message: str) -> str | None:
    """Return the first errno token (e.g. `ENOENT`) embedded in a message."""

    for candidate in _ERRNO_TOKEN_RE.findall(message):
        if candidate in _KNOWN_ERRNO_TOKENS:
            return candidate
    return None


def spawn_error_from_native(file: str, exc: Exception) -> SpawnError:
    """Replace a native spawn failure with a plain SpawnError.

    Only the message survives, with the errno token embedded so the code can
    be derived from it later.
    """

    errno_value = exc.errno if isinstance(exc, OSError) else None
    token = errno.errorcode.get(errno_value, "EINVAL") if errno_value is not None else "EINVAL"
    reason = (exc.strerror if isinstance(exc, OSError) else None) or str(exc)
    return normalize_error(SpawnError(f"spawn {file} {token}: {reason}"))


E = TypeVar("E", bound="ExecError")


def normalize_error(
    err: E,
    *,
    code: int | None = None,
    signal: str | None = None,
    killed: bool = False,
) -> E:
    """Attach the final exit fields to an exec error.

    With neither a code nor a signal available (a spawn failure), the code
    falls back to the errno token parsed from the message.
    """

    if code is None and signal is None:
        token = native_error_token(str(err))
        if token is not None:
            err.code = token
    else:
        err.code = code
    err.killed = killed or err.killed
    err.signal = signal
    return err
