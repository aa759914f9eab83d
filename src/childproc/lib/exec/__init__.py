"""Child process execution primitives."""

from childproc.lib.exec.api import (
    ExecCallback,
    ExecResult,
    exec_command,
    exec_file,
    run_command,
    run_file,
    shell_invocation,
    spawn,
    spawn_with_args,
    spawn_with_options,
)
from childproc.lib.exec.child import Child, ChildState
from childproc.lib.exec.errors import (
    ChildStateError,
    CommandFailedError,
    ExecError,
    ExecTimeoutError,
    KilledBySignalError,
    MaxBufferExceededError,
    NonZeroExitError,
    SpawnError,
    normalize_error,
)
from childproc.lib.exec.options import ExecOptions, SpawnRequest, normalize_env

__all__ = [
    "Child",
    "ChildState",
    "ChildStateError",
    "CommandFailedError",
    "ExecCallback",
    "ExecError",
    "ExecOptions",
    "ExecResult",
    "ExecTimeoutError",
    "KilledBySignalError",
    "MaxBufferExceededError",
    "NonZeroExitError",
    "SpawnError",
    "SpawnRequest",
    "exec_command",
    "exec_file",
    "normalize_env",
    "normalize_error",
    "run_command",
    "run_file",
    "shell_invocation",
    "spawn",
    "spawn_with_args",
    "spawn_with_options",
]
