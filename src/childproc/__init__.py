"""Event-driven child process execution with exec-family semantics."""

from childproc.lib.exec import (
    Child,
    ChildState,
    ExecError,
    ExecOptions,
    ExecResult,
    exec_command,
    exec_file,
    run_command,
    run_file,
    spawn,
    spawn_with_args,
    spawn_with_options,
)

__version__ = "0.1.0"

__all__ = [
    "Child",
    "ChildState",
    "ExecError",
    "ExecOptions",
    "ExecResult",
    "__version__",
    "exec_command",
    "exec_file",
    "run_command",
    "run_file",
    "spawn",
    "spawn_with_args",
    "spawn_with_options",
]
