"""Cyclopts CLI entry point for childproc."""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

from cyclopts import App, Parameter

from childproc import __version__
from childproc.cli.output import OutputConfig, emit_result, normalize_output_format
from childproc.lib.config.settings import load_config
from childproc.lib.exec import (
    ExecOptions,
    ExecResult,
    ExecTimeoutError,
    run_command,
    run_file,
)

if TYPE_CHECKING:
    from collections.abc import Sequence


TIMEOUT_EXIT_CODE = 124
ERROR_EXIT_CODE = 1

app = App(
    name="childproc",
    help="Run commands with exec-style buffering, timeouts and output limits.",
    version=__version__,
    help_formatter="plain",
)

TimeoutParam = Annotated[
    float | None,
    Parameter(name="--timeout", help="Kill the command after this many seconds."),
]
MaxBufferParam = Annotated[
    int | None,
    Parameter(name="--max-buffer", help="Kill the command once stdout or stderr exceeds N chars."),
]
KillSignalParam = Annotated[
    str | None,
    Parameter(name="--kill-signal", help="Signal sent by timeout/max-buffer kills."),
]
CwdParam = Annotated[
    str | None,
    Parameter(name="--cwd", help="Working directory for the command."),
]
EnvParam = Annotated[
    tuple[str, ...],
    Parameter(
        name="--env",
        help="Environment override as KEY=VALUE (repeatable).",
        negative_iterable=(),
    ),
]
EncodingParam = Annotated[
    str | None,
    Parameter(name="--encoding", help="Charset used to decode output and encode input."),
]
ConfigParam = Annotated[
    str | None,
    Parameter(name="--config", help="Optional TOML file with childproc defaults."),
]
JsonParam = Annotated[
    bool,
    Parameter(name="--json", help="Emit the result as one JSON object."),
]
FormatParam = Annotated[
    str | None,
    Parameter(name="--format", help="Set output format: text, json, or porcelain."),
]


def _parse_env_pairs(pairs: Sequence[str]) -> dict[str, str] | None:
    if not pairs:
        return None
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid --env value {pair!r}: expected KEY=VALUE.")
        env[key.strip()] = value
    return env


def _build_options(
    *,
    config_path: str | None,
    timeout: float | None,
    max_buffer: int | None,
    kill_signal: str | None,
    cwd: str | None,
    env: Sequence[str],
    encoding: str | None,
    shell: str | None = None,
) -> ExecOptions:
    config = load_config(Path(config_path).expanduser() if config_path else None)
    overrides: dict[str, object] = {"env": _parse_env_pairs(env)}
    if timeout is not None:
        overrides["timeout_seconds"] = timeout
    if max_buffer is not None:
        overrides["max_buffer"] = max_buffer
    if kill_signal is not None:
        overrides["kill_signal"] = kill_signal
    if cwd is not None:
        overrides["cwd"] = Path(cwd).expanduser()
    if encoding is not None:
        overrides["encoding"] = encoding
    if shell is not None:
        overrides["shell"] = shell
    return ExecOptions.from_config(config, **overrides)


def exit_code_for(result: ExecResult) -> int:
    """Map an exec result onto a shell exit status."""

    error = result.error
    if error is None:
        return 0
    if isinstance(error, ExecTimeoutError):
        return TIMEOUT_EXIT_CODE
    if isinstance(error.code, int) and not isinstance(error.code, bool) and error.code > 0:
        return error.code
    if error.signal is not None:
        try:
            return 128 + signal.Signals[error.signal].value
        except KeyError:
            return ERROR_EXIT_CODE
    return ERROR_EXIT_CODE


def _finish(result: ExecResult, *, json_mode: bool, output_format: str | None) -> None:
    resolved = normalize_output_format(requested=output_format, json_mode=json_mode)
    emit_result(result, OutputConfig(format=resolved))
    code = exit_code_for(result)
    if code:
        raise SystemExit(code)


@app.command(name="exec")
def exec_cmd(
    command: str,
    *,
    timeout: TimeoutParam = None,
    max_buffer: MaxBufferParam = None,
    kill_signal: KillSignalParam = None,
    cwd: CwdParam = None,
    env: EnvParam = (),
    encoding: EncodingParam = None,
    shell: Annotated[
        str | None,
        Parameter(name="--shell", help="Interpreter used instead of the platform shell."),
    ] = None,
    config: ConfigParam = None,
    json_mode: JsonParam = False,
    output_format: FormatParam = None,
) -> None:
    """Run COMMAND through the platform shell and buffer its output."""

    options = _build_options(
        config_path=config,
        timeout=timeout,
        max_buffer=max_buffer,
        kill_signal=kill_signal,
        cwd=cwd,
        env=env,
        encoding=encoding,
        shell=shell,
    )
    result = asyncio.run(run_command(command, options))
    _finish(result, json_mode=json_mode, output_format=output_format)


@app.command(name="exec-file")
def exec_file_cmd(
    file: str,
    *args: str,
    timeout: TimeoutParam = None,
    max_buffer: MaxBufferParam = None,
    kill_signal: KillSignalParam = None,
    cwd: CwdParam = None,
    env: EnvParam = (),
    encoding: EncodingParam = None,
    config: ConfigParam = None,
    json_mode: JsonParam = False,
    output_format: FormatParam = None,
) -> None:
    """Run FILE with ARGS directly (no shell) and buffer its output."""

    options = _build_options(
        config_path=config,
        timeout=timeout,
        max_buffer=max_buffer,
        kill_signal=kill_signal,
        cwd=cwd,
        env=env,
        encoding=encoding,
    )
    result = asyncio.run(run_file(file, args, options))
    _finish(result, json_mode=json_mode, output_format=output_format)


def _operation_error_message(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


def _extract_verbosity(argv: Sequence[str]) -> tuple[list[str], int]:
    verbosity = 0
    cleaned: list[str] = []
    passthrough = False
    for arg in argv:
        if passthrough:
            cleaned.append(arg)
            continue
        if arg == "--":
            passthrough = True
            cleaned.append(arg)
            continue
        if arg in {"-v", "--verbose"}:
            verbosity += 1
            continue
        if arg == "-vv":
            verbosity += 2
            continue
        cleaned.append(arg)
    return cleaned, verbosity


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point used by `childproc` and `python -m childproc`."""

    from childproc.lib.logging import configure_logging

    args = list(sys.argv[1:] if argv is None else argv)
    args, verbosity = _extract_verbosity(args)

    # Configure logging early so structlog output goes to stderr, not stdout.
    head = args[: args.index("--")] if "--" in args else args
    configure_logging(json_mode="--json" in head, verbosity=verbosity)

    try:
        app(args)
    except (ValueError, FileNotFoundError, OSError) as exc:
        print(f"error: {_operation_error_message(exc)}", file=sys.stderr)
        raise SystemExit(ERROR_EXIT_CODE) from None
