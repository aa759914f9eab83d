"""CLI output formatting for exec results."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Literal, TextIO, TypeAlias, cast

from childproc.lib.exec import ExecResult

OutputFormat = Literal["text", "json", "porcelain"]
JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


@dataclass(frozen=True, slots=True)
class OutputConfig:
    format: OutputFormat


def normalize_output_format(*, requested: str | None, json_mode: bool) -> OutputFormat:
    if json_mode:
        return "json"
    if requested is None or requested == "":
        return "text"

    normalized = requested.strip().lower()
    if normalized in {"text", "json", "porcelain"}:
        return cast("OutputFormat", normalized)
    raise SystemExit("--format must be one of: text, json, porcelain")


def result_payload(result: ExecResult) -> dict[str, JSONValue]:
    error = result.error
    return {
        "ok": result.ok,
        "code": error.code if error is not None else 0,
        "signal": error.signal if error is not None else None,
        "killed": error.killed if error is not None else False,
        "error": str(error) if error is not None else None,
        "error_type": type(error).__name__ if error is not None else None,
        "stdout": result.stdout,
        "stderr": result.stderr,
    }


def _porcelain_value(value: JSONValue) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    if isinstance(value, str):
        return json.dumps(value)
    return str(value)


def _porcelain_line(payload: dict[str, JSONValue]) -> str:
    return "\t".join(f"{key}={_porcelain_value(payload[key])}" for key in sorted(payload))


def emit_result(
    result: ExecResult,
    config: OutputConfig,
    *,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> None:
    """Write one exec result in the configured output mode.

    Text mode relays the child's streams unchanged; the other modes write a
    single record to stdout.
    """

    out = stdout or sys.stdout
    err = stderr or sys.stderr
    if config.format == "json":
        out.write(json.dumps(result_payload(result), sort_keys=True) + "\n")
        return
    if config.format == "porcelain":
        out.write(_porcelain_line(result_payload(result)) + "\n")
        return

    out.write(result.stdout)
    out.flush()
    err.write(result.stderr)
    if result.error is not None and not result.stderr.strip():
        err.write(f"error: {result.error}\n")
    err.flush()
