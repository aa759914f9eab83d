"""Immutable option and request values for spawning child processes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType

from childproc.lib.config.settings import ChildprocConfig, normalize_encoding

_DEFAULT_CONFIG = ChildprocConfig()


@dataclass(frozen=True, slots=True)
class ExecOptions:
    """Per-call execution options.

    `env` is merged over the inherited environment; `None` inherits it
    unchanged. `timeout_seconds` and `max_buffer` only apply to the buffering
    exec layer.
    """

    cwd: str | Path | None = None
    env: Mapping[str, str] | None = None
    encoding: str = _DEFAULT_CONFIG.default_encoding
    timeout_seconds: float | None = _DEFAULT_CONFIG.default_timeout_seconds
    max_buffer: int | None = _DEFAULT_CONFIG.default_max_buffer
    kill_signal: str = _DEFAULT_CONFIG.default_kill_signal
    shell: str | None = None
    read_chunk_size: int = _DEFAULT_CONFIG.read_chunk_size

    def __post_init__(self) -> None:
        object.__setattr__(self, "encoding", normalize_encoding(self.encoding))
        if self.env is not None:
            object.__setattr__(self, "env", MappingProxyType(dict(self.env)))
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0 when provided.")
        if self.max_buffer is not None and self.max_buffer <= 0:
            raise ValueError("max_buffer must be > 0 when provided.")
        if self.read_chunk_size <= 0:
            raise ValueError("read_chunk_size must be > 0.")
        if not self.kill_signal.strip():
            raise ValueError("kill_signal must be a non-empty signal name.")

    @classmethod
    def from_config(cls, config: ChildprocConfig, **overrides: object) -> ExecOptions:
        """Build options whose unset fields come from a loaded config."""

        base = cls(
            encoding=config.default_encoding,
            timeout_seconds=config.default_timeout_seconds,
            max_buffer=config.default_max_buffer,
            kill_signal=config.default_kill_signal,
            read_chunk_size=config.read_chunk_size,
        )
        return replace(base, **overrides)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class SpawnRequest:
    """Everything a Child needs to start one process."""

    file: str
    args: tuple[str, ...] = ()
    options: ExecOptions = field(default_factory=ExecOptions)

    def __post_init__(self) -> None:
        if not self.file:
            raise ValueError("Cannot spawn process: file is empty.")


def build_request(
    file: str,
    args: Sequence[str] = (),
    options: ExecOptions | None = None,
) -> SpawnRequest:
    if isinstance(args, str):
        raise TypeError("args must be a sequence of strings, not a single string.")
    return SpawnRequest(
        file=file,
        args=tuple(str(arg) for arg in args),
        options=options or ExecOptions(),
    )


def normalize_env(env: Mapping[str, str] | None) -> tuple[str, ...] | None:
    """Flatten an env mapping into ordered `KEY=VALUE` entries."""

    if env is None:
        return None
    return tuple(f"{key}={value}" for key, value in env.items())
