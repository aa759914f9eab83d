"""Operational defaults loader for child process execution."""

from __future__ import annotations

import codecs
import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import cast

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChildprocConfig:
    """Resolved defaults applied when exec options leave a field unset."""

    default_encoding: str = "utf-8"
    default_kill_signal: str = "SIGTERM"
    default_timeout_seconds: float | None = None
    default_max_buffer: int | None = None
    read_chunk_size: int = 1024


_SECTION_KEY_MAP: dict[str, dict[str, str]] = {
    "defaults": {
        "encoding": "default_encoding",
        "kill_signal": "default_kill_signal",
    },
    "limits": {
        "timeout_seconds": "default_timeout_seconds",
        "max_buffer": "default_max_buffer",
    },
    "io": {
        "read_chunk_size": "read_chunk_size",
    },
}

_TOP_LEVEL_KEY_MAP: dict[str, str] = {
    field.name: field.name for field in fields(ChildprocConfig)
}

_ENV_OVERRIDE_MAP: dict[str, str] = {
    "CHILDPROC_ENCODING": "default_encoding",
    "CHILDPROC_KILL_SIGNAL": "default_kill_signal",
    "CHILDPROC_TIMEOUT_SECONDS": "default_timeout_seconds",
    "CHILDPROC_MAX_BUFFER": "default_max_buffer",
    "CHILDPROC_READ_CHUNK_SIZE": "read_chunk_size",
}

_INT_FIELDS = frozenset({"default_max_buffer", "read_chunk_size"})
_FLOAT_FIELDS = frozenset({"default_timeout_seconds"})


def normalize_encoding(name: str) -> str:
    """Return the canonical codec name, so `UTF8` and `utf_8` become `utf-8`."""

    normalized = name.strip()
    if not normalized:
        raise ValueError("Invalid encoding: expected non-empty charset name.")
    try:
        return codecs.lookup(normalized).name
    except LookupError as error:
        raise ValueError(f"Invalid encoding: unknown charset {name!r}.") from error


def _expected_type_name(field_name: str) -> str:
    if field_name in _INT_FIELDS:
        return "int"
    if field_name in _FLOAT_FIELDS:
        return "float"
    return "str"


def _check_positive(*, value: int | float, source: str) -> None:
    if value <= 0:
        raise ValueError(f"Invalid value for '{source}': expected > 0, got {value!r}.")


def _coerce_file_value(*, field_name: str, raw_value: object, source: str) -> object:
    expected = _expected_type_name(field_name)
    if expected == "int":
        if isinstance(raw_value, bool) or not isinstance(raw_value, int):
            raise ValueError(
                f"Invalid value for '{source}': expected int, got "
                f"{type(raw_value).__name__} ({raw_value!r})."
            )
        _check_positive(value=raw_value, source=source)
        return raw_value

    if expected == "float":
        if isinstance(raw_value, bool) or not isinstance(raw_value, int | float):
            raise ValueError(
                f"Invalid value for '{source}': expected float, got "
                f"{type(raw_value).__name__} ({raw_value!r})."
            )
        _check_positive(value=raw_value, source=source)
        return float(raw_value)

    if not isinstance(raw_value, str):
        raise ValueError(
            f"Invalid value for '{source}': expected str, got "
            f"{type(raw_value).__name__} ({raw_value!r})."
        )
    normalized = raw_value.strip()
    if not normalized:
        raise ValueError(f"Invalid value for '{source}': expected non-empty string.")
    if field_name == "default_encoding":
        return normalize_encoding(normalized)
    return normalized


def _coerce_env_value(*, field_name: str, raw_value: str, env_name: str) -> object:
    expected = _expected_type_name(field_name)
    if expected == "int":
        try:
            value: int | float = int(raw_value.strip())
        except ValueError as error:
            raise ValueError(
                f"Invalid environment override '{env_name}': expected int, got {raw_value!r}."
            ) from error
        _check_positive(value=value, source=env_name)
        return value

    if expected == "float":
        try:
            value = float(raw_value.strip())
        except ValueError as error:
            raise ValueError(
                f"Invalid environment override '{env_name}': expected float, got {raw_value!r}."
            ) from error
        _check_positive(value=value, source=env_name)
        return value

    normalized = raw_value.strip()
    if not normalized:
        raise ValueError(
            f"Invalid environment override '{env_name}': expected non-empty string."
        )
    if field_name == "default_encoding":
        return normalize_encoding(normalized)
    return normalized


def _default_values() -> dict[str, object]:
    defaults = ChildprocConfig()
    return {field.name: getattr(defaults, field.name) for field in fields(ChildprocConfig)}


def _apply_toml_payload(
    *,
    values: dict[str, object],
    payload: dict[str, object],
    path: Path,
) -> None:
    for key, raw_value in payload.items():
        section_map = _SECTION_KEY_MAP.get(key)
        if section_map is not None:
            if not isinstance(raw_value, dict):
                raise ValueError(f"Invalid value for '{key}' in '{path}': expected table.")
            for section_key, section_value in cast("dict[str, object]", raw_value).items():
                field_name = section_map.get(section_key)
                if field_name is None:
                    logger.warning(
                        "Ignoring unknown childproc config key '%s.%s'.",
                        key,
                        section_key,
                    )
                    continue
                values[field_name] = _coerce_file_value(
                    field_name=field_name,
                    raw_value=section_value,
                    source=f"{key}.{section_key}",
                )
            continue

        field_name = _TOP_LEVEL_KEY_MAP.get(key)
        if field_name is None:
            logger.warning("Ignoring unknown childproc config key '%s'.", key)
            continue
        values[field_name] = _coerce_file_value(
            field_name=field_name,
            raw_value=raw_value,
            source=key,
        )


def _apply_env_overrides(values: dict[str, object]) -> None:
    for env_name, field_name in _ENV_OVERRIDE_MAP.items():
        raw_value = os.getenv(env_name)
        if raw_value is None:
            continue
        values[field_name] = _coerce_env_value(
            field_name=field_name,
            raw_value=raw_value,
            env_name=env_name,
        )


def _build_config(values: dict[str, object]) -> ChildprocConfig:
    return ChildprocConfig(
        default_encoding=cast("str", values["default_encoding"]),
        default_kill_signal=cast("str", values["default_kill_signal"]),
        default_timeout_seconds=cast("float | None", values["default_timeout_seconds"]),
        default_max_buffer=cast("int | None", values["default_max_buffer"]),
        read_chunk_size=cast("int", values["read_chunk_size"]),
    )


def load_config(path: Path | None = None) -> ChildprocConfig:
    """Load an optional TOML config file and apply `CHILDPROC_*` overrides."""

    values = _default_values()
    if path is not None:
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
        payload_obj = tomllib.loads(path.read_text(encoding="utf-8"))
        payload = cast("dict[str, object]", payload_obj)
        _apply_toml_payload(values=values, payload=payload, path=path)

    _apply_env_overrides(values)
    return _build_config(values)
