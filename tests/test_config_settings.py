"""Config loader tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from childproc.lib.config import ChildprocConfig, load_config

FIXTURE_CONFIG = Path(__file__).resolve().parent / "fixtures" / "config.toml"


@pytest.fixture(autouse=True)
def _clear_childproc_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "CHILDPROC_ENCODING",
        "CHILDPROC_KILL_SIGNAL",
        "CHILDPROC_TIMEOUT_SECONDS",
        "CHILDPROC_MAX_BUFFER",
        "CHILDPROC_READ_CHUNK_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_file() -> None:
    assert load_config() == ChildprocConfig()


def test_sectioned_toml_is_loaded() -> None:
    config = load_config(FIXTURE_CONFIG)

    assert config == ChildprocConfig(
        default_encoding="utf-8",
        default_kill_signal="SIGINT",
        default_timeout_seconds=2.5,
        default_max_buffer=4096,
        read_chunk_size=512,
    )


def test_top_level_keys_and_unknown_keys(tmp_path: Path) -> None:
    path = tmp_path / "childproc.toml"
    path.write_text(
        'default_kill_signal = "SIGKILL"\nmystery = 1\n\n[limits]\nmax_buffer = 12\nother = 3\n',
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.default_kill_signal == "SIGKILL"
    assert config.default_max_buffer == 12


def test_env_overrides_win_over_file(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHILDPROC_TIMEOUT_SECONDS", "0.75")
    monkeypatch.setenv("CHILDPROC_MAX_BUFFER", "64")
    monkeypatch.setenv("CHILDPROC_ENCODING", "latin-1")

    config = load_config(FIXTURE_CONFIG)

    assert config.default_timeout_seconds == 0.75
    assert config.default_max_buffer == 64
    assert config.default_encoding == "iso8859-1"
    assert config.default_kill_signal == "SIGINT"


def test_missing_explicit_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.toml")


@pytest.mark.parametrize(
    "payload",
    [
        pytest.param("[limits]\nmax_buffer = 0\n", id="non-positive-int"),
        pytest.param("[limits]\ntimeout_seconds = \"soon\"\n", id="non-numeric-timeout"),
        pytest.param("[limits]\nmax_buffer = true\n", id="bool-as-int"),
        pytest.param("[defaults]\nencoding = \"no-such-charset\"\n", id="unknown-encoding"),
        pytest.param("limits = 5\n", id="section-not-table"),
    ],
)
def test_invalid_file_values_raise(tmp_path: Path, payload: str) -> None:
    path = tmp_path / "childproc.toml"
    path.write_text(payload, encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(path)


@pytest.mark.parametrize(
    ("name", "value"),
    [
        pytest.param("CHILDPROC_MAX_BUFFER", "lots", id="non-int"),
        pytest.param("CHILDPROC_TIMEOUT_SECONDS", "-1", id="negative"),
        pytest.param("CHILDPROC_KILL_SIGNAL", " ", id="blank"),
    ],
)
def test_invalid_env_overrides_raise(
    monkeypatch: pytest.MonkeyPatch,
    name: str,
    value: str,
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        load_config()
