"""Shared pytest fixtures for child process tests."""

from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

import childproc.lib.exec.native as native_module
from childproc.lib.exec.native import NativeRequest

if TYPE_CHECKING:
    from collections.abc import Callable

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@dataclass(frozen=True, slots=True)
class CliResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


@dataclass
class FakeHandle:
    """Native handle double driven directly by tests."""

    request: NativeRequest
    pid: int = 4242
    kills: list[str] = field(default_factory=list)

    def kill(self, signal_name: str) -> None:
        self.kills.append(signal_name)

    def stdout(self, chunk: str) -> None:
        self.request.on_stdout(chunk)

    def stderr(self, chunk: str) -> None:
        self.request.on_stderr(chunk)

    def done(self, exit_code: int) -> None:
        self.request.on_done(exit_code)


class FakeNative:
    """Replacement for `native.start` recording every spawn request."""

    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []
        self.requests: list[NativeRequest] = []
        self.fail_with: OSError | None = None

    async def start(self, request: NativeRequest) -> FakeHandle:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        handle = FakeHandle(request=request, pid=4242 + len(self.handles))
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> FakeHandle:
        return self.handles[-1]


@pytest.fixture
def package_root() -> Path:
    return PACKAGE_ROOT


@pytest.fixture
def fixture_script() -> Callable[[str], str]:
    def _resolve(name: str) -> str:
        path = FIXTURES_DIR / f"{name}.py"
        assert path.is_file(), path
        return str(path)

    return _resolve


@pytest.fixture
def fake_native(monkeypatch: pytest.MonkeyPatch) -> FakeNative:
    fake = FakeNative()
    monkeypatch.setattr(native_module, "start", fake.start)
    return fake


@pytest.fixture
def cli_env(package_root: Path) -> dict[str, str]:
    env = os.environ.copy()
    existing = env.get("PYTHONPATH", "")
    root = str(package_root / "src")
    env["PYTHONPATH"] = root if not existing else f"{root}{os.pathsep}{existing}"
    for name in list(env):
        if name.startswith("CHILDPROC_"):
            del env[name]
    return env


@pytest.fixture
def run_childproc(package_root: Path, cli_env: dict[str, str]) -> Callable[..., CliResult]:
    def _run(args: list[str], timeout: float = 15.0) -> CliResult:
        completed = subprocess.run(
            [sys.executable, "-m", "childproc", *args],
            cwd=package_root,
            env=cli_env,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
        return CliResult(
            args=tuple(args),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

    return _run
