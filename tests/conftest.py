from __future__ import annotations

import json
import os
import stat
import sys
import textwrap
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import pytest
from typer.testing import CliRunner

from deploy_tunnel.bridge import BridgeClient, BridgeEngine
from deploy_tunnel.core.logging import configure_logging

SRC_DIR = Path(__file__).resolve().parents[1] / "src"

ECHO_ADAPTER = """
import json
import sys

raw = sys.stdin.read()
params = json.loads(raw) if raw.strip() else None
envelope = {"ok": True, "data": {"verb": sys.argv[1], "params": params, "raw": raw}, "adapter_version": "echo-1"}
sys.stdout.write(json.dumps(envelope) + "\\n")
"""


@pytest.fixture(scope="session", autouse=True)
def bridge_logging() -> None:
    # Bind the stderr handler before any CliRunner swaps the process streams.
    configure_logging()


@pytest.fixture()
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def adapters_root(tmp_path: Path) -> Path:
    root = tmp_path / "adapters"
    root.mkdir()
    return root


@pytest.fixture()
def make_adapter(adapters_root: Path) -> Callable[..., Path]:
    """Write a Python ``index.py`` adapter stub under the temporary adapters root."""

    def _make(provider: str, source: str, *, filename: str = "index.py", executable: bool = False) -> Path:
        adapter_dir = adapters_root / provider
        adapter_dir.mkdir(parents=True, exist_ok=True)
        entry = adapter_dir / filename
        entry.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
        if executable:
            entry.chmod(entry.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return entry

    return _make


@pytest.fixture()
def static_adapter(make_adapter: Callable[..., Path]) -> Callable[..., Path]:
    """Write an adapter that ignores its input and prints ``envelope`` (or raw text) once."""

    def _make(provider: str, envelope: Any, *, stderr: str = "", exit_code: int = 0) -> Path:
        output = envelope if isinstance(envelope, str) else json.dumps(envelope) + "\n"
        source = f"""
        import sys

        sys.stdin.read()
        sys.stderr.write({stderr!r})
        sys.stdout.write({output!r})
        sys.stdout.flush()
        sys.exit({exit_code})
        """
        return make_adapter(provider, source)

    return _make


@pytest.fixture()
def echo_adapter(make_adapter: Callable[..., Path]) -> Callable[[str], Path]:
    def _make(provider: str = "echo") -> Path:
        return make_adapter(provider, ECHO_ADAPTER)

    return _make


@pytest.fixture()
def engine(adapters_root: Path) -> BridgeEngine:
    return BridgeEngine(adapters_path=adapters_root, timeout=10)


@pytest.fixture()
def client(engine: BridgeEngine) -> BridgeClient:
    return BridgeClient(engine=engine)


@pytest.fixture()
def src_on_pythonpath(monkeypatch: pytest.MonkeyPatch) -> None:
    """Let bundled adapters spawned as child processes import the package from the source tree."""

    existing = os.environ.get("PYTHONPATH")
    monkeypatch.setenv("PYTHONPATH", os.pathsep.join(filter(None, [str(SRC_DIR), existing])))


def envelope_ok(data: Optional[Mapping[str, Any]] = None, version: str = "1.0.0") -> dict:
    payload: dict = {"ok": True, "adapter_version": version}
    if data is not None:
        payload["data"] = dict(data)
    return payload


def envelope_error(code: str, message: str, *, recoverable: bool = False, version: str = "1.0.0", **extra: Any) -> dict:
    error = {"code": code, "message": message, "recoverable": recoverable, **extra}
    return {"ok": False, "error": error, "adapter_version": version}


POSIX_ONLY = pytest.mark.skipif(sys.platform == "win32", reason="requires POSIX process groups and executable bits")
