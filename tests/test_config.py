from __future__ import annotations

import sys
from pathlib import Path

import pytest

from deploy_tunnel.config import BUNDLED_ADAPTERS_PATH, DEFAULT_TIMEOUT_SECONDS, load_settings, parse_timeout


@pytest.fixture()
def isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("deploy_tunnel.config._discover_project_root", lambda: None)
    return tmp_path


def test_defaults_without_config(isolated_cwd):
    settings = load_settings(env={})

    assert settings.adapters_path == BUNDLED_ADAPTERS_PATH
    assert settings.timeout == DEFAULT_TIMEOUT_SECONDS
    assert settings.python_executable == sys.executable
    assert settings.bun_executable == "bun"
    assert settings.source_path is None


def test_strict_mode_requires_a_file(isolated_cwd):
    with pytest.raises(FileNotFoundError):
        load_settings(strict=True, env={})


def test_project_config_resolves_relative_adapters_path(isolated_cwd):
    config_dir = isolated_cwd / ".deploy-tunnel"
    config_dir.mkdir()
    (config_dir / "config.toml").write_text('[bridge]\nadapters_path = "tools/adapters"\ntimeout = 12\nbun_executable = "/usr/local/bin/bun"\n', encoding="utf-8")

    settings = load_settings(env={})

    assert settings.adapters_path == isolated_cwd / "tools" / "adapters"
    assert settings.timeout == 12.0
    assert settings.bun_executable == "/usr/local/bin/bun"
    assert settings.source_path == config_dir / "config.toml"


def test_explicit_config_file_wins(isolated_cwd, tmp_path):
    custom = tmp_path / "custom.toml"
    custom.write_text('[bridge]\nadapters_path = "adapters"\ntimeout = 5\n', encoding="utf-8")
    config_dir = isolated_cwd / ".deploy-tunnel"
    config_dir.mkdir()
    (config_dir / "config.toml").write_text("[bridge]\ntimeout = 99\n", encoding="utf-8")

    settings = load_settings(env={"DEPLOY_TUNNEL_CONFIG": str(custom)})

    assert settings.timeout == 5.0
    assert settings.adapters_path == tmp_path / "adapters"
    assert settings.source_path == custom


def test_environment_overrides_file(isolated_cwd, tmp_path):
    config_dir = isolated_cwd / ".deploy-tunnel"
    config_dir.mkdir()
    (config_dir / "config.toml").write_text("[bridge]\ntimeout = 12\n", encoding="utf-8")

    settings = load_settings(env={"DEPLOY_TUNNEL_TIMEOUT": "3.5", "DEPLOY_TUNNEL_ADAPTERS_PATH": str(tmp_path / "elsewhere")})

    assert settings.timeout == 3.5
    assert settings.adapters_path == tmp_path / "elsewhere"


def test_invalid_timeouts_fall_back(isolated_cwd):
    config_dir = isolated_cwd / ".deploy-tunnel"
    config_dir.mkdir()
    (config_dir / "config.toml").write_text("[bridge]\ntimeout = -1\n", encoding="utf-8")

    settings = load_settings(env={"DEPLOY_TUNNEL_TIMEOUT": "soon"})

    assert settings.timeout == DEFAULT_TIMEOUT_SECONDS


@pytest.mark.parametrize(
    ("value", "expected"),
    [(10, 10.0), ("2.5", 2.5), (0, 30.0), ("abc", 30.0), (True, 30.0), (None, 30.0)],
)
def test_parse_timeout(value, expected):
    assert parse_timeout(value) == expected


def test_bundled_adapters_path_contains_vercel():
    assert (BUNDLED_ADAPTERS_PATH / "vercel" / "index.py").is_file()
    assert isinstance(BUNDLED_ADAPTERS_PATH, Path)
