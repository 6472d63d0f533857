"""
Settings shared by the controller and the CLI.

Settings are loaded from ``.deploy-tunnel/config.toml`` by default. The lookup order is:

1. Explicit ``DEPLOY_TUNNEL_CONFIG`` environment variable.
2. Project-relative ``.deploy-tunnel/config.toml`` (from CWD, then the project root).
3. Built-in defaults.

The ``[bridge]`` table may define ``adapters_path``, ``timeout``,
``python_executable`` and ``bun_executable``. ``DEPLOY_TUNNEL_ADAPTERS_PATH``
and ``DEPLOY_TUNNEL_TIMEOUT`` override the file. Call :func:`load_settings` to
retrieve a :class:`BridgeSettings` instance.
"""

from __future__ import annotations

import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_BUN_EXECUTABLE = "bun"
BUNDLED_ADAPTERS_PATH = Path(__file__).resolve().parent / "adapters"

_ENV_CONFIG = "DEPLOY_TUNNEL_CONFIG"
_ENV_ADAPTERS_PATH = "DEPLOY_TUNNEL_ADAPTERS_PATH"
_ENV_TIMEOUT = "DEPLOY_TUNNEL_TIMEOUT"


@dataclass(slots=True)
class BridgeSettings:
    """
    Runtime configuration of the bridge engine.

    Attributes
    ----------
    adapters_path:
        Root directory holding one sub-directory per provider adapter.
    timeout:
        Deadline in seconds applied to every adapter invocation.
    python_executable:
        Interpreter used to launch ``index.py`` adapters.
    bun_executable:
        Runtime used to launch ``index.ts`` adapters.
    source_path:
        Configuration file the settings were read from, if any.
    """

    adapters_path: Path = BUNDLED_ADAPTERS_PATH
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    python_executable: str = field(default_factory=lambda: sys.executable)
    bun_executable: str = DEFAULT_BUN_EXECUTABLE
    source_path: Optional[Path] = None


def parse_timeout(value: Any, default: float = DEFAULT_TIMEOUT_SECONDS) -> float:
    """Return ``value`` as a positive number of seconds, or ``default`` when unusable."""

    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def _discover_project_root() -> Optional[Path]:
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").is_file():
            return parent
    return None


def _candidate_paths(env: Mapping[str, str]) -> Iterable[Path]:
    env_override = env.get(_ENV_CONFIG)
    if env_override:
        yield Path(env_override).expanduser()

    roots = [Path.cwd()]
    project_root = _discover_project_root()
    if project_root and project_root not in roots:
        roots.append(project_root)
    for base in roots:
        yield base / ".deploy-tunnel" / "config.toml"


def _load_toml(path: Path) -> Dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _string_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _settings_from_section(section: Mapping[str, Any], *, base_dir: Optional[Path]) -> BridgeSettings:
    settings = BridgeSettings()
    adapters_path = _string_or_none(section.get("adapters_path"))
    if adapters_path:
        resolved = Path(adapters_path).expanduser()
        if not resolved.is_absolute() and base_dir is not None:
            resolved = base_dir / resolved
        settings.adapters_path = resolved
    settings.timeout = parse_timeout(section.get("timeout"))
    settings.python_executable = _string_or_none(section.get("python_executable")) or settings.python_executable
    settings.bun_executable = _string_or_none(section.get("bun_executable")) or settings.bun_executable
    return settings


def load_settings(strict: bool = False, *, env: Optional[Mapping[str, str]] = None) -> BridgeSettings:
    """
    Load bridge settings from the configured locations.

    Parameters
    ----------
    strict:
        When ``True`` the function raises ``FileNotFoundError`` if no
        configuration file is discovered. Defaults to ``False`` so the bundled
        adapters work out of the box.
    env:
        Optional environment mapping; defaults to :data:`os.environ`.
    """

    env_map: Mapping[str, str] = os.environ if env is None else env
    settings: Optional[BridgeSettings] = None
    for path in _candidate_paths(env_map):
        if path.is_file():
            raw = _load_toml(path)
            section = raw.get("bridge", {})
            if not isinstance(section, Mapping):
                section = {}
            # Relative adapter roots resolve against the project directory, not ``.deploy-tunnel`` itself.
            base_dir = path.parent.parent if path.parent.name == ".deploy-tunnel" else path.parent
            settings = _settings_from_section(section, base_dir=base_dir)
            settings.source_path = path
            break

    if settings is None:
        if strict:
            raise FileNotFoundError("No configuration file found. Configure DEPLOY_TUNNEL_CONFIG or .deploy-tunnel/config.toml.")
        settings = BridgeSettings()

    adapters_override = _string_or_none(env_map.get(_ENV_ADAPTERS_PATH))
    if adapters_override:
        settings.adapters_path = Path(adapters_override).expanduser()
    timeout_override = env_map.get(_ENV_TIMEOUT)
    if timeout_override:
        settings.timeout = parse_timeout(timeout_override, default=settings.timeout)
    return settings


__all__ = ["BUNDLED_ADAPTERS_PATH", "BridgeSettings", "DEFAULT_TIMEOUT_SECONDS", "load_settings", "parse_timeout"]
