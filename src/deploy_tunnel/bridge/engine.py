"""
Execution engine owning the controller side of the process boundary.

Every call follows the same lifecycle: resolve the provider's adapter entry
point, spawn exactly one child process with the verb as argument and the JSON
parameters on standard input, wait for it under a single deadline, then parse
its standard output into a :class:`~deploy_tunnel.bridge.envelope.ResponseEnvelope`.

The engine keeps no per-call state on the instance, so one engine can serve
concurrent calls from several threads. It never retries: retry policy belongs
to callers (see :mod:`deploy_tunnel.bridge.retry`).
"""

from __future__ import annotations

import json
import os
import signal
import subprocess
import sys
import time
from dataclasses import dataclass, field
from logging import LoggerAdapter
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from ..config import BUNDLED_ADAPTERS_PATH, DEFAULT_BUN_EXECUTABLE, DEFAULT_TIMEOUT_SECONDS, BridgeSettings
from ..core.logging import get_logger
from .codec import encode_record
from .envelope import ResponseEnvelope, parse_envelope
from .errors import (
    AdapterCrashError,
    AdapterLaunchError,
    AdapterNotFoundError,
    AdapterTimeoutError,
    MalformedResponseError,
    UnknownVerbError,
)
from .schema import Provider, Verb, is_valid_provider_id, provider_id

# Searched in order inside ``<adapters_path>/<provider>/``.
ADAPTER_ENTRY_POINTS: Tuple[Tuple[str, str], ...] = (
    ("index.py", "python"),
    ("index.ts", "bun"),
    ("index", "executable"),
)

# Time allowed for pipes to drain once a timed-out process group has been killed.
_KILL_GRACE_SECONDS = 5.0


@dataclass(slots=True, frozen=True)
class AdapterLaunch:
    """Resolved command line for one provider adapter."""

    provider: str
    entry_point: Path
    command: Tuple[str, ...]

    def argv(self, verb: str) -> list[str]:
        return [*self.command, verb]


@dataclass(slots=True)
class _Completed:
    exit_code: int
    stdout: str
    stderr: str


@dataclass(slots=True)
class BridgeEngine:
    """
    Spawn adapters and translate their output into envelopes or errors.

    Parameters
    ----------
    adapters_path:
        Root directory holding one sub-directory per provider.
    timeout:
        Deadline in seconds for each invocation.
    python_executable:
        Interpreter used for ``index.py`` entry points.
    bun_executable:
        Runtime used for ``index.ts`` entry points.
    """

    adapters_path: Path = BUNDLED_ADAPTERS_PATH
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    python_executable: str = field(default_factory=lambda: sys.executable)
    bun_executable: str = DEFAULT_BUN_EXECUTABLE
    logger: LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.adapters_path = Path(self.adapters_path)
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        self.logger = get_logger(self.__class__.__name__, extra={"adapters_path": str(self.adapters_path)})

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> "BridgeEngine":
        return cls(
            adapters_path=settings.adapters_path,
            timeout=settings.timeout,
            python_executable=settings.python_executable,
            bun_executable=settings.bun_executable,
        )

    def resolve_adapter(self, provider: Provider | str) -> AdapterLaunch:
        """
        Compute the command line for ``provider`` without spawning anything.

        Raises
        ------
        AdapterNotFoundError
            When the identifier is not a valid directory name or no entry
            point exists under the adapters root.
        """

        name = provider_id(provider)
        adapter_dir = self.adapters_path / name
        if not is_valid_provider_id(name):
            raise AdapterNotFoundError(name, str(adapter_dir))

        for filename, launcher in ADAPTER_ENTRY_POINTS:
            candidate = adapter_dir / filename
            if candidate.is_file():
                return AdapterLaunch(provider=name, entry_point=candidate, command=self._launcher_command(launcher, candidate))
        raise AdapterNotFoundError(name, str(adapter_dir))

    def _launcher_command(self, launcher: str, entry_point: Path) -> Tuple[str, ...]:
        if launcher == "python":
            return (self.python_executable, str(entry_point))
        if launcher == "bun":
            return (self.bun_executable, "run", str(entry_point))
        return (str(entry_point),)

    def execute(
        self,
        provider: Provider | str,
        verb: Verb | str,
        params: Optional[Any] = None,
    ) -> ResponseEnvelope:
        """
        Run one verb against one provider adapter.

        Parameters
        ----------
        provider:
            Provider identifier selecting the adapter.
        verb:
            Command from the closed vocabulary.
        params:
            A schema record, a plain mapping, or ``None`` for no parameters.

        Returns
        -------
        ResponseEnvelope
            The successful envelope. ``data`` is left untyped.

        Raises
        ------
        UnknownVerbError, AdapterNotFoundError
            Before any process is spawned.
        AdapterTimeoutError, AdapterCrashError, AdapterLaunchError
            Process-level failures, as :class:`BridgeError` subclasses.
        MalformedResponseError
            When standard output is not a valid envelope.
        BridgeError
            The adapter-reported error when the envelope has ``ok: false``.
        """

        resolved_verb = Verb.lookup(verb)
        if resolved_verb is None:
            raise UnknownVerbError(str(verb))
        launch = self.resolve_adapter(provider)
        payload = self._serialize_params(params)

        call_extra = {"provider": launch.provider, "verb": resolved_verb.value}
        self.logger.debug("Dispatching adapter command", extra={**call_extra, "command": list(launch.command)})
        started = time.monotonic()
        completed = self._run(launch, resolved_verb.value, payload)
        duration = time.monotonic() - started

        try:
            envelope = parse_envelope(completed.stdout, stderr=completed.stderr)
        except MalformedResponseError as exc:
            if completed.exit_code != 0:
                self.logger.error(
                    "Adapter crashed before responding",
                    extra={**call_extra, "exit_code": completed.exit_code, "duration": duration, "stderr": completed.stderr.strip()},
                )
                raise AdapterCrashError(launch.provider, resolved_verb.value, completed.exit_code, completed.stderr) from exc
            self.logger.error(
                "Adapter returned a malformed response",
                extra={**call_extra, "duration": duration, "error": exc.reason},
            )
            raise

        log_extra = {**call_extra, "exit_code": completed.exit_code, "duration": duration, "adapter_version": envelope.adapter_version}
        if envelope.error is not None:
            self.logger.warning(
                "Adapter reported an error",
                extra={**log_extra, "code": envelope.error.code.value, "recoverable": envelope.error.recoverable},
            )
            raise envelope.error
        self.logger.info("Adapter command succeeded", extra={**log_extra, "status": "ok"})
        return envelope

    @staticmethod
    def _serialize_params(params: Optional[Any]) -> str:
        if params is None:
            return ""
        if isinstance(params, Mapping):
            wire = dict(params)
        else:
            wire = encode_record(params)
        return json.dumps(wire, ensure_ascii=False)

    def _run(self, launch: AdapterLaunch, verb: str, payload: str) -> _Completed:
        argv = launch.argv(verb)
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                **_process_group_kwargs(),
            )
        except OSError as exc:
            self.logger.error("Failed to launch adapter", extra={"provider": launch.provider, "verb": verb, "error": str(exc)})
            raise AdapterLaunchError(launch.provider, argv, exc) from exc

        try:
            stdout, stderr = proc.communicate(input=payload, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            stderr = self._terminate(proc)
            self.logger.error(
                "Adapter command timed out",
                extra={"provider": launch.provider, "verb": verb, "timeout": self.timeout},
            )
            raise AdapterTimeoutError(launch.provider, verb, self.timeout, stderr=stderr) from None
        except BaseException:
            self._terminate(proc)
            raise
        return _Completed(exit_code=proc.returncode, stdout=stdout or "", stderr=stderr or "")

    def _terminate(self, proc: subprocess.Popen[str]) -> str:
        """Kill the adapter and everything it spawned, drain the pipes and reap it."""

        _kill_process_group(proc)
        try:
            _, stderr = proc.communicate(timeout=_KILL_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            # A descendant escaped the process group and still holds a pipe open.
            self.logger.warning("Adapter pipes did not close after kill", extra={"pid": proc.pid})
            for stream in (proc.stdin, proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()
            proc.wait()
            return ""
        return stderr or ""


def _process_group_kwargs() -> dict[str, Any]:
    if os.name == "nt":
        return {"creationflags": int(getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0))}
    return {"start_new_session": True}


def _kill_process_group(proc: subprocess.Popen[str]) -> None:
    if os.name == "nt":
        if proc.poll() is None:
            proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        proc.kill()


__all__ = ["ADAPTER_ENTRY_POINTS", "AdapterLaunch", "BridgeEngine"]
