"""
Error taxonomy surfaced by the bridge.

Two families exist side by side:

* :class:`BridgeError` and its subclasses carry an :class:`ErrorCode` and a
  ``recoverable`` flag. They are either reported by the adapter inside its
  response envelope or synthesized by the engine for process-level failures
  (timeout, crash, spawn failure) so callers can branch on ``code`` alone.
* :class:`AdapterNotFoundError` and :class:`MalformedResponseError` are
  engine-local conditions. They never carry a code: they point at a broken
  installation or an adapter bug rather than a provider-side failure.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from .codec import RecordDecodeError, decode_record
from .schema import DEFAULT_RECOVERABLE, ErrorCode, ErrorInfo

RAW_OUTPUT_PREFIX_LIMIT = 512


def truncate_output(raw: str, limit: int = RAW_OUTPUT_PREFIX_LIMIT) -> str:
    """Return at most ``limit`` characters of ``raw``, marking the cut."""

    if len(raw) <= limit:
        return raw
    return f"{raw[:limit]}... [{len(raw) - limit} more characters]"


class BridgeCallError(RuntimeError):
    """Base class for every failure a bridge call can end in."""


class BridgeError(BridgeCallError):
    """
    Structured failure carried by a response envelope.

    Attributes
    ----------
    code:
        One of the closed set of :class:`ErrorCode` values.
    message:
        Human-readable description supplied by the adapter or the engine.
    recoverable:
        Whether the identical call may be retried unchanged.
    details:
        Optional structured metadata (vendor payloads, captured stderr, ...).
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        recoverable: Optional[bool] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = ErrorCode(code)
        self.message = message
        self.recoverable = DEFAULT_RECOVERABLE[self.code] if recoverable is None else bool(recoverable)
        self.details: Optional[Dict[str, Any]] = dict(details) if details is not None else None

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value!r}, message={self.message!r}, recoverable={self.recoverable!r})"

    def to_payload(self) -> Dict[str, Any]:
        """Return the wire representation used inside a response envelope."""

        payload: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "recoverable": self.recoverable,
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BridgeError":
        """
        Build an error from the ``error`` member of a response envelope.

        Codes unknown to this controller (an adapter newer than the
        controller) decode as ``UNKNOWN`` with the raw code kept in
        ``details["adapter_code"]``. A missing ``recoverable`` flag falls back
        to :data:`DEFAULT_RECOVERABLE`. Raises ``ValueError`` when a member is
        missing or mistyped.
        """

        try:
            info = decode_record(ErrorInfo, payload)
        except RecordDecodeError as exc:
            raise ValueError(f"error.{exc}") from exc
        if not info.code:
            raise ValueError("error.code must be a non-empty string")

        details = info.details
        try:
            code = ErrorCode(info.code)
        except ValueError:
            code = ErrorCode.UNKNOWN
            details = {**(details or {}), "adapter_code": info.code}
        return cls(code, info.message, recoverable=info.recoverable, details=details)


class UnknownVerbError(BridgeError):
    """Raised before spawning when a verb is outside the closed vocabulary."""

    def __init__(self, verb: str) -> None:
        super().__init__(
            ErrorCode.INVALID_PARAMS,
            f"Unknown verb: {verb}",
            recoverable=False,
            details={"verb": verb},
        )
        self.verb = verb


class AdapterTimeoutError(BridgeError):
    """Raised when an adapter process does not exit before the deadline."""

    def __init__(self, provider: str, verb: str, timeout: float, *, stderr: str = "") -> None:
        details: Dict[str, Any] = {"provider": provider, "verb": verb, "timeout": timeout}
        if stderr:
            details["stderr"] = stderr
        super().__init__(
            ErrorCode.TIMEOUT,
            f"adapter command timed out after {timeout:g}s",
            recoverable=True,
            details=details,
        )
        self.timeout = timeout


class AdapterCrashError(BridgeError):
    """Raised when an adapter exits non-zero without writing a response envelope."""

    def __init__(self, provider: str, verb: str, exit_code: int, stderr: str) -> None:
        message = f"adapter '{provider}' exited with status {exit_code} before responding to '{verb}'"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(
            ErrorCode.UNKNOWN,
            message,
            recoverable=False,
            details={"provider": provider, "verb": verb, "exit_code": exit_code, "stderr": stderr},
        )
        self.exit_code = exit_code
        self.stderr = stderr


class AdapterLaunchError(BridgeError):
    """Raised when the operating system refuses to start the adapter process."""

    def __init__(self, provider: str, command: list[str], error: OSError) -> None:
        super().__init__(
            ErrorCode.UNKNOWN,
            f"failed to launch adapter '{provider}': {error}",
            recoverable=False,
            details={"provider": provider, "command": list(command), "error": str(error)},
        )


class AdapterNotFoundError(BridgeCallError):
    """Raised before spawning when no adapter entry point exists for a provider."""

    def __init__(self, provider: str, searched: str) -> None:
        super().__init__(f"adapter not found: {provider} (searched {searched})")
        self.provider = provider
        self.searched = searched


class MalformedResponseError(BridgeCallError):
    """
    Raised when adapter output cannot be interpreted as a response envelope.

    ``raw_output`` holds a bounded prefix of standard output for diagnosis.
    """

    def __init__(self, message: str, *, raw_output: str = "", stderr: str = "") -> None:
        self.reason = message
        self.raw_output = truncate_output(raw_output)
        self.stderr = stderr
        rendered = f"{message} (output: {self.raw_output!r})" if raw_output else message
        super().__init__(rendered)


class ResultDecodeError(MalformedResponseError):
    """Raised when a well-formed envelope carries ``data`` that does not fit the verb's result record."""

    def __init__(self, verb: str, reason: str, *, raw_output: str = "") -> None:
        super().__init__(f"failed to decode '{verb}' result: {reason}", raw_output=raw_output)
        self.verb = verb


__all__ = [
    "AdapterCrashError",
    "AdapterLaunchError",
    "AdapterNotFoundError",
    "AdapterTimeoutError",
    "BridgeCallError",
    "BridgeError",
    "MalformedResponseError",
    "RAW_OUTPUT_PREFIX_LIMIT",
    "ResultDecodeError",
    "UnknownVerbError",
    "truncate_output",
]
