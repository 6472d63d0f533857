"""
User-facing rendering of bridge failures.

Callers presenting errors to people should never show raw codes. The helpers
map every :class:`ErrorCode` and engine-local condition to an actionable
sentence plus a disposition telling the user whether the failure is
transient ("will retry") or needs them to do something ("requires user action").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import (
    AdapterNotFoundError,
    BridgeError,
    MalformedResponseError,
    ResultDecodeError,
)
from .schema import ErrorCode

RETRY_DISPOSITION = "will retry"
ACTION_DISPOSITION = "requires user action"

_CODE_HINTS: Mapping[ErrorCode, str] = {
    ErrorCode.AUTH_FAILED: "The provider rejected the credentials. Run `dt auth login {provider}` to store a fresh token.",
    ErrorCode.AUTH_REQUIRED: "No credentials are available for this provider. Run `dt auth login {provider}` first.",
    ErrorCode.PROVIDER_ERROR: "The provider API reported a failure. Check the provider dashboard for details.",
    ErrorCode.NETWORK_ERROR: "The provider could not be reached. Check your network connection.",
    ErrorCode.INVALID_PARAMS: "The request was rejected as invalid. Review the command arguments.",
    ErrorCode.NOT_FOUND: "The requested resource does not exist on the provider. Verify the identifiers you passed.",
    ErrorCode.RATE_LIMITED: "The provider is rate limiting requests. Wait a moment before trying again.",
    ErrorCode.UNSUPPORTED: "The {provider} adapter does not support this operation. Run `dt capabilities {provider}` to list what it supports.",
    ErrorCode.TIMEOUT: "The adapter did not answer in time. Retry, or raise the deadline with `--timeout`.",
    ErrorCode.UNKNOWN: "The adapter failed unexpectedly. Re-run with `--log-level DEBUG` for diagnostics.",
}


@dataclass(slots=True, frozen=True)
class ErrorDescription:
    """Presentation-ready summary of a failed bridge call."""

    message: str
    hint: str
    recoverable: bool
    code: Optional[ErrorCode] = None

    @property
    def disposition(self) -> str:
        return RETRY_DISPOSITION if self.recoverable else ACTION_DISPOSITION

    def render(self) -> str:
        label = self.code.value if self.code else "BRIDGE"
        return f"[{label}] {self.message}\n{self.hint} ({self.disposition})"


def describe_error(exc: BaseException, *, provider: Optional[str] = None) -> ErrorDescription:
    """Map a bridge failure to an :class:`ErrorDescription`."""

    target = provider or "<provider>"
    if isinstance(exc, BridgeError):
        hint = _CODE_HINTS[exc.code].format(provider=target)
        return ErrorDescription(message=exc.message, hint=hint, recoverable=exc.recoverable, code=exc.code)
    if isinstance(exc, AdapterNotFoundError):
        return ErrorDescription(
            message=str(exc),
            hint=f"No adapter is installed for '{exc.provider}'. Check `--adapters-path` or DEPLOY_TUNNEL_ADAPTERS_PATH.",
            recoverable=False,
        )
    if isinstance(exc, ResultDecodeError):
        return ErrorDescription(
            message=str(exc),
            hint="The adapter and the controller disagree on the result format. Upgrade one of them so their versions match.",
            recoverable=False,
        )
    if isinstance(exc, MalformedResponseError):
        return ErrorDescription(
            message=str(exc),
            hint="The adapter wrote an invalid response. This is an adapter bug; report it with the output above.",
            recoverable=False,
        )
    return ErrorDescription(message=str(exc), hint="Unexpected failure.", recoverable=False)


__all__ = ["ACTION_DISPOSITION", "ErrorDescription", "RETRY_DISPOSITION", "describe_error"]
