"""
Response envelope exchanged over an adapter's standard output.

Success::

    {"ok": true, "data": {...}, "adapter_version": "1.0.0"}

Failure::

    {"ok": false, "error": {"code": "AUTH_FAILED", "message": "...", "recoverable": true}, "adapter_version": "1.0.0"}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .errors import BridgeError, MalformedResponseError


@dataclass(slots=True)
class ResponseEnvelope:
    """
    Parsed response of a single adapter invocation.

    Invariants: ``ok`` implies ``error is None``; not ``ok`` implies
    ``data is None`` and ``error is not None``. ``adapter_version`` is always set.
    """

    ok: bool
    adapter_version: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[BridgeError] = None

    @classmethod
    def success(cls, data: Optional[Mapping[str, Any]], adapter_version: str) -> "ResponseEnvelope":
        return cls(ok=True, adapter_version=adapter_version, data=dict(data) if data is not None else None)

    @classmethod
    def failure(cls, error: BridgeError, adapter_version: str) -> "ResponseEnvelope":
        return cls(ok=False, adapter_version=adapter_version, error=error)

    def to_payload(self) -> Dict[str, Any]:
        """Return the wire object, omitting absent members."""

        payload: Dict[str, Any] = {"ok": self.ok}
        if self.ok:
            if self.data is not None:
                payload["data"] = self.data
        elif self.error is not None:
            payload["error"] = self.error.to_payload()
        payload["adapter_version"] = self.adapter_version
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False)


def parse_envelope(raw: str, *, stderr: str = "") -> ResponseEnvelope:
    """
    Parse adapter standard output into a :class:`ResponseEnvelope`.

    Raises
    ------
    MalformedResponseError
        When ``raw`` is not a single JSON object or violates the envelope
        shape. The error keeps a bounded prefix of ``raw`` for diagnosis.
    """

    def malformed(reason: str) -> MalformedResponseError:
        return MalformedResponseError(reason, raw_output=raw, stderr=stderr)

    if not raw.strip():
        raise malformed("adapter produced no output")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise malformed(f"adapter response is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise malformed("adapter response is not a JSON object")

    ok = payload.get("ok")
    if not isinstance(ok, bool):
        raise malformed("envelope member 'ok' must be a boolean")
    adapter_version = payload.get("adapter_version")
    if not isinstance(adapter_version, str) or not adapter_version:
        raise malformed("envelope member 'adapter_version' is missing")

    data = payload.get("data")
    raw_error = payload.get("error")
    if ok:
        if raw_error is not None:
            raise malformed("successful envelope must not carry an error")
        if data is not None and not isinstance(data, dict):
            raise malformed("envelope member 'data' must be an object")
        return ResponseEnvelope.success(data, adapter_version)

    if data is not None:
        raise malformed("failed envelope must not carry data")
    if not isinstance(raw_error, dict):
        raise malformed("failed envelope must carry an error object")
    try:
        error = BridgeError.from_payload(raw_error)
    except ValueError as exc:
        raise malformed(f"invalid error object: {exc}") from exc
    return ResponseEnvelope.failure(error, adapter_version)


__all__ = ["ResponseEnvelope", "parse_envelope"]
