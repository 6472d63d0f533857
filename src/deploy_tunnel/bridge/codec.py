"""
Conversion between schema records and untyped wire objects.

Both sides of the process boundary use the same two functions:

* :func:`encode_record` turns a record into a JSON-ready ``dict``. Optional
  fields holding ``None`` are omitted from the wire.
* :func:`decode_record` turns a decoded JSON object into a record. Unknown
  members are ignored so a newer peer can add fields without breaking an older
  one; missing required members and type mismatches raise
  :class:`RecordDecodeError` naming the offending field path.

Validation is delegated to pydantic in strict JSON mode, which accepts enum
values as plain strings but never coerces ``"300"`` to an integer or ``1`` to
a boolean.
"""

from __future__ import annotations

import json
from dataclasses import is_dataclass
from functools import lru_cache
from typing import Any, Dict, Mapping, Tuple, Type, TypeVar, Union

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


class RecordDecodeError(ValueError):
    """Raised when an untyped object does not match a record shape."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}" if path else reason)
        self.path = path
        self.reason = reason

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "RecordDecodeError":
        """Report the first problem pydantic found."""

        first = exc.errors(include_url=False)[0]
        reason = "required field is missing" if first["type"] == "missing" else first["msg"]
        return cls(format_location(first["loc"]), reason)


@lru_cache(maxsize=None)
def record_adapter(cls: type) -> TypeAdapter:
    return TypeAdapter(cls)


def format_location(loc: Tuple[Union[int, str], ...]) -> str:
    """Render a pydantic error location as ``env_vars[1].value``."""

    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def decode_record(cls: Type[T], payload: Any) -> T:
    """
    Decode ``payload`` into an instance of the dataclass ``cls``.

    Parameters
    ----------
    cls:
        Target record type declared in :mod:`deploy_tunnel.bridge.schema`.
    payload:
        Untyped object, typically the result of :func:`json.loads`.
    """

    if not isinstance(payload, Mapping):
        raise RecordDecodeError("", f"expected an object, got {type(payload).__name__}")
    try:
        wire = json.dumps(dict(payload))
    except (TypeError, ValueError) as exc:
        raise RecordDecodeError("", f"payload is not JSON-compatible: {exc}") from exc
    try:
        return record_adapter(cls).validate_json(wire, strict=True)
    except ValidationError as exc:
        raise RecordDecodeError.from_validation_error(exc) from exc


def encode_record(record: Any) -> Dict[str, Any]:
    """Return the wire representation of a schema record."""

    if not is_dataclass(record) or isinstance(record, type):
        raise TypeError(f"expected a record instance, got {type(record).__name__}")
    return record_adapter(type(record)).dump_python(record, mode="json", exclude_none=True)


__all__ = ["RecordDecodeError", "decode_record", "encode_record", "format_location", "record_adapter"]
