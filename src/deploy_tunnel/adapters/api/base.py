"""
Shared HTTP utilities for provider adapters.

The helper provides a thin HTTPX wrapper with retry logic for transport
failures: it keeps the code synchronous, avoids global state and turns vendor
responses into exceptions that :func:`bridge_error_from` maps onto the
bridge's error codes. Retries here are adapter-private; the controller only
sees the final envelope.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Any, Mapping, MutableMapping, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ...bridge.errors import BridgeError
from ...bridge.schema import ErrorCode
from ...core.logging import get_logger

DEFAULT_TIMEOUT = 15.0


class VendorAPIError(RuntimeError):
    """Raised when a vendor endpoint answers with a non-success status."""

    def __init__(self, message: str, *, status_code: int, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class VendorNetworkError(RuntimeError):
    """Raised when a vendor endpoint cannot be reached."""


def _vendor_message(payload: Any) -> Optional[str]:
    if isinstance(payload, Mapping):
        error = payload.get("error")
        if isinstance(error, Mapping) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(payload.get("message"), str):
            return payload["message"]
    return None


def bridge_error_from(exc: Exception, *, fallback: str) -> BridgeError:
    """
    Translate a vendor failure into a :class:`BridgeError`.

    401/403 map to ``AUTH_FAILED``, 404 to ``NOT_FOUND``, 429 to
    ``RATE_LIMITED`` and any other status to ``PROVIDER_ERROR``. Transport
    failures become ``NETWORK_ERROR``.
    """

    if isinstance(exc, VendorNetworkError):
        return BridgeError(ErrorCode.NETWORK_ERROR, str(exc), recoverable=True)
    if isinstance(exc, VendorAPIError):
        details = exc.payload if isinstance(exc.payload, Mapping) else None
        message = _vendor_message(exc.payload) or fallback
        if exc.status_code in (401, 403):
            return BridgeError(ErrorCode.AUTH_FAILED, message, recoverable=False, details=details)
        if exc.status_code == 404:
            return BridgeError(ErrorCode.NOT_FOUND, message, recoverable=False, details=details)
        if exc.status_code == 429:
            return BridgeError(ErrorCode.RATE_LIMITED, message, recoverable=True, details=details)
        return BridgeError(ErrorCode.PROVIDER_ERROR, message, recoverable=False, details=details)
    return BridgeError(ErrorCode.UNKNOWN, str(exc) or fallback, recoverable=False)


@dataclass(slots=True)
class BaseAPIClient:
    """
    Base synchronous HTTP client with retry support.

    Parameters
    ----------
    base_url:
        Root URL for the vendor API.
    timeout:
        Request timeout in seconds.
    default_headers:
        Headers automatically attached to every request.
    max_attempts:
        Attempts per request when the transport fails.
    transport:
        Optional HTTPX transport, used by tests to stub the vendor.
    """

    base_url: str
    timeout: float = DEFAULT_TIMEOUT
    default_headers: MutableMapping[str, str] = field(default_factory=dict)
    max_attempts: int = 3
    transport: Optional[httpx.BaseTransport] = None
    logger: LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.logger = get_logger(
            f"{self.__class__.__module__}.{self.__class__.__name__}",
            extra={"base_url": self.base_url},
        )

    def _build_client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=dict(self.default_headers),
            follow_redirects=True,
            transport=self.transport,
        )

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        self.logger.debug("HTTP request", extra={"method": method, "url": url})

        @retry(
            retry=retry_if_exception_type(httpx.TransportError),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            stop=stop_after_attempt(self.max_attempts),
            reraise=True,
        )
        def _send() -> httpx.Response:
            with self._build_client() as client:
                return client.request(method, url, **kwargs)

        try:
            response = _send()
        except httpx.HTTPError as exc:
            self.logger.error("HTTP request failed", extra={"method": method, "url": url, "error": str(exc)})
            raise VendorNetworkError(f"Failed to call {method} {url}: {exc}") from exc

        self.logger.debug("HTTP response", extra={"status_code": response.status_code, "url": str(response.url)})
        if response.is_error:
            payload = _safe_json(response)
            raise VendorAPIError(
                _vendor_message(payload) or f"HTTP {response.status_code} error for {method} {url}",
                status_code=response.status_code,
                payload=payload,
            )
        return response

    def _get_json(self, url: str, *, params: Optional[Mapping[str, Any]] = None) -> Any:
        response = self._request("GET", url, params=params)
        return _decode_json(response)

    def _post_json(self, url: str, *, json_body: Optional[Mapping[str, Any]] = None) -> Any:
        response = self._request("POST", url, json=json_body)
        return _decode_json(response)


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"body": response.text}


def _decode_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise VendorAPIError(f"Failed to decode JSON from {response.url}: {exc}", status_code=response.status_code) from exc


__all__ = ["BaseAPIClient", "DEFAULT_TIMEOUT", "VendorAPIError", "VendorNetworkError", "bridge_error_from"]
