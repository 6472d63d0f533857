"""
Adapter-side implementation of the bridge process contract.

An adapter is any executable that reads a verb from its first argument and an
optional JSON object from standard input, performs exactly one verb and writes
exactly one newline-terminated response envelope to standard output.
:class:`BaseAdapter` takes care of that protocol so concrete adapters only
implement verb handlers:

* handlers receive the decoded parameter record and return the result record;
* raising :class:`~deploy_tunnel.bridge.errors.BridgeError` produces an
  ``ok: false`` envelope with that error;
* handlers that are not overridden answer ``UNSUPPORTED``;
* any other exception is reported as ``UNKNOWN`` with the traceback in
  ``details`` instead of crashing the process.

Retry policy, persistence and presentation belong to the controller.
"""

from __future__ import annotations

import json
import sys
import traceback
from dataclasses import is_dataclass
from logging import LoggerAdapter
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO

from ..bridge.codec import RecordDecodeError, decode_record, encode_record
from ..bridge.envelope import ResponseEnvelope
from ..bridge.errors import BridgeError
from ..bridge.schema import (
    PARAMS_BY_VERB,
    SCHEMA_VERSION,
    AuthRefreshData,
    AuthRefreshParams,
    AuthStartData,
    AuthStartParams,
    AuthType,
    CapabilitiesData,
    DeployPreviewData,
    DeployPreviewParams,
    DnsRollbackData,
    DnsRollbackParams,
    DnsUpdateData,
    DnsUpdateParams,
    ErrorCode,
    Features,
    FetchConfigData,
    FetchConfigParams,
    SyncEnvData,
    SyncEnvParams,
    Verb,
)
from ..core.logging import get_logger

_HANDLER_NAMES: Mapping[Verb, str] = {
    Verb.CAPABILITIES: "capabilities",
    Verb.AUTH_START: "auth_start",
    Verb.AUTH_REFRESH: "auth_refresh",
    Verb.FETCH_CONFIG: "fetch_config",
    Verb.SYNC_ENV: "sync_env",
    Verb.DEPLOY_PREVIEW: "deploy_preview",
    Verb.DNS_UPDATE: "dns_update",
    Verb.DNS_ROLLBACK: "dns_rollback",
}


class BaseAdapter:
    """
    Base class for provider adapters.

    Subclasses set the identity attributes and override the handlers for the
    verbs they implement.

    Attributes
    ----------
    name:
        Provider identifier, matching the adapter's directory name.
    version:
        Adapter version reported in every envelope.
    auth_type:
        Authentication model advertised through ``capabilities``.
    features:
        Feature flags advertised through ``capabilities``.
    """

    name: str = "base"
    version: str = SCHEMA_VERSION
    auth_type: AuthType = AuthType.TOKEN
    features: Features = Features(dns_management=False, preview_deployments=False, env_variables=False, build_logs=False)

    def __init__(self) -> None:
        self.logger: LoggerAdapter = get_logger(self.__class__.__name__, extra={"provider": self.name})

    # -- verb handlers -----------------------------------------------------

    def capabilities(self) -> CapabilitiesData:
        return CapabilitiesData(
            adapter_name=self.name,
            adapter_version=self.version,
            supported_verbs=self.supported_verbs(),
            auth_type=self.auth_type,
            features=self.features,
        )

    def auth_start(self, params: AuthStartParams) -> AuthStartData:
        raise self.unsupported(Verb.AUTH_START)

    def auth_refresh(self, params: AuthRefreshParams) -> AuthRefreshData:
        raise self.unsupported(Verb.AUTH_REFRESH)

    def fetch_config(self, params: FetchConfigParams) -> FetchConfigData:
        raise self.unsupported(Verb.FETCH_CONFIG)

    def sync_env(self, params: SyncEnvParams) -> SyncEnvData:
        raise self.unsupported(Verb.SYNC_ENV)

    def deploy_preview(self, params: DeployPreviewParams) -> DeployPreviewData:
        raise self.unsupported(Verb.DEPLOY_PREVIEW)

    def dns_update(self, params: DnsUpdateParams) -> DnsUpdateData:
        raise self.unsupported(Verb.DNS_UPDATE)

    def dns_rollback(self, params: DnsRollbackParams) -> DnsRollbackData:
        raise self.unsupported(Verb.DNS_ROLLBACK)

    # -- helpers -----------------------------------------------------------

    def supported_verbs(self) -> List[str]:
        """Verbs whose handler is overridden by the concrete adapter, plus ``capabilities``."""

        verbs = []
        for verb, handler_name in _HANDLER_NAMES.items():
            own = getattr(type(self), handler_name)
            if verb is Verb.CAPABILITIES or own is not getattr(BaseAdapter, handler_name):
                verbs.append(verb.value)
        return verbs

    @staticmethod
    def unsupported(verb: Verb | str) -> BridgeError:
        name = verb.value if isinstance(verb, Verb) else verb
        return BridgeError(ErrorCode.UNSUPPORTED, f"Command '{name}' is not supported by this adapter", recoverable=False)

    @staticmethod
    def invalid_params(message: str, *, details: Optional[Mapping[str, Any]] = None) -> BridgeError:
        return BridgeError(ErrorCode.INVALID_PARAMS, message, recoverable=False, details=details)

    # -- protocol ----------------------------------------------------------

    def handle(self, verb: str, params: Any = None) -> ResponseEnvelope:
        """Dispatch one verb and return the envelope to write. Never raises for handler failures."""

        resolved = Verb.lookup(verb)
        if resolved is None:
            return self._failure(self.invalid_params(f"Unknown verb: {verb}"))

        params_type = PARAMS_BY_VERB[resolved]
        args: list[Any] = []
        if params_type is not None:
            try:
                args.append(decode_record(params_type, params if params is not None else {}))
            except RecordDecodeError as exc:
                return self._failure(self.invalid_params(f"Invalid parameters for '{resolved.value}': {exc}", details={"field": exc.path}))

        handler = getattr(self, _HANDLER_NAMES[resolved])
        try:
            result = handler(*args)
        except BridgeError as exc:
            self.logger.info("Verb failed", extra={"verb": resolved.value, "code": exc.code.value})
            return self._failure(exc)
        except Exception as exc:
            self.logger.exception("Unhandled adapter failure", extra={"verb": resolved.value})
            return self._failure(
                BridgeError(
                    ErrorCode.UNKNOWN,
                    str(exc) or exc.__class__.__name__,
                    recoverable=False,
                    details={"traceback": traceback.format_exc()},
                )
            )
        return ResponseEnvelope.success(self._result_payload(result), self.version)

    @staticmethod
    def _result_payload(result: Any) -> Optional[Dict[str, Any]]:
        if result is None:
            return None
        if is_dataclass(result) and not isinstance(result, type):
            return encode_record(result)
        return dict(result)

    def _failure(self, error: BridgeError) -> ResponseEnvelope:
        return ResponseEnvelope.failure(error, self.version)

    def run(
        self,
        argv: Optional[Sequence[str]] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> int:
        """
        Execute the adapter as a bridge child process.

        Parameters
        ----------
        argv:
            Program arguments without the program name. Defaults to ``sys.argv[1:]``.
        stdin, stdout:
            Streams used for the request and the response. Default to the process streams.

        Returns
        -------
        int
            Exit code; ``0`` whenever an envelope was written.
        """

        args = list(sys.argv[1:] if argv is None else argv)
        source = sys.stdin if stdin is None else stdin
        sink = sys.stdout if stdout is None else stdout

        verb = args[0] if args else ""
        try:
            params = _read_params(source)
        except ValueError as exc:
            envelope = self._failure(self.invalid_params(f"Failed to parse stdin JSON: {exc}"))
        else:
            envelope = self.handle(verb, params) if verb else self._failure(self.invalid_params("No verb given"))

        sink.write(envelope.to_json() + "\n")
        sink.flush()
        return 0


def _read_params(stream: TextIO) -> Optional[Dict[str, Any]]:
    isatty = getattr(stream, "isatty", None)
    if callable(isatty) and isatty():
        return None
    text = stream.read()
    if not text.strip():
        return None
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("parameters must be a JSON object")
    return payload


__all__ = ["BaseAdapter"]
