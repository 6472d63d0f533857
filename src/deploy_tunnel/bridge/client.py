"""
Typed call façade over :class:`~deploy_tunnel.bridge.engine.BridgeEngine`.

Each method builds the verb's parameter record, delegates to the engine and
decodes the envelope's untyped ``data`` into the verb's result record. Errors
raised by the engine propagate unchanged so callers can branch on
``BridgeError.code`` and ``BridgeError.recoverable``. Nothing here retries.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Any, Mapping, Optional, Type, TypeVar

from ..config import BridgeSettings, load_settings
from ..core.logging import get_logger
from .codec import RecordDecodeError, decode_record
from .engine import BridgeEngine
from .envelope import ResponseEnvelope
from .errors import ResultDecodeError
from .schema import (
    AuthRefreshData,
    AuthRefreshParams,
    AuthStartData,
    AuthStartParams,
    CapabilitiesData,
    DeployPreviewData,
    DeployPreviewParams,
    DnsRollbackData,
    DnsRollbackParams,
    DnsUpdateData,
    DnsUpdateParams,
    FetchConfigData,
    FetchConfigParams,
    Provider,
    SyncEnvData,
    SyncEnvParams,
    Verb,
)

R = TypeVar("R")


@dataclass(slots=True)
class BridgeClient:
    """High-level façade used by CLI commands and other controller code."""

    engine: BridgeEngine = field(default_factory=BridgeEngine)
    logger: LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.logger = get_logger(self.__class__.__name__)

    @classmethod
    def from_settings(cls, settings: Optional[BridgeSettings] = None) -> "BridgeClient":
        """Build a client from explicit settings or from :func:`load_settings`."""

        return cls(engine=BridgeEngine.from_settings(settings or load_settings()))

    def call(self, provider: Provider | str, verb: Verb | str, params: Optional[Any] = None) -> ResponseEnvelope:
        """Run a verb and return the raw envelope without decoding ``data``."""

        return self.engine.execute(provider, verb, params)

    def _invoke(self, provider: Provider | str, verb: Verb, params: Optional[Any], result_type: Type[R]) -> R:
        envelope = self.engine.execute(provider, verb, params)
        payload: Mapping[str, Any] = envelope.data if envelope.data is not None else {}
        try:
            return decode_record(result_type, payload)
        except RecordDecodeError as exc:
            self.logger.error(
                "Adapter result does not match the expected shape",
                extra={"provider": str(provider), "verb": verb.value, "adapter_version": envelope.adapter_version, "error": str(exc)},
            )
            raise ResultDecodeError(verb.value, str(exc), raw_output=json.dumps(payload, ensure_ascii=False)) from exc

    def capabilities(self, provider: Provider | str) -> CapabilitiesData:
        """Fetch the adapter's identity, auth model and feature flags."""

        return self._invoke(provider, Verb.CAPABILITIES, None, CapabilitiesData)

    def auth_start(self, params: AuthStartParams) -> AuthStartData:
        """Begin authentication. ``auth_url`` is set only for browser-based flows."""

        return self._invoke(params.provider, Verb.AUTH_START, params, AuthStartData)

    def auth_refresh(self, params: AuthRefreshParams) -> AuthRefreshData:
        return self._invoke(params.provider, Verb.AUTH_REFRESH, params, AuthRefreshData)

    def fetch_config(self, params: FetchConfigParams) -> FetchConfigData:
        """Retrieve project, build and environment configuration."""

        return self._invoke(params.provider, Verb.FETCH_CONFIG, params, FetchConfigData)

    def sync_env(self, params: SyncEnvParams) -> SyncEnvData:
        """Push environment variables. Not guaranteed idempotent."""

        return self._invoke(params.provider, Verb.SYNC_ENV, params, SyncEnvData)

    def deploy_preview(self, params: DeployPreviewParams) -> DeployPreviewData:
        return self._invoke(params.provider, Verb.DEPLOY_PREVIEW, params, DeployPreviewData)

    def dns_update(self, params: DnsUpdateParams) -> DnsUpdateData:
        return self._invoke(params.provider, Verb.DNS_UPDATE, params, DnsUpdateData)

    def dns_rollback(self, params: DnsRollbackParams) -> DnsRollbackData:
        return self._invoke(params.provider, Verb.DNS_ROLLBACK, params, DnsRollbackData)


__all__ = ["BridgeClient"]
