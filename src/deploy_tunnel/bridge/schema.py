"""
Payload schema shared by the controller and every adapter.

The module declares, once, the verb vocabulary, error codes and the exact
field names, optionality and types of each verb's parameters and results.
Records are plain dataclasses; :mod:`deploy_tunnel.bridge.codec` converts them
to and from wire objects. Field names are the JSON names and must stay
identical on both sides of the process boundary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type

SCHEMA_VERSION = "1.0.0"

_PROVIDER_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


class Provider(str, Enum):
    """Providers with a known adapter. Other identifiers remain valid if an adapter is installed."""

    VERCEL = "vercel"
    CLOUDFLARE = "cloudflare"
    RENDER = "render"
    NETLIFY = "netlify"


def provider_id(provider: Provider | str) -> str:
    """Return the plain identifier for ``provider``."""

    return provider.value if isinstance(provider, Provider) else str(provider)


def is_valid_provider_id(value: str) -> bool:
    """Check whether ``value`` may name an adapter directory."""

    return bool(_PROVIDER_PATTERN.match(value))


class Verb(str, Enum):
    """Closed command vocabulary understood by adapters."""

    CAPABILITIES = "capabilities"
    AUTH_START = "auth:start"
    AUTH_REFRESH = "auth:refresh"
    FETCH_CONFIG = "fetch:config"
    SYNC_ENV = "sync:env"
    DEPLOY_PREVIEW = "deploy:preview"
    DNS_UPDATE = "dns:update"
    DNS_ROLLBACK = "dns:rollback"

    @classmethod
    def lookup(cls, value: "Verb | str") -> Optional["Verb"]:
        """Return the matching verb or ``None`` when ``value`` is not part of the vocabulary."""

        if isinstance(value, Verb):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class ErrorCode(str, Enum):
    """Closed set of error codes carried by :class:`~deploy_tunnel.bridge.errors.BridgeError`."""

    AUTH_FAILED = "AUTH_FAILED"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_PARAMS = "INVALID_PARAMS"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    UNSUPPORTED = "UNSUPPORTED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


# Applied whenever an error is built or decoded without an explicit flag.
DEFAULT_RECOVERABLE: Mapping[ErrorCode, bool] = {
    ErrorCode.AUTH_FAILED: False,
    ErrorCode.AUTH_REQUIRED: False,
    ErrorCode.PROVIDER_ERROR: False,
    ErrorCode.NETWORK_ERROR: True,
    ErrorCode.INVALID_PARAMS: False,
    ErrorCode.NOT_FOUND: False,
    ErrorCode.RATE_LIMITED: True,
    ErrorCode.UNSUPPORTED: False,
    ErrorCode.TIMEOUT: True,
    ErrorCode.UNKNOWN: False,
}


# ---------------------------------------------------------------------------
# error member of a failed envelope


@dataclass(slots=True)
class ErrorInfo:
    """Wire shape of a failed envelope's ``error`` member. ``code`` stays a string so newer codes still decode."""

    code: str
    message: str
    recoverable: Optional[bool] = None
    details: Optional[Dict[str, Any]] = None


class AuthType(str, Enum):
    OAUTH = "oauth"
    TOKEN = "token"
    API_KEY = "api_key"


class DeploymentStatus(str, Enum):
    QUEUED = "queued"
    BUILDING = "building"
    READY = "ready"
    ERROR = "error"


class RecordType(str, Enum):
    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"
    TXT = "TXT"


class EnvTarget(str, Enum):
    PRODUCTION = "production"
    PREVIEW = "preview"
    DEVELOPMENT = "development"


# ---------------------------------------------------------------------------
# capabilities


@dataclass(slots=True, frozen=True)
class Features:
    """Optional capabilities an adapter advertises next to its verb list."""


    dns_management: bool
    preview_deployments: bool
    env_variables: bool
    build_logs: bool


@dataclass(slots=True)
class CapabilitiesData:
    """
    Identity and feature surface of an adapter.

    ``supported_verbs`` stays a list of plain strings so an adapter newer than
    the controller can advertise verbs the controller does not know yet.
    """

    adapter_name: str
    adapter_version: str
    supported_verbs: List[str]
    auth_type: AuthType
    features: Features

    def supports(self, verb: Verb | str) -> bool:
        """Return ``True`` when the adapter advertises ``verb``."""

        name = verb.value if isinstance(verb, Verb) else verb
        return name in self.supported_verbs


# ---------------------------------------------------------------------------
# auth:start / auth:refresh


@dataclass(slots=True)
class AuthStartParams:
    provider: str
    callback_url: Optional[str] = None


@dataclass(slots=True)
class AuthStartData:
    """
    Result of ``auth:start``.

    A present ``auth_url`` means a browser-based flow; its absence means the
    caller should prompt for a personal token.
    """

    auth_url: Optional[str] = None
    token: Optional[str] = None
    expires_at: Optional[int] = None

    @property
    def requires_browser(self) -> bool:
        return bool(self.auth_url)


@dataclass(slots=True)
class AuthRefreshParams:
    provider: str
    refresh_token: str


@dataclass(slots=True)
class AuthRefreshData:
    token: str
    expires_at: int


# ---------------------------------------------------------------------------
# fetch:config


@dataclass(slots=True)
class FetchConfigParams:
    provider: str
    token: str
    project_id: Optional[str] = None


@dataclass(slots=True)
class EnvVar:
    key: str
    value: str
    target: List[EnvTarget] = field(default_factory=list)


@dataclass(slots=True)
class ProjectInfo:
    id: str
    name: str
    domain: str
    framework: Optional[str] = None


@dataclass(slots=True)
class BuildConfig:
    command: str
    output_dir: str
    install_command: Optional[str] = None


@dataclass(slots=True)
class FetchConfigData:
    project: ProjectInfo
    build: BuildConfig
    env: List[EnvVar]


# ---------------------------------------------------------------------------
# sync:env


@dataclass(slots=True)
class SyncEnvParams:
    provider: str
    token: str
    project_id: str
    env_vars: List[EnvVar]


@dataclass(slots=True)
class SyncEnvData:
    synced: int
    failed: List[str]


# ---------------------------------------------------------------------------
# deploy:preview


@dataclass(slots=True)
class DeployPreviewParams:
    provider: str
    token: str
    project_id: str
    branch: Optional[str] = None
    env: Optional[Dict[str, str]] = None


@dataclass(slots=True)
class DeployPreviewData:
    deployment_id: str
    url: str
    status: DeploymentStatus
    build_time: Optional[int] = None


# ---------------------------------------------------------------------------
# dns:update / dns:rollback


@dataclass(slots=True)
class DnsUpdateParams:
    provider: str
    token: str
    domain: str
    record_type: RecordType
    record_name: str
    record_value: str
    ttl: Optional[int] = None


@dataclass(slots=True)
class DnsUpdateData:
    record_id: str
    propagation_time: int
    previous_value: Optional[str] = None


@dataclass(slots=True)
class DnsRollbackParams:
    provider: str
    token: str
    record_id: str
    rollback_to: str


@dataclass(slots=True)
class DnsRollbackData:
    restored: bool
    current_value: str


# Parameter record expected for each verb (``None`` = the verb takes no parameters).
PARAMS_BY_VERB: Mapping[Verb, Optional[Type]] = {
    Verb.CAPABILITIES: None,
    Verb.AUTH_START: AuthStartParams,
    Verb.AUTH_REFRESH: AuthRefreshParams,
    Verb.FETCH_CONFIG: FetchConfigParams,
    Verb.SYNC_ENV: SyncEnvParams,
    Verb.DEPLOY_PREVIEW: DeployPreviewParams,
    Verb.DNS_UPDATE: DnsUpdateParams,
    Verb.DNS_ROLLBACK: DnsRollbackParams,
}

RESULT_BY_VERB: Mapping[Verb, Type] = {
    Verb.CAPABILITIES: CapabilitiesData,
    Verb.AUTH_START: AuthStartData,
    Verb.AUTH_REFRESH: AuthRefreshData,
    Verb.FETCH_CONFIG: FetchConfigData,
    Verb.SYNC_ENV: SyncEnvData,
    Verb.DEPLOY_PREVIEW: DeployPreviewData,
    Verb.DNS_UPDATE: DnsUpdateData,
    Verb.DNS_ROLLBACK: DnsRollbackData,
}


__all__ = [
    "AuthRefreshData",
    "AuthRefreshParams",
    "AuthStartData",
    "AuthStartParams",
    "AuthType",
    "BuildConfig",
    "CapabilitiesData",
    "DEFAULT_RECOVERABLE",
    "DeployPreviewData",
    "DeployPreviewParams",
    "DeploymentStatus",
    "DnsRollbackData",
    "DnsRollbackParams",
    "DnsUpdateData",
    "DnsUpdateParams",
    "EnvTarget",
    "EnvVar",
    "ErrorCode",
    "ErrorInfo",
    "Features",
    "FetchConfigData",
    "FetchConfigParams",
    "PARAMS_BY_VERB",
    "ProjectInfo",
    "Provider",
    "RESULT_BY_VERB",
    "RecordType",
    "SCHEMA_VERSION",
    "SyncEnvData",
    "SyncEnvParams",
    "Verb",
    "is_valid_provider_id",
    "provider_id",
]
