"""
Host-to-adapter command bridge.

The package is layered leaves first:

* :mod:`.schema` and :mod:`.codec` declare the payload contract shared with adapters.
* :mod:`.envelope` and :mod:`.errors` describe what comes back over standard output.
* :mod:`.engine` owns adapter processes; :mod:`.client` wraps it with one typed method per verb.
* :mod:`.retry` and :mod:`.messages` are caller-side helpers.
"""

from .client import BridgeClient
from .codec import RecordDecodeError, decode_record, encode_record
from .engine import AdapterLaunch, BridgeEngine
from .envelope import ResponseEnvelope, parse_envelope
from .errors import (
    AdapterCrashError,
    AdapterLaunchError,
    AdapterNotFoundError,
    AdapterTimeoutError,
    BridgeCallError,
    BridgeError,
    MalformedResponseError,
    ResultDecodeError,
    UnknownVerbError,
)
from .messages import ErrorDescription, describe_error
from .retry import call_with_retry, is_recoverable
from .schema import (
    AuthRefreshData,
    AuthRefreshParams,
    AuthStartData,
    AuthStartParams,
    AuthType,
    BuildConfig,
    CapabilitiesData,
    DeployPreviewData,
    DeployPreviewParams,
    DeploymentStatus,
    DnsRollbackData,
    DnsRollbackParams,
    DnsUpdateData,
    DnsUpdateParams,
    EnvTarget,
    EnvVar,
    ErrorCode,
    ErrorInfo,
    Features,
    FetchConfigData,
    FetchConfigParams,
    ProjectInfo,
    Provider,
    RecordType,
    SyncEnvData,
    SyncEnvParams,
    Verb,
)

__all__ = [
    "AdapterCrashError",
    "AdapterLaunch",
    "AdapterLaunchError",
    "AdapterNotFoundError",
    "AdapterTimeoutError",
    "AuthRefreshData",
    "AuthRefreshParams",
    "AuthStartData",
    "AuthStartParams",
    "AuthType",
    "BridgeCallError",
    "BridgeClient",
    "BridgeEngine",
    "BridgeError",
    "BuildConfig",
    "CapabilitiesData",
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
    "ErrorDescription",
    "Features",
    "FetchConfigData",
    "FetchConfigParams",
    "MalformedResponseError",
    "ProjectInfo",
    "Provider",
    "RecordDecodeError",
    "RecordType",
    "ResponseEnvelope",
    "ResultDecodeError",
    "SyncEnvData",
    "SyncEnvParams",
    "UnknownVerbError",
    "Verb",
    "call_with_retry",
    "decode_record",
    "describe_error",
    "encode_record",
    "is_recoverable",
    "parse_envelope",
]
