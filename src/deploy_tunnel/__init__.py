"""
Controller-side bridge to deployment provider adapters.

Import :class:`BridgeClient` for the typed call surface and
:func:`load_settings` for the configured adapters root and deadline. The
``dt`` command line entry point lives in :mod:`deploy_tunnel.cli`.
"""

from .bridge import BridgeCallError, BridgeClient, BridgeEngine, BridgeError, ErrorCode, Provider, Verb, call_with_retry, describe_error
from .config import BridgeSettings, load_settings

__version__ = "0.1.0"

__all__ = [
    "BridgeCallError",
    "BridgeClient",
    "BridgeEngine",
    "BridgeError",
    "BridgeSettings",
    "ErrorCode",
    "Provider",
    "Verb",
    "__version__",
    "call_with_retry",
    "describe_error",
    "load_settings",
]
