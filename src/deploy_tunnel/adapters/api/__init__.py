"""HTTP helpers shared by provider adapters."""

from .base import BaseAPIClient, VendorAPIError, VendorNetworkError, bridge_error_from

__all__ = ["BaseAPIClient", "VendorAPIError", "VendorNetworkError", "bridge_error_from"]
