"""Tenant identity and tenant-scoped name resolution."""

from .auth import AuthenticationError, BearerTokenVerifier, RequestAuthenticator
from .context import NO_TENANT, TenantContext
from .resolver import ExtractedName, TenantGraphResolver

__all__ = [
    "AuthenticationError",
    "BearerTokenVerifier",
    "ExtractedName",
    "NO_TENANT",
    "RequestAuthenticator",
    "TenantContext",
    "TenantGraphResolver",
]
