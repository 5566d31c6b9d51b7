"""
Authentication of inbound HTTP requests.

Produces a ``TenantContext`` for each request or rejects it. Two modes:
a static API key compared against ``Authorization: Bearer <key>``, or a
bearer JWT verified against a JWKS endpoint whose ``sub`` claim becomes the
tenant identifier.
"""

import asyncio
import hmac
from typing import Any, Callable, Optional

import jwt
import structlog

from .context import NO_TENANT, TenantContext
from .resolver import DEFAULT_SEPARATOR

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


class AuthenticationError(Exception):
    """Raised when a request cannot be authenticated."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)
        self.message = message


class BearerTokenVerifier:
    """
    Verify bearer JWTs and return their subject claim.

    Args:
        jwks_uri: JWKS endpoint used to look up signing keys
        issuer: Expected ``iss`` claim, if any
        audience: Expected ``aud`` claim, if any
        algorithm: Accepted signing algorithm
        key_resolver: Callable mapping a token to its verification key;
            defaults to a cached ``jwt.PyJWKClient`` lookup
    """

    def __init__(
        self,
        jwks_uri: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        algorithm: str = "RS256",
        key_resolver: Optional[Callable[[str], Any]] = None,
    ):
        if key_resolver is None:
            if not jwks_uri:
                raise ValueError("BEARER_JWKS_URI must be configured for bearer token authentication")
            jwks_client = jwt.PyJWKClient(jwks_uri, cache_keys=True, max_cached_keys=5, lifespan=600)
            key_resolver = lambda token: jwks_client.get_signing_key_from_jwt(token).key  # noqa: E731

        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm
        self._key_resolver = key_resolver

    def _verify_sync(self, token: str) -> str:
        key = self._key_resolver(token)
        payload = jwt.decode(
            token,
            key,
            algorithms=[self.algorithm],
            issuer=self.issuer,
            audience=self.audience,
            options={"verify_aud": self.audience is not None, "require": ["sub"]},
        )
        return str(payload["sub"])

    async def verify(self, token: str) -> str:
        """
        Verify a token and return its subject.

        Raises:
            AuthenticationError: If the token is invalid
        """
        try:
            # JWKS lookups do blocking network I/O
            return await asyncio.to_thread(self._verify_sync, token)
        except (jwt.PyJWTError, ValueError) as e:
            logger.warning("Bearer token validation failed", error=str(e))
            raise AuthenticationError("Invalid bearer token")


class RequestAuthenticator:
    """
    Authenticate requests from their ``Authorization`` header.

    When a token verifier is configured it takes precedence over the API
    key. With neither configured every request is accepted without a tenant.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        verifier: Optional[BearerTokenVerifier] = None,
        separator: str = DEFAULT_SEPARATOR,
    ):
        self.api_key = api_key
        self.verifier = verifier
        self.separator = separator

    @classmethod
    def from_config(cls, config) -> "RequestAuthenticator":
        """Create an authenticator from configuration."""
        verifier = None
        tenancy = config.multi_tenancy
        if tenancy.enabled and tenancy.auth_mode == "bearer":
            verifier = BearerTokenVerifier(
                jwks_uri=tenancy.bearer.jwks_uri,
                issuer=tenancy.bearer.issuer,
                audience=tenancy.bearer.audience,
                algorithm=tenancy.bearer.algorithm,
            )
        return cls(api_key=config.server.api_key, verifier=verifier)

    @property
    def enabled(self) -> bool:
        """Whether any authentication is required."""
        return bool(self.api_key) or self.verifier is not None

    async def authenticate(self, authorization: Optional[str]) -> TenantContext:
        """
        Authenticate a request.

        Args:
            authorization: Raw ``Authorization`` header value, if any

        Returns:
            Tenant context for the request

        Raises:
            AuthenticationError: If authentication fails
        """
        if self.verifier is not None:
            return await self._authenticate_bearer(authorization)

        if self.api_key:
            expected = f"{BEARER_PREFIX}{self.api_key}"
            if not authorization or not hmac.compare_digest(
                authorization.encode(), expected.encode()
            ):
                raise AuthenticationError("Unauthorized")

        return NO_TENANT

    async def _authenticate_bearer(self, authorization: Optional[str]) -> TenantContext:
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            raise AuthenticationError("Missing or invalid bearer token")

        tenant_id = await self.verifier.verify(authorization[len(BEARER_PREFIX):])
        if not tenant_id or self.separator in tenant_id:
            logger.warning("Rejected token subject", reason="empty or contains separator")
            raise AuthenticationError("Invalid bearer token")

        return TenantContext(tenant_id=tenant_id)
