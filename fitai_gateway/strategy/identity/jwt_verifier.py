"""JWT-based identity verifier."""

import logging
from typing import Dict, Optional, cast

import httpx
import jwt
from cachetools import TTLCache
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes
from cryptography.hazmat.primitives.serialization import load_pem_public_key

from fitai_gateway.errors import AuthError
from fitai_gateway.strategy.identity.base import IdentityVerifier
from fitai_gateway.utils.jwt_utils import get_user_id, validate_jwt

logger = logging.getLogger(__name__)

_CERTS_CACHE_KEY = "certs"


def load_public_key(pem: str) -> PublicKeyTypes:
    """Load a PEM x509 certificate, or a bare PEM public key, as a verification key."""
    if not isinstance(pem, str):
        raise TypeError(f"Expected a PEM string, got {type(pem).__name__}")
    data = pem.encode()
    if b"BEGIN CERTIFICATE" in data:
        return x509.load_pem_x509_certificate(data).public_key()
    return load_pem_public_key(data)


class JwtIdentityVerifier(IdentityVerifier):
    """
    Verify bearer credentials that are signed JWTs.

    Two key sources are supported:
    1. A shared secret (HS256), convenient for development
    2. A URL publishing x509 certificates keyed by `kid` (RS256), the format
       used for Firebase ID tokens. Certificates are cached for `certs_ttl`
       seconds.

    The user identifier is taken from the `sub` claim.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        certs_url: Optional[str] = None,
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
        certs_ttl: int = 3600,
        timeout: int = 10,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the verifier.

        Args:
            secret: HS256 shared secret, used when no certs_url is set
            certs_url: URL of a JSON object mapping key ids to PEM certificates
            audience: Expected `aud` claim
            issuer: Expected `iss` claim
            certs_ttl: Seconds to keep fetched certificates
            timeout: HTTP timeout in seconds for fetching certificates
            client: Preconfigured httpx client, mostly for tests
        """
        if not secret and not certs_url:
            raise ValueError("Either a secret or a certs_url is required")

        self.secret = secret
        self.certs_url = certs_url
        self.audience = audience
        self.issuer = issuer
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._certs_cache = TTLCache[str, Dict[str, PublicKeyTypes]](
            maxsize=1, ttl=certs_ttl
        )

    async def __call__(self, credential: Optional[str]) -> str:
        """
        Verify a credential and return the user id it belongs to.

        Args:
            credential: The raw bearer token

        Returns:
            The stable user identifier

        Raises:
            AuthError: If the credential is missing, invalid or has no subject
        """
        if not credential:
            raise AuthError("Unauthorized")

        if self.certs_url:
            key = await self._public_key_for(credential)
            algorithms = ["RS256"]
        else:
            key = self.secret
            algorithms = ["HS256"]

        token_content = validate_jwt(
            token=credential,
            key=key,
            audience=self.audience,
            issuer=self.issuer,
            algorithms=algorithms,
        )
        if not token_content:
            raise AuthError("Invalid token")

        user_id = get_user_id(token_content)
        if not user_id:
            logger.warning("User ID ('sub' claim) not found in validated token")
            raise AuthError("Invalid token")

        return user_id

    async def _public_key_for(self, credential: str) -> PublicKeyTypes:
        try:
            kid = jwt.get_unverified_header(credential).get("kid")
        except jwt.InvalidTokenError as e:
            logger.warning("Malformed JWT header: %s", str(e))
            raise AuthError("Invalid token") from e

        keys = await self._fetch_keys()
        if not kid or kid not in keys:
            logger.warning("No certificate found for key id %s", kid)
            raise AuthError("Invalid token")
        return keys[kid]

    async def _fetch_keys(self) -> Dict[str, PublicKeyTypes]:
        cached = self._certs_cache.get(_CERTS_CACHE_KEY)
        if cached is not None:
            return cached

        try:
            response = await self.client.get(cast(str, self.certs_url))
            response.raise_for_status()
            certs = cast(Dict[str, str], response.json())
        except (httpx.RequestError, httpx.HTTPStatusError, ValueError) as e:
            logger.error("Error fetching signing certificates: %s", str(e))
            raise AuthError("Invalid token") from e

        if not isinstance(certs, dict):
            logger.error("Signing certificates are not a JSON object")
            raise AuthError("Invalid token")

        keys: Dict[str, PublicKeyTypes] = {}
        for kid, pem in certs.items():
            try:
                keys[kid] = load_public_key(pem)
            except (TypeError, ValueError) as e:
                logger.warning("Skipping unreadable certificate %s: %s", kid, str(e))

        self._certs_cache[_CERTS_CACHE_KEY] = keys
        return keys

    async def close(self) -> None:
        """Close the httpx client explicitly."""
        await self.client.aclose()

    def __str__(self) -> str:
        mode = f"certs_url='{self.certs_url}'" if self.certs_url else "secret=[REDACTED]"
        return f"JwtIdentityVerifier({mode}, audience={self.audience}, issuer={self.issuer})"
