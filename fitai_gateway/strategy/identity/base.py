from typing import Optional, Protocol

from fitai_gateway.errors import AuthError


class IdentityVerifier(Protocol):
    """
    Protocol for identity verification strategies.
    A verifier turns a bearer credential into a stable user identifier, or
    raises `AuthError`.
    """

    async def __call__(self, credential: Optional[str]) -> str: ...


class NullIdentityVerifier(IdentityVerifier):
    """
    A verifier that rejects every credential.
    This is used when no verification key material is configured.
    """

    async def __call__(self, credential: Optional[str]) -> str:
        """Always reject the credential."""
        raise AuthError("Invalid token")

    def __str__(self) -> str:
        return "NullIdentityVerifier()"
