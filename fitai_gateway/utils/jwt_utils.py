import jwt
import logging
from typing import Dict, Optional, Any, cast

logger = logging.getLogger(__name__)


def validate_jwt(
    token: str,
    key: Any,
    audience: str | None = None,
    issuer: str | None = None,
    algorithms: list[str] | None = None,
) -> Optional[Dict[str, Any]]:
    """
    Validates a JWT token and returns its content as a dictionary.

    Args:
        token: The JWT token string to validate
        key: The secret or public key used to verify the signature
        audience: Expected `aud` claim, not checked when None
        issuer: Expected `iss` claim, not checked when None
        algorithms: List of allowed algorithms for decoding, defaults to ['HS256']

    Returns:
        Dict containing the JWT payload if valid, None otherwise
    """
    if algorithms is None:
        algorithms = ["HS256"]

    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience=audience,
            issuer=issuer,
            options={"verify_exp": True, "verify_aud": audience is not None},
        )
        return cast(Dict[str, Any], payload)
    except jwt.ExpiredSignatureError:
        logger.warning("JWT validation failed: token has expired")
        return None
    except jwt.PyJWTError as e:
        logger.warning("JWT validation failed: %s", str(e))
        return None


def get_user_id(token_content: Dict[str, Any]) -> Optional[str]:
    """
    Extracts the user identifier from the JWT content.

    Looks at `sub` first, then the `user_id` and `uid` claims used by
    some identity providers.
    """
    for claim in ("sub", "user_id", "uid"):
        value = token_content.get(claim)
        if isinstance(value, str) and value:
            return value
    return None
