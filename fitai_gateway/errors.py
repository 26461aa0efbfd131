"""Error taxonomy for the AI gateway.

Every error knows the HTTP status it maps to and the JSON body the caller
receives. Messages carried by these errors are safe to show to end users;
provider diagnostics are logged where they happen and never attached here.
"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for errors surfaced to the gateway caller."""

    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_body(self) -> Dict[str, Any]:
        """Return the JSON body sent back to the caller."""
        return {"error": self.message}


class AuthError(GatewayError):
    """Missing, malformed or rejected bearer credential."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class InvalidRequestError(GatewayError):
    """The request body or the action data is unusable."""

    status_code = 400


class UnknownActionError(GatewayError):
    """The requested action is not in the dispatch table."""

    status_code = 400

    def __init__(self, action: Optional[str]):
        self.action = action
        super().__init__(f"Unknown action: {action}")


class RateLimitError(GatewayError):
    """Too many requests for a (user, action) pair within its window."""

    status_code = 429

    def __init__(
        self,
        retry_after: int,
        message: str = "Too many requests. Please try again later.",
    ):
        self.retry_after = retry_after
        super().__init__(message)

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, "retryAfter": self.retry_after}


class QuotaError(GatewayError):
    """Monthly free-tier allowance used up."""

    status_code = 403

    def __init__(
        self,
        code: str,
        limit: Optional[int],
        current: Optional[int] = None,
        message: str = "Free tier limit reached",
    ):
        self.code = code
        self.limit = limit
        self.current = current
        super().__init__(message)

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, "limit": self.limit}


class ProviderError(GatewayError):
    """The model provider call failed or returned an unusable shape."""

    status_code = 500

    def __init__(
        self,
        message: str = "Could not reach the AI service. Please try again.",
    ):
        super().__init__(message)


class ExtractionError(GatewayError):
    """The model answered but no structured result could be recovered."""

    status_code = 500

    def __init__(self, action: str, message: Optional[str] = None):
        self.action = action
        super().__init__(message or f"Could not parse the AI response for {action}")
