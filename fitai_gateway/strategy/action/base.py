import math
import re
from typing import Any, Dict, Mapping, Optional, Protocol

from fitai_gateway.errors import InvalidRequestError
from fitai_gateway.models import PreparedRequest

_FIRST_INTEGER = re.compile(r"(\d+)")


class ActionHandler(Protocol):
    """
    Protocol for action handlers.

    A handler turns caller data into a provider-ready request and may adjust
    the extracted payload afterwards.
    """

    action: str

    def __call__(self, data: Mapping[str, Any]) -> PreparedRequest: ...

    def postprocess(
        self, payload: Dict[str, Any], prepared: PreparedRequest
    ) -> Dict[str, Any]: ...


class BaseActionHandler:
    """Handler base with a pass-through post-processing step."""

    action: str = ""

    def __call__(self, data: Mapping[str, Any]) -> PreparedRequest:
        raise NotImplementedError

    def postprocess(
        self, payload: Dict[str, Any], prepared: PreparedRequest
    ) -> Dict[str, Any]:
        return payload

    def __str__(self) -> str:
        return f"{type(self).__name__}(action={self.action})"


def first_present(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the value of the first key holding a non-empty value."""
    for key in keys:
        value = data.get(key)
        if value is not None and value != "" and value != [] and value != {}:
            return value
    return default


def first_integer(value: Any, default: int) -> int:
    """Return the first run of digits found in `value`, or `default`."""
    match = _FIRST_INTEGER.search(str(value))
    return int(match.group(1)) if match else default


def to_float(value: Any, default: float) -> float:
    """Parse a number, falling back to `default` for missing, invalid or zero values."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number or default


def require(data: Mapping[str, Any], field: str, action: str) -> Any:
    value = data.get(field)
    if value is None or value == "":
        raise InvalidRequestError(f"Field '{field}' is required for {action}")
    return value


def as_mapping(value: Optional[Any]) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
