"""Static dispatch table from action names to handlers."""

import logging
from typing import Any, Dict, Mapping, Optional

from fitai_gateway.errors import UnknownActionError
from fitai_gateway.models import PreparedRequest
from fitai_gateway.strategy.action.base import ActionHandler
from fitai_gateway.strategy.action.nutrition import (
    CalculateMacrosHandler,
    GenerateDietHandler,
    MealRecipeHandler,
)
from fitai_gateway.strategy.action.progress import AnalyzeProgressHandler
from fitai_gateway.strategy.action.routine import (
    AnalyzeRoutineFromImageHandler,
    GenerateRoutineHandler,
)
from fitai_gateway.strategy.action.verify_proof import VerifyProofHandler

logger = logging.getLogger(__name__)


def default_handlers() -> Dict[str, ActionHandler]:
    """Return a fresh instance of every built-in handler keyed by action name."""
    handlers = [
        GenerateRoutineHandler(),
        GenerateDietHandler(),
        CalculateMacrosHandler(),
        AnalyzeProgressHandler(),
        VerifyProofHandler(),
        AnalyzeRoutineFromImageHandler(),
        MealRecipeHandler(),
    ]
    return {handler.action: handler for handler in handlers}


class ActionRouter:
    """
    Map action names to handlers.

    The table is fixed at construction. Unknown actions raise
    `UnknownActionError`; there is no default handler.
    """

    def __init__(self, handlers: Optional[Mapping[str, ActionHandler]] = None):
        self.handlers: Dict[str, ActionHandler] = dict(
            default_handlers() if handlers is None else handlers
        )

    def handler_for(self, action: Optional[str]) -> ActionHandler:
        handler = self.handlers.get(action or "")
        if handler is None:
            logger.warning("No handler found for action: %s", action)
            raise UnknownActionError(action)
        return handler

    def dispatch(
        self, action: Optional[str], data: Optional[Mapping[str, Any]]
    ) -> PreparedRequest:
        """
        Build the provider request for an action.

        Args:
            action: The requested action name
            data: Caller-supplied, action-specific fields

        Returns:
            The prepared request

        Raises:
            UnknownActionError: If the action is not in the table
            InvalidRequestError: If a required field is missing
        """
        return self.handler_for(action)(data or {})

    def __str__(self) -> str:
        return f"ActionRouter(actions={sorted(self.handlers)})"
