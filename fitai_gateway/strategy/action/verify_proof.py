from typing import Any, Mapping

from fitai_gateway.models import ActionKind, PreparedRequest
from fitai_gateway.strategy.action.base import BaseActionHandler, first_present

VERIFY_SYSTEM_PROMPT = "Eres un verificador estricto de actividad física."


class VerifyProofHandler(BaseActionHandler):
    """Ask the model whether an image proves the claimed activity."""

    action = ActionKind.VERIFY_PROOF.value

    def __call__(self, data: Mapping[str, Any]) -> PreparedRequest:
        activity = first_present(data, "activityName", default="entrenamiento")
        user_prompt = f"""¿Es esta imagen una prueba válida de actividad física ({activity})?
Analiza la imagen y responde SOLO JSON:
{{"verified": true, "confidence": 0.0, "reason": "explicación"}}"""

        return PreparedRequest(
            action=self.action,
            system_prompt=VERIFY_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            image=data.get("image") or None,
        )
