"""Handler for weekly progress analysis."""

import json
from typing import Any, Dict, Mapping

from fitai_gateway.models import ActionKind, PreparedRequest
from fitai_gateway.strategy.action.base import (
    BaseActionHandler,
    as_mapping,
    first_present,
    round_half_up,
    to_float,
)

FAT_LOSS_CARDIO_TARGET = 180
DEFAULT_CARDIO_TARGET = 120
RECENT_WORKOUTS = 3


def _is_fat_loss(goal: Any) -> bool:
    if isinstance(goal, list):
        return "fat" in goal
    return goal == "fat"


class AnalyzeProgressHandler(BaseActionHandler):
    """
    Ask for an assessment of the past week of training.

    Weekly cardio minutes are summed from the extra activities of category
    "cardio" and compared with a target that depends on the primary goal.
    """

    action = ActionKind.ANALYZE_PROGRESS.value

    def __call__(self, data: Mapping[str, Any]) -> PreparedRequest:
        weekly_stats = as_mapping(data.get("weeklyStats"))
        profile = as_mapping(data.get("userProfile"))
        recent_workouts = data.get("recentWorkouts") or []
        extra_activities = data.get("extraActivities") or []

        cardio_minutes = sum(
            to_float(activity.get("durationMinutes"), 0.0)
            for activity in extra_activities
            if isinstance(activity, Mapping) and activity.get("category") == "cardio"
        )
        cardio_target = (
            FAT_LOSS_CARDIO_TARGET
            if _is_fat_loss(profile.get("primaryGoal"))
            else DEFAULT_CARDIO_TARGET
        )

        system_prompt = f"""Eres FITAI Elite Coach. Analiza la consistencia y el rendimiento.
Recuerda ocasionalmente que registrar entrenamientos, pesos y comidas es CRÍTICO.
La meta semanal de cardio es de {cardio_target} minutos.

Responde ÚNICAMENTE con un objeto JSON válido:
{{"overallAssessment": "...", "progressScore": 0, "cardioProgress": 0, "strengths": ["..."], "areasToImprove": ["..."], "weeklyGoals": ["..."]}}"""

        recent = (
            recent_workouts[:RECENT_WORKOUTS] if isinstance(recent_workouts, list) else []
        )
        user_prompt = f"""Analiza mi progreso:
- Entrenamientos de pesas: {weekly_stats.get("workoutsThisWeek") or 0} de {first_present(profile, "trainingFrequency", default=3)} planeados.
- Minutos de cardio: {cardio_minutes:g} de {cardio_target} minutos objetivo.
- Objetivo: {first_present(profile, "primaryGoal", default="Mejora general")}
- Últimos entrenamientos: {json.dumps(recent, ensure_ascii=False, default=str)}"""

        return PreparedRequest(
            action=self.action,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            context={"cardioMinutes": cardio_minutes, "cardioTarget": cardio_target},
        )

    def postprocess(
        self, payload: Dict[str, Any], prepared: PreparedRequest
    ) -> Dict[str, Any]:
        if payload.get("cardioProgress") is None:
            minutes = prepared.context["cardioMinutes"]
            target = prepared.context["cardioTarget"]
            payload["cardioProgress"] = min(
                100, round_half_up(minutes / target * 100)
            )
        return payload
