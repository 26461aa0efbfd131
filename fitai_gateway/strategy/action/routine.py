"""Handlers for training routine actions."""

from typing import Any, Dict, Mapping

from fitai_gateway.errors import ExtractionError
from fitai_gateway.models import ActionKind, PreparedRequest
from fitai_gateway.strategy.action.base import (
    BaseActionHandler,
    first_integer,
    first_present,
    require,
)

DEFAULT_DAYS = 5

ROUTINE_SYSTEM_PROMPT = """Eres FITAI Master Coach, experto en culturismo y recomposición corporal.
Responde ÚNICAMENTE con un objeto JSON válido, sin texto adicional ni bloques markdown.
- Usa series piramidales (ej. "4x12-10-10-8") y técnicas de intensidad (dropsets, superseries).
- Nombra las máquinas concretas (ej. "Prensa 45°", "Hack Squat", "Polea alta").
- El primer ejercicio de cada día es un compuesto con 2x15 de calentamiento.
- Termina cada día con un circuito de core y coloca entre 6 y 8 ejercicios por día.
- Si el objetivo es perder grasa o recomposición, incluye cardio en el campo "cardio" de cada día.
Genera TODOS los días solicitados, cada uno con sus propios ejercicios."""

IMAGE_SYSTEM_PROMPT = (
    "Eres un asistente que SIEMPRE responde con JSON válido y estructurado. "
    "Nunca añadas texto fuera del JSON."
)

IMAGE_USER_PROMPT = """Analiza esta imagen de una rutina de entrenamiento y extrae todos los ejercicios visibles.
Si la rutina está dividida en días, organízala por día; si no, usa un único día llamado "Rutina Completa".
Responde SOLO con JSON con esta estructura:
{
  "title": "nombre descriptivo de la rutina",
  "notes": "objetivos o consejos breves",
  "days": [
    {"day": "Día 1", "focus": "grupo muscular", "exercises": [{"name": "Press Banca", "sets": "4", "reps": "8-10", "notes": ""}]}
  ]
}"""


class GenerateRoutineHandler(BaseActionHandler):
    """Build a multi-day training plan request from the athlete profile."""

    action = ActionKind.GENERATE_ROUTINE.value

    def __call__(self, data: Mapping[str, Any]) -> PreparedRequest:
        name = first_present(data, "name", default="el atleta")
        goal = first_present(data, "primaryGoal", "goal", default="fitness general")
        experience = first_present(
            data, "experienceYears", "level", default="principiante"
        )
        location = first_present(
            data, "trainingLocation", "equipment", default="gimnasio"
        )
        days = first_integer(
            first_present(
                data, "trainingFrequency", "frequency", "daysPerWeek", default=DEFAULT_DAYS
            ),
            DEFAULT_DAYS,
        )

        user_prompt = f"""Genera un plan de entrenamiento COMPLETO de {days} DÍAS para {name}.
Objetivo: {goal}. Experiencia: {experience}. Equipo: {location}.
El array "days" debe contener EXACTAMENTE {days} objetos.

Responde SOLO con JSON válido:
{{
  "title": "Protocolo {days} Días - {name}",
  "description": "Plan de {days} días enfocado en {goal}",
  "daysPerWeek": {days},
  "days": [
    {{"day": "Día 1", "focus": "...", "warmup": "...", "exercises": [{{"name": "...", "sets": 4, "reps": "12-10-10-8", "rest": "90s", "muscleGroup": "...", "machineName": "...", "notes": "..."}}], "cardio": "...", "stretching": "..."}}
  ],
  "progression": {{"tips": "..."}}
}}"""

        return PreparedRequest(
            action=self.action,
            system_prompt=ROUTINE_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            context={"days": days},
        )


class AnalyzeRoutineFromImageHandler(BaseActionHandler):
    """Read a routine from a photo or screenshot with the vision provider."""

    action = ActionKind.ANALYZE_ROUTINE_FROM_IMAGE.value

    def __init__(self, provider: str = "vision"):
        self.provider = provider

    def __call__(self, data: Mapping[str, Any]) -> PreparedRequest:
        image = str(require(data, "image", self.action))
        if "base64," in image:
            image = image.split("base64,", 1)[1]

        return PreparedRequest(
            action=self.action,
            system_prompt=IMAGE_SYSTEM_PROMPT,
            user_prompt=IMAGE_USER_PROMPT,
            image=f"data:image/jpeg;base64,{image}",
            provider=self.provider,
        )

    def postprocess(
        self, payload: Dict[str, Any], prepared: PreparedRequest
    ) -> Dict[str, Any]:
        days = payload.get("days")
        if not isinstance(days, list) or not days:
            raise ExtractionError(
                self.action, "The routine read from the image has no days"
            )
        return payload
