"""Handlers for diet and nutrition actions."""

from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping, Optional

from fitai_gateway.models import ActionKind, PreparedRequest
from fitai_gateway.strategy.action.base import (
    BaseActionHandler,
    first_present,
    require,
    round_half_up,
    to_float,
)

KG_PER_LB = 0.453592
FT_PER_CM = 0.032808

DEFAULT_WEIGHT = 70.0
DEFAULT_HEIGHT = 170.0
DEFAULT_AGE = 25
DEFAULT_MEALS_PER_DAY = 4

MIN_CALORIES = 1200
MAX_CALORIES = 6000
PROTEIN_G_PER_KG = 2.0
FATS_G_PER_KG = 0.9

_MALE = {"masculino", "male", "m", "hombre"}

DIET_SYSTEM_PROMPT = """Eres el simulador de nutrición clínica de FITAI, especializado en dieta argentina de alto rendimiento.
Conviertes macros en recetas exactas y realistas con el peso en gramos de cada ingrediente.
Responde SOLAMENTE en formato JSON."""

MACROS_SYSTEM_PROMPT = "Eres un nutricionista experto. Responde solo con JSON."


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def activity_factor(training_frequency: str) -> float:
    freq = training_frequency.lower()
    if "5-6" in freq or "diario" in freq:
        return 1.725
    if "3-4" in freq:
        return 1.55
    if "1-2" in freq:
        return 1.375
    return 1.2


class GenerateDietHandler(BaseActionHandler):
    """
    Compute daily targets from the athlete profile and request a weekly plan.

    Basal metabolic rate uses the Mifflin-St Jeor equation; weights in pounds
    and heights in feet are converted first.
    """

    action = ActionKind.GENERATE_DIET.value

    def __init__(self, today: Optional[Callable[[], date]] = None):
        self._today = today or _utc_today

    def targets(self, data: Mapping[str, Any]) -> dict:
        """Return the daily calorie and macro targets for `data`."""
        weight = to_float(data.get("weight"), DEFAULT_WEIGHT)
        height = to_float(data.get("height"), DEFAULT_HEIGHT)
        weight_kg = weight * KG_PER_LB if data.get("weightUnit") == "lb" else weight
        height_cm = height / FT_PER_CM if data.get("heightUnit") == "ft" else height

        current_year = self._today().year
        try:
            age = current_year - int(data.get("birthYear") or current_year - DEFAULT_AGE)
        except (TypeError, ValueError):
            age = DEFAULT_AGE

        gender = str(first_present(data, "gender", default="Masculino")).lower()
        bmr = 10 * weight_kg + 6.25 * height_cm - 5 * age
        bmr += 5 if gender in _MALE else -161

        tdee = round_half_up(
            bmr * activity_factor(str(data.get("trainingFrequency") or ""))
        )

        calories = tdee
        goal = str(data.get("primaryGoal") or "").lower()
        if "muscle" in goal or "volumen" in goal:
            calories += 300
        elif "fat" in goal or "perder" in goal:
            calories -= 500
        calories = max(MIN_CALORIES, min(MAX_CALORIES, calories))

        protein = round_half_up(weight_kg * PROTEIN_G_PER_KG)
        fats = round_half_up(weight_kg * FATS_G_PER_KG)
        carbs = max(0, round_half_up((calories - protein * 4 - fats * 9) / 4))

        return {
            "calories": calories,
            "protein": protein,
            "carbs": carbs,
            "fats": fats,
            "weightKg": weight_kg,
            "heightCm": height_cm,
            "age": age,
        }

    def __call__(self, data: Mapping[str, Any]) -> PreparedRequest:
        t = self.targets(data)
        meals = first_present(data, "mealsPerDay", default=DEFAULT_MEALS_PER_DAY)

        user_prompt = f"""Genera un PLAN NUTRICIONAL DE 7 DÍAS basado en cocina argentina.

OBJETIVOS DIARIOS:
- CALORÍAS: {t["calories"]} kcal
- PROTEÍNA: {t["protein"]}g
- CARBOHIDRATOS: {t["carbs"]}g
- GRASAS: {t["fats"]}g
- COMIDAS: {meals} comidas diarias.

FORMATO DE SALIDA (JSON):
{{
  "title": "Protocolo Argentino: {t["calories"]} kcal",
  "description": "...",
  "weeklyPlan": {{"Lunes": [{{"name": "...", "time": "hh:mm", "description": "- 200g de ...", "calories": 0, "macros": {{"protein": 0, "carbs": 0, "fats": 0}}}}]}},
  "weeklyMacros": {{"calories": {t["calories"]}, "protein": {t["protein"]}, "carbs": {t["carbs"]}, "fats": {t["fats"]}}},
  "hydration": "...",
  "shoppingList": ["..."],
  "tips": ["..."]
}}"""

        return PreparedRequest(
            action=self.action,
            system_prompt=DIET_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            context=t,
        )


class CalculateMacrosHandler(BaseActionHandler):
    """Estimate the macronutrients of a free-text food description."""

    action = ActionKind.CALCULATE_MACROS.value

    def __call__(self, data: Mapping[str, Any]) -> PreparedRequest:
        food = require(data, "foodDescription", self.action)
        user_prompt = f"""Calcula los macronutrientes para: "{food}" (si no hay cantidad, asume una porción estándar).

Responde SOLO con JSON:
{{"name": "nombre del alimento", "calories": 0, "protein": 0, "carbs": 0, "fats": 0, "quantity": "cantidad", "unit": "unidad"}}"""

        return PreparedRequest(
            action=self.action,
            system_prompt=MACROS_SYSTEM_PROMPT,
            user_prompt=user_prompt,
        )


class MealRecipeHandler(BaseActionHandler):
    """Forward caller-built recipe prompts as they are."""

    action = ActionKind.MEAL_RECIPE.value

    def __call__(self, data: Mapping[str, Any]) -> PreparedRequest:
        return PreparedRequest(
            action=self.action,
            system_prompt=str(require(data, "customSystemPrompt", self.action)),
            user_prompt=str(require(data, "customUserPrompt", self.action)),
        )
