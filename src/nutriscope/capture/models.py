from pydantic import BaseModel, ConfigDict, Field


class NutritionEstimate(BaseModel):
    """Nutrition estimated from a meal photo."""

    model_config = ConfigDict(extra="ignore")

    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fats: float | None = None


class ImageAnalysis(BaseModel):
    """Result of describing a meal image."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    description: str = ""
    estimated_nutrition: NutritionEstimate | None = Field(
        default=None,
        alias="estimatedNutrition",
        description="Estimated nutrition for the pictured meal"
    )


def _num(value: float) -> str:
    return f"{value:g}"


def compose_input_from_analysis(current: str, analysis: ImageAnalysis) -> str:
    """Merge an image description into the composition buffer.

    The description is appended to any existing text; the nutrition
    estimate follows as ``Estimated nutrition: X calories, Yg protein``
    with carbs and fats only when present. An empty description leaves
    the buffer unchanged.
    """
    if not analysis.description:
        return current

    text = f"{current} {analysis.description}" if current else analysis.description

    nutrition = analysis.estimated_nutrition
    if nutrition is not None:
        nutrition_text = (
            f"Estimated nutrition: {_num(nutrition.calories or 0)} calories, "
            f"{_num(nutrition.protein or 0)}g protein"
        )
        if nutrition.carbs:
            nutrition_text += f", {_num(nutrition.carbs)}g carbs"
        if nutrition.fats:
            nutrition_text += f", {_num(nutrition.fats)}g fats"
        text = f"{text}. {nutrition_text}"

    return text
