from calorie_ai.schemas.food import AnalysisResult, Ingredient, LOW_ACCURACY_THRESHOLD

__all__ = ["AnalysisResult", "Ingredient", "LOW_ACCURACY_THRESHOLD"]
