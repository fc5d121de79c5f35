import logging
import re
from pydantic import BaseModel, field_validator
from typing import Any, Dict, List, Union

logger = logging.getLogger(__name__)

Number = Union[int, float]

# Overall confidence below this is flagged to the user
LOW_ACCURACY_THRESHOLD = 70

# Leading number of a value like "100g", "85%" or "44.2 kcal"
_LEADING_NUMBER_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


def to_number(value: Any) -> Number:
    """
    Coerce a model-supplied quantity to a number

    Absent, null and falsy values become 0. Strings keep their leading number
    and drop any trailing unit or percent sign. Anything else becomes 0.
    """
    if not value:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        match = _LEADING_NUMBER_RE.match(value)
        if match:
            number = match.group(1)
            return float(number) if "." in number else int(number)
    logger.warning(f"Non-numeric quantity {value!r} defaulted to 0")
    return 0


class Ingredient(BaseModel):
    """One ingredient estimate as returned by the model"""
    name: str = ""
    grams: Number = 0
    calories: Number = 0
    accuracy_percentage: Number = 0

    @field_validator('name', mode='before')
    def lowercase_name(cls, v):
        if v is None:
            return ""
        return str(v).lower()

    @field_validator('grams', 'calories', 'accuracy_percentage', mode='before')
    def coerce_quantity(cls, v):
        return to_number(v)


class AnalysisResult(BaseModel):
    """Ingredient breakdown for one photo, in model output order"""
    ingredients: List[Ingredient]
    overall_accuracy_percentage: Number = 0

    @field_validator('overall_accuracy_percentage', mode='before')
    def coerce_percentage(cls, v):
        return to_number(v)

    @property
    def total_calories(self) -> Number:
        return sum(ingredient.calories for ingredient in self.ingredients)

    @property
    def is_low_accuracy(self) -> bool:
        return self.overall_accuracy_percentage < LOW_ACCURACY_THRESHOLD

    def to_json(self) -> Dict[str, Any]:
        """Convert the model to a JSON-serializable dictionary"""
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: Union[dict, 'AnalysisResult']) -> 'AnalysisResult':
        """Create an AnalysisResult from a dictionary"""
        if isinstance(data, cls):
            return data
        return cls(**data)
