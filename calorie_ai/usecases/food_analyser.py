# food_analyser.py
import logging
import time
from contextlib import contextmanager
from typing import Union
from calorie_ai.config import ConfigError
from calorie_ai.schemas.food import AnalysisResult
from calorie_ai.usecases.base import UseCase
from calorie_ai.utils.image_utils import EncodedImage
from calorie_ai.utils.response_parser import parse_analysis

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """Analyze the food photo to determine its calorific content.

Instructions:
- Identify all visible ingredients and infer likely hidden ingredients (e.g. cooking oil, butter, sauces, dressings, seasonings).
- For each ingredient, estimate:
    - name: Be specific (e.g. "grilled chicken breast" instead of just "chicken").
    - grams: Weight based on the portion size in the photo.
    - calories: Based on the estimated weight and typical calorific values.
    - accuracy_percentage: Your confidence in the identification and weight/calorie estimate (e.g. 80 if highly confident, 60 if less certain).
- For hidden ingredients, base the estimate on visual cues and common culinary practice. Fold that reasoning into the numbers; do not return it.
- Do not list ingredients that are already counted within a whole item (e.g. a muffin and the muffin's ingredients).
- Provide an overall accuracy percentage for the entire analysis, considering all ingredients.

Respond ONLY with a single JSON object in this format:
{
  "ingredients": [
    {
      "name": "...",
      "grams": 0,
      "calories": 0,
      "accuracy_percentage": 0
    }
  ],
  "overall_accuracy_percentage": 0
}"""

class FoodAnalyserError(Exception):
    """Errors specific to food analysis"""
    pass

class AnalysisFailedError(FoodAnalyserError):
    """The remote analysis call failed; the cause is logged, not exposed"""
    pass

def as_encoded_image(image: Union[EncodedImage, str]) -> EncodedImage:
    """Accept an EncodedImage, a data URI or bare base64"""
    if isinstance(image, EncodedImage):
        return image
    return EncodedImage.from_data_uri(image)

class FoodAnalyser(UseCase):
    """Photo to ingredient/calorie breakdown through a multimodal model"""

    def format_prompt(self, data=None) -> str:
        return ANALYSIS_PROMPT

    @contextmanager
    def _remote_call(self):
        start_time = time.time()
        try:
            yield
        except ConfigError:
            raise
        except Exception as e:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Vision analysis failed after {elapsed_ms}ms: {str(e)}")
            raise AnalysisFailedError("Failed to analyze image")
        logger.info(f"Vision analysis completed in {int((time.time() - start_time) * 1000)}ms")

    def analyze(self, image: Union[EncodedImage, str]) -> str:
        """
        Send the photo with the fixed instruction and return the model's raw text

        Raises:
            ConfigError: No API key configured
            AnalysisFailedError: Undecodable image, or any network or API failure
        """
        with self._remote_call():
            image = as_encoded_image(image)
            logger.info(f"Analyzing {image.mime_type} image ({len(image.data)} bytes)")
            response = self.client.invoke(self.format_prompt(), image=image)
        return response["text"]

    async def analyze_async(self, image: Union[EncodedImage, str]) -> str:
        """Awaitable analyze; suspends for the network round trip"""
        with self._remote_call():
            image = as_encoded_image(image)
            logger.info(f"Analyzing {image.mime_type} image ({len(image.data)} bytes)")
            response = await self.client.invoke_async(self.format_prompt(), image=image)
        return response["text"]

    def parse_response(self, response: str) -> AnalysisResult:
        return parse_analysis(response)

    def run(self, data: Union[EncodedImage, str]) -> AnalysisResult:
        """Analyze a photo and return the normalized result"""
        return self.parse_response(self.analyze(data))

    async def run_async(self, data: Union[EncodedImage, str]) -> AnalysisResult:
        return self.parse_response(await self.analyze_async(data))
