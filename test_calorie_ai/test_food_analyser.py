import asyncio
import base64
import pytest
from unittest.mock import AsyncMock

from calorie_ai.client import BedrockClientError
from calorie_ai.config import ConfigError
from calorie_ai.usecases.food_analyser import ANALYSIS_PROMPT, AnalysisFailedError, FoodAnalyser
from calorie_ai.utils.response_parser import FormatError


class TestFoodAnalyser:
    def test_prompt_covers_instructions(self, analyser):
        """The fixed instruction asks for hidden ingredients, confidences and JSON."""
        prompt = analyser.format_prompt()

        assert prompt == ANALYSIS_PROMPT
        assert "hidden ingredients" in prompt
        assert "already counted within a whole item" in prompt
        assert '"accuracy_percentage"' in prompt
        assert '"overall_accuracy_percentage"' in prompt
        assert "JSON" in prompt

    def test_analyze_strips_data_uri_prefix(self, analyser, mock_bedrock_client, as_data_uri, jpeg_bytes):
        # Act
        text = analyser.analyze(as_data_uri(jpeg_bytes))

        # Assert
        assert text == mock_bedrock_client.invoke.return_value["text"]
        sent_image = mock_bedrock_client.invoke.call_args.kwargs["image"]
        assert sent_image.data == jpeg_bytes
        assert sent_image.to_base64() == base64.b64encode(jpeg_bytes).decode()
        assert mock_bedrock_client.invoke.call_args[0][0] == ANALYSIS_PROMPT

    def test_run_returns_normalized_result(self, analyser, sample_image):
        result = analyser.run(sample_image)

        assert result.ingredients[0].name == "rice"
        assert result.ingredients[0].accuracy_percentage == 0
        assert result.overall_accuracy_percentage == 85

    def test_api_error_is_opaque(self, mock_bedrock_client, sample_image):
        mock_bedrock_client.invoke.side_effect = BedrockClientError("AWS service error: denied")
        analyser = FoodAnalyser(mock_bedrock_client)

        with pytest.raises(AnalysisFailedError) as exc_info:
            analyser.analyze(sample_image)

        assert str(exc_info.value) == "Failed to analyze image"

    def test_unexpected_error_is_opaque(self, mock_bedrock_client, sample_image):
        mock_bedrock_client.invoke.side_effect = TimeoutError("socket timed out")
        analyser = FoodAnalyser(mock_bedrock_client)

        with pytest.raises(AnalysisFailedError):
            analyser.analyze(sample_image)

    def test_undecodable_image_is_an_analysis_failure(self, analyser, mock_bedrock_client):
        with pytest.raises(AnalysisFailedError):
            analyser.analyze("data:image/jpeg;base64,not*base64!")

        mock_bedrock_client.invoke.assert_not_called()

    def test_config_error_passes_through(self, mock_bedrock_client, sample_image):
        mock_bedrock_client.invoke.side_effect = ConfigError("no key")
        analyser = FoodAnalyser(mock_bedrock_client)

        with pytest.raises(ConfigError):
            analyser.analyze(sample_image)

    def test_unstructured_reply(self, mock_bedrock_client, sample_image):
        mock_bedrock_client.invoke.return_value = {"text": "I can't tell what this is."}
        analyser = FoodAnalyser(mock_bedrock_client)

        with pytest.raises(FormatError):
            analyser.run(sample_image)

    def test_run_async(self, mock_bedrock_client, sample_image):
        mock_bedrock_client.invoke_async = AsyncMock(return_value={"text": '{"ingredients": [{"name": "Egg"}]}'})
        analyser = FoodAnalyser(mock_bedrock_client)

        result = asyncio.run(analyser.run_async(sample_image))

        assert result.ingredients[0].name == "egg"
        mock_bedrock_client.invoke.assert_not_called()

    def test_analyze_async_error_is_opaque(self, mock_bedrock_client, sample_image):
        mock_bedrock_client.invoke_async = AsyncMock(side_effect=BedrockClientError("boom"))
        analyser = FoodAnalyser(mock_bedrock_client)

        with pytest.raises(AnalysisFailedError):
            asyncio.run(analyser.analyze_async(sample_image))

    def test_close_closes_client(self, analyser, mock_bedrock_client):
        analyser.close()

        mock_bedrock_client.close.assert_called_once()
