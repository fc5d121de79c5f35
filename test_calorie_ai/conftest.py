import base64
import json
import os
from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest

from calorie_ai.client import BedrockClient
from calorie_ai.config import API_KEY_ENV, ModelConfig, ModelProvider
from calorie_ai.usecases.food_analyser import FoodAnalyser
from calorie_ai.utils.image_utils import EncodedImage

RICE_RESPONSE = (
    '{"ingredients":[{"name":"Rice","grams":100,"calories":130}],'
    '"overall_accuracy_percentage":85}'
)

@pytest.fixture(autouse=True)
def aws_credentials():
    """Mocked Bedrock API key for every test."""
    with patch.dict(os.environ, {API_KEY_ENV: "testing", "AWS_DEFAULT_REGION": "us-east-1"}):
        yield

@pytest.fixture
def test_config():
    """Returns a test configuration."""
    test_config = ModelConfig()
    test_config.model_provider = ModelProvider.CLAUDE
    test_config.model_id = "anthropic.claude-3-haiku-20240307-v1:0"
    test_config.region = "us-east-1"
    test_config.max_tokens = 1024
    test_config.temperature = 0.1
    return test_config

@pytest.fixture
def boto3_bedrock_client():
    """Mocked boto3 bedrock client."""
    with patch("boto3.client") as mock_client:
        client = MagicMock()
        mock_client.return_value = client
        yield client

@pytest.fixture
def mock_bedrock_client():
    """Returns a mocked BedrockClient instance."""
    return MagicMock(spec=BedrockClient)

@pytest.fixture
def analyser(mock_bedrock_client):
    """FoodAnalyser whose remote call answers with the rice example."""
    mock_bedrock_client.invoke.return_value = {"text": RICE_RESPONSE}
    return FoodAnalyser(mock_bedrock_client)

@pytest.fixture
def jpeg_bytes():
    return b"\xff\xd8\xff\xe0fake-jpeg-payload\xff\xd9"

@pytest.fixture
def sample_image(jpeg_bytes):
    return EncodedImage(mime_type="image/jpeg", data=jpeg_bytes)

@pytest.fixture
def claude_body():
    """Builds a Bedrock invoke_model response carrying Claude 3 text."""
    def build(text):
        payload = {"content": [{"type": "text", "text": text}], "stop_reason": "end_turn"}
        return {
            "ResponseMetadata": {"HTTPStatusCode": 200},
            "body": BytesIO(json.dumps(payload).encode()),
        }
    return build

@pytest.fixture
def as_data_uri():
    """Formats bytes the way a browser FileReader does."""
    def build(data: bytes, mime_type: str = "image/jpeg") -> str:
        return f"data:{mime_type};base64,{base64.b64encode(data).decode()}"
    return build
