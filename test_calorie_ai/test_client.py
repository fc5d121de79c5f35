import asyncio
import base64
import json
import pytest
from io import BytesIO
from unittest.mock import patch

from botocore.exceptions import ClientError

from calorie_ai.client import (
    ANTHROPIC_VERSION, BedrockClient, BedrockClientError, BedrockRateLimitError, BedrockRequestError
)
from calorie_ai.config import ConfigError, ModelProvider

class TestBedrockClient:
    def test_init_with_config(self, test_config):
        """Test client initialization with an explicit config."""
        with patch("boto3.client") as mock_boto3:
            client = BedrockClient(test_config)
            assert client.config is test_config
            mock_boto3.assert_called_once_with("bedrock-runtime",
                                              region_name=test_config.region)

    def test_format_prompt_claude_with_image(self, boto3_bedrock_client, test_config, sample_image):
        """Claude 3 gets a Messages body with the raw base64 image first."""
        client = BedrockClient(test_config)

        formatted = client._format_prompt("Describe the meal", sample_image)

        content = formatted["messages"][0]["content"]
        assert content[0]["type"] == "image"
        assert content[0]["source"] == {
            "type": "base64",
            "media_type": "image/jpeg",
            "data": base64.b64encode(sample_image.data).decode()
        }
        assert not content[0]["source"]["data"].startswith("data:")
        assert content[1] == {"type": "text", "text": "Describe the meal"}
        assert formatted["anthropic_version"] == ANTHROPIC_VERSION
        assert formatted["max_tokens"] == test_config.max_tokens
        assert formatted["temperature"] == test_config.temperature

    def test_format_prompt_claude_text_only(self, boto3_bedrock_client, test_config):
        client = BedrockClient(test_config)

        formatted = client._format_prompt("Hello, world!")

        assert formatted["messages"][0]["content"] == [{"type": "text", "text": "Hello, world!"}]

    def test_format_prompt_llama(self, boto3_bedrock_client, test_config, sample_image):
        """Test prompt formatting for Llama 3.2 vision models."""
        test_config.model_provider = ModelProvider.LLAMA
        client = BedrockClient(test_config)

        formatted = client._format_prompt("Hello, world!", sample_image)

        assert "<|image|>Hello, world!" in formatted["prompt"]
        assert formatted["images"] == [base64.b64encode(sample_image.data).decode()]
        assert formatted["max_gen_len"] == test_config.max_tokens
        assert formatted["temperature"] == test_config.temperature

    def test_format_prompt_unsupported_provider(self, boto3_bedrock_client, test_config):
        """Test prompt formatting for unsupported provider."""
        test_config.model_provider = "unsupported"
        client = BedrockClient(test_config)

        with pytest.raises(BedrockRequestError):
            client._format_prompt("Hello, world!")

    def test_invoke_successful(self, boto3_bedrock_client, test_config, claude_body, sample_image):
        """Test successful model invocation."""
        boto3_bedrock_client.invoke_model.return_value = claude_body("Sample response from Claude model")
        client = BedrockClient(test_config)

        result = client.invoke("Test prompt", image=sample_image)

        boto3_bedrock_client.invoke_model.assert_called_once()
        kwargs = boto3_bedrock_client.invoke_model.call_args.kwargs
        assert kwargs["modelId"] == test_config.model_id
        body = json.loads(kwargs["body"])
        assert body["messages"][0]["content"][0]["type"] == "image"
        assert result == {"text": "Sample response from Claude model"}

    def test_invoke_error(self, boto3_bedrock_client, test_config):
        """Test error handling during invocation."""
        boto3_bedrock_client.invoke_model.side_effect = Exception("API Error")
        client = BedrockClient(test_config)

        with pytest.raises(BedrockClientError):
            client.invoke("Test prompt")

    def test_invoke_aws_error(self, boto3_bedrock_client, test_config):
        boto3_bedrock_client.invoke_model.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "denied"}}, "InvokeModel")
        client = BedrockClient(test_config)

        with pytest.raises(BedrockClientError) as exc_info:
            client.invoke("Test prompt")
        assert not isinstance(exc_info.value, BedrockRateLimitError)

    def test_invoke_throttled(self, boto3_bedrock_client, test_config):
        boto3_bedrock_client.invoke_model.side_effect = ClientError(
            {"Error": {"Code": "ThrottlingException", "Message": "slow down"}}, "InvokeModel")
        client = BedrockClient(test_config)

        with pytest.raises(BedrockRateLimitError):
            client.invoke("Test prompt")

    def test_invoke_rate_limited_status(self, boto3_bedrock_client, test_config):
        boto3_bedrock_client.invoke_model.return_value = {
            "ResponseMetadata": {"HTTPStatusCode": 429},
            "body": BytesIO(b"{}")
        }
        client = BedrockClient(test_config)

        with pytest.raises(BedrockRateLimitError):
            client.invoke("Test prompt")

    def test_invoke_without_api_key_fails_before_network(self, boto3_bedrock_client, test_config):
        """A missing credential is raised as ConfigError and nothing is sent."""
        client = BedrockClient(test_config)
        client.config.api_key = ""

        with pytest.raises(ConfigError):
            client.invoke("Test prompt")
        boto3_bedrock_client.invoke_model.assert_not_called()

    def test_invoke_async(self, boto3_bedrock_client, test_config, claude_body):
        boto3_bedrock_client.invoke_model.return_value = claude_body("async text")
        client = BedrockClient(test_config)

        result = asyncio.run(client.invoke_async("Test prompt"))

        assert result == {"text": "async text"}

    def test_parse_response_llama(self, boto3_bedrock_client, test_config):
        """Test response parsing for Llama."""
        test_config.model_provider = ModelProvider.LLAMA
        client = BedrockClient(test_config)

        result = client._parse_response({"generation": "Sample response from Llama model"})
        assert result == {"text": "Sample response from Llama model"}

    def test_parse_response_claude(self, boto3_bedrock_client, test_config):
        """Test response parsing for Claude 3."""
        client = BedrockClient(test_config)

        claude3_response = {
            "content": [
                {"type": "text", "text": "Sample response "},
                {"type": "text", "text": "from Claude 3 model"}
            ]
        }
        result = client._parse_response(claude3_response)
        assert result["text"] == "Sample response from Claude 3 model"

    def test_close_is_idempotent(self, boto3_bedrock_client, test_config):
        with BedrockClient(test_config) as client:
            pass
        client.close()

        boto3_bedrock_client.close.assert_called_once()
        with pytest.raises(BedrockClientError):
            client.invoke("Test prompt")
