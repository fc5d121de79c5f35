# calorie_ai/config.py
import os
from enum import Enum

class ModelProvider(str, Enum):
    CLAUDE = "anthropic"
    LLAMA = "meta"

class ConfigError(Exception):
    """Base exception for configuration errors"""
    pass

# Bedrock API key; boto3 resolves the same variable when signing requests.
API_KEY_ENV = "AWS_BEARER_TOKEN_BEDROCK"

class ModelConfig:
    def __init__(self):
        self.api_key = os.getenv(API_KEY_ENV, "")
        self.model_provider = os.getenv("MODEL_PROVIDER", ModelProvider.CLAUDE)
        self.model_id = os.getenv("MODEL_ID", "anthropic.claude-3-haiku-20240307-v1:0")
        self.region = os.getenv("AWS_REGION", "us-east-1")

        try:
            self.max_tokens = int(os.getenv("MAX_TOKENS", 4096))
        except ValueError:
            raise ValueError("MAX_TOKENS must be a valid integer")

        try:
            self.temperature = float(os.getenv("TEMPERATURE", 0.1))
        except ValueError:
            raise ValueError("TEMPERATURE must be a valid float")

        self.validate()

    def validate(self):
        """Validate configuration parameters."""
        if not self.api_key:
            raise ConfigError(f"{API_KEY_ENV} is not set. Add your Bedrock API key to the environment.")

        try:
            self.model_provider = ModelProvider(self.model_provider)
        except ValueError:
            supported = ", ".join(provider.value for provider in ModelProvider)
            raise ConfigError(f"MODEL_PROVIDER must be one of: {supported} (got {self.model_provider!r})")

        if self.max_tokens <= 0:
            raise ConfigError("MAX_TOKENS must be greater than 0")

        if self.temperature < 0 or self.temperature > 1:
            raise ConfigError("TEMPERATURE must be between 0 and 1")
