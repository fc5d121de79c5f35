import asyncio
import boto3
import json
import logging
import time
from typing import Dict, Any, Optional
from botocore.exceptions import BotoCoreError, ClientError
from prometheus_client import CollectorRegistry, Counter, Histogram, Gauge
from .config import ModelConfig, ModelProvider, ConfigError, API_KEY_ENV
from .utils.image_utils import EncodedImage


logger = logging.getLogger(__name__)

# Create a module-level registry
registry = CollectorRegistry()

# Register metrics on this registry
REQUEST_COUNTER = Counter('bedrock_requests_total', 'Total number of requests to Bedrock API', ['model', 'status'], registry=registry)
RESPONSE_TIME = Histogram('bedrock_response_time_seconds', 'Response time for Bedrock API calls', ['model'], registry=registry)
TOKEN_COUNTER = Counter('bedrock_tokens_total', 'Total tokens consumed', ['model', 'type'], registry=registry)
ACTIVE_REQUESTS = Gauge('bedrock_active_requests', 'Number of active requests', registry=registry)

ANTHROPIC_VERSION = "bedrock-2023-05-31"
THROTTLING_CODES = {"ThrottlingException", "TooManyRequestsException"}

class BedrockClientError(Exception):
    """Base exception for BedrockClient errors"""
    pass

class BedrockRequestError(BedrockClientError):
    """Errors related to request formation"""
    pass

class BedrockResponseError(BedrockClientError):
    """Errors related to response handling"""
    pass

class BedrockRateLimitError(BedrockClientError):
    """Errors related to rate limiting"""
    pass

def estimate_tokens(text: str) -> int:
    """Approximate token count; an English word averages ~1.3 tokens"""
    return int(len(text.split()) * 1.3)

class BedrockClient:
    """Client for multimodal calls to AWS Bedrock models"""

    def __init__(self, config: ModelConfig):
        """
        Initialize the Bedrock client

        Args:
            config: Validated model configuration
        """
        self.config = config
        self.client = boto3.client("bedrock-runtime", region_name=self.config.region)
        self.request_count = 0
        logger.info(f"Initialized BedrockClient with model {self.config.model_id}")

    @classmethod
    def from_env(cls) -> "BedrockClient":
        """Build a client from environment configuration"""
        return cls(ModelConfig())

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Close connections and clean up resources"""
        if self.client is None:
            return
        logger.info(f"Closing BedrockClient connection for model {self.config.model_id}")
        self.client.close()
        self.client = None

    def _format_prompt(self, prompt: str, image: Optional[EncodedImage] = None) -> Dict[str, Any]:
        try:
            if self.config.model_provider == ModelProvider.CLAUDE:
                content = [{"type": "text", "text": prompt}]
                if image is not None:
                    content.insert(0, {
                        "type": "image",
                        "source": {"type": "base64", "media_type": image.mime_type, "data": image.to_base64()}
                    })
                return {
                    "messages": [{"role": "user", "content": content}],
                    "max_tokens": self.config.max_tokens,
                    "temperature": self.config.temperature,
                    "anthropic_version": ANTHROPIC_VERSION
                }

            elif self.config.model_provider == ModelProvider.LLAMA:
                image_tag = "<|image|>" if image is not None else ""
                body = {
                    "prompt": (
                        "<|begin_of_text|><|start_header_id|>user<|end_header_id|>\n\n"
                        f"{image_tag}{prompt}<|eot_id|><|start_header_id|>assistant<|end_header_id|>\n\n"
                    ),
                    "max_gen_len": self.config.max_tokens,
                    "temperature": self.config.temperature
                }
                if image is not None:
                    body["images"] = [image.to_base64()]
                return body

            else:
                raise BedrockRequestError(f"Unsupported provider: {self.config.model_provider}")
        except BedrockRequestError:
            raise
        except Exception as e:
            logger.error(f"Error formatting prompt: {str(e)}")
            raise BedrockRequestError(f"Failed to format prompt: {str(e)}")

    def invoke(self, prompt: str, image: Optional[EncodedImage] = None) -> Dict[str, Any]:
        """
        Invoke the model with a prompt and an optional image

        Args:
            prompt: The text prompt to send to the model
            image: Optional image sent inline as raw base64

        Returns:
            The model's response as {"text": ...}

        Raises:
            ConfigError: If no API key is configured; raised before any network call
            BedrockClientError: If the API call fails
        """
        if not self.config.api_key:
            raise ConfigError(f"{API_KEY_ENV} is not set. Add your Bedrock API key to the environment.")
        if self.client is None:
            raise BedrockClientError("Client is closed")

        request_id = f"req_{int(time.time()*1000)}"
        self.request_count += 1
        ACTIVE_REQUESTS.inc()

        try:
            body = self._format_prompt(prompt, image)
            logger.debug(f"[{request_id}] Invoking model with prompt length: {len(prompt)}, "
                         f"image bytes: {len(image.data) if image is not None else 0}")

            # Track token usage (approximate)
            TOKEN_COUNTER.labels(model=self.config.model_id, type="input").inc(estimate_tokens(prompt))

            start_time = time.time()
            response = self.client.invoke_model(
                modelId=self.config.model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(body)
            )
            response_time = time.time() - start_time
            RESPONSE_TIME.labels(model=self.config.model_id).observe(response_time)

            status_code = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if status_code == 429:
                logger.warning(f"[{request_id}] Rate limited by AWS Bedrock")
                raise BedrockRateLimitError("Rate limit exceeded")
            if status_code is not None and status_code != 200:
                logger.warning(f"[{request_id}] Non-200 status code: {status_code}")

            response_body = json.loads(response["body"].read())
            logger.debug(f"[{request_id}] Received response of size: {len(str(response_body))}")

            parsed_response = self._parse_response(response_body)
            TOKEN_COUNTER.labels(model=self.config.model_id, type="output").inc(estimate_tokens(parsed_response["text"]))
            REQUEST_COUNTER.labels(model=self.config.model_id, status="success").inc()
            logger.info(f"[{request_id}] Completed in {int(response_time * 1000)}ms")

            return parsed_response

        except BedrockClientError:
            REQUEST_COUNTER.labels(model=self.config.model_id, status="error").inc()
            raise
        except ClientError as e:
            REQUEST_COUNTER.labels(model=self.config.model_id, status="error").inc()
            code = e.response.get("Error", {}).get("Code", "")
            if code in THROTTLING_CODES:
                logger.warning(f"[{request_id}] Rate limited by AWS Bedrock: {code}")
                raise BedrockRateLimitError("Rate limit exceeded")
            logger.error(f"[{request_id}] AWS error: {str(e)}")
            raise BedrockClientError(f"AWS service error: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"[{request_id}] Botocore error: {str(e)}")
            REQUEST_COUNTER.labels(model=self.config.model_id, status="error").inc()
            raise BedrockClientError(f"AWS service error: {str(e)}")
        except Exception as e:
            logger.error(f"[{request_id}] Unexpected error: {str(e)}")
            REQUEST_COUNTER.labels(model=self.config.model_id, status="error").inc()
            raise BedrockClientError(f"Failed to invoke model: {str(e)}")
        finally:
            ACTIVE_REQUESTS.dec()

    def _parse_response(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """
        Parse the response based on model provider

        Args:
            response: Raw API response

        Returns:
            Standardized response dictionary
        """
        try:
            if self.config.model_provider == ModelProvider.CLAUDE:
                content = response.get("content", [])
                if not isinstance(content, list):
                    raise BedrockResponseError(f"Unexpected 'content' format: {type(content)}")
                text = "".join([c.get("text", "") for c in content if c.get("type") == "text"])
            elif self.config.model_provider == ModelProvider.LLAMA:
                text = response.get("generation", "")
            else:
                raise BedrockResponseError(f"Unsupported provider: {self.config.model_provider}")

            if not text:
                logger.warning(f"Model returned empty text: {response}")
            return {"text": text}
        except BedrockResponseError:
            raise
        except Exception as e:
            logger.error(f"Error parsing response: {str(e)}")
            raise BedrockResponseError(f"Failed to parse response: {str(e)}")

    async def invoke_async(self, prompt: str, image: Optional[EncodedImage] = None) -> Dict[str, Any]:
        """
        Async version of invoke; the blocking boto3 call runs in a worker thread

        Args:
            prompt: The text prompt to send to the model
            image: Optional image

        Returns:
            The model's response as a dictionary
        """
        return await asyncio.to_thread(self.invoke, prompt, image)
