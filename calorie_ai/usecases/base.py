from abc import ABC, abstractmethod
from typing import Any
import logging
from ..client import BedrockClient

logger = logging.getLogger(__name__)

class UseCase(ABC):
    """Base class for all AI use cases"""

    def __init__(self, client: BedrockClient):
        """
        Initialize the use case

        Args:
            client: BedrockClient built once from validated configuration
        """
        self.client = client

    @abstractmethod
    def run(self, data: Any) -> Any:
        """
        Execute the use case logic

        Args:
            data: Input data for the use case

        Returns:
            The result of the use case execution
        """
        pass

    def format_prompt(self, data: Any) -> str:
        """
        Format the prompt for the specific use case

        Args:
            data: Input data to format into a prompt

        Returns:
            Formatted prompt string
        """
        raise NotImplementedError("Subclasses must implement format_prompt")

    def parse_response(self, response: Any) -> Any:
        """
        Parse the model response for the specific use case

        Args:
            response: Raw model response

        Returns:
            Parsed and formatted response
        """
        return response

    def close(self):
        """Close and clean up resources"""
        if getattr(self, 'client', None):
            logger.debug(f"Closing {type(self).__name__}")
            self.client.close()
