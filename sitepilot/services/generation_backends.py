"""Code-generation backends for Vertex AI Gemini and Anthropic Claude.

Every backend exposes the same ``complete(prompt) -> str`` surface; request
and response shapes of each vendor stay inside its class.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

import anthropic
from google.cloud import aiplatform
from vertexai.generative_models import GenerativeModel

from ..core.config import GenerationConfig
from ..core.types import ModelChoice

logger = logging.getLogger(__name__)


MODEL_CATALOG: List[Dict[str, str]] = [
    {
        "id": ModelChoice.GEMINI_FLASH.value,
        "name": "Gemini Flash",
        "description": "Fast and efficient for simple changes",
    },
    {
        "id": ModelChoice.GEMINI_PRO.value,
        "name": "Gemini Pro",
        "description": "More capable for complex changes",
    },
    {
        "id": ModelChoice.CLAUDE_OPUS.value,
        "name": "Claude Opus",
        "description": "Most capable for sophisticated changes",
    },
]


class GenerationBackend(ABC):
    """Text-in, text-out access to one generation model."""

    model: str

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Submit ``prompt`` and return the raw response text."""


class GeminiBackend(GenerationBackend):
    """Gemini model served by Vertex AI."""

    def __init__(
        self,
        model: str,
        project: Optional[str] = None,
        location: str = "us-central1",
        temperature: float = 0.1,
        max_tokens: int = 8192,
    ):
        self.model = model
        self.project = project
        self.location = location
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._initialized = False

    def complete(self, prompt: str) -> str:
        if not self._initialized:
            aiplatform.init(project=self.project, location=self.location)
            self._initialized = True
        response = GenerativeModel(self.model).generate_content(
            prompt,
            generation_config={
                "temperature": self.temperature,
                "max_output_tokens": self.max_tokens,
            },
        )
        return response.text


class ClaudeBackend(GenerationBackend):
    """Claude model served by the Anthropic API."""

    def __init__(self, model: str, api_key: Optional[str] = None, max_tokens: int = 8192):
        self.model = model
        self.api_key = api_key
        self.max_tokens = max_tokens
        self._client: Optional[anthropic.Anthropic] = None

    @property
    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("ANTHROPIC_API_KEY is required to use the Claude backend")
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def complete(self, prompt: str) -> str:
        message = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        for block in message.content or []:
            if getattr(block, "type", None) == "text":
                return block.text
        raise RuntimeError("No text response from Claude")


def build_backends(config: GenerationConfig) -> Dict[ModelChoice, GenerationBackend]:
    """Create one backend per supported model choice."""
    return {
        ModelChoice.GEMINI_FLASH: GeminiBackend(
            config.gemini_flash_model, config.gcp_project, config.gcp_location,
            config.temperature, config.max_output_tokens,
        ),
        ModelChoice.GEMINI_PRO: GeminiBackend(
            config.gemini_pro_model, config.gcp_project, config.gcp_location,
            config.temperature, config.max_output_tokens,
        ),
        ModelChoice.CLAUDE_OPUS: ClaudeBackend(
            config.claude_model, config.anthropic_api_key, config.max_output_tokens,
        ),
    }
