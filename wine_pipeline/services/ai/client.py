"""AI client interface and provider abstraction."""

import json
import logging
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel

from wine_pipeline.services.ai.prompts import build_repair_prompt

logger = logging.getLogger(__name__)

MAX_REPAIR_ATTEMPTS = 2

# Placeholder values shipped in .env.example
_PLACEHOLDER_KEYS = {"your-anthropic-api-key-here", "your-openai-api-key-here"}


class AIProvider(str, Enum):
    """Supported AI providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class CompletionResult(BaseModel):
    """Result of a JSON completion attempt."""

    success: bool
    raw_response: str
    parsed_json: dict[str, Any] | None = None
    error_message: str | None = None
    repair_attempts: int = 0


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapped around a JSON answer."""
    json_str = text.strip()
    if json_str.startswith("```json"):
        json_str = json_str[7:]
    if json_str.startswith("```"):
        json_str = json_str[3:]
    if json_str.endswith("```"):
        json_str = json_str[:-3]
    return json_str.strip()


class AIClient(ABC):
    """Abstract base class for AI providers."""

    provider: AIProvider
    model: str

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 2000,
        json_mode: bool = True,
    ) -> str:
        """
        Send one completion request.

        Args:
            prompt: The user prompt.
            system_prompt: Optional system instructions.
            max_tokens: Response token ceiling.
            json_mode: Ask the provider for a JSON object response.

        Returns:
            The raw response text.
        """
        pass

    async def complete_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 2000,
    ) -> CompletionResult:
        """
        Request a JSON object and parse it, repairing malformed answers.

        Provider errors are captured in the result rather than raised.

        Args:
            prompt: The user prompt.
            system_prompt: Optional system instructions.
            max_tokens: Response token ceiling.

        Returns:
            CompletionResult with the parsed object or error details.
        """
        try:
            raw_response = await self.complete(prompt, system_prompt, max_tokens)
            logger.debug(f"Raw AI response: {raw_response[:500]}...")
        except Exception as e:
            logger.error(f"{self.provider.value} API error: {e}")
            return CompletionResult(
                success=False,
                raw_response="",
                error_message=f"API error: {str(e)}",
            )

        return await self._parse_json(raw_response)

    async def repair_json(self, invalid_json: str, error_message: str) -> str:
        """
        Attempt to repair invalid JSON with a follow-up completion.

        Args:
            invalid_json: The malformed JSON string.
            error_message: The error message from the parser.

        Returns:
            The repaired JSON string, or the original on failure.
        """
        prompt = build_repair_prompt(invalid_json, error_message)
        try:
            return await self.complete(prompt, max_tokens=4096)
        except Exception as e:
            logger.error(f"JSON repair API error: {e}")
            return invalid_json

    async def _parse_json(
        self,
        raw_response: str,
        repair_attempts: int = 0,
    ) -> CompletionResult:
        """
        Parse a JSON object response.

        Args:
            raw_response: The raw text from the AI.
            repair_attempts: Number of repair attempts made so far.

        Returns:
            CompletionResult with parsed data or error details.
        """
        json_str = strip_code_fences(raw_response)

        try:
            parsed_json = json.loads(json_str)
        except json.JSONDecodeError as e:
            error_msg = f"JSON parse error: {str(e)}"
            logger.warning(f"{error_msg} (attempt {repair_attempts + 1})")

            if repair_attempts < MAX_REPAIR_ATTEMPTS:
                repaired = await self.repair_json(json_str, str(e))
                return await self._parse_json(repaired, repair_attempts=repair_attempts + 1)

            return CompletionResult(
                success=False,
                raw_response=raw_response,
                error_message=error_msg,
                repair_attempts=repair_attempts,
            )

        if not isinstance(parsed_json, dict):
            return CompletionResult(
                success=False,
                raw_response=raw_response,
                error_message=f"Expected a JSON object, got {type(parsed_json).__name__}",
                repair_attempts=repair_attempts,
            )

        return CompletionResult(
            success=True,
            raw_response=raw_response,
            parsed_json=parsed_json,
            repair_attempts=repair_attempts,
        )


def get_ai_client(
    provider: AIProvider | str,
    api_key: str,
    model: str | None = None,
) -> AIClient:
    """
    Factory function to get an AI client for the specified provider.

    Args:
        provider: The AI provider to use.
        api_key: The API key for the provider.
        model: Optional model name override.

    Returns:
        An AIClient instance for the specified provider.

    Raises:
        ValueError: If the provider is not supported.
    """
    if isinstance(provider, str):
        provider = AIProvider(provider.lower())

    if provider == AIProvider.ANTHROPIC:
        from wine_pipeline.services.ai.providers.anthropic import AnthropicClient

        return AnthropicClient(api_key=api_key, model=model)
    elif provider == AIProvider.OPENAI:
        from wine_pipeline.services.ai.providers.openai import OpenAIClient

        return OpenAIClient(api_key=api_key, model=model)
    else:
        raise ValueError(f"Unsupported AI provider: {provider}")


def create_ai_client_from_env() -> AIClient | None:
    """
    Create an AI client from environment variables.

    Reads AI_PROVIDER (anthropic or openai), AI_MODEL and the matching
    API key variable.

    Returns:
        An AIClient, or None when no usable API key is configured.

    Raises:
        ValueError: If AI_PROVIDER names an unsupported provider.
    """
    provider = os.environ.get("AI_PROVIDER", "anthropic").lower()
    model = os.environ.get("AI_MODEL")

    if provider == "anthropic":
        api_key = os.environ.get("ANTHROPIC_API_KEY", "")
    elif provider == "openai":
        api_key = os.environ.get("OPENAI_API_KEY", "")
    else:
        raise ValueError(f"Unsupported AI provider: {provider}")

    if not api_key or api_key in _PLACEHOLDER_KEYS:
        logger.warning(
            f"No API key configured for AI provider '{provider}'; "
            "extraction falls back to patterns and research stages are skipped"
        )
        return None

    return get_ai_client(provider=provider, api_key=api_key, model=model)
