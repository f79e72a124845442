"""Anthropic (Claude) AI provider implementation."""

import logging

from wine_pipeline.services.ai.client import AIClient, AIProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicClient(AIClient):
    """Anthropic Claude AI client."""

    provider = AIProvider.ANTHROPIC

    def __init__(self, api_key: str, model: str | None = None):
        """
        Initialize the Anthropic client.

        Args:
            api_key: Anthropic API key.
            model: Model name (defaults to Claude Sonnet).
        """
        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic package is required. Install with: pip install anthropic"
            )

        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model or DEFAULT_MODEL

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 2000,
        json_mode: bool = True,
    ) -> str:
        """
        Send a messages request.

        Claude has no JSON response mode; json_mode is carried by the
        prompt instructions and the caller strips code fences.

        Args:
            prompt: The user prompt.
            system_prompt: Optional system prompt.
            max_tokens: Response token ceiling.
            json_mode: Unused, kept for interface parity.

        Returns:
            The raw response text.
        """
        kwargs = {}
        if system_prompt:
            kwargs["system"] = system_prompt

        response = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        return response.content[0].text
