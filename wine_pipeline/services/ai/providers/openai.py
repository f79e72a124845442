"""OpenAI AI provider implementation."""

import logging

from wine_pipeline.services.ai.client import AIClient, AIProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"


class OpenAIClient(AIClient):
    """OpenAI GPT AI client."""

    provider = AIProvider.OPENAI

    def __init__(self, api_key: str, model: str | None = None):
        """
        Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key.
            model: Model name (defaults to gpt-4o).
        """
        try:
            import openai
        except ImportError:
            raise ImportError(
                "openai package is required. Install with: pip install openai"
            )

        self.client = openai.AsyncOpenAI(api_key=api_key)
        self.model = model or DEFAULT_MODEL

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 2000,
        json_mode: bool = True,
    ) -> str:
        """
        Send a chat completion request.

        Args:
            prompt: The user prompt.
            system_prompt: Optional system message.
            max_tokens: Response token ceiling.
            json_mode: Request a JSON object response format.

        Returns:
            The raw response text.
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=messages,
            **kwargs,
        )
        return response.choices[0].message.content or ""
