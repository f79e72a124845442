"""Tests for the AI client base class and factories."""

import pytest

from wine_pipeline.services.ai.client import (
    AIClient,
    AIProvider,
    create_ai_client_from_env,
    get_ai_client,
    strip_code_fences,
)


class ScriptedAIClient(AIClient):
    """AI client answering from a list of canned responses."""

    provider = AIProvider.OPENAI
    model = "scripted"

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts = []

    async def complete(self, prompt, system_prompt=None, max_tokens=2000, json_mode=True) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestStripCodeFences:
    """Tests for strip_code_fences."""

    def test_json_fence(self) -> None:
        """Test removing a ```json fence."""
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence(self) -> None:
        """Test removing a bare fence."""
        assert strip_code_fences('```\n{"a": 1}```') == '{"a": 1}'

    def test_no_fence(self) -> None:
        """Test that unfenced text is only stripped."""
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestCompleteJson:
    """Tests for complete_json parsing and repair."""

    @pytest.mark.asyncio
    async def test_valid_object(self) -> None:
        """Test a well-formed answer."""
        client = ScriptedAIClient(['```json\n{"wine_name": "Solaia"}\n```'])

        result = await client.complete_json("prompt")

        assert result.success is True
        assert result.parsed_json == {"wine_name": "Solaia"}
        assert result.repair_attempts == 0

    @pytest.mark.asyncio
    async def test_repaired_answer(self) -> None:
        """Test that a malformed answer is repaired by a follow-up call."""
        client = ScriptedAIClient(['{"wine_name": "Solaia",}', '{"wine_name": "Solaia"}'])

        result = await client.complete_json("prompt")

        assert result.success is True
        assert result.repair_attempts == 1
        assert len(client.prompts) == 2

    @pytest.mark.asyncio
    async def test_repair_gives_up(self) -> None:
        """Test that repair stops after the maximum attempts."""
        client = ScriptedAIClient(["nope", "still nope", "never"])

        result = await client.complete_json("prompt")

        assert result.success is False
        assert result.repair_attempts == 2
        assert "JSON parse error" in result.error_message

    @pytest.mark.asyncio
    async def test_non_object(self) -> None:
        """Test that a JSON array is rejected."""
        client = ScriptedAIClient(["[1, 2]"])

        result = await client.complete_json("prompt")

        assert result.success is False
        assert "Expected a JSON object" in result.error_message

    @pytest.mark.asyncio
    async def test_api_error_captured(self) -> None:
        """Test that provider errors are returned, not raised."""
        client = ScriptedAIClient([ConnectionError("offline")])

        result = await client.complete_json("prompt")

        assert result.success is False
        assert result.error_message == "API error: offline"


class TestFactories:
    """Tests for client construction."""

    def test_placeholder_key_disables_ai(self, monkeypatch) -> None:
        """Test that the .env.example placeholder counts as no key."""
        monkeypatch.setenv("AI_PROVIDER", "anthropic")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "your-anthropic-api-key-here")
        assert create_ai_client_from_env() is None

    def test_missing_key_disables_ai(self, monkeypatch) -> None:
        """Test that a missing key yields no client."""
        monkeypatch.setenv("AI_PROVIDER", "openai")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert create_ai_client_from_env() is None

    def test_unknown_provider_from_env(self, monkeypatch) -> None:
        """Test that an unsupported AI_PROVIDER raises ValueError."""
        monkeypatch.setenv("AI_PROVIDER", "mistral")
        with pytest.raises(ValueError):
            create_ai_client_from_env()

    def test_unknown_provider(self) -> None:
        """Test that get_ai_client rejects unknown providers."""
        with pytest.raises(ValueError):
            get_ai_client("mistral", api_key="key")

    def test_openai_client(self, monkeypatch) -> None:
        """Test building the OpenAI client with a model override."""
        monkeypatch.setenv("AI_PROVIDER", "openai")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("AI_MODEL", "gpt-4o-mini")

        client = create_ai_client_from_env()

        assert client.provider == AIProvider.OPENAI
        assert client.model == "gpt-4o-mini"
