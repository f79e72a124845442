"""Tests for the wine list line extractor."""

import json

import pytest

from wine_pipeline.core.enums import ExtractionMethod, WineType
from wine_pipeline.core.errors import ExtractionFailure
from wine_pipeline.ingestion.extractor import TextExtractor
from wine_pipeline.ingestion.settings import ExtractionConfig
from wine_pipeline.services.ai.client import AIClient, AIProvider


class ScriptedAIClient(AIClient):
    """AI client answering from a list of canned responses."""

    provider = AIProvider.ANTHROPIC
    model = "scripted"

    def __init__(self, responses: list[str | Exception]):
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def complete(self, prompt, system_prompt=None, max_tokens=2000, json_mode=True) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def extractor() -> TextExtractor:
    """Pattern-only extractor."""
    return TextExtractor()


class TestSkipReason:
    """Tests for the line pre-filter."""

    def test_short_line(self, extractor: TextExtractor) -> None:
        """Test that lines under the minimum length are skipped."""
        assert extractor.skip_reason("Red 2019") == "too short"

    def test_separator_line(self, extractor: TextExtractor) -> None:
        """Test that separator rows are skipped."""
        assert extractor.skip_reason("----------------") == "separator"
        assert extractor.skip_reason("=== === === ===") == "separator"

    def test_header_line(self, extractor: TextExtractor) -> None:
        """Test that column headers are skipped."""
        assert extractor.skip_reason("Wine Producer Vintage Region") == "header"
        assert extractor.skip_reason("Producer | Name | Year") == "header"

    def test_header_word_with_year_is_kept(self, extractor: TextExtractor) -> None:
        """Test that a wine line starting with a header word is not skipped."""
        assert extractor.skip_reason("Vintage Port, Taylor's, 1994, Douro") is None

    def test_custom_minimum_length(self) -> None:
        """Test a configured minimum line length."""
        extractor = TextExtractor(config=ExtractionConfig(min_line_length=4))
        assert extractor.skip_reason("Red 2019") is None


class TestPatternExtraction:
    """Tests for pattern and heuristic extraction."""

    @pytest.mark.asyncio
    async def test_comma_pattern(self, extractor: TextExtractor) -> None:
        """Test the name, producer, vintage, region layout."""
        candidate = await extractor.extract("Château Margaux, Château Margaux, 2015, Bordeaux")

        assert candidate.wine_name == "Château Margaux"
        assert candidate.producer == "Château Margaux"
        assert candidate.vintage == "2015"
        assert candidate.region == "Bordeaux"
        assert candidate.extraction_method == ExtractionMethod.PATTERN

    @pytest.mark.asyncio
    async def test_pipe_pattern(self, extractor: TextExtractor) -> None:
        """Test the pipe-delimited layout."""
        candidate = await extractor.extract("Tignanello | Antinori | 2019 | Tuscany")

        assert candidate.wine_name == "Tignanello"
        assert candidate.producer == "Antinori"
        assert candidate.vintage == "2019"
        assert candidate.region == "Toscana"

    @pytest.mark.asyncio
    async def test_dash_pattern(self, extractor: TextExtractor) -> None:
        """Test the dash-delimited layout."""
        candidate = await extractor.extract("Cristal - Louis Roederer - 2012 - Champagne")

        assert candidate.wine_name == "Cristal"
        assert candidate.producer == "Louis Roederer"
        assert candidate.vintage == "2012"
        assert candidate.wine_type == WineType.SPARKLING

    @pytest.mark.asyncio
    async def test_by_producer_pattern(self, extractor: TextExtractor) -> None:
        """Test the "name by producer (vintage)" layout."""
        candidate = await extractor.extract("Sassicaia by Tenuta San Guido (2017)")

        assert candidate.wine_name == "Sassicaia"
        assert candidate.producer == "Tenuta San Guido"
        assert candidate.vintage == "2017"

    @pytest.mark.asyncio
    async def test_producer_name_year_pattern(self, extractor: TextExtractor) -> None:
        """Test the "producer name year" layout."""
        candidate = await extractor.extract("Gaja Barbaresco Sori Tildin 2016")

        assert candidate.producer == "Gaja"
        assert candidate.wine_name == "Barbaresco Sori Tildin"
        assert candidate.vintage == "2016"
        assert candidate.wine_type == WineType.RED

    @pytest.mark.asyncio
    async def test_year_heuristic(self, extractor: TextExtractor) -> None:
        """Test the fallback that removes the year from the name."""
        candidate = await extractor.extract("Barolo Riserva 2018")

        assert candidate.wine_name == "Barolo Riserva"
        assert candidate.producer is None
        assert candidate.vintage == "2018"
        assert candidate.wine_type == WineType.RED
        assert candidate.extraction_method == ExtractionMethod.HEURISTIC

    @pytest.mark.asyncio
    async def test_non_vintage(self, extractor: TextExtractor) -> None:
        """Test that NV is kept as the vintage."""
        candidate = await extractor.extract("Grande Cuvée, Krug, NV, Champagne")

        assert candidate.vintage == "NV"
        assert candidate.wine_type == WineType.SPARKLING

    @pytest.mark.asyncio
    async def test_price_and_glass(self, extractor: TextExtractor) -> None:
        """Test that price and by-the-glass markers are captured and removed."""
        candidate = await extractor.extract("Sancerre, Domaine Vacheron, 2021, Loire $18 glass")

        assert candidate.wine_name == "Sancerre"
        assert candidate.region == "Loire"
        assert candidate.price == 18.0
        assert candidate.by_the_glass is True
        assert candidate.wine_type == WineType.WHITE

    @pytest.mark.asyncio
    async def test_no_name_like_text(self, extractor: TextExtractor) -> None:
        """Test that a line without letters is an extraction failure."""
        with pytest.raises(ExtractionFailure):
            await extractor.extract("$$$ 42.00 // 17.50")

    @pytest.mark.asyncio
    async def test_skipped_line_raises(self, extractor: TextExtractor) -> None:
        """Test that extract refuses pre-filtered lines."""
        with pytest.raises(ExtractionFailure) as exc_info:
            await extractor.extract("--------------")
        assert exc_info.value.reason == "separator"


class TestSplitPricing:
    """Tests for price capture."""

    def test_prefix_currency(self) -> None:
        """Test a currency symbol before the amount."""
        text, price, glass = TextExtractor.split_pricing("Barolo 2016 $120.50")
        assert text == "Barolo 2016"
        assert price == 120.5
        assert glass is False

    def test_suffix_currency(self) -> None:
        """Test a currency symbol after the amount."""
        text, price, _ = TextExtractor.split_pricing("Chianti Classico 2019 - 45,00 €")
        assert text == "Chianti Classico 2019"
        assert price == 45.0

    def test_year_is_not_a_price(self) -> None:
        """Test that bare numbers are left alone."""
        text, price, _ = TextExtractor.split_pricing("Opus One 2018")
        assert text == "Opus One 2018"
        assert price is None


class TestLLMExtraction:
    """Tests for the language model path."""

    @pytest.mark.asyncio
    async def test_llm_candidate_used(self) -> None:
        """Test that a valid model answer becomes the candidate."""
        client = ScriptedAIClient([
            json.dumps({
                "producer": "Giacomo Conterno",
                "wine_name": "Monfortino",
                "vintage": 2013,
                "region": "piedmont",
                "varietal": ["nebbiolo"],
                "wine_type": "Red",
            })
        ])
        extractor = TextExtractor(ai_client=client)

        candidate = await extractor.extract("Conterno Monfortino Riserva '13 $650")

        assert candidate.extraction_method == ExtractionMethod.LLM
        assert candidate.producer == "Giacomo Conterno"
        assert candidate.vintage == "2013"
        assert candidate.region == "Piemonte"
        assert candidate.varietal == "Nebbiolo"
        assert candidate.wine_type == WineType.RED
        assert candidate.price == 650.0
        assert len(client.prompts) == 1

    @pytest.mark.asyncio
    async def test_llm_error_falls_back_to_patterns(self) -> None:
        """Test that an API error falls back to the line patterns."""
        client = ScriptedAIClient([RuntimeError("rate limited")])
        extractor = TextExtractor(ai_client=client)

        candidate = await extractor.extract("Tignanello | Antinori | 2019 | Tuscany")

        assert candidate.extraction_method == ExtractionMethod.PATTERN
        assert candidate.producer == "Antinori"

    @pytest.mark.asyncio
    async def test_unparseable_llm_answer_falls_back(self) -> None:
        """Test that JSON that cannot be repaired falls back to the patterns."""
        client = ScriptedAIClient(["not json", "still not json", "nope"])
        extractor = TextExtractor(ai_client=client)

        candidate = await extractor.extract("Barolo Riserva 2018")

        assert candidate.extraction_method == ExtractionMethod.HEURISTIC
        assert len(client.prompts) == 3

    @pytest.mark.asyncio
    async def test_llm_without_name_rejects_line(self) -> None:
        """Test that the model saying there is no wine rejects the line."""
        client = ScriptedAIClient([json.dumps({"wine_name": None})])
        extractor = TextExtractor(ai_client=client)

        with pytest.raises(ExtractionFailure):
            await extractor.extract("Please ask your server about specials")

    @pytest.mark.asyncio
    async def test_llm_disabled_by_config(self) -> None:
        """Test that use_llm=False skips the model."""
        client = ScriptedAIClient([])
        extractor = TextExtractor(ai_client=client, config=ExtractionConfig(use_llm=False))

        candidate = await extractor.extract("Barolo Riserva 2018")

        assert candidate.wine_name == "Barolo Riserva"
        assert client.prompts == []
