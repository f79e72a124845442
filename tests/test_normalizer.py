"""Tests for candidate normalization."""

import pytest

from wine_pipeline.core.enums import WineType
from wine_pipeline.core.schema import WineCandidate
from wine_pipeline.ingestion.normalizer import Normalizer


@pytest.fixture
def normalizer() -> Normalizer:
    """Create a normalizer instance."""
    return Normalizer()


class TestVintage:
    """Tests for vintage parsing."""

    def test_year_string(self, normalizer: Normalizer) -> None:
        """Test a plain four-digit year."""
        assert normalizer.parse_vintage("2019") == "2019"

    def test_year_int(self, normalizer: Normalizer) -> None:
        """Test an integer year."""
        assert normalizer.parse_vintage(2005) == "2005"

    def test_year_in_text(self, normalizer: Normalizer) -> None:
        """Test a year embedded in text."""
        assert normalizer.parse_vintage("Vintage 1996") == "1996"

    @pytest.mark.parametrize("value", ["NV", "nv", "N/V", "Non-Vintage"])
    def test_non_vintage(self, normalizer: Normalizer, value: str) -> None:
        """Test non-vintage markers."""
        assert normalizer.parse_vintage(value) == "NV"

    def test_unparseable(self, normalizer: Normalizer) -> None:
        """Test values without a year."""
        assert normalizer.parse_vintage("old") is None
        assert normalizer.parse_vintage(None) is None


class TestRegionsAndGrapes:
    """Tests for region and grape aliases."""

    def test_region_alias(self, normalizer: Normalizer) -> None:
        """Test that common spellings map to the canonical region."""
        assert normalizer.normalize_region("piedmont") == "Piemonte"
        assert normalizer.normalize_region("  Burgundy ") == "Bourgogne"

    def test_unknown_region_kept(self, normalizer: Normalizer) -> None:
        """Test that unknown regions pass through cleaned."""
        assert normalizer.normalize_region("Etna   Nord") == "Etna Nord"

    def test_grapes_from_string(self, normalizer: Normalizer) -> None:
        """Test splitting and aliasing a grape string."""
        assert normalizer.normalize_grapes("cab, merlot & cab franc") == [
            "Cabernet Sauvignon",
            "Merlot",
            "Cabernet Franc",
        ]

    def test_grapes_from_list(self, normalizer: Normalizer) -> None:
        """Test aliasing a grape list."""
        assert normalizer.normalize_grapes(["chard", "Viognier"]) == ["Chardonnay", "Viognier"]


class TestWineTypeInference:
    """Tests for keyword-based type inference."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Barolo Riserva", WineType.RED),
            ("Meursault Chardonnay", WineType.WHITE),
            ("Whispering Angel Rosé", WineType.ROSE),
            ("Veuve Clicquot Brut", WineType.SPARKLING),
            ("Taylor's 20 Year Tawny Port", WineType.DESSERT),
            ("Sparkling Rosé", WineType.SPARKLING),
        ],
    )
    def test_infer(self, normalizer: Normalizer, text: str, expected: WineType) -> None:
        """Test inferring a type from keywords."""
        assert normalizer.infer_wine_type(text) == expected

    def test_no_keywords(self, normalizer: Normalizer) -> None:
        """Test text without type keywords."""
        assert normalizer.infer_wine_type("Opus One") is None


class TestNormalizeCandidate:
    """Tests for whole-candidate normalization."""

    def test_normalizes_fields(self, normalizer: Normalizer) -> None:
        """Test that every field is cleaned."""
        candidate = WineCandidate(
            producer="  Vietti ",
            wine_name="Barolo   Rocche",
            vintage="2016",
            region="piedmont",
            varietal="nebbiolo",
        )

        result = normalizer.normalize_candidate(candidate)

        assert result.producer == "Vietti"
        assert result.wine_name == "Barolo Rocche"
        assert result.region == "Piemonte"
        assert result.varietal == "Nebbiolo"
        assert result.wine_type == WineType.RED

    def test_keeps_explicit_type(self, normalizer: Normalizer) -> None:
        """Test that an extracted type is not overridden."""
        candidate = WineCandidate(wine_name="Barolo Chinato", wine_type=WineType.DESSERT)
        assert normalizer.normalize_candidate(candidate).wine_type == WineType.DESSERT

    def test_infers_type_from_line(self, normalizer: Normalizer) -> None:
        """Test that the source line is used for inference."""
        candidate = WineCandidate(wine_name="Les Clos")
        result = normalizer.normalize_candidate(candidate, line="Les Clos Chablis Grand Cru")
        assert result.wine_type == WineType.WHITE
