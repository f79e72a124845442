"""Tests for the tasting profile certification rule."""

from wine_pipeline.core.certification import (
    PATH_COMBINED,
    PATH_PER_FIELD,
    CertificationThresholds,
    certify,
)
from wine_pipeline.core.schema import EnrichmentProfile


def _text(length: int) -> str:
    return ("x" * length) if length else None


def _profile(
    tasting: int = 0,
    flavor: int = 0,
    aroma: int = 0,
    body: int = 0,
    special: int = 0,
    pairing: int = 0,
) -> EnrichmentProfile:
    return EnrichmentProfile(
        tasting_notes=_text(tasting),
        flavor_notes=_text(flavor),
        aroma_notes=_text(aroma),
        body_description=_text(body),
        what_makes_special=_text(special),
        food_pairing=_text(pairing),
    )


class TestCertify:
    """Tests for certify()."""

    def test_per_field_path(self) -> None:
        """Test a profile meeting every per-field minimum."""
        result = certify(_profile(750, 625, 625, 625, 350))

        assert result.passed is True
        assert result.path == PATH_PER_FIELD
        assert result.total_length == 2975
        assert result.shortfalls == []

    def test_combined_path(self) -> None:
        """Test a profile passing on total length with core floors cleared."""
        result = certify(_profile(1000, 400, 400, 400, 300, 600))

        assert result.passed is True
        assert result.path == PATH_COMBINED
        assert result.total_length == 3100

    def test_combined_needs_core_floor(self) -> None:
        """Test that a thin core field blocks the combined path."""
        result = certify(_profile(2000, 150, 400, 400, 300, 600))

        assert result.passed is False
        assert "flavor_notes: 150/625" in result.shortfalls

    def test_core_floor_alone_is_not_enough(self) -> None:
        """Test that core fields at the floor with a short total are rejected."""
        result = certify(_profile(200, 200, 200, 200, 350, 400))

        assert result.passed is False
        assert result.total_length == 1550

    def test_short_profile_fails(self) -> None:
        """Test that a short profile reports its shortfalls."""
        result = certify(_profile(100, 100, 100, 100, 100))

        assert result.passed is False
        assert result.path is None
        assert "tasting_notes: 100/750" in result.shortfalls
        assert "combined: 500/3000" in result.shortfalls

    def test_empty_profile(self) -> None:
        """Test that an empty profile fails every check."""
        result = certify(EnrichmentProfile())

        assert result.passed is False
        assert result.total_length == 0
        assert len(result.shortfalls) == 6

    def test_custom_thresholds(self) -> None:
        """Test certifying against configured thresholds."""
        thresholds = CertificationThresholds.from_dict(
            {"combined_minimum": 400, "core_floor": 50}
        )

        result = certify(_profile(100, 100, 100, 100), thresholds)

        assert result.passed is True
        assert result.path == PATH_COMBINED
