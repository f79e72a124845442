"""Certification rule for generated tasting profiles.

A generated profile is accepted when it passes either of two paths:

- per-field: tasting, flavor, aroma and body notes each reach their own
  minimum length and "what makes it special" reaches its minimum;
- combined: the summed length of the profile fields reaches the combined
  minimum and each core field clears the lower per-field floor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from wine_pipeline.core.schema import EnrichmentProfile

CORE_FIELDS = ("tasting_notes", "flavor_notes", "aroma_notes", "body_description")

COMBINED_FIELDS = CORE_FIELDS + (
    "what_makes_special",
    "food_pairing",
    "serving_temp",
    "aging_potential",
)

PATH_PER_FIELD = "per_field"
PATH_COMBINED = "combined"


@dataclass
class CertificationThresholds:
    """Minimum character counts used by the certification rule."""

    tasting_notes: int = 750
    flavor_notes: int = 625
    aroma_notes: int = 625
    body_description: int = 625
    what_makes_special: int = 350
    combined_minimum: int = 3000
    core_floor: int = 200

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CertificationThresholds:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        minimums = data.get("minimums", {})
        return cls(
            tasting_notes=int(minimums.get("tasting_notes", 750)),
            flavor_notes=int(minimums.get("flavor_notes", 625)),
            aroma_notes=int(minimums.get("aroma_notes", 625)),
            body_description=int(minimums.get("body_description", 625)),
            what_makes_special=int(minimums.get("what_makes_special", 350)),
            combined_minimum=int(data.get("combined_minimum", 3000)),
            core_floor=int(data.get("core_floor", 200)),
        )

    def minimum_for(self, name: str) -> int:
        """Per-field minimum for a core field or what_makes_special."""
        return int(getattr(self, name))


@dataclass
class CertificationResult:
    """Outcome of certifying one profile."""

    passed: bool
    path: str | None = None
    total_length: int = 0
    field_lengths: dict[str, int] = field(default_factory=dict)
    shortfalls: list[str] = field(default_factory=list)


def certify(
    profile: EnrichmentProfile,
    thresholds: CertificationThresholds | None = None,
) -> CertificationResult:
    """
    Decide whether a generated profile is complete enough to accept.

    Args:
        profile: The generated tasting profile.
        thresholds: Length thresholds (defaults when omitted).

    Returns:
        CertificationResult naming the path that passed, or the
        shortfalls of the per-field path when neither passed.
    """
    thresholds = thresholds or CertificationThresholds()
    lengths = {name: profile.field_length(name) for name in COMBINED_FIELDS}
    total = sum(lengths.values())

    shortfalls = []
    for name in CORE_FIELDS + ("what_makes_special",):
        minimum = thresholds.minimum_for(name)
        if lengths[name] < minimum:
            shortfalls.append(f"{name}: {lengths[name]}/{minimum}")

    if not shortfalls:
        return CertificationResult(
            passed=True,
            path=PATH_PER_FIELD,
            total_length=total,
            field_lengths=lengths,
        )

    floors_cleared = all(lengths[name] >= thresholds.core_floor for name in CORE_FIELDS)
    if total >= thresholds.combined_minimum and floors_cleared:
        return CertificationResult(
            passed=True,
            path=PATH_COMBINED,
            total_length=total,
            field_lengths=lengths,
        )

    if total < thresholds.combined_minimum:
        shortfalls.append(f"combined: {total}/{thresholds.combined_minimum}")
    return CertificationResult(
        passed=False,
        total_length=total,
        field_lengths=lengths,
        shortfalls=shortfalls,
    )
