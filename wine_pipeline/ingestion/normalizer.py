"""
Data Normalizer Module
======================

Cleans and standardizes extracted wine candidates for consistent
storage and matching.
"""

from __future__ import annotations

import re
from typing import Any

from wine_pipeline.core.enums import WineType
from wine_pipeline.core.schema import WineCandidate


class Normalizer:
    """
    Normalizes extracted wine candidates into canonical forms.

    Handles:
    - Region name standardization (e.g., "piedmont" -> "Piemonte")
    - Grape variety normalization (e.g., "cab" -> "Cabernet Sauvignon")
    - Vintage parsing ("2015", "NV")
    - Wine type inference from the line text
    """

    # Region aliases: maps common variations to canonical names
    REGION_ALIASES: dict[str, str] = {
        # France
        "burgundy": "Bourgogne",
        "bourgogne": "Bourgogne",
        "bordeaux": "Bordeaux",
        "champagne": "Champagne",
        "rhone": "Rhône",
        "rhône": "Rhône",
        "rhone valley": "Rhône",
        "loire": "Loire",
        "loire valley": "Loire",
        "alsace": "Alsace",
        "provence": "Provence",
        "beaujolais": "Beaujolais",
        "chablis": "Chablis",
        "sauternes": "Sauternes",
        "medoc": "Médoc",
        "médoc": "Médoc",
        "saint-emilion": "Saint-Émilion",
        "saint emilion": "Saint-Émilion",
        "st emilion": "Saint-Émilion",
        # Italy
        "piedmont": "Piemonte",
        "piemonte": "Piemonte",
        "tuscany": "Toscana",
        "toscana": "Toscana",
        "veneto": "Veneto",
        "sicily": "Sicilia",
        "sicilia": "Sicilia",
        # Spain and Portugal
        "rioja": "Rioja",
        "ribera del duero": "Ribera del Duero",
        "priorat": "Priorat",
        "douro": "Douro",
        # Germany
        "mosel": "Mosel",
        "rheingau": "Rheingau",
        # USA
        "napa": "Napa Valley",
        "napa valley": "Napa Valley",
        "sonoma": "Sonoma",
        "sonoma county": "Sonoma",
        "willamette": "Willamette Valley",
        "willamette valley": "Willamette Valley",
        "paso robles": "Paso Robles",
        # Southern hemisphere
        "barossa": "Barossa Valley",
        "barossa valley": "Barossa Valley",
        "mclaren vale": "McLaren Vale",
        "marlborough": "Marlborough",
        "central otago": "Central Otago",
        "mendoza": "Mendoza",
        "stellenbosch": "Stellenbosch",
    }

    # Grape variety aliases
    GRAPE_ALIASES: dict[str, str] = {
        # Red grapes
        "cab": "Cabernet Sauvignon",
        "cab sauv": "Cabernet Sauvignon",
        "cabernet": "Cabernet Sauvignon",
        "cabernet sauvignon": "Cabernet Sauvignon",
        "cab franc": "Cabernet Franc",
        "cabernet franc": "Cabernet Franc",
        "merlot": "Merlot",
        "pinot": "Pinot Noir",
        "pinot noir": "Pinot Noir",
        "syrah": "Syrah",
        "shiraz": "Shiraz",
        "grenache": "Grenache",
        "garnacha": "Grenache",
        "tempranillo": "Tempranillo",
        "tinto fino": "Tempranillo",
        "sangiovese": "Sangiovese",
        "nebbiolo": "Nebbiolo",
        "barbera": "Barbera",
        "malbec": "Malbec",
        "zinfandel": "Zinfandel",
        "zin": "Zinfandel",
        "gamay": "Gamay",
        # White grapes
        "chard": "Chardonnay",
        "chardonnay": "Chardonnay",
        "sauv blanc": "Sauvignon Blanc",
        "sauvignon blanc": "Sauvignon Blanc",
        "riesling": "Riesling",
        "pinot grigio": "Pinot Grigio",
        "pinot gris": "Pinot Gris",
        "gewurztraminer": "Gewürztraminer",
        "gewürztraminer": "Gewürztraminer",
        "viognier": "Viognier",
        "chenin": "Chenin Blanc",
        "chenin blanc": "Chenin Blanc",
        "albarino": "Albariño",
        "albariño": "Albariño",
        "gruner veltliner": "Grüner Veltliner",
        "grüner veltliner": "Grüner Veltliner",
        "moscato": "Moscato",
    }

    # Wine type keywords, checked in order; the first list with a hit wins
    TYPE_KEYWORDS: list[tuple[WineType, re.Pattern[str]]] = [
        (
            WineType.SPARKLING,
            re.compile(r"\b(champagne|prosecco|cava|sparkling|crémant|cremant|brut)\b", re.I),
        ),
        (
            WineType.DESSERT,
            re.compile(
                r"\b(port|sherry|madeira|dessert|ice ?wine|sauternes|tokaji|late harvest)\b",
                re.I,
            ),
        ),
        (WineType.ROSE, re.compile(r"(?<!\w)(rosé|rose|rosato|rosado|blush)(?!\w)", re.I)),
        (
            WineType.WHITE,
            re.compile(
                r"\b(chardonnay|sauvignon blanc|riesling|pinot grigio|pinot gris|albariño|"
                r"albarino|gewürztraminer|viognier|chenin blanc|moscato|chablis|sancerre|"
                r"blanc|bianco|white)\b",
                re.I,
            ),
        ),
        (
            WineType.RED,
            re.compile(
                r"\b(cabernet|merlot|pinot noir|syrah|shiraz|malbec|tempranillo|sangiovese|"
                r"nebbiolo|grenache|zinfandel|chianti|brunello|bordeaux|barolo|barbaresco|"
                r"rioja|amarone|red|rouge|rosso)\b",
                re.I,
            ),
        ),
    ]

    NON_VINTAGE = ("NV", "N/V", "NON-VINTAGE", "NONVINTAGE")

    def normalize_candidate(self, candidate: WineCandidate, line: str = "") -> WineCandidate:
        """
        Normalize an extracted candidate.

        Args:
            candidate: Raw candidate from the extractor
            line: Source line, used to infer a missing wine type

        Returns:
            A new WineCandidate with cleaned and standardized data
        """
        data = candidate.model_dump()
        data["producer"] = self.clean_string(candidate.producer)
        data["wine_name"] = self.clean_string(candidate.wine_name)
        data["vintage"] = self.parse_vintage(candidate.vintage)
        data["region"] = self.normalize_region(candidate.region)
        data["country"] = self.clean_string(candidate.country)
        data["appellation"] = self.clean_string(candidate.appellation)

        grapes = self.normalize_grapes(candidate.varietal)
        data["varietal"] = ", ".join(grapes) if grapes else None

        if candidate.wine_type is None:
            haystack = " ".join(
                part for part in (line, candidate.wine_name, candidate.varietal) if part
            )
            data["wine_type"] = self.infer_wine_type(haystack)

        return WineCandidate(**data)

    def clean_string(self, value: Any) -> str | None:
        """Clean and normalize a string value."""
        if value is None:
            return None
        s = str(value).strip()
        # Normalize whitespace
        s = re.sub(r"\s+", " ", s)
        return s if s else None

    def normalize_region(self, region: str | None) -> str | None:
        """
        Normalize a region name to its canonical form.

        Args:
            region: Raw region name

        Returns:
            Canonical region name, or original if no alias found
        """
        cleaned = self.clean_string(region)
        if cleaned is None:
            return None

        canonical = self.REGION_ALIASES.get(cleaned.lower())
        return canonical if canonical else cleaned

    def normalize_grapes(self, grapes: list[str] | str | None) -> list[str]:
        """
        Normalize grape variety names.

        Args:
            grapes: List of grapes, comma-separated string, or None

        Returns:
            List of canonical grape names
        """
        if grapes is None:
            return []

        if isinstance(grapes, str):
            grape_list = re.split(r"[,;/&]|\band\b", grapes)
        else:
            grape_list = grapes

        normalized = []
        for grape in grape_list:
            cleaned = self.clean_string(grape)
            if cleaned:
                canonical = self.GRAPE_ALIASES.get(cleaned.lower())
                normalized.append(canonical if canonical else cleaned)

        return normalized

    def parse_vintage(self, vintage: str | int | None) -> str | None:
        """
        Parse a vintage from various formats.

        Args:
            vintage: Vintage value (e.g., "2019", 2019, "NV", "Vintage 2015")

        Returns:
            Four-digit year string, "NV" for non-vintage wines, or None
        """
        if vintage is None:
            return None

        text = str(vintage).strip()
        if text.upper() in self.NON_VINTAGE:
            return "NV"

        match = re.search(r"\b(?:19|20)\d{2}\b", text)
        if match:
            return match.group()

        return None

    def infer_wine_type(self, text: str | None) -> WineType | None:
        """
        Infer the wine type from keywords in free text.

        Args:
            text: Line or name text

        Returns:
            The first matching WineType, or None
        """
        if not text:
            return None
        for wine_type, pattern in self.TYPE_KEYWORDS:
            if pattern.search(text):
                return wine_type
        return None
