"""
Text Extractor Module
=====================

Turns one free-text wine-list line into a structured WineCandidate.

The language model is the primary path. When it is unavailable or its
answer cannot be parsed, a fixed set of line patterns is tried in order,
then a year-based heuristic.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from pydantic import ValidationError as PydanticValidationError

from wine_pipeline.core.enums import ExtractionMethod
from wine_pipeline.core.errors import ExtractionFailure
from wine_pipeline.core.schema import WineCandidate
from wine_pipeline.ingestion.normalizer import Normalizer
from wine_pipeline.ingestion.settings import ExtractionConfig
from wine_pipeline.services.ai.client import AIClient
from wine_pipeline.services.ai.prompts import EXTRACTION_SYSTEM_PROMPT, build_extraction_prompt

logger = logging.getLogger(__name__)

HEADER_RE = re.compile(r"^(wine|producer|vintage|region|type|name)\b", re.I)
SEPARATOR_RE = re.compile(r"^[-=+*#_~.\s|]+$")
YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
PRICE_PREFIX_RE = re.compile(r"[$€£]\s*(\d+(?:[.,]\d{1,2})?)")
PRICE_SUFFIX_RE = re.compile(r"(?<![\d.,])(\d+(?:[.,]\d{1,2})?)\s*[$€£]")
GLASS_RE = re.compile(r"\b(?:by the glass|btg|glass)\b", re.I)
TRAILING_PUNCT_RE = re.compile(r"[\s,.;:\-|/]+$")

_VINTAGE = r"(?P<vintage>(?:19|20)\d{2}|NV)"


@dataclass(frozen=True)
class LinePattern:
    """A named line layout yielding name, producer, vintage and region."""

    name: str
    regex: re.Pattern[str]


# Tried in order; the first match wins
LINE_PATTERNS: list[LinePattern] = [
    LinePattern(
        "comma",
        re.compile(
            rf"^(?P<name>[^,]+),\s*(?P<producer>[^,]+),\s*{_VINTAGE},\s*(?P<region>.+)$",
            re.I,
        ),
    ),
    LinePattern(
        "pipe",
        re.compile(
            rf"^(?P<name>[^|]+)\|\s*(?P<producer>[^|]+)\|\s*{_VINTAGE}\s*(?:\|\s*(?P<region>.+))?$",
            re.I,
        ),
    ),
    LinePattern(
        "dash",
        re.compile(
            rf"^(?P<name>.+?)\s+-\s+(?P<producer>.+?)\s+-\s+{_VINTAGE}(?:\s+-\s+(?P<region>.+))?$",
            re.I,
        ),
    ),
    LinePattern(
        "by_producer",
        re.compile(
            rf"^(?P<name>.+?)\s+by\s+(?P<producer>.+?)\s*\(\s*{_VINTAGE}\s*\)(?:\s*-?\s*(?P<region>.+))?$",
            re.I,
        ),
    ),
    LinePattern(
        "producer_name_year",
        re.compile(
            r"^(?P<producer>\S+)\s+(?P<name>\S+(?:\s+\S+)+?)\s+(?P<vintage>(?:19|20)\d{2})$"
        ),
    ),
]


class TextExtractor:
    """
    Extracts wine candidates from wine list lines.

    Extraction is a pure function of the line text; nothing is persisted.
    """

    def __init__(
        self,
        ai_client: AIClient | None = None,
        config: ExtractionConfig | None = None,
        normalizer: Normalizer | None = None,
    ):
        """
        Initialize the extractor.

        Args:
            ai_client: Language model client (None for pattern-only extraction)
            config: Pre-filter settings
            normalizer: Normalizer applied to every candidate
        """
        self.ai_client = ai_client
        self.config = config or ExtractionConfig()
        self.normalizer = normalizer or Normalizer()

    def skip_reason(self, line: str) -> str | None:
        """
        Check a line against the pre-filter.

        Args:
            line: A trimmed wine list line

        Returns:
            Why the line is skipped, or None when it should be extracted
        """
        if len(line) < self.config.min_line_length:
            return "too short"
        if SEPARATOR_RE.match(line):
            return "separator"
        # "Vintage 2015 ..." is a wine, "Wine  Producer  Vintage" is a header
        if HEADER_RE.match(line) and not YEAR_RE.search(line):
            return "header"
        return None

    async def extract(self, line: str) -> WineCandidate:
        """
        Extract a candidate from one line.

        Args:
            line: Raw wine list line

        Returns:
            A normalized WineCandidate carrying a name-like string

        Raises:
            ExtractionFailure: If the line is pre-filtered or yields no name
        """
        line = line.strip()
        reason = self.skip_reason(line)
        if reason is not None:
            raise ExtractionFailure(line, reason)

        text, price, by_the_glass = self.split_pricing(line)

        candidate = None
        if self.ai_client is not None and self.config.use_llm:
            candidate = await self._extract_with_llm(line)

        if candidate is None:
            candidate = self.extract_with_patterns(text)

        if candidate.price is None and price is not None:
            candidate.price = price
        if by_the_glass:
            candidate.by_the_glass = True

        candidate = self.normalizer.normalize_candidate(candidate, line=text)
        if not candidate.has_name:
            raise ExtractionFailure(line, "no wine name after normalization")
        return candidate

    async def _extract_with_llm(self, line: str) -> WineCandidate | None:
        """
        Ask the language model for a candidate.

        Returns:
            The candidate, or None when the answer was unusable and the
            pattern fallback should run.

        Raises:
            ExtractionFailure: If the model says the line is not a wine
        """
        result = await self.ai_client.complete_json(
            build_extraction_prompt(line),
            system_prompt=EXTRACTION_SYSTEM_PROMPT,
            max_tokens=500,
        )
        if not result.success:
            logger.warning(
                f"LLM extraction failed, falling back to patterns: {result.error_message}"
            )
            return None

        try:
            candidate = WineCandidate.model_validate(
                {**result.parsed_json, "extraction_method": ExtractionMethod.LLM}
            )
        except PydanticValidationError as e:
            logger.warning(f"LLM candidate did not validate, falling back to patterns: {e}")
            return None

        if not candidate.has_name:
            raise ExtractionFailure(line, "language model found no wine name")
        return candidate

    def extract_with_patterns(self, line: str) -> WineCandidate:
        """
        Extract a candidate with the line patterns, then the year heuristic.

        Args:
            line: Line text with pricing already removed

        Returns:
            A WineCandidate

        Raises:
            ExtractionFailure: If no name-like string remains
        """
        for pattern in LINE_PATTERNS:
            match = pattern.regex.match(line)
            if match is None:
                continue
            groups = match.groupdict()
            candidate = WineCandidate(
                wine_name=_trim(groups.get("name")),
                producer=_trim(groups.get("producer")),
                vintage=groups.get("vintage"),
                region=_trim(groups.get("region")),
                extraction_method=ExtractionMethod.PATTERN,
            )
            if candidate.has_name:
                logger.debug(f"Line matched {pattern.name} pattern: {line!r}")
                return candidate

        return self._extract_heuristic(line)

    def _extract_heuristic(self, line: str) -> WineCandidate:
        year = YEAR_RE.search(line)
        name = YEAR_RE.sub(" ", line, count=1) if year else line
        name = _trim(re.sub(r"\s+", " ", name))

        candidate = WineCandidate(
            wine_name=name,
            vintage=year.group() if year else None,
            extraction_method=ExtractionMethod.HEURISTIC,
        )
        if not candidate.has_name:
            raise ExtractionFailure(line, "no name-like text")
        return candidate

    @staticmethod
    def split_pricing(line: str) -> tuple[str, float | None, bool]:
        """
        Remove a currency amount and by-the-glass markers from a line.

        Args:
            line: Raw line text

        Returns:
            Tuple of (remaining text, price or None, by-the-glass flag)
        """
        price = None
        match = PRICE_PREFIX_RE.search(line) or PRICE_SUFFIX_RE.search(line)
        if match:
            price = float(match.group(1).replace(",", "."))
            line = line[: match.start()] + " " + line[match.end() :]

        by_the_glass = bool(GLASS_RE.search(line))
        if by_the_glass:
            line = GLASS_RE.sub(" ", line)

        return _trim(re.sub(r"\s+", " ", line)) or "", price, by_the_glass


def _trim(value: str | None) -> str | None:
    """Strip whitespace and trailing separators."""
    if value is None:
        return None
    value = TRAILING_PUNCT_RE.sub("", value.strip()).strip()
    return value or None
