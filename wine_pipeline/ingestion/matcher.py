"""
Similarity Matcher Module
=========================

Decides whether an extracted candidate is a wine already in the catalog.

An exact producer/name/vintage hit short-circuits. Otherwise the catalog
is narrowed to records whose search text contains all of the candidate's
first significant tokens, and each is scored by weighted field agreement.
The search widens one token at a time until a duplicate turns up.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from wine_pipeline.core.schema import WineCandidate, WineRecord
from wine_pipeline.db.repositories import WineRepository

if TYPE_CHECKING:
    from wine_pipeline.ingestion.settings import MatchingConfig

logger = logging.getLogger(__name__)

# Field weights for the similarity score
FIELD_WEIGHTS: dict[str, int] = {
    "wine_name": 2,
    "producer": 1,
    "vintage": 1,
    "varietal": 1,
    "region": 1,
    "country": 1,
}

# Search tokens ANDed together when narrowing the catalog
MAX_SEARCH_TOKENS = 5


class MatchAction(str, Enum):
    """Outcome of matching a candidate against the catalog."""

    EXACT = "exact"  # Same producer, name and vintage
    FUZZY = "fuzzy"  # Similarity above the duplicate threshold
    NEW = "new"  # No existing record represents this wine


@dataclass
class MatchResult:
    """Result of matching one candidate."""

    action: MatchAction
    record: WineRecord | None = None
    score: float = 0.0

    @property
    def is_duplicate(self) -> bool:
        return self.action != MatchAction.NEW


def _field_value(obj: Any, name: str) -> str | None:
    value = getattr(obj, name, None)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def similarity(left: Any, right: Any) -> float:
    """
    Weighted field agreement between two wines.

    Only fields populated on both sides count. Values are compared
    case-insensitively.

    Args:
        left: A WineCandidate or WineRecord
        right: A WineCandidate or WineRecord

    Returns:
        Agreeing weight over comparable weight, 0.0 when nothing is comparable
    """
    matched = 0
    comparable = 0
    for name, weight in FIELD_WEIGHTS.items():
        a = _field_value(left, name)
        b = _field_value(right, name)
        if a is None or b is None:
            continue
        comparable += weight
        if a.casefold() == b.casefold():
            matched += weight
    if comparable == 0:
        return 0.0
    return matched / comparable


def significant_tokens(
    search_text: str, min_length: int = 3, max_tokens: int = MAX_SEARCH_TOKENS
) -> list[str]:
    """Return up to max_tokens distinct whitespace tokens at least min_length long."""
    tokens: list[str] = []
    for token in search_text.split():
        if len(token) >= min_length and token not in tokens:
            tokens.append(token)
            if len(tokens) == max_tokens:
                break
    return tokens


def first_significant_token(search_text: str, min_length: int = 3) -> str | None:
    """Return the first whitespace token at least min_length long."""
    tokens = significant_tokens(search_text, min_length, max_tokens=1)
    return tokens[0] if tokens else None


class SimilarityMatcher:
    """
    Matches candidates against the wine catalog.

    The duplicate threshold is strict: only a score above it counts, so
    wines sharing just a producer or a vintage stay distinct.
    """

    def __init__(
        self,
        session: Session,
        threshold: float = 0.90,
        candidate_limit: int = 50,
        min_token_length: int = 3,
    ) -> None:
        """
        Initialize the matcher.

        Args:
            session: SQLAlchemy database session
            threshold: Scores strictly above this are duplicates
            candidate_limit: Maximum catalog records scored per candidate
            min_token_length: Minimum length of the narrowing token
        """
        self.session = session
        self.wines = WineRepository(session)
        self.threshold = threshold
        self.candidate_limit = candidate_limit
        self.min_token_length = min_token_length

    @classmethod
    def from_config(cls, session: Session, config: MatchingConfig) -> SimilarityMatcher:
        """Create matcher from configuration."""
        return cls(
            session=session,
            threshold=config.duplicate_threshold,
            candidate_limit=config.candidate_limit,
            min_token_length=config.min_token_length,
        )

    def match(self, candidate: WineCandidate) -> MatchResult:
        """
        Find the catalog record representing the candidate, if any.

        Args:
            candidate: Normalized candidate from the extractor

        Returns:
            MatchResult with the existing record for duplicates
        """
        if candidate.producer and candidate.wine_name and candidate.vintage:
            existing = self.wines.find_exact(
                candidate.wine_name, candidate.producer, candidate.vintage
            )
            if existing is not None:
                logger.debug(f"Exact match for {candidate.wine_name!r}: {existing.id}")
                return MatchResult(action=MatchAction.EXACT, record=existing, score=1.0)

        tokens = significant_tokens(candidate.search_text, self.min_token_length)
        if not tokens:
            return MatchResult(action=MatchAction.NEW)

        # Narrowest search first; drop trailing tokens until a duplicate turns up
        best: WineRecord | None = None
        best_score = 0.0
        seen: set[str] = set()
        for count in range(len(tokens), 0, -1):
            candidates = self.wines.search_candidates(tokens[:count], limit=self.candidate_limit)
            for record in candidates:
                if str(record.id) in seen:
                    continue
                seen.add(str(record.id))
                score = similarity(candidate, record)
                if score > best_score:
                    best, best_score = record, score

            if best is not None and best_score > self.threshold:
                logger.debug(
                    f"Fuzzy match for {candidate.wine_name!r}: {best.id} "
                    f"(score {best_score:.2f}, {count} search tokens)"
                )
                return MatchResult(action=MatchAction.FUZZY, record=best, score=best_score)

        return MatchResult(action=MatchAction.NEW, score=best_score)

    def find_duplicate_groups(self) -> list[list[str]]:
        """
        Group catalog records believed to be the same wine.

        Records are bucketed by their first significant search token and
        every pair in a bucket scoring above the threshold is joined.

        Returns:
            Groups of two or more record ids, oldest record first
        """
        records = self.wines.list_all()
        buckets: dict[str, list[WineRecord]] = defaultdict(list)
        for record in records:
            token = first_significant_token(record.search_text, self.min_token_length)
            if token is not None:
                buckets[token].append(record)

        parent: dict[str, str] = {str(r.id): str(r.id) for r in records}

        def find(wine_id: str) -> str:
            while parent[wine_id] != wine_id:
                parent[wine_id] = parent[parent[wine_id]]
                wine_id = parent[wine_id]
            return wine_id

        for bucket in buckets.values():
            for i, left in enumerate(bucket):
                for right in bucket[i + 1 :]:
                    if similarity(left, right) > self.threshold:
                        root_left, root_right = find(str(left.id)), find(str(right.id))
                        if root_left != root_right:
                            parent[root_right] = root_left

        groups: dict[str, list[str]] = defaultdict(list)
        for record in records:
            groups[find(str(record.id))].append(str(record.id))

        return [ids for ids in groups.values() if len(ids) > 1]
