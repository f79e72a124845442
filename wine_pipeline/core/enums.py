"""Enums for wine records, uploads and enrichment."""

from enum import Enum


class WineType(str, Enum):
    """Wine type classification."""

    RED = "red"
    WHITE = "white"
    ROSE = "rosé"
    SPARKLING = "sparkling"
    DESSERT = "dessert"


class EnrichmentStatus(str, Enum):
    """Enrichment lifecycle of a wine record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadStatus(str, Enum):
    """Lifecycle of an ingestion batch audit record."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ExtractionMethod(str, Enum):
    """How a candidate record was extracted from a line."""

    LLM = "llm"
    PATTERN = "pattern"
    HEURISTIC = "heuristic"
    CSV = "csv"


class EnrichmentSource(str, Enum):
    """Provenance tags written to verified_source by the enrichment chain."""

    KNOWLEDGE_BASE = "Knowledge Base"
    RESEARCH = "Research"
    EDUCATIONAL = "Educational Content"


class WineSort(str, Enum):
    """Sort orders for wine listings."""

    NEWEST = "newest"
    OLDEST = "oldest"
    NAME = "name"
    PRODUCER = "producer"
    VINTAGE = "vintage"
