"""
Pipeline Settings Module
========================

Loads pipeline tunables from a YAML file. Every section has defaults, so
a missing file or a partial file still yields a complete configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from wine_pipeline.core.certification import CertificationThresholds


@dataclass
class ExtractionConfig:
    """Line pre-filter and extraction settings."""

    min_line_length: int = 10
    use_llm: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ExtractionConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            min_line_length=int(data.get("min_line_length", 10)),
            use_llm=bool(data.get("use_llm", True)),
        )


@dataclass
class MatchingConfig:
    """Duplicate detection settings."""

    duplicate_threshold: float = 0.90
    candidate_limit: int = 50
    min_token_length: int = 3

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MatchingConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            duplicate_threshold=float(data.get("duplicate_threshold", 0.90)),
            candidate_limit=int(data.get("candidate_limit", 50)),
            min_token_length=int(data.get("min_token_length", 3)),
        )


@dataclass
class IngestionConfig:
    """Batch ingestion settings."""

    auto_enrich_count: int = 3
    sample_size: int = 5

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> IngestionConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            auto_enrich_count=int(data.get("auto_enrich_count", 3)),
            sample_size=int(data.get("sample_size", 5)),
        )


@dataclass
class VerificationConfig:
    """External verification service settings."""

    base_url: str = ""
    source_name: str = "Vivino"
    timeout: float = 10.0
    requests_per_second: float = 2.0
    burst_limit: int = 2

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> VerificationConfig:
        """Create from dictionary, letting VERIFICATION_API_URL override the URL."""
        data = data or {}
        rate_limit = data.get("rate_limit", {})
        return cls(
            base_url=os.environ.get("VERIFICATION_API_URL", data.get("base_url", "")),
            source_name=data.get("source_name", "Vivino"),
            timeout=float(data.get("timeout", 10.0)),
            requests_per_second=float(rate_limit.get("requests_per_second", 2.0)),
            burst_limit=int(rate_limit.get("burst_limit", 2)),
        )


@dataclass
class EnrichmentConfig:
    """Enrichment chain settings."""

    inter_call_delay_ms: int = 100
    batch_ceiling: int = 10
    research_attempts: int = 2
    verification_confidence: float = 0.8
    certification: CertificationThresholds = field(default_factory=CertificationThresholds)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EnrichmentConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            inter_call_delay_ms=int(data.get("inter_call_delay_ms", 100)),
            batch_ceiling=int(data.get("batch_ceiling", 10)),
            research_attempts=int(data.get("research_attempts", 2)),
            verification_confidence=float(data.get("verification_confidence", 0.8)),
            certification=CertificationThresholds.from_dict(data.get("certification")),
        )


@dataclass
class DaemonConfig:
    """Background enrichment loop settings."""

    poll_interval_seconds: float = 5.0
    page_size: int = 10
    stuck_threshold_minutes: int = 10
    retry_failed: bool = True
    max_attempts: int = 3

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DaemonConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            poll_interval_seconds=float(data.get("poll_interval_seconds", 5.0)),
            page_size=int(data.get("page_size", 10)),
            stuck_threshold_minutes=int(data.get("stuck_threshold_minutes", 10)),
            retry_failed=bool(data.get("retry_failed", True)),
            max_attempts=int(data.get("max_attempts", 3)),
        )


@dataclass
class PipelineSettings:
    """All pipeline settings, one attribute per YAML section."""

    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    config_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PipelineSettings:
        """Create from a parsed YAML document."""
        data = data or {}
        return cls(
            extraction=ExtractionConfig.from_dict(data.get("extraction")),
            matching=MatchingConfig.from_dict(data.get("matching")),
            ingestion=IngestionConfig.from_dict(data.get("ingestion")),
            verification=VerificationConfig.from_dict(data.get("verification")),
            enrichment=EnrichmentConfig.from_dict(data.get("enrichment")),
            daemon=DaemonConfig.from_dict(data.get("daemon")),
        )


def load_settings(config_path: Path | str) -> PipelineSettings:
    """
    Load settings from a YAML file.

    Args:
        config_path: Path to the pipeline.yaml file

    Returns:
        PipelineSettings built from the file
    """
    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f)

    settings = PipelineSettings.from_dict(data)
    settings.config_path = config_path
    return settings


# Global settings instance
_default_settings: PipelineSettings | None = None


def get_default_settings() -> PipelineSettings:
    """
    Get the default settings instance.

    Loads configuration from the path specified in PIPELINE_CONFIG_PATH
    environment variable, or falls back to config/pipeline.yaml, or to
    built-in defaults when neither exists.

    Returns:
        The global PipelineSettings instance
    """
    global _default_settings

    if _default_settings is None:
        config_path = os.environ.get("PIPELINE_CONFIG_PATH")
        if config_path:
            path = Path(config_path)
        else:
            project_root = Path(__file__).parent.parent.parent
            path = project_root / "config" / "pipeline.yaml"

        if path.exists():
            _default_settings = load_settings(path)
        else:
            _default_settings = PipelineSettings()

    return _default_settings


def reset_default_settings() -> None:
    """Reset the default settings (useful for testing)."""
    global _default_settings
    _default_settings = None
