"""Tests for pipeline settings loading."""

import tempfile
from pathlib import Path

import pytest

from wine_pipeline.ingestion.settings import (
    PipelineSettings,
    get_default_settings,
    load_settings,
    reset_default_settings,
)

SAMPLE_YAML = """\
extraction:
  min_line_length: 6
  use_llm: false
matching:
  duplicate_threshold: 0.85
daemon:
  poll_interval_seconds: 1.5
  retry_failed: false
enrichment:
  inter_call_delay_ms: 0
  certification:
    combined_minimum: 1200
    minimums:
      tasting_notes: 300
verification:
  base_url: https://verify.example.com
  rate_limit:
    requests_per_second: 4
"""


@pytest.fixture
def config_path():
    """Write a sample pipeline.yaml to a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "pipeline.yaml"
        path.write_text(SAMPLE_YAML)
        yield path


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate the global settings instance."""
    monkeypatch.delenv("VERIFICATION_API_URL", raising=False)
    reset_default_settings()
    yield
    reset_default_settings()


class TestPipelineSettings:
    """Tests for settings defaults and parsing."""

    def test_defaults(self) -> None:
        """Test that an empty document yields the built-in defaults."""
        settings = PipelineSettings.from_dict(None)

        assert settings.extraction.min_line_length == 10
        assert settings.matching.duplicate_threshold == 0.90
        assert settings.ingestion.auto_enrich_count == 3
        assert settings.enrichment.batch_ceiling == 10
        assert settings.enrichment.certification.tasting_notes == 750
        assert settings.enrichment.certification.combined_minimum == 3000
        assert settings.daemon.poll_interval_seconds == 5.0
        assert settings.daemon.stuck_threshold_minutes == 10

    def test_load_partial_file(self, config_path: Path) -> None:
        """Test that a partial file overrides only what it names."""
        settings = load_settings(config_path)

        assert settings.config_path == config_path.resolve()
        assert settings.extraction.min_line_length == 6
        assert settings.extraction.use_llm is False
        assert settings.matching.duplicate_threshold == 0.85
        assert settings.matching.candidate_limit == 50
        assert settings.daemon.poll_interval_seconds == 1.5
        assert settings.daemon.retry_failed is False
        assert settings.enrichment.inter_call_delay_ms == 0
        assert settings.enrichment.certification.combined_minimum == 1200
        assert settings.enrichment.certification.tasting_notes == 300
        assert settings.enrichment.certification.flavor_notes == 625
        assert settings.verification.base_url == "https://verify.example.com"
        assert settings.verification.requests_per_second == 4.0

    def test_missing_file(self) -> None:
        """Test that a missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_settings("/nonexistent/pipeline.yaml")

    def test_env_overrides_verification_url(self, config_path: Path, monkeypatch) -> None:
        """Test that VERIFICATION_API_URL wins over the file."""
        monkeypatch.setenv("VERIFICATION_API_URL", "https://override.example.com")
        settings = load_settings(config_path)
        assert settings.verification.base_url == "https://override.example.com"


class TestDefaultSettings:
    """Tests for the global settings instance."""

    def test_config_path_from_env(self, config_path: Path, monkeypatch) -> None:
        """Test that PIPELINE_CONFIG_PATH selects the file."""
        monkeypatch.setenv("PIPELINE_CONFIG_PATH", str(config_path))

        settings = get_default_settings()

        assert settings.extraction.min_line_length == 6
        assert get_default_settings() is settings

    def test_missing_env_path_uses_defaults(self, monkeypatch) -> None:
        """Test that a nonexistent configured path falls back to defaults."""
        monkeypatch.setenv("PIPELINE_CONFIG_PATH", "/nonexistent/pipeline.yaml")

        settings = get_default_settings()

        assert settings.config_path is None
        assert settings.extraction.min_line_length == 10
