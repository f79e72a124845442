"""Tests for the ingestion pipeline."""

import tempfile
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from wine_pipeline.core.enums import EnrichmentStatus, UploadStatus
from wine_pipeline.core.errors import PersistenceError, ValidationError
from wine_pipeline.db.models import Base
from wine_pipeline.db.repositories import RestaurantWineRepository, UploadRepository, WineRepository
from wine_pipeline.ingestion.extractor import TextExtractor
from wine_pipeline.ingestion.matcher import SimilarityMatcher
from wine_pipeline.ingestion.pipeline import IngestionPipeline, split_lines
from wine_pipeline.ingestion.settings import IngestionConfig

TWO_WINES = """\
Wine, Producer, Vintage, Region
Château Margaux, Château Margaux, 2015, Bordeaux
Tignanello | Antinori | 2019 | Tuscany $95
"""

TEN_LINES = """\
Château Margaux, Château Margaux, 2015, Bordeaux
Tignanello | Antinori | 2019 | Tuscany
Cristal - Louis Roederer - 2012 - Champagne
Sassicaia by Tenuta San Guido (2017)
$$$ 42.00 // 17.50
Gaja Barbaresco Sori Tildin 2016
Grange, Penfolds, 2017, South Australia
Opus One, Opus One Winery, 2018, Napa Valley
Vega Sicilia Unico, Vega Sicilia, 2011, Ribera del Duero
Barolo Riserva 2018
"""


class FakeScheduler:
    """Records enrichment kick-offs instead of running them."""

    def __init__(self):
        self.calls = []

    def schedule(self, wine_ids=None, limit=None) -> str:
        self.calls.append(list(wine_ids or []))
        return f"task-{len(self.calls)}"


class FailingMatcher(SimilarityMatcher):
    """Matcher whose store access fails on the nth candidate."""

    def __init__(self, session, fail_on: int):
        super().__init__(session)
        self.fail_on = fail_on
        self.calls = 0

    def match(self, candidate):
        self.calls += 1
        if self.calls == self.fail_on:
            raise PersistenceError("database is locked")
        return super().match(candidate)


@pytest.fixture
def temp_db_path():
    """Create a temporary database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def session(temp_db_path):
    """Create a database session for testing."""
    engine = create_engine(f"sqlite:///{temp_db_path}", echo=False)
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def pipeline(session: Session, scheduler: FakeScheduler) -> IngestionPipeline:
    """Pattern-only pipeline with a recording scheduler."""
    return IngestionPipeline(session, TextExtractor(), scheduler=scheduler)


class TestSplitLines:
    """Tests for split_lines."""

    def test_drops_blank_lines(self) -> None:
        """Test that blank lines are dropped and the rest trimmed."""
        assert split_lines("  a  \n\n\t\nb\r\n") == ["a", "b"]


class TestIngest:
    """Tests for IngestionPipeline.ingest."""

    @pytest.mark.asyncio
    async def test_new_wines(self, pipeline: IngestionPipeline, session: Session) -> None:
        """Test ingesting two new wines into an empty catalog."""
        result = await pipeline.ingest(TWO_WINES, uploaded_by="sommelier-1")

        assert result.new_wines_count == 2
        assert result.duplicates_found == 0
        assert result.processed_count == 2
        assert result.skipped_count == 1
        assert result.error_count == 0
        assert result.total_in_database == 2

        first = WineRepository(session).get_by_id(result.new_wine_ids[0])
        assert first.wine_name == "Château Margaux"
        assert first.producer == "Château Margaux"
        assert first.vintage == "2015"
        assert first.region == "Bordeaux"
        assert first.enrichment_status == EnrichmentStatus.PENDING

        assert len(result.sample_records) == 2
        assert result.sample_records[1]["region"] == "Toscana"

    @pytest.mark.asyncio
    async def test_margaux_and_barolo(self, pipeline: IngestionPipeline, session: Session) -> None:
        """Test a two-line list against an empty catalog."""
        result = await pipeline.ingest(
            "Château Margaux, Château Margaux, 2015, Bordeaux\nBarolo Riserva 2018",
            uploaded_by="sommelier-1",
        )

        assert result.new_wines_count == 2
        repo = WineRepository(session)
        margaux = repo.get_by_id(result.new_wine_ids[0])
        barolo = repo.get_by_id(result.new_wine_ids[1])
        assert (margaux.wine_name, margaux.producer, margaux.vintage, margaux.region) == (
            "Château Margaux",
            "Château Margaux",
            "2015",
            "Bordeaux",
        )
        assert barolo.wine_name == "Barolo Riserva"
        assert barolo.vintage == "2018"

    @pytest.mark.asyncio
    async def test_reingest_is_idempotent(self, pipeline: IngestionPipeline) -> None:
        """Test that ingesting the same list twice creates nothing new."""
        first = await pipeline.ingest(TWO_WINES, uploaded_by="sommelier-1")
        second = await pipeline.ingest(TWO_WINES, uploaded_by="sommelier-1")

        assert first.new_wines_count == 2
        assert second.new_wines_count == 0
        assert second.duplicates_found == 2
        assert second.api_calls_saved == 4
        assert second.total_in_database == 2
        assert second.new_wine_ids == []

    @pytest.mark.asyncio
    async def test_reingest_with_crowded_first_token(self, pipeline: IngestionPipeline) -> None:
        """Test idempotence when more wines share a first token than are scored."""
        text = "\n".join(
            f"Chateau Lafleur Cuvee Number{i} Reserve" for i in range(55)
        )

        first = await pipeline.ingest(text, uploaded_by="sommelier-1")
        second = await pipeline.ingest(text, uploaded_by="sommelier-1")

        assert first.new_wines_count == 55
        assert second.new_wines_count == 0
        assert second.duplicates_found == 55
        assert second.total_in_database == 55

    @pytest.mark.asyncio
    async def test_bad_line_does_not_abort(self, pipeline: IngestionPipeline) -> None:
        """Test that one unparseable line is counted and the rest processed."""
        result = await pipeline.ingest(TEN_LINES, uploaded_by="sommelier-1")

        assert result.error_count == 1
        assert result.processed_count == 9
        assert result.new_wines_count == 9
        assert result.errors[0].startswith("Line 5:")

    @pytest.mark.asyncio
    async def test_restaurant_links(self, pipeline: IngestionPipeline, session: Session) -> None:
        """Test that every wine is linked to the uploading restaurant with its price."""
        result = await pipeline.ingest(
            TWO_WINES, uploaded_by="sommelier-1", restaurant_id="rest-1"
        )

        links = RestaurantWineRepository(session).list_for_restaurant("rest-1")
        assert {str(link.wine_id) for link in links} == set(result.new_wine_ids)
        prices = {str(link.wine_id): link.price for link in links}
        assert prices[result.new_wine_ids[1]] == 95.0
        assert all(link.added_by == "sommelier-1" for link in links)

    @pytest.mark.asyncio
    async def test_upload_record_finalized(
        self, pipeline: IngestionPipeline, session: Session
    ) -> None:
        """Test that the upload audit record carries the batch counts."""
        result = await pipeline.ingest(
            TEN_LINES, uploaded_by="sommelier-1", file_name="list.txt", file_size=420
        )

        upload = UploadRepository(session).get_by_id(result.upload_id)
        assert upload.status == UploadStatus.COMPLETED
        assert upload.total_lines == 10
        assert upload.new_wines == 9
        assert upload.error_count == 1
        assert upload.original_filename == "list.txt"
        assert upload.file_size == 420
        assert upload.completed_at is not None

    @pytest.mark.asyncio
    async def test_enrichment_kickoff(
        self, session: Session, scheduler: FakeScheduler
    ) -> None:
        """Test that only the first few new wines are handed to the scheduler."""
        pipeline = IngestionPipeline(
            session,
            TextExtractor(),
            scheduler=scheduler,
            config=IngestionConfig(auto_enrich_count=3),
        )

        result = await pipeline.ingest(TEN_LINES, uploaded_by="sommelier-1")

        assert scheduler.calls == [result.new_wine_ids[:3]]
        assert result.enrichment_task_id == "task-1"

    @pytest.mark.asyncio
    async def test_no_kickoff_without_new_wines(
        self, pipeline: IngestionPipeline, scheduler: FakeScheduler
    ) -> None:
        """Test that a batch of duplicates schedules nothing."""
        await pipeline.ingest(TWO_WINES, uploaded_by="sommelier-1")
        second = await pipeline.ingest(TWO_WINES, uploaded_by="sommelier-1")

        assert len(scheduler.calls) == 1
        assert second.enrichment_task_id is None

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self, pipeline: IngestionPipeline) -> None:
        """Test that whitespace-only text is a validation error."""
        with pytest.raises(ValidationError):
            await pipeline.ingest(" \n \n", uploaded_by="sommelier-1")

    @pytest.mark.asyncio
    async def test_uploader_required(self, pipeline: IngestionPipeline) -> None:
        """Test that a blank uploader is a validation error."""
        with pytest.raises(ValidationError):
            await pipeline.ingest(TWO_WINES, uploaded_by=" ")

    @pytest.mark.asyncio
    async def test_store_failure_fails_upload(self, session: Session) -> None:
        """Test that a store failure aborts the batch but keeps earlier rows."""
        pipeline = IngestionPipeline(
            session, TextExtractor(), matcher=FailingMatcher(session, fail_on=3)
        )

        with pytest.raises(PersistenceError):
            await pipeline.ingest(TEN_LINES, uploaded_by="sommelier-1")

        uploads = UploadRepository(session).list_recent()
        assert uploads[0].status == UploadStatus.FAILED
        assert uploads[0].new_wines == 2
        assert "database is locked" in uploads[0].error_message
        assert WineRepository(session).count() == 2
