"""Tests for wine list file readers."""

import pytest

from wine_pipeline.core.errors import ValidationError
from wine_pipeline.ingestion.readers import csv_to_lines, decode_upload, read_wine_list_file


class TestDecodeUpload:
    """Tests for byte decoding."""

    def test_utf8_with_bom(self) -> None:
        """Test that a UTF-8 byte order mark is dropped."""
        assert decode_upload("\ufeffChâteau Latour".encode("utf-8")) == "Château Latour"

    def test_latin1_fallback(self) -> None:
        """Test that non UTF-8 bytes decode as Latin-1."""
        assert decode_upload("Château Latour".encode("latin-1")) == "Château Latour"


class TestCsvToLines:
    """Tests for CSV conversion."""

    def test_full_row_uses_comma_layout(self) -> None:
        """Test that complete rows become comma-delimited lines with a price."""
        text = "Wine,Producer,Vintage,Region,Price\nBarolo,Vietti,2016,Piemonte,$85\n"
        assert csv_to_lines(text) == ["Barolo, Vietti, 2016, Piemonte $85"]

    def test_partial_row(self) -> None:
        """Test that rows without a region become space-joined lines."""
        text = "Name,Winery,Year,Grape\nOpus One,Opus One Winery,2018,Cabernet\n"
        assert csv_to_lines(text) == ["Opus One Winery Opus One Cabernet 2018"]

    def test_country_stands_in_for_region(self) -> None:
        """Test that a country column fills a missing region."""
        text = "label,maker,vintage,country\nGrange,Penfolds,2017,Australia\n"
        assert csv_to_lines(text) == ["Grange, Penfolds, 2017, Australia"]

    def test_rows_without_name_dropped(self) -> None:
        """Test that rows with a blank name are skipped."""
        text = "wine,producer\n,Nobody\nSolaia,Antinori\n"
        assert csv_to_lines(text) == ["Antinori Solaia"]

    def test_missing_name_column(self) -> None:
        """Test that a header without a name column is rejected."""
        with pytest.raises(ValidationError):
            csv_to_lines("producer,vintage\nAntinori,2019\n")


class TestReadWineListFile:
    """Tests for read_wine_list_file."""

    def test_text_passthrough(self) -> None:
        """Test that plain text files are returned unchanged."""
        content = b"Barolo Riserva 2018\nTignanello | Antinori | 2019\n"
        assert read_wine_list_file("list.TXT", content) == content.decode()

    def test_csv_file(self) -> None:
        """Test that CSV files are converted to lines."""
        content = b"wine,producer,vintage,region\nBarolo,Vietti,2016,Piemonte\nSolaia,Antinori,2017,Toscana\n"
        assert read_wine_list_file("list.csv", content) == (
            "Barolo, Vietti, 2016, Piemonte\nSolaia, Antinori, 2017, Toscana"
        )

    def test_unsupported_extension(self) -> None:
        """Test that unknown formats are rejected."""
        with pytest.raises(ValidationError, match="Unsupported"):
            read_wine_list_file("list.pdf", b"%PDF")

    def test_empty_file(self) -> None:
        """Test that empty uploads are rejected."""
        with pytest.raises(ValidationError, match="empty"):
            read_wine_list_file("list.txt", b"")
