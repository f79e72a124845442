"""
Wine List Readers
=================

Turns uploaded wine list files into newline separated text for the
ingestion pipeline. Plain text passes through; CSV rows become one
comma-delimited line per wine.
"""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path

from wine_pipeline.core.errors import ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".txt", ".csv")

# Column aliases, matched case-insensitively against the CSV header
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "wine_name": ("wine_name", "name", "wine", "label"),
    "producer": ("producer", "winery", "maker", "house"),
    "vintage": ("vintage", "year"),
    "region": ("region", "appellation"),
    "country": ("country",),
    "varietal": ("varietal", "grape", "grapes", "variety"),
    "price": ("price", "bottle_price", "cost"),
}


def decode_upload(content: bytes) -> str:
    """
    Decode uploaded bytes as text.

    Tries UTF-8 (with or without BOM) and falls back to Latin-1, which
    accepts any byte sequence.
    """
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("Upload is not valid UTF-8, decoding as Latin-1")
        return content.decode("latin-1")


def _resolve_columns(fieldnames: list[str]) -> dict[str, str]:
    """Map canonical field names to the header names present in the file."""
    lowered = {name.strip().lower(): name for name in fieldnames if name}
    resolved = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lowered:
                resolved[canonical] = lowered[alias]
                break
    return resolved


def csv_to_lines(text: str) -> list[str]:
    """
    Convert CSV text into wine list lines.

    Each row becomes "name, producer, vintage, region" so the comma
    pattern of the extractor recognizes it. Rows without a name are
    dropped; a price column is appended as "$<price>".

    Raises:
        ValidationError: If the header has no wine name column
    """
    reader = csv.DictReader(io.StringIO(text))
    columns = _resolve_columns(reader.fieldnames or [])
    if "wine_name" not in columns:
        raise ValidationError(
            "CSV wine list needs a name column (one of: "
            + ", ".join(COLUMN_ALIASES["wine_name"])
            + ")"
        )

    lines = []
    for row in reader:
        values = {
            key: (row.get(column) or "").strip() for key, column in columns.items()
        }
        name = values.get("wine_name")
        if not name:
            continue

        region = values.get("region") or values.get("country") or ""
        if values.get("producer") and values.get("vintage") and region:
            line = f"{name}, {values['producer']}, {values['vintage']}, {region}"
        else:
            parts = [values.get("producer"), name, values.get("varietal"), values.get("vintage")]
            line = " ".join(p for p in parts if p)

        price = values.get("price")
        if price:
            line = f"{line} ${price.lstrip('$')}"
        lines.append(line)

    return lines


def read_wine_list_file(filename: str, content: bytes) -> str:
    """
    Read an uploaded wine list into pipeline text.

    Args:
        filename: Original file name (its extension selects the reader)
        content: Raw file bytes

    Returns:
        Newline separated wine list text

    Raises:
        ValidationError: For unsupported extensions or empty files
    """
    extension = Path(filename).suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise ValidationError(
            f"Unsupported wine list format '{extension or filename}'. "
            f"Use one of: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    if not content:
        raise ValidationError(f"Uploaded file '{filename}' is empty")

    text = decode_upload(content)
    if extension == ".csv":
        return "\n".join(csv_to_lines(text))
    return text
