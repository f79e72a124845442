"""
Wine List Ingestion
===================

Turns unstructured wine list text into catalog records.

Pipeline Stages:
1. Read - Files become newline separated text (txt, csv)
2. Pre-filter - Short, header and separator lines are skipped
3. Extract - Language model, then line patterns, then a year heuristic
4. Normalize - Region and grape aliases, vintage, wine type inference
5. Match - Exact identity, then weighted similarity against the catalog
6. Persist - Insert new wines, link every wine to the restaurant
"""

from wine_pipeline.ingestion.extractor import TextExtractor
from wine_pipeline.ingestion.matcher import MatchAction, MatchResult, SimilarityMatcher
from wine_pipeline.ingestion.normalizer import Normalizer
from wine_pipeline.ingestion.pipeline import IngestionPipeline, IngestionResult
from wine_pipeline.ingestion.readers import read_wine_list_file
from wine_pipeline.ingestion.settings import PipelineSettings, get_default_settings

__all__ = [
    # Extraction
    "TextExtractor",
    "Normalizer",
    # Matching
    "SimilarityMatcher",
    "MatchAction",
    "MatchResult",
    # Pipeline
    "IngestionPipeline",
    "IngestionResult",
    "read_wine_list_file",
    # Settings
    "PipelineSettings",
    "get_default_settings",
]
