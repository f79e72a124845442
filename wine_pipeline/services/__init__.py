"""Application services for the wine list pipeline."""
