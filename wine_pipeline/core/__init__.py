"""Core domain types for the wine list pipeline."""
