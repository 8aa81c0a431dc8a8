"""Gift bundle generation and curation pipeline."""
