"""Product catalog service: read/write API, CSV import and batch ingestion."""

__version__ = "1.0.0"
