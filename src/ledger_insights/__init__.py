"""Bank statement ingestion, deduplication and spending insights"""

__version__ = "0.1.0"
