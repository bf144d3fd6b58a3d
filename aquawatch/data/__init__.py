"""
Data module: reading validation, file ingestion, and simulated telemetry.

Pipeline:

    Raw readings (HTTP body / JSON / CSV / simulator)
        ↓
    Validation (aquawatch/data/validation.py) → Reading
        ↓
    Ready for classification (aquawatch/anomaly)
"""

from aquawatch.data.ingestion import (
    CSVReadingSource,
    JSONReadingSource,
    ReadingIngestionError,
    ingest_readings,
)
from aquawatch.data.simulator import ReadingSimulator
from aquawatch.data.validation import parse_reading, parse_readings

__all__ = [
    "CSVReadingSource",
    "JSONReadingSource",
    "ReadingIngestionError",
    "ingest_readings",
    "ReadingSimulator",
    "parse_reading",
    "parse_readings",
]
