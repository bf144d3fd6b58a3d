"""
Reading ingestion from files.

Supports JSON (array or NDJSON) and CSV sources. Raw rows are yielded as
dictionaries and validated afterwards by ``parse_readings``; a malformed row
fails the whole load instead of being skipped.

Design:
- Format detection from file extension or an explicit format argument
- Iterator-based sources for large exports
- CSV numeric columns converted to numbers before validation
"""

import csv
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, List, Union

from aquawatch.anomaly.schema import Reading
from aquawatch.core.exceptions import WaterMonitorError

from .validation import parse_readings

logger = logging.getLogger(__name__)

NUMERIC_COLUMNS = ("flowRate", "flow_rate", "pressure")


class ReadingIngestionError(WaterMonitorError):
    """Raised when a reading file cannot be read or decoded."""
    pass


class BaseReadingSource(ABC):
    """
    Abstract base class for reading sources.

    Each source type (JSON, CSV) implements this interface.
    """

    def __init__(self, filepath: Union[str, Path], encoding: str = "utf-8"):
        """
        Initialize reading source.

        Args:
            filepath: Path to the export file
            encoding: File encoding (default utf-8)

        Raises:
            ReadingIngestionError: If file doesn't exist
        """
        self.filepath = Path(filepath)
        self.encoding = encoding

        if not self.filepath.exists():
            raise ReadingIngestionError(f"Reading file not found: {self.filepath}")

    @abstractmethod
    def ingest(self) -> Iterator[Dict[str, Any]]:
        """
        Yield raw reading dictionaries in file order.
        """
        pass


class JSONReadingSource(BaseReadingSource):
    """
    Ingests JSON readings, either a top-level array or one object per line.

    Example NDJSON:
        {"householdId": "H001", "flowRate": 45.2, "pressure": 2.5, "timestamp": "..."}
        {"householdId": "H002", "flowRate": 0.1, "pressure": 1.2, "timestamp": "..."}
    """

    def ingest(self) -> Iterator[Dict[str, Any]]:
        try:
            with open(self.filepath, "r", encoding=self.encoding) as f:
                content = f.read().lstrip("\ufeff").strip()
        except OSError as e:
            logger.error("Error reading JSON file %s: %s", self.filepath, e)
            raise ReadingIngestionError(f"Failed to read JSON readings: {e}") from e

        if not content:
            return

        if content.startswith("["):
            try:
                rows = json.loads(content)
            except json.JSONDecodeError as e:
                raise ReadingIngestionError(f"Invalid JSON array: {e}") from e
            yield from rows
            return

        for line_num, line in enumerate(content.split("\n"), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                raise ReadingIngestionError(
                    f"Malformed JSON at line {line_num} of {self.filepath}: {e}"
                ) from e


class CSVReadingSource(BaseReadingSource):
    """
    Ingests CSV readings. First row must contain headers.

    Example:
        householdId,flowRate,pressure,timestamp
        H001,45.2,2.5,2025-02-07T10:30:00
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        encoding: str = "utf-8",
        delimiter: str = ","
    ):
        super().__init__(filepath, encoding)
        self.delimiter = delimiter

    def ingest(self) -> Iterator[Dict[str, Any]]:
        try:
            with open(self.filepath, "r", encoding=self.encoding, newline="") as f:
                reader = csv.DictReader(f, delimiter=self.delimiter)

                if reader.fieldnames is None:
                    raise ReadingIngestionError("CSV file is empty")

                # Normalize BOM in header if present
                reader.fieldnames = [name.lstrip("\ufeff") for name in reader.fieldnames]

                for row in reader:
                    if all(v in (None, "") for v in row.values()):
                        continue
                    yield {key: _coerce_cell(key, value) for key, value in row.items()}
        except OSError as e:
            logger.error("Error reading CSV file %s: %s", self.filepath, e)
            raise ReadingIngestionError(f"Failed to read CSV readings: {e}") from e


def _coerce_cell(column: str, value: Any) -> Any:
    # Unparseable numbers stay strings so validation reports the bad field.
    if column not in NUMERIC_COLUMNS or value in (None, ""):
        return value
    try:
        return float(value)
    except ValueError:
        return value


def ingest_readings(
    filepath: Union[str, Path],
    format: str = "auto"
) -> List[Reading]:
    """
    Load and validate readings from a file.

    Args:
        filepath: Path to the export
        format: "json", "csv", or "auto" for extension-based detection

    Returns:
        Validated readings in file order

    Raises:
        ReadingIngestionError: If the file is missing or undecodable
        InvalidInputError: If any row is not a valid reading
    """
    filepath = Path(filepath)

    if format == "auto":
        suffix = filepath.suffix.lower()
        if suffix in (".json", ".ndjson", ".jsonl"):
            format = "json"
        elif suffix == ".csv":
            format = "csv"
        else:
            raise ReadingIngestionError(f"Cannot detect format of {filepath.name}")

    if format == "json":
        source: BaseReadingSource = JSONReadingSource(filepath)
    elif format == "csv":
        source = CSVReadingSource(filepath)
    else:
        raise ReadingIngestionError(f"Unknown format: {format}")

    readings = parse_readings(source.ingest())
    logger.info("Ingested %d readings from %s", len(readings), filepath)
    return readings
