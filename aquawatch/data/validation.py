"""
Boundary validation for raw readings.

Converts raw dictionaries (HTTP bodies, file rows, device telemetry) into
Reading models before they reach the classifier. A batch fails fast on the
first bad record; nothing is silently skipped.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from aquawatch.anomaly.schema import Reading
from aquawatch.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)


def _household_of(raw: Dict[str, Any]) -> Optional[str]:
    value = raw.get("householdId", raw.get("household_id"))
    return str(value) if value not in (None, "") else None


def parse_reading(raw: Any, index: Optional[int] = None) -> Reading:
    """
    Validate one raw reading.

    Args:
        raw: Mapping with householdId, flowRate, pressure and optional timestamp
        index: Position in the submitted batch, used in error reports

    Returns:
        Validated Reading

    Raises:
        InvalidInputError: If a field is missing or wrong-typed

    Notes:
        - A missing timestamp is stamped with the current UTC time.
        - camelCase and snake_case keys are both accepted.
    """
    where = f"reading {index}" if index is not None else "reading"

    if not isinstance(raw, dict):
        raise InvalidInputError(
            f"Invalid {where}: expected an object, got {type(raw).__name__}",
            index=index,
        )

    household_id = _household_of(raw)
    data = dict(raw)
    if data.get("timestamp") in (None, ""):
        data.pop("timestamp", None)
        data["timestamp"] = datetime.now(timezone.utc)

    try:
        return Reading.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise InvalidInputError(
            f"Invalid {where} for household {household_id}: {field} {first.get('msg')}",
            index=index,
            household_id=household_id,
            field=field,
        ) from e


def parse_readings(raws: Iterable[Any]) -> List[Reading]:
    """
    Validate an ordered batch of raw readings.

    Raises:
        InvalidInputError: On the first invalid record (whole batch rejected)
    """
    readings = [parse_reading(raw, index=idx) for idx, raw in enumerate(raws)]
    logger.debug("Validated %d readings", len(readings))
    return readings
