import logging
from typing import Any, Iterable, List, Tuple

from pydantic import ValidationError

from .models import LogRecord, StatsSnapshot

logger = logging.getLogger(__name__)


def process_log(payload: Any) -> LogRecord:
    if isinstance(payload, LogRecord):
        return payload
    if not isinstance(payload, dict):
        raise ValueError(f"Invalid log: expected an object, got {type(payload).__name__}")
    try:
        # Normalize: backends are not always strict about level casing
        data = dict(payload)
        if isinstance(data.get("level"), str):
            data["level"] = data["level"].strip().upper()
        return LogRecord.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid log: {e}") from e


def process_logs(payloads: Iterable[Any]) -> Tuple[List[LogRecord], int]:
    """Validate a batch, dropping malformed entries. Returns (records, dropped)."""
    records = []
    dropped = 0
    for payload in payloads:
        try:
            records.append(process_log(payload))
        except ValueError as e:
            dropped += 1
            logger.warning("Dropping malformed log record: %s", e)
    return records, dropped


def process_stats(payload: Any) -> StatsSnapshot:
    if isinstance(payload, StatsSnapshot):
        return payload
    if not isinstance(payload, dict):
        raise ValueError(f"Invalid stats: expected an object, got {type(payload).__name__}")
    try:
        return StatsSnapshot.model_validate(payload)
    except ValidationError as e:
        raise ValueError(f"Invalid stats: {e}") from e
