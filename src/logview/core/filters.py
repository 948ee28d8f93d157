"""
Filter predicate shared by the REST and push paths.

Both sources run through the same `matches` so that a record shows up in
the visible slice for the same reasons no matter how it arrived.
"""

from itertools import islice
from typing import Iterable, Iterator, Tuple

from .models import FilterSpec, LogRecord


def matches(record: LogRecord, spec: FilterSpec) -> bool:
    """
    Decide whether a record passes every set field of the filter.

    Level and service compare exactly; search is a case-insensitive
    substring test against the message. Unset fields impose nothing.
    """
    if spec.level and record.level != spec.level:
        return False
    if spec.service and record.service != spec.service:
        return False
    if spec.search and spec.search.casefold() not in record.message.casefold():
        return False
    return True


def apply_filters(records: Iterable[LogRecord], spec: FilterSpec) -> Iterator[LogRecord]:
    for record in records:
        if matches(record, spec):
            yield record


def visible_slice(records: Iterable[LogRecord], spec: FilterSpec) -> Tuple[LogRecord, ...]:
    """First `spec.limit` matching records, in iteration order."""
    return tuple(islice(apply_filters(records, spec), spec.limit))
