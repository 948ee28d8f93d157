from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator


class Level(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


LEVEL_COLORS = {
    Level.INFO: "#4CAF50",
    Level.WARN: "#FF9800",
    Level.ERROR: "#F44336",
}
DEFAULT_COLOR = "#757575"


class LogRecord(BaseModel):
    """A single log entry as delivered by the backend. Never mutated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id")
    timestamp: datetime
    level: Level
    service: str
    message: str

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # Mongo-style ids arrive as strings, test backends often send ints
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class Pagination(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int = 1
    pages: int = 1
    total: int = 0


class StatsSnapshot(BaseModel):
    """
    Aggregate counts over the backend's rolling window.

    error_rate is reported by the backend and displayed as-is; it is never
    recomputed from local records.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    info: int = Field(0, alias="INFO", ge=0)
    warn: int = Field(0, alias="WARN", ge=0)
    error: int = Field(0, alias="ERROR", ge=0)
    total: int = Field(0, ge=0)
    error_rate: float = Field(0.0, alias="errorRate")

    def counts(self) -> Dict[Level, int]:
        return {Level.INFO: self.info, Level.WARN: self.warn, Level.ERROR: self.error}


class ChartPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    count: int
    color: str


class Snapshot(BaseModel):
    """One fetched page of records plus the backend's pagination metadata."""

    model_config = ConfigDict(frozen=True)

    records: Tuple[LogRecord, ...] = ()
    pagination: Pagination = Field(default_factory=Pagination)
    dropped: int = 0


_FILTER_FIELDS = ("level", "service", "search")


class FilterSpec(BaseModel):
    """
    Active filter and pagination selection for the session.

    Empty strings are treated as "no constraint". Changing any field other
    than page sends the user back to page 1, since a page number is only
    meaningful for a fixed filter set.
    """

    model_config = ConfigDict(validate_assignment=True)

    level: Optional[Level] = None
    service: Optional[str] = None
    search: Optional[str] = None
    limit: PositiveInt = 50
    page: PositiveInt = 1

    @field_validator("level", "service", "search", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def has_active_filters(self) -> bool:
        return any(getattr(self, name) for name in _FILTER_FIELDS)

    def update(self, **changes: Any) -> bool:
        """Apply changes; returns True if anything changed."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown filter field(s): {', '.join(sorted(unknown))}")

        before = self.key()
        # validate everything first so a bad field leaves the spec untouched
        candidate = type(self).model_validate({**self.model_dump(), **changes})
        if "page" not in changes and candidate.key()[:4] != before[:4]:
            candidate.page = 1

        for name in type(self).model_fields:
            setattr(self, name, getattr(candidate, name))
        return self.key() != before

    def key(self) -> Tuple[Any, ...]:
        return (self.level, self.service, self.search, self.limit, self.page)

    def to_query_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        for name in ("level", "service", "search", "limit", "page"):
            value = getattr(self, name)
            if not value:
                continue
            params[name] = value.value if isinstance(value, Level) else value
        return params
