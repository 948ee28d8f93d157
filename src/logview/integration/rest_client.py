import logging
from typing import Optional

import requests

from ..core.log_processor import process_logs, process_stats
from ..core.models import FilterSpec, Pagination, Snapshot, StatsSnapshot

logger = logging.getLogger(__name__)


class SnapshotFetchError(Exception):
    """A snapshot or stats request failed; the caller keeps its prior data."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SnapshotFetcher:
    """
    Pull filtered, paginated pages of logs and rolling stats from the backend.

    The backend applies the filter; the returned page is taken as-is.
    Anything with a requests-style `get(url, params=..., timeout=...)` can
    be passed as the session.
    """

    def __init__(self, base_url: str, session=None, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

    def fetch(self, spec: FilterSpec) -> Snapshot:
        """
        GET /logs with every non-empty filter field as a query parameter.

        Raises:
            SnapshotFetchError: On network failure, non-2xx status, or a
                response body that is not the expected shape.
        """
        data = self._get_json("/logs", spec.to_query_params())
        raw_logs = data.get("logs") if isinstance(data, dict) else None
        if not isinstance(raw_logs, list):
            raise SnapshotFetchError("Malformed /logs response: 'logs' is not a list")

        records, dropped = process_logs(raw_logs)
        try:
            pagination = Pagination.model_validate(data.get("pagination") or {})
        except ValueError as e:
            logger.warning("Ignoring malformed pagination: %s", e)
            pagination = Pagination(page=spec.page, total=len(records))

        logger.debug("Fetched %d logs (page %d of %d)", len(records), pagination.page, pagination.pages)
        return Snapshot(records=tuple(records), pagination=pagination, dropped=dropped)

    def fetch_stats(self, window_seconds: int = 60) -> StatsSnapshot:
        data = self._get_json("/logs/stats", {"seconds": window_seconds})
        try:
            return process_stats(data)
        except ValueError as e:
            raise SnapshotFetchError(str(e)) from e

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def _get_json(self, path: str, params: dict):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise SnapshotFetchError(f"GET {path} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise SnapshotFetchError(
                f"GET {path} returned {response.status_code}", status_code=response.status_code
            )
        try:
            return response.json()
        except ValueError as e:
            raise SnapshotFetchError(
                f"GET {path} returned invalid JSON", status_code=response.status_code
            ) from e
