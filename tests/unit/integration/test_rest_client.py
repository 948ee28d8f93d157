import pytest
import requests
from conftest import record_payload

from logview.core.models import FilterSpec, Level, Pagination
from logview.integration.rest_client import SnapshotFetcher, SnapshotFetchError


@pytest.fixture
def fetcher(client):
    return SnapshotFetcher("http://testserver/", session=client)


def test_fetch_sends_only_non_empty_filters(fetcher, backend):
    fetcher.fetch(FilterSpec(level="ERROR", search="", limit=20, page=3))
    assert backend.requests == [("/logs", {"level": "ERROR", "limit": "20", "page": "3"})]


def test_fetch_returns_page_and_pagination(fetcher, backend):
    backend.logs = [record_payload(1, level="ERROR"), record_payload(2, level="ERROR")]
    backend.pagination = {"page": 2, "pages": 5, "total": 10}

    snapshot = fetcher.fetch(FilterSpec(level="ERROR", limit=2, page=2))

    assert [r.id for r in snapshot.records] == ["1", "2"]
    assert all(r.level is Level.ERROR for r in snapshot.records)
    assert snapshot.pagination == Pagination(page=2, pages=5, total=10)
    assert snapshot.dropped == 0


def test_fetch_drops_malformed_records(fetcher, backend):
    backend.logs = [record_payload(1), {"_id": "2", "level": "INFO"}, "garbage"]
    snapshot = fetcher.fetch(FilterSpec())
    assert [r.id for r in snapshot.records] == ["1"]
    assert snapshot.dropped == 2


def test_fetch_without_pagination_uses_defaults(fetcher, backend):
    backend.raw_body = {"logs": [record_payload(1)]}
    assert fetcher.fetch(FilterSpec()).pagination == Pagination()


@pytest.mark.parametrize("status", [404, 500, 503])
def test_fetch_non_2xx_raises(fetcher, backend, status):
    backend.status_code = status
    with pytest.raises(SnapshotFetchError) as exc:
        fetcher.fetch(FilterSpec())
    assert exc.value.status_code == status


def test_fetch_malformed_body_raises(fetcher, backend):
    backend.raw_body = {"items": []}
    with pytest.raises(SnapshotFetchError, match="'logs' is not a list"):
        fetcher.fetch(FilterSpec())


def test_fetch_stats(fetcher, backend):
    backend.stats = {"INFO": 7, "WARN": 2, "ERROR": 1, "total": 10, "errorRate": 10}
    stats = fetcher.fetch_stats(60)
    assert backend.requests[-1] == ("/logs/stats", {"seconds": "60"})
    assert (stats.info, stats.warn, stats.error, stats.total) == (7, 2, 1, 10)
    assert stats.error_rate == 10.0


def test_fetch_stats_invalid_payload(fetcher, backend):
    backend.stats = {"INFO": "lots"}
    with pytest.raises(SnapshotFetchError, match="Invalid stats"):
        fetcher.fetch_stats()


class _Unreachable:
    def get(self, url, params=None, timeout=None):
        raise requests.ConnectionError("connection refused")

    def close(self):
        pass


def test_network_error_raises():
    fetcher = SnapshotFetcher("http://localhost:5000", session=_Unreachable())
    with pytest.raises(SnapshotFetchError, match="connection refused") as exc:
        fetcher.fetch(FilterSpec())
    assert exc.value.status_code is None


def test_close_leaves_injected_session_open(client):
    fetcher = SnapshotFetcher("http://testserver", session=client)
    fetcher.close()
    assert not fetcher._owns_session
