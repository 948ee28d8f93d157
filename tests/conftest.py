import threading
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from logview.core.models import LogRecord, Pagination, Snapshot, StatsSnapshot

BASE_TIME = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_record(id, level="INFO", service="api", message="request handled", offset=0):
    return LogRecord.model_validate({
        "_id": str(id),
        "timestamp": (BASE_TIME + timedelta(seconds=offset)).isoformat(),
        "level": level,
        "service": service,
        "message": message,
    })


def record_payload(id, level="INFO", service="api", message="request handled"):
    return {
        "_id": str(id),
        "timestamp": BASE_TIME.isoformat(),
        "level": level,
        "service": service,
        "message": message,
    }


@pytest.fixture
def record():
    return make_record


class FakeBackend:
    """Stands in for the log service's REST API."""

    def __init__(self):
        self.logs = []
        self.pagination = {"page": 1, "pages": 1, "total": 0}
        self.stats = {"INFO": 0, "WARN": 0, "ERROR": 0, "total": 0, "errorRate": 0}
        self.status_code = 200
        self.raw_body = None
        self.requests = []
        self.app = FastAPI()

        @self.app.get("/logs")
        async def get_logs(request: Request):
            self.requests.append(("/logs", dict(request.query_params)))
            if self.raw_body is not None:
                return JSONResponse(self.raw_body, status_code=self.status_code)
            return JSONResponse({"logs": self.logs, "pagination": self.pagination}, status_code=self.status_code)

        @self.app.get("/logs/stats")
        async def get_stats(request: Request):
            self.requests.append(("/logs/stats", dict(request.query_params)))
            return JSONResponse(self.stats, status_code=self.status_code)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend):
    return TestClient(backend.app)


class FakeFetcher:
    """
    In-process fetcher for controller tests.

    Queue snapshots with `snapshots`; set `gate` to hold a fetch until the
    test releases it.
    """

    def __init__(self):
        self.snapshots = []
        self.responder = None
        self.stats = StatsSnapshot(INFO=1, WARN=1, ERROR=1, total=3, errorRate=33.33)
        self.error = None
        self.gate = None
        self.started = threading.Event()
        self.calls = []
        self.stats_calls = []

    def fetch(self, spec):
        self.calls.append(spec.model_copy())
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        if self.responder is not None:
            return self.responder(spec)
        if self.snapshots:
            return self.snapshots.pop(0)
        return Snapshot()

    def fetch_stats(self, window_seconds=60):
        self.stats_calls.append(window_seconds)
        if self.error is not None:
            raise self.error
        return self.stats


def snapshot_of(*records, page=1, pages=1):
    return Snapshot(records=tuple(records), pagination=Pagination(page=page, pages=pages, total=len(records)))


@pytest.fixture
def fetcher():
    return FakeFetcher()


class FakeSubscriber:
    def __init__(self, on_record, on_stats):
        self.on_record = on_record
        self.on_stats = on_stats
        self.connects = 0
        self.closes = 0

    async def connect(self):
        self.connects += 1

    async def close(self):
        self.closes += 1


@pytest.fixture
def subscribers():
    created = []

    def factory(on_record, on_stats):
        sub = FakeSubscriber(on_record, on_stats)
        created.append(sub)
        return sub

    factory.created = created
    return factory
