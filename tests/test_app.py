from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import main
from conftest import FakePool
from core import db, settings
from filings import router as filings_router


def test_long_returns_count_and_elapsed_time(client: TestClient) -> None:
    response = client.get("/long")

    assert response.status_code == 200
    payload = response.json()
    assert payload["count"] == 3
    assert payload["time"] and payload["time"] != "0s"


def test_long_timeout_returns_count(client: TestClient) -> None:
    response = client.get("/long-timeout")

    assert response.status_code == 200
    assert response.json()["count"] == 3


def test_fast_returns_an_id(client: TestClient) -> None:
    response = client.get("/fast")

    assert response.status_code == 200
    assert response.json() == {"id": 7}


def test_query_failures_still_answer_200_with_zero(fake_pool: FakePool, client: TestClient) -> None:
    # Current contract: errors are only logged. Changing this must be deliberate.
    fake_pool.error = ConnectionResetError("connection dropped")

    long_resp = client.get("/long")
    fast_resp = client.get("/fast")

    assert long_resp.status_code == 200
    assert long_resp.json()["count"] == 0
    assert fast_resp.status_code == 200
    assert fast_resp.json() == {"id": 0}


def test_fast_on_empty_table_answers_zero(fake_pool: FakePool, client: TestClient) -> None:
    fake_pool.ids = []

    response = client.get("/fast")

    assert response.status_code == 200
    assert response.json() == {"id": 0}


def test_long_timeout_bound_answers_200_with_zero(
    monkeypatch: pytest.MonkeyPatch,
    fake_pool: FakePool,
    client: TestClient,
) -> None:
    monkeypatch.setattr(filings_router, "LONG_QUERY_TIMEOUT_S", 0.05)
    fake_pool.delay = 2.0

    response = client.get("/long-timeout")

    assert response.status_code == 200
    assert response.json()["count"] == 0


def test_health_ok(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_health_reports_unavailable(fake_pool: FakePool, client: TestClient) -> None:
    fake_pool.error = OSError("gone")

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json() == {"status": "unavailable"}


def test_lifespan_bootstraps_and_closes_pool(monkeypatch: pytest.MonkeyPatch) -> None:
    pool = FakePool([1, 2, 3])
    seen: dict = {}

    async def _connect(connection_string: str, *, timeout: float, retry: float):
        seen.update(connection_string=connection_string, timeout=timeout, retry=retry)
        return pool

    monkeypatch.setenv("POSTGRESQL_ADDRESS", "postgres://app:pw@localhost/filings")
    monkeypatch.delenv("DB_CONNECT_TIMEOUT_S", raising=False)
    monkeypatch.setenv("DB_CONNECT_RETRY_S", "0.5")
    monkeypatch.setattr(db, "connect_with_timeout", _connect)

    with TestClient(main.create_app()) as test_client:
        assert test_client.get("/long").json()["count"] == 3
        assert pool.closed is False

    assert pool.closed is True
    assert seen == {
        "connection_string": "postgres://app:pw@localhost/filings",
        "timeout": 5.0,
        "retry": 0.5,
    }


def test_lifespan_bootstrap_timeout_aborts_startup(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _connect(connection_string: str, *, timeout: float, retry: float):
        raise db.ConnectTimeoutError("timeout 5.0s connecting to db")

    monkeypatch.setenv("POSTGRESQL_ADDRESS", "postgres://localhost/filings")
    monkeypatch.setattr(db, "connect_with_timeout", _connect)

    with pytest.raises(db.ConnectTimeoutError):
        with TestClient(main.create_app()):
            pass


def test_run_exits_non_zero_without_connection_string(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(settings.CONNECTION_STRING_ENV, raising=False)

    def _serve(*args, **kwargs):
        raise AssertionError("server must not start")

    monkeypatch.setattr(main.uvicorn, "run", _serve)

    with pytest.raises(SystemExit) as excinfo:
        main.run()

    assert excinfo.value.code == 1


def test_run_serves_configured_port(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict = {}
    monkeypatch.setenv(settings.CONNECTION_STRING_ENV, "postgres://localhost/filings")
    monkeypatch.setenv("PORT", "8123")
    monkeypatch.setattr(main.uvicorn, "run", lambda app, **kwargs: seen.update(kwargs))

    main.run()

    assert seen["port"] == 8123
    assert seen["lifespan"] == "on"


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "0s"),
        (0.0000005, "500ns"),
        (0.00085, "850µs"),
        (0.002003451, "2.003451ms"),
        (1.5, "1.5s"),
        (90, "1m30s"),
        (3723.5, "1h2m3.5s"),
        (3600, "1h0m0s"),
    ],
)
def test_format_duration(seconds: float, expected: str) -> None:
    assert filings_router.format_duration(seconds) == expected
