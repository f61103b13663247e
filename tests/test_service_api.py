from __future__ import annotations

from collections.abc import Iterator

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("pydantic")

from fastapi.testclient import TestClient

from metricslive.core.ticker import ManualTicker
from metricslive.service import ChartRegistry, create_app


@pytest.fixture
def registry() -> ChartRegistry:
    return ChartRegistry(ticker_factory=ManualTicker)


@pytest.fixture
def client(registry: ChartRegistry) -> Iterator[TestClient]:
    with TestClient(create_app(registry)) as test_client:
        yield test_client


def _create(client: TestClient, name: str, **options: object) -> dict:
    options.setdefault("metric", "last_value")
    response = client.post("/api/charts", json={"name": name, **options})
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_list_and_detail(client: TestClient) -> None:
    created = _create(client, "cpu", derive_modes="p50,mean", unit="%")
    assert created["name"] == "cpu"
    assert created["metric"] == "last_value"
    assert [series["key"] for series in created["series"]] == ["value", "value p50", "value mean"]
    assert created["series"][1]["kind"] == "derived"

    listing = client.get("/api/charts")
    assert listing.status_code == 200
    assert [chart["name"] for chart in listing.json()["charts"]] == ["cpu"]

    detail = client.get("/api/charts/cpu")
    assert detail.status_code == 200
    assert detail.json()["unit"] == "%"


def test_create_errors(client: TestClient) -> None:
    _create(client, "dup")
    duplicate = client.post("/api/charts", json={"name": "dup", "metric": "sum"})
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Policy"

    missing = client.post("/api/charts", json={"name": "nometric"})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "No metric type was provided"
    assert missing.json()["error"] == "BadInput"

    unknown = client.post("/api/charts", json={"name": "bad", "metric": "histogram"})
    assert unknown.status_code == 400
    assert "No metric defined for type histogram" in unknown.json()["detail"]

    bad_policy = client.post(
        "/api/charts", json={"name": "bad", "metric": "sum", "teardown_policy": "keep"}
    )
    assert bad_policy.status_code == 400

    assert client.post("/api/charts", json={"name": "  ", "metric": "sum"}).status_code == 422
    assert client.post("/api/charts", json={"name": "z", "prune_threshold": 0}).status_code == 422


def test_push_and_read_columns(client: TestClient) -> None:
    _create(client, "req", metric="sum", tagged=True)
    response = client.post(
        "/api/charts/req/measurements",
        json={
            "measurements": [
                {"tag": "a", "value": 1, "timestamp": 1},
                {"x": "b", "y": 2, "z": "1970-01-01T00:00:02Z"},
                {"tag": "a", "value": 3, "timestamp": 3},
            ]
        },
    )
    assert response.status_code == 200
    assert response.json() == {"accepted": 3, "applied": 3, "buffered": 0}

    columns = client.get("/api/charts/req/columns").json()
    assert columns["labels"] == ["a", "b"]
    assert columns["columns"] == [[1.0, 2.0, 3.0], [1.0, None, 4.0], [None, 2.0, None]]


def test_invalid_measurements_are_rejected(client: TestClient) -> None:
    _create(client, "strict")
    for payload in (
        {"value": "abc", "timestamp": 1},
        {"value": 1, "timestamp": "later"},
        {"value": 1},
    ):
        response = client.post("/api/charts/strict/measurements", json={"measurements": [payload]})
        assert response.status_code == 422


def test_buffered_chart_accepts_then_flushes(client: TestClient, registry: ChartRegistry) -> None:
    _create(client, "buf", metric="counter", refresh_interval=500)
    response = client.post(
        "/api/charts/buf/measurements",
        json={"measurements": [{"value": 1, "timestamp": 1}, {"value": 1, "timestamp": 2}]},
    )
    assert response.status_code == 202
    assert response.json() == {"accepted": 2, "applied": 0, "buffered": 2}
    assert client.get("/api/charts/buf").json()["buffered"] == 2

    flushed = client.post("/api/charts/buf/flush")
    assert flushed.status_code == 200
    assert flushed.json() == {"applied": 2}
    assert registry.surface("buf").columns == [[1.0, 2.0], [1.0, 2.0]]
    assert client.post("/api/charts/buf/flush").json() == {"applied": 0}


def test_delete_tears_down(client: TestClient, registry: ChartRegistry) -> None:
    _create(client, "gone", refresh_interval=100)
    chart = registry.get("gone")
    response = client.delete("/api/charts/gone")
    assert response.status_code == 204
    assert chart.closed
    assert "gone" not in registry
    assert client.get("/api/charts/gone").status_code == 404
    assert client.delete("/api/charts/gone").status_code == 404


def test_unknown_chart_is_404(client: TestClient) -> None:
    assert client.get("/api/charts/nope").status_code == 404
    assert client.get("/api/charts/nope/columns").status_code == 404
    assert client.post("/api/charts/nope/flush").status_code == 404
    response = client.post("/api/charts/nope/measurements", json={"measurements": []})
    assert response.status_code == 404


def test_metrics_endpoint(client: TestClient) -> None:
    _create(client, "cpu", metric="counter")
    client.post(
        "/api/charts/cpu/measurements",
        json={"measurements": [{"value": 4, "timestamp": 1}]},
    )
    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "metricslive_charts 1" in response.text
    assert 'metricslive_series_count{chart="cpu",series="value"} 1' in response.text


def test_lifespan_shutdown_tears_down_charts(registry: ChartRegistry) -> None:
    with TestClient(create_app(registry)) as test_client:
        _create(test_client, "a", refresh_interval=100)
        chart = registry.get("a")
    assert chart.closed
    assert len(registry) == 0


def test_service_requires_token(monkeypatch: pytest.MonkeyPatch, registry: ChartRegistry) -> None:
    monkeypatch.setenv("METRICSLIVE_TOKEN", "secret")
    with TestClient(create_app(registry)) as test_client:
        assert test_client.get("/healthz").status_code == 200
        assert test_client.get("/api/charts").status_code == 401
        assert test_client.get("/metrics").status_code == 401
        authed = test_client.get("/api/charts", headers={"Authorization": "Bearer secret"})
        assert authed.status_code == 200
        assert test_client.get("/api/charts?token=secret").status_code == 200
