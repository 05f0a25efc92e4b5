"""Tests de la superficie HTTP/WebSocket con un proveedor falso."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.container import create_test_container
from backend.main import create_app
from backend.shared.config.settings import Settings
from tests.factories import V_SHAPE_CLOSES

pytestmark = pytest.mark.integration


@pytest.fixture
def container(fake_provider):
    settings = Settings(
        _env_file=None,
        symbol="ethusdt",
        available_instruments=["ethusdt", "btcusdt"],
        ema_short_period=5,
        ema_long_period=20,
    )
    return create_test_container(settings, market_data_provider=fake_provider)


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as test_client:
        yield test_client


class TestReadEndpoints:
    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["instrument"] == "ethusdt"
        assert body["interval"] == "1m"
        assert body["buffer"]["final_candles"] == len(V_SHAPE_CLOSES)
        assert body["switch_in_progress"] is False
        assert body["stream"]["symbol"] == "ethusdt"

    def test_signal(self, client):
        body = client.get("/api/signal").json()
        assert body["instrument"] == "ethusdt"
        assert body["decision"] == "HOLD"
        assert "pending confirmation" in body["reason"]

    def test_instruments(self, client):
        body = client.get("/api/instruments").json()
        assert body == {
            "active": "ethusdt",
            "available": ["ethusdt", "btcusdt"],
            "switch_in_progress": False,
        }

    def test_candles(self, client):
        body = client.get("/api/candles", params={"count": 5}).json()
        assert body["count"] == 5
        assert [c["close"] for c in body["candles"]] == V_SHAPE_CLOSES[-5:]

    def test_candles_count_validated(self, client):
        assert client.get("/api/candles", params={"count": 0}).status_code == 422

    def test_indicators(self, client):
        body = client.get("/api/indicators").json()
        assert body["symbol"] == "ethusdt"
        assert body["ready"] is True
        assert body["indicators"]["ema_short"] > body["indicators"]["ema_long"]


class TestSwitchEndpoint:
    def test_switch_ok(self, client, fake_provider):
        response = client.post("/api/instrument", json={"symbol": "BTCUSDT"})

        assert response.status_code == 200
        body = response.json()
        assert body["symbol"] == "btcusdt"
        assert body["signal"]["instrument"] == "btcusdt"
        assert client.get("/api/instruments").json()["active"] == "btcusdt"
        assert fake_provider.stream_symbol == "btcusdt"

    def test_invalid_symbol_is_400(self, client):
        response = client.post("/api/instrument", json={"symbol": "eth/usdt"})
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_INSTRUMENT"

    def test_switch_in_progress_is_409(self, client, container):
        container.engine_state.begin_switch("btcusdt")
        try:
            response = client.post("/api/instrument", json={"symbol": "solusdt"})
        finally:
            container.engine_state.end_switch()

        assert response.status_code == 409
        assert response.json()["error"] == "SWITCH_IN_PROGRESS"

    def test_market_data_error_is_502(self, client, fake_provider):
        fake_provider.failing.add("solusdt")

        response = client.post("/api/instrument", json={"symbol": "solusdt"})

        assert response.status_code == 502
        assert response.json()["error"] == "MARKET_DATA_ERROR"
        assert client.get("/api/instruments").json()["active"] == "ethusdt"


class TestWebSocket:
    def test_receives_last_signal_on_connect(self, client):
        with client.websocket_connect("/ws") as websocket:
            message = websocket.receive_json()

        assert message["type"] == "signal"
        assert message["data"]["instrument"] == "ethusdt"

    def test_receives_notice_after_switch(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
            client.post("/api/instrument", json={"symbol": "btcusdt"})

            received = {websocket.receive_json()["type"] for _ in range(2)}

        assert received == {"signal", "notice"}
