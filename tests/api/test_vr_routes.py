import pytest
from fastapi.testclient import TestClient

from main import app


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def test_routes_registered():
    routes = {r.path for r in app.routes}
    assert "/api/v1/vr/speed" in routes
    assert "/api/v1/vr/pickup-from-zone" in routes
    assert "/ws" in routes
    assert "/health" in routes


def test_health_reports_connected_clients(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == 0
    assert body["data"]["status"] == "healthy"
    assert body["data"]["connected_clients"] == 0


def test_send_speed_without_clients_delivers_nothing(client):
    resp = client.post("/api/v1/vr/speed", json={"value": 0.6})
    assert resp.status_code == 200
    assert resp.json()["data"] == {"delivered": 0}
    assert "X-Request-ID" in resp.headers


@pytest.mark.parametrize(
    "path, value",
    [
        ("/api/v1/vr/speed", 1.5),
        ("/api/v1/vr/errors", -2),
        ("/api/v1/vr/pickup-from-zone", "purple"),
    ],
)
def test_outbound_validation_maps_to_422(client, path, value):
    resp = client.post(path, json={"value": value})
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == 10003
    assert body["error"]["type"] == "DomainValidationError"


def test_missing_body_value_is_request_validation_error(client):
    resp = client.post("/api/v1/vr/table", json={})
    assert resp.status_code == 422
    assert resp.json()["error"]["type"] == "ValidationError"


def test_api_send_reaches_websocket_client(client):
    with client.websocket_connect("/ws") as ws:
        greeting = ws.receive_json()
        assert greeting["type"] == "connection"

        resp = client.post("/api/v1/vr/table", json={"value": 5})
        assert resp.json()["data"] == {"delivered": 1}

        frame = ws.receive_json()
        assert frame["type"] == "table_update"
        assert frame["table"] == 5
        assert "source" not in frame

        clients = client.get("/api/v1/vr/clients").json()["data"]
        assert clients["count"] == 1
        assert clients["clients"][0]["clientId"] == greeting["clientId"]
