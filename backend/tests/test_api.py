"""HTTP and WebSocket tests against the FastAPI app."""

import orjson
import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def test_root_and_health(client):
    assert client.get("/").json()["buses"] == "/api/buses"
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "OK"


def test_list_buses(client):
    buses = client.get("/api/buses").json()
    assert [b["bus_id"] for b in buses] == ["BUS_001"]
    assert buses[0]["status"] == "Offline"


def test_post_location_and_read_detail(client):
    resp = client.post("/api/locations", json={
        "device_id": "bus_001", "lat": 11.30695, "lon": 77.70235, "speed": 20,
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["bus_id"] == "BUS_001"
    assert body["data"]["status"] == "Moving"
    assert body["data"]["variant"] == "evening"

    detail = client.get("/api/locations/Bus_001").json()
    assert detail["current_stop"] == "Rangampalayam"
    assert detail["next_stop"] == "KK-nagar"
    assert detail["eta"] >= 1
    assert len(detail["stops"]) == 26


def test_missing_longitude_is_bad_request(client):
    client.post("/api/locations", json={"device_id": "BUS_001", "lat": 11.5, "lon": 77.7, "speed": 12})
    before = client.get("/api/locations/BUS_001").json()

    resp = client.post("/api/locations", json={"device_id": "BUS_001", "lat": 11.6})
    assert resp.status_code == 400
    assert "error" in resp.json()

    after = client.get("/api/locations/BUS_001").json()
    assert after == before


def test_non_numeric_latitude_is_bad_request(client):
    resp = client.post("/api/locations", json={"device_id": "BUS_001", "lat": "north", "lon": 77.7})
    assert resp.status_code == 400


def test_malformed_time_is_bad_request(client):
    resp = client.post("/api/locations", json={
        "device_id": "BUS_001", "lat": 11.6, "lon": 77.7, "time": "7pm",
    })
    assert resp.status_code == 400


def test_non_numeric_speed_defaults_to_zero(client):
    resp = client.post("/api/locations", json={
        "device_id": "BUS_001", "lat": 11.5, "lon": 77.7, "speed": "fast",
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["speed"] == 0
    assert resp.json()["data"]["status"] == "Stopped"


def test_unknown_bus_not_found(client):
    resp = client.post("/api/locations", json={"device_id": "BUS_999", "lat": 11.6, "lon": 77.7})
    assert resp.status_code == 404
    assert client.get("/api/locations/BUS_999").status_code == 404
    assert client.get("/api/routes/BUS_999").status_code == 404
    assert [b["bus_id"] for b in client.get("/api/buses").json()] == ["BUS_001"]


def test_routes(client):
    routes = client.get("/api/routes").json()
    assert routes[0]["bus_id"] == "BUS_001"
    one = client.get("/api/routes/bus_001").json()
    assert [v["key"] for v in one["variants"]] == ["morning", "evening"]


def test_search(client):
    resp = client.get("/api/buses/search", params={"from": "Bhavani BS", "to": "GH"})
    assert resp.status_code == 200
    [match] = resp.json()
    assert match["variant"] == "morning"


def test_unknown_endpoint(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Endpoint not found"}


def test_websocket_snapshot_then_update(client):
    with client.websocket_connect("/ws/buses") as ws:
        snapshot = orjson.loads(ws.receive_bytes())
        assert snapshot["type"] == "snapshot"
        assert snapshot["buses"][0]["bus_id"] == "BUS_001"

        client.post("/api/locations", json={"device_id": "BUS_001", "lat": 11.60979, "lon": 77.71569})
        update = orjson.loads(ws.receive_bytes())
        assert update["type"] == "update"
        assert update["buses"][0]["status"] == "At Stop"


def test_tiny_speed_keeps_read_paths_working(client):
    resp = client.post("/api/locations", json={
        "device_id": "BUS_001", "lat": 11.30695, "lon": 77.70235, "speed": 1e-320,
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "Moving"

    buses = client.get("/api/buses")
    assert buses.status_code == 200
    assert buses.json()[0]["eta"] == "Unknown"
    assert client.get("/api/locations/BUS_001").status_code == 200
    assert client.get("/api/buses/search", params={"from": "GH", "to": "Mpnmjec"}).status_code == 200
