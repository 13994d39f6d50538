"""
API Server Tests

Exercises the HTTP surface through FastAPI's TestClient against an
in-memory engine seeded with the order history.
"""

import pytest
from fastapi.testclient import TestClient

from factlog.api.server import create_app
from factlog.engine import FactLogEngine

from tests.fixtures import ORDER_ENTITY, FailingStore, seed_order


@pytest.fixture
def engine():
    engine = FactLogEngine()
    seed_order(engine.store)
    return engine


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


class TestReads:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "online", "backend": "memory"}

    def test_entities(self, client):
        assert client.get("/api/v1/entities").json() == {"entities": [ORDER_ENTITY]}

    def test_history(self, client):
        response = client.get(f"/api/v1/entities/{ORDER_ENTITY}/history")

        body = response.json()
        assert response.status_code == 200
        assert body["count"] == 3
        assert body["snapshots"][0]["transaction_id"] == 13194139534313
        assert body["snapshots"][2]["attributes"]["order/location"] == {
            "kind": "string",
            "value": "warehouse A",
        }

    def test_history_of_unknown_entity(self, client):
        response = client.get("/api/v1/entities/order-unknown/history")

        assert response.status_code == 404
        assert response.json()["error"] == "ENTITY_NOT_FOUND"

    def test_current(self, client):
        body = client.get(f"/api/v1/entities/{ORDER_ENTITY}/current").json()

        assert body["attributes"]["order/action"]["value"] == "ship"
        assert body["tx_timestamp"] == "2018-07-01T12:20:05+00:00"

    def test_current_of_unknown_entity(self, client):
        assert client.get("/api/v1/entities/order-unknown/current").status_code == 404

    def test_deltas(self, client):
        body = client.get(f"/api/v1/entities/{ORDER_ENTITY}/deltas").json()

        assert sorted(body["deltas"][1]["asserted"]) == ["order/action", "order/operator"]
        assert body["deltas"][1]["retracted"] == []

    def test_as_of_transaction(self, client):
        body = client.get(f"/api/v1/entities/{ORDER_ENTITY}/as-of/13194139534314").json()

        assert body["attributes"]["order/operator"]["value"] == "B"

    def test_as_of_transaction_before_creation(self, client):
        response = client.get(f"/api/v1/entities/{ORDER_ENTITY}/as-of/1")

        assert response.status_code == 404

    def test_snapshot_at_time(self, client):
        body = client.get(f"/api/v1/entities/{ORDER_ENTITY}/snapshot/2018-07-01T12:10:30Z").json()

        assert body["attributes"]["order/action"]["value"] == "assign"

    def test_snapshot_with_invalid_time(self, client):
        response = client.get(f"/api/v1/entities/{ORDER_ENTITY}/snapshot/yesterday")

        assert response.status_code == 400

    def test_verify(self, client):
        body = client.get(f"/api/v1/entities/{ORDER_ENTITY}/verify").json()

        assert body == {"entity_id": ORDER_ENTITY, "consistent": True, "error": None}


class TestWrites:

    def test_transaction(self, client):
        response = client.post(
            f"/api/v1/entities/{ORDER_ENTITY}/transactions",
            json={
                "changes": {"order/action": {"kind": "string", "value": "deliver"}},
                "timestamp": "2018-07-01T13:00:00Z",
            },
        )

        body = response.json()
        assert response.status_code == 201
        assert body["transaction_id"] == 13194139534316
        assert {(f["value"]["value"], f["added"]) for f in body["facts"]} == {
            ("ship", False),
            ("deliver", True),
        }

    def test_transaction_with_bad_value(self, client):
        response = client.post(
            f"/api/v1/entities/{ORDER_ENTITY}/transactions",
            json={"changes": {"order/count": {"kind": "long", "value": "many"}}},
        )

        assert response.status_code == 400

    def test_unchanged_transaction_records_nothing(self, client):
        response = client.post(
            f"/api/v1/entities/{ORDER_ENTITY}/transactions",
            json={"changes": {"order/action": {"kind": "string", "value": "ship"}}},
        )

        assert response.status_code == 201
        assert response.json()["transaction_id"] is None
        assert response.json()["facts"] == []

    def test_backdated_transaction(self, client):
        response = client.post(
            f"/api/v1/entities/{ORDER_ENTITY}/transactions",
            json={
                "changes": {"order/action": {"kind": "string", "value": "deliver"}},
                "timestamp": "2018-07-01T12:00:00Z",
            },
        )

        assert response.status_code == 400

    def test_transaction_without_changes(self, client):
        response = client.post(f"/api/v1/entities/{ORDER_ENTITY}/transactions", json={"changes": {}})

        assert response.status_code == 400

    def test_retraction_shows_in_deltas(self, client):
        response = client.post(
            f"/api/v1/entities/{ORDER_ENTITY}/retractions",
            json={"attributes": ["order/location"]},
        )

        deltas = client.get(f"/api/v1/entities/{ORDER_ENTITY}/deltas").json()["deltas"]
        assert response.status_code == 201
        assert deltas[-1]["retracted"] == ["order/location"]

    def test_retraction_breaks_verify_under_freeze(self, client):
        client.post(f"/api/v1/entities/{ORDER_ENTITY}/retractions", json={"attributes": ["order/location"]})

        body = client.get(f"/api/v1/entities/{ORDER_ENTITY}/verify").json()

        assert body["consistent"] is False
        assert body["error"]["error"] == "TERMINAL_STATE_MISMATCH"


class TestStoreFailure:

    def test_store_failure_is_503(self):
        engine = FactLogEngine(store=FailingStore(ConnectionError("connection refused")))
        client = TestClient(create_app(engine))

        response = client.get(f"/api/v1/entities/{ORDER_ENTITY}/history")

        assert response.status_code == 503
        assert response.json()["error"] == "STORE_UNAVAILABLE"
