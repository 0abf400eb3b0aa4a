"""
HTTP surface tests through FastAPI's TestClient.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from parcel_router.app.api import create_app
from parcel_router.app.config import Settings

from factories import make_manifest


@pytest.fixture
def client():
    with TestClient(create_app(Settings(storage="memory", seed_rules=False))) as c:
        yield c


@pytest.fixture
def sql_client():
    with TestClient(create_app(Settings(storage="sql", database_url="sqlite://", seed_rules=True))) as c:
        yield c


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


class TestImportEndpoint:

    def test_import_returns_result(self, client):
        r = client.post("/api/containers/import", content=make_manifest(parcels=[
            {"name": "Anna", "weight": "0.5", "value": "50"},
            {"name": "Bram", "weight": "5", "value": "1500"},
        ]))
        assert r.status_code == 200
        body = r.json()
        assert body["container_id"] == "C1"
        assert body["status"] == "Processed"
        assert body["total_parcels"] == 2
        assert Decimal(body["total_value"]) == Decimal("1550")
        assert body["parcels_requiring_insurance"] == 1
        assert [[d["name"] for d in p["assigned_departments"]] for p in body["parcels"]] == [
            ["Mail"], ["Regular", "Insurance"]]

    def test_reimport_returns_same_body(self, client):
        raw = make_manifest()
        first = client.post("/api/containers/import", content=raw).json()
        second = client.post("/api/containers/import", content=raw).json()
        assert second == first

    def test_conflict_is_409(self, client):
        client.post("/api/containers/import", content=make_manifest())
        r = client.post("/api/containers/import", content=make_manifest(shipping_date="2025-06-01T00:00:00"))
        assert r.status_code == 409
        body = r.json()
        assert body["code"] == "INTEGRITY_CONFLICT"
        assert "shipping date mismatch" in body["message"]
        assert body["details"]["field"] == "shipping_date"

    def test_malformed_manifest_is_400(self, client):
        r = client.post("/api/containers/import", content=b"<Container>")
        assert r.status_code == 400
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_storage_failure_is_500(self, client):
        def broken_add(container):
            raise OSError("read-only file system")

        client.app.state.services.containers.add = broken_add
        r = client.post("/api/containers/import", content=make_manifest())
        assert r.status_code == 500
        assert r.json()["code"] == "STORAGE_FAILURE"

    def test_validate(self, client):
        assert client.post("/api/containers/validate", content=make_manifest()).json() == {"valid": True}
        assert client.post("/api/containers/validate", content=b"junk").json() == {"valid": False}


class TestLookups:

    def test_get_container(self, client):
        client.post("/api/containers/import", content=make_manifest(container_id="C7"))
        r = client.get("/api/containers/C7")
        assert r.status_code == 200
        assert r.json()["total_parcels"] == 1

    def test_unknown_container_is_404(self, client):
        r = client.get("/api/containers/nope")
        assert r.status_code == 404
        assert r.json() == {"code": "NOT_FOUND", "message": "Container nope not found",
                            "details": {"entity": "Container", "key": "nope"}}

    def test_parcel_and_departments(self, client):
        body = client.post("/api/containers/import", content=make_manifest(parcels=[
            {"weight": "20", "value": "5000"}])).json()
        parcel_id = body["parcels"][0]["id"]

        parcel = client.get(f"/api/parcels/{parcel_id}").json()
        assert parcel["status"] == "InsuranceApprovalRequired"
        assert parcel["requires_insurance_approval"] is True

        departments = client.get(f"/api/parcels/{parcel_id}/departments").json()
        assert [d["name"] for d in departments] == ["Heavy", "Insurance"]

    def test_reassign_parcel(self, client):
        body = client.post("/api/containers/import", content=make_manifest()).json()
        parcel_id = body["parcels"][0]["id"]
        client.app.state.services.departments.get_by_name("Mail").is_active = False

        r = client.post(f"/api/parcels/{parcel_id}/assign")
        assert r.status_code == 200
        assert r.json()["assigned_departments"] == []

    def test_unknown_parcel_is_404(self, client):
        assert client.get("/api/parcels/missing").status_code == 404
        assert client.get("/api/parcels/missing/departments").status_code == 404
        assert client.post("/api/parcels/missing/assign").status_code == 404

    def test_resolve_departments(self, client):
        r = client.get("/api/departments/resolve", params={"weight": "5", "value": "1500"})
        assert [d["name"] for d in r.json()] == ["Regular", "Insurance"]

    def test_resolve_rejects_non_positive_weight(self, client):
        assert client.get("/api/departments/resolve", params={"weight": "0", "value": "1"}).status_code == 422


def test_sql_storage_round_trip(sql_client):
    raw = make_manifest(parcels=[{"name": "Anna", "weight": "3", "value": "1200"}])
    first = sql_client.post("/api/containers/import", content=raw)
    assert first.status_code == 200

    again = sql_client.post("/api/containers/import", content=raw)
    assert again.status_code == 200
    assert again.json()["total_parcels"] == 1

    stored = sql_client.get("/api/containers/C1").json()
    assert [[d["name"] for d in p["assigned_departments"]] for p in stored["parcels"]] == [
        ["Regular", "Insurance"]]


def test_sql_reimport_returns_same_body(sql_client):
    raw = make_manifest(parcels=[
        {"name": "Anna", "weight": "0.5", "value": "50"},
        {"name": "Bram", "weight": "12", "value": "2000.005"},
    ])
    first = sql_client.post("/api/containers/import", content=raw).json()
    second = sql_client.post("/api/containers/import", content=raw).json()
    assert second == first
    assert sql_client.get("/api/containers/C1").json() == first


class TestManualAssignment:

    def department_id(self, client, name):
        return client.app.state.services.departments.get_by_name(name).id

    def import_one(self, client, **parcel):
        body = client.post("/api/containers/import", content=make_manifest(parcels=[parcel or {}])).json()
        return body["parcels"][0]["id"]

    def test_add_and_remove_department(self, client):
        parcel_id = self.import_one(client)
        insurance = self.department_id(client, "Insurance")

        r = client.post(f"/api/parcels/{parcel_id}/departments/{insurance}")
        assert r.status_code == 200
        assert [d["name"] for d in r.json()["assigned_departments"]] == ["Mail", "Insurance"]

        again = client.post(f"/api/parcels/{parcel_id}/departments/{insurance}")
        assert [d["name"] for d in again.json()["assigned_departments"]] == ["Mail", "Insurance"]

        r = client.delete(f"/api/parcels/{parcel_id}/departments/{insurance}")
        assert r.status_code == 200
        assert [d["name"] for d in r.json()["assigned_departments"]] == ["Mail"]

    def test_unknown_department_is_404(self, client):
        parcel_id = self.import_one(client)
        r = client.post(f"/api/parcels/{parcel_id}/departments/nope")
        assert r.status_code == 404
        assert r.json()["details"] == {"entity": "Department", "key": "nope"}
        assert client.delete("/api/parcels/missing/departments/nope").status_code == 404

    def test_reassign_container(self, client):
        client.post("/api/containers/import", content=make_manifest(parcels=[
            {"name": "Anna", "weight": "0.5", "value": "50"},
            {"name": "Bram", "weight": "5", "value": "1500"},
        ]))
        client.app.state.services.departments.get_by_name("Insurance").is_active = False

        r = client.post("/api/containers/C1/assign")
        assert r.status_code == 200
        assert [[d["name"] for d in p["assigned_departments"]] for p in r.json()["parcels"]] == [
            ["Mail"], ["Regular"]]

    def test_reassign_unknown_container_is_404(self, client):
        assert client.post("/api/containers/nope/assign").status_code == 404
