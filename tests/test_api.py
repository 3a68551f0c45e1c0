"""Tests for the HTTP API routes: core calls mocked where they reach the network."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from backend.core.mapping_registry import MappingTemplateRegistry
from backend.core.asset_ops import AssetServiceError
from backend.core.models import SyncReport, SyncStatus
from backend.main import app

from tests.conftest import make_asset, make_config, make_table


@pytest.fixture
def client(tmp_path):
    app.state.mapping_registry = MappingTemplateRegistry(str(tmp_path))
    return TestClient(app)


def _sync_body(config=None):
    return {
        "table": make_table().model_dump(mode="json"),
        "mapping": (config or make_config()).model_dump(mode="json", by_alias=True),
    }


class TestMappingRoutes:
    def test_validate_ok(self, client):
        resp = client.post("/api/mappings/validate", json=make_config().model_dump(mode="json", by_alias=True))
        assert resp.status_code == 200
        assert resp.json() == {"valid": True, "errors": []}

    def test_validate_duplicate_level(self, client):
        resp = client.post("/api/mappings/validate", json={"columnMappings": {
            "Usine": {"type": "level", "level": 0},
            "Site": {"type": "level", "level": 0},
            "Type": {"type": "categorical"},
        }})
        body = resp.json()
        assert body["valid"] is False
        assert "Usine" in body["errors"][0] and "Site" in body["errors"][0]

    def test_template_roundtrip(self, client):
        yaml_text = "name: plant\ncolumn_mappings:\n  Usine: {type: level, level: 0}\n  Type: {type: categorical}\n"
        created = client.post("/api/mappings", json={"template_yaml": yaml_text})
        assert created.status_code == 201
        assert client.get("/api/mappings").json() == {"templates": ["plant"]}
        assert client.get("/api/mappings/plant").json()["name"] == "plant"

    def test_template_invalid(self, client):
        yaml_text = "name: bad\ncolumn_mappings:\n  Usine: {type: level, level: 0}\n"
        resp = client.post("/api/mappings", json={"template_yaml": yaml_text})
        assert resp.status_code == 422

    def test_template_not_found(self, client):
        assert client.get("/api/mappings/missing").status_code == 404

    def test_template_bad_name(self, client):
        assert client.get("/api/mappings/bad.name").status_code == 400


class TestSyncRoutes:
    def test_preview(self, client):
        resp = client.post("/api/syncs/preview", json=_sync_body())
        assert resp.status_code == 200
        body = resp.json()
        assert body["node_count"] == 6
        assert body["levels"][1]["nodes"][0]["full_path"] == "Plant1@AreaA"

    def test_sync_invalid_mapping(self, client):
        resp = client.post("/api/syncs", json=_sync_body(make_config(categorical=None)))
        assert resp.status_code == 422
        assert resp.json()["detail"]["validation_errors"]

    def test_sync_runs_engine(self, client):
        report = SyncReport(
            sync_run_id="sync_1",
            status=SyncStatus.COMPLETED,
            started_at=datetime.now(timezone.utc),
        )
        with patch("backend.api.syncs.run_sync", return_value=report) as mock_run:
            resp = client.post("/api/syncs", json={**_sync_body(), "chunk_size": 50})
        assert resp.status_code == 200
        assert resp.json()["sync_run_id"] == "sync_1"
        assert mock_run.call_args.kwargs["chunk_size"] == 50
        assert mock_run.call_args.kwargs["adapter_id"] is None


class TestEnergyRoutes:
    def test_propagate_without_apply(self, client):
        assets = [
            {"assetId": "p1", "name": "Plant1", "parentId": "0"},
            {"assetId": "a", "name": "AreaA", "parentId": "p1"},
            {"assetId": "pu1", "name": "Pump1", "parentId": "a"},
        ]
        resp = client.post("/api/energy/propagate", json={
            "assets": assets,
            "energy_map": {"pu1": "electricity"},
            "apply": False,
        })
        assert resp.status_code == 200
        flags = resp.json()["energy_flags"]
        assert flags["p1"]["isElectricity"] is True
        assert flags["a"]["isElectricity"] is True

    def test_propagate_normalizes_energy_values(self, client):
        assets = [
            {"assetId": "p1", "name": "Plant1", "parentId": "0"},
            {"assetId": "pu1", "name": "Pump1", "parentId": "p1"},
        ]
        resp = client.post("/api/energy/propagate", json={
            "assets": assets,
            "energy_map": {"pu1": "Electricity", "p1": "  "},
            "apply": False,
        })
        assert resp.json()["energy_flags"]["p1"]["isElectricity"] is True

    def test_propagate_fetches_assets_when_omitted(self, client):
        tree = [make_asset("p1", "Plant1", "0"), make_asset("f1", "Fan1", "p1")]
        with patch("backend.core.asset_ops.get_all_assets", return_value=tree) as mock_fetch:
            resp = client.post("/api/energy/propagate", json={"energy_map": {"f1": "Gaz"}, "apply": False})
        mock_fetch.assert_called_once()
        assert resp.json()["energy_flags"]["p1"]["isGas"] is True

    def test_propagate_fetch_failure(self, client):
        with patch("backend.core.asset_ops.get_all_assets", side_effect=AssetServiceError("HTTP 503")):
            resp = client.post("/api/energy/propagate", json={"energy_map": {}})
        assert resp.status_code == 502


class TestVariableRoutes:
    def test_preview_only(self, client):
        with patch("backend.core.asset_ops.bulk_create_variables") as mock_create:
            resp = client.post("/api/variables", json={
                "assets": [{"assetId": "f1", "name": "Fan1", "parentId": "b"}],
                "energy_map": {"f1": "gas"},
                "adapter_id": "opcua",
                "create": False,
            })
        mock_create.assert_not_called()
        body = resp.json()
        assert [v["name"] for v in body["variables"]] == ["Fan1_Flow", "Fan1_Volume", "Fan1_Pressure"]
        assert body["variables"][0]["assetId"] == "f1"
        assert body["created"] == 0

    def test_create(self, client):
        with patch("backend.core.asset_ops.bulk_create_variables") as mock_create:
            resp = client.post("/api/variables", json={
                "assets": [{"assetId": "pu1", "name": "Pump1", "parentId": "a"}],
                "energy_map": {"pu1": "Elec"},
                "adapter_id": "opcua",
            })
        assert mock_create.call_count == 1
        assert resp.json()["created"] == 4
        assert resp.json()["failures"] == []

    def test_adapter_required(self, client):
        resp = client.post("/api/variables", json={"energy_map": {}, "adapter_id": ""})
        assert resp.status_code == 422


class TestAssetRoutes:
    def test_list_page(self, client):
        page = [make_asset("p1", "Plant1", "0", "Plant1")]
        with patch("backend.core.asset_ops.get_assets", return_value=(page, 1)) as mock_get:
            resp = client.get("/api/assets", params={"page": 2, "page_size": 10})
        mock_get.assert_called_once_with(2, 10)
        body = resp.json()
        assert body["total"] == 1
        assert body["assets"][0]["assetId"] == "p1"

    def test_list_service_down(self, client):
        with patch("backend.core.asset_ops.get_assets", side_effect=AssetServiceError("timed out")):
            assert client.get("/api/assets").status_code == 502

    def test_cached_lookup(self, client):
        asset = make_asset("srv-4", "Pump1", "srv-2", "Plant1@AreaA@Pump1")
        with patch("backend.api.assets.get_cached_asset", return_value=asset) as mock_get:
            resp = client.get("/api/assets/cached", params={"external_id": "Plant1@AreaA@Pump1"})
        mock_get.assert_called_once_with("Plant1@AreaA@Pump1")
        assert resp.json()["assetId"] == "srv-4"

    def test_cached_miss(self, client):
        with patch("backend.api.assets.get_cached_asset", return_value=None):
            resp = client.get("/api/assets/cached", params={"external_id": "nope"})
        assert resp.status_code == 404
