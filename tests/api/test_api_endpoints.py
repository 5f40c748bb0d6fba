"""
API endpoint tests
"""

import pytest
from fastapi.testclient import TestClient
from api.main import create_app
from storage.memory import InMemoryStore
from ingestion.container import build_services


@pytest.fixture
def client():
    app = create_app(build_services(InMemoryStore(), retry_backoff=0))
    with TestClient(app) as test_client:
        yield test_client


def create_source(client, name="customers", data=None, **fields):
    response = client.post("/data-sources", json={
        "name": name,
        "type": "memory",
        "config": {"data": data if data is not None else [{"id": 1}, {"id": 2}]},
        **fields
    })
    assert response.status_code == 201
    return response.json()


def create_job(client, sources, **fields):
    response = client.post("/jobs", json={
        "name": fields.pop("name", "nightly"),
        "sources": sources,
        "settings": {"max_retries": 0},
        **fields
    })
    assert response.status_code == 201
    return response.json()


class TestSystemEndpoints:
    """Test health and status endpoints"""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["endpoints"]["jobs"] == "/jobs"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["storage_backend"] == "InMemoryStore"

    def test_request_id_header(self, client):
        response = client.get("/health")

        assert "X-Request-ID" in response.headers
        assert "X-API-Latency-ms" in response.headers

    def test_incoming_request_id_reused(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_system_status(self, client):
        source = create_source(client)
        job = create_job(client, [source["id"]])
        client.post(f"/jobs/{job['id']}/execute")

        response = client.get("/system/status")

        assert response.status_code == 200
        data = response.json()
        assert data["job_count"] == 1
        assert data["data_source_count"] == 1
        assert data["success_job_runs"] == 1
        assert data["status"] == "healthy"
        assert len(data["recent_job_runs"]) == 1


class TestDataSourceEndpoints:

    def test_crud(self, client):
        source = create_source(client)

        assert client.get(f"/data-sources/{source['id']}").json()["name"] == "customers"
        assert len(client.get("/data-sources").json()) == 1

        disabled = client.patch(f"/data-sources/{source['id']}/disable")
        assert disabled.status_code == 200
        assert disabled.json()["enabled"] is False
        assert client.patch(f"/data-sources/{source['id']}/enable").json()["enabled"] is True

        deleted = client.delete(f"/data-sources/{source['id']}")
        assert deleted.json() == {"id": source["id"], "deleted": True}
        assert client.get(f"/data-sources/{source['id']}").status_code == 404

    def test_unknown_source(self, client):
        response = client.get("/data-sources/nope")

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "DataSourceNotFoundError"
        assert data["context"] == {"data_source_id": "nope"}

    def test_toggle_unknown_source_is_noop(self, client):
        for action in ("enable", "disable"):
            response = client.patch(f"/data-sources/nope/{action}")

            assert response.status_code == 200
            assert response.json() == {"id": "nope", "enabled": None, "updated": False}

    def test_delete_unknown_source_is_noop(self, client):
        response = client.delete("/data-sources/nope")

        assert response.status_code == 200
        assert response.json() == {"id": "nope", "deleted": False}

    def test_mismatched_config_rejected(self, client):
        response = client.post("/data-sources", json={
            "name": "bad",
            "type": "api",
            "config": {"type": "file", "file_path": "/tmp/x.csv"}
        })

        assert response.status_code == 422

    def test_test_connection(self, client):
        source = create_source(client)

        response = client.post(f"/data-sources/{source['id']}/test-connection")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "latency_ms" in data["details"]

    def test_failed_connection_is_not_an_http_error(self, client):
        response = client.post("/data-sources", json={
            "name": "missing file",
            "type": "file",
            "config": {"file_path": "/nonexistent/file.csv"}
        })
        source_id = response.json()["id"]

        response = client.post(f"/data-sources/{source_id}/test-connection")

        assert response.status_code == 200
        assert response.json()["success"] is False
        stored = client.get(f"/data-sources/{source_id}").json()
        assert stored["connection_info"]["error_count"] == 1

    def test_test_extraction_sample(self, client):
        source = create_source(client, data=[{"id": i} for i in range(20)])

        response = client.post(f"/data-sources/{source['id']}/test-extraction", json={"limit": 3})

        data = response.json()
        assert data["success"] is True
        assert data["details"]["record_count"] == 3
        assert data["details"]["sample"] == [{"id": 0}, {"id": 1}, {"id": 2}]

    def test_batch_test_connection(self, client):
        a = create_source(client, "a")
        b = create_source(client, "b")

        all_sources = client.post("/data-sources/batch-test-connection")
        selected = client.post("/data-sources/batch-test-connection", json={"sourceIds": [b["id"]]})

        assert set(all_sources.json()) == {a["id"], b["id"]}
        assert list(selected.json()) == [b["id"]]


class TestTransformationEndpoints:

    def test_crud(self, client):
        response = client.post("/transformations", json={
            "name": "only DE",
            "type": "filter",
            "config": {"conditions": [{"field": "country", "operator": "equals", "value": "DE"}]}
        })
        assert response.status_code == 201
        rule = response.json()

        assert client.get(f"/transformations/{rule['id']}").json()["type"] == "filter"
        assert client.patch(f"/transformations/{rule['id']}/disable").json()["enabled"] is False
        assert len(client.get("/transformations").json()) == 1
        assert client.delete(f"/transformations/{rule['id']}").json()["deleted"] is True

    def test_unknown_transformation(self, client):
        assert client.get("/transformations/nope").status_code == 404
        response = client.patch("/transformations/nope/disable")
        assert response.status_code == 200
        assert response.json()["updated"] is False


class TestJobEndpoints:

    def test_crud(self, client):
        job = create_job(client, ["a"])

        assert client.get(f"/jobs/{job['id']}").json()["sources"] == ["a"]
        assert len(client.get("/jobs").json()) == 1
        assert client.patch(f"/jobs/{job['id']}/disable").json()["enabled"] is False
        assert client.delete(f"/jobs/{job['id']}").json() == {"id": job["id"], "deleted": True}
        assert client.get(f"/jobs/{job['id']}").status_code == 404

    def test_toggle_unknown_job_is_noop(self, client):
        response = client.patch("/jobs/nope/enable")

        assert response.status_code == 200
        assert response.json() == {"id": "nope", "enabled": None, "updated": False}
        assert client.get("/jobs").json() == []

    def test_execute(self, client):
        source = create_source(client)
        job = create_job(client, [source["id"]])

        response = client.post(f"/jobs/{job['id']}/execute")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "success"
        assert data["metrics"]["records_processed"] == 2

        run = client.get(f"/jobs/runs/{data['job_run_id']}").json()
        assert run["job_id"] == job["id"]
        assert run["logs"][0]["message"] == "Starting execution of job: nightly"

    def test_execute_unknown_job(self, client):
        response = client.post("/jobs/nope/execute")

        assert response.status_code == 404
        assert response.json()["error"] == "JobNotFoundError"
        assert client.get("/jobs/runs").json() == []

    def test_execute_job_without_sources(self, client):
        job = create_job(client, [])

        response = client.post(f"/jobs/{job['id']}/execute")

        assert response.status_code == 400
        assert response.json()["error"] == "NoSourcesDefinedError"

    def test_failed_run_answers_200(self, client):
        response = client.post("/data-sources", json={
            "name": "warehouse",
            "type": "database",
            "config": {"host": "db", "database": "dw", "user": "etl"}
        })
        job = create_job(client, [response.json()["id"]])

        response = client.post(f"/jobs/{job['id']}/execute")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["status"] == "error"

    def test_batch_execute(self, client):
        source = create_source(client)
        j1 = create_job(client, [source["id"]], name="j1")
        j3 = create_job(client, [source["id"]], name="j3")

        response = client.post("/jobs/batch-execute", json={"jobIds": [j1["id"], "j2-throws", j3["id"]]})

        assert response.status_code == 200
        data = response.json()
        assert data["total_jobs"] == 3
        assert data["success_count"] == 2
        assert data["failure_count"] == 1
        assert [r["job_id"] for r in data["results"]] == [j1["id"], "j2-throws", j3["id"]]

    def test_runs_listing(self, client):
        source = create_source(client)
        j1 = create_job(client, [source["id"]], name="j1")
        j2 = create_job(client, [source["id"]], name="j2")
        client.post(f"/jobs/{j1['id']}/execute")
        client.post(f"/jobs/{j2['id']}/execute")

        assert len(client.get("/jobs/runs").json()) == 2
        only_j1 = client.get("/jobs/runs", params={"job_id": j1["id"]}).json()
        assert [run["job_id"] for run in only_j1] == [j1["id"]]

    def test_unknown_run(self, client):
        response = client.get("/jobs/runs/nope")

        assert response.status_code == 404
        assert response.json()["error"] == "JobRunNotFoundError"

    def test_cancel_finished_run_conflicts(self, client):
        source = create_source(client)
        job = create_job(client, [source["id"]])
        run_id = client.post(f"/jobs/{job['id']}/execute").json()["job_run_id"]

        response = client.post(f"/jobs/runs/{run_id}/cancel")

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidRunTransitionError"


class TestAlertEndpoints:

    def test_list_acknowledge_delete(self, client):
        source = create_source(client)
        job = create_job(client, [source["id"]])
        client.post(f"/jobs/{job['id']}/execute")

        alerts = client.get("/alerts").json()
        assert len(alerts) > 0

        job_alerts = client.get("/alerts", params={"category": "job"}).json()
        assert all(alert["category"] == "job" for alert in job_alerts)

        alert_id = alerts[0]["id"]
        acknowledged = client.post(f"/alerts/{alert_id}/acknowledge")
        assert acknowledged.status_code == 200
        assert acknowledged.json()["acknowledged"] is True
        assert alert_id not in [a["id"] for a in client.get("/alerts", params={"acknowledged": False}).json()]

        assert client.delete(f"/alerts/{alert_id}").json() == {"id": alert_id, "deleted": True}

    def test_acknowledge_unknown_alert(self, client):
        assert client.post("/alerts/nope/acknowledge").status_code == 404
