"""Tests for the HTTP API (promptflow_server/routes/).

Covers:
- POST /api/workflows/import
- GET /api/workflows/{id}/export
- POST /api/workflows/validate
- POST /api/workflows/{id}/execute (background run to completion)
- GET /api/executions/{id}
- GET /api/executions/{id}/stream
- GET /health
"""

from __future__ import annotations

import json

import pytest
from httpx import AsyncClient

from promptflow_server.repositories.workflow import WorkflowRepository

WORKFLOW_EXPORT = {
    "name": "Topic Echo",
    "description": "Echoes the topic",
    "nodes": [
        {"id": "in", "type": "input", "data": {"variable": "topic", "default_value": "cats"}},
        {"id": "up", "type": "transform", "data": {
            "input_variable": "topic", "transformation": "to_uppercase", "output_variable": "loud",
        }},
        {"id": "out", "type": "output", "data": {"variables": ["loud"]}},
    ],
    "edges": [
        {"id": "e1", "source": "in", "target": "up"},
        {"id": "e2", "source": "up", "target": "out"},
    ],
    "settings": None,
}

OTHER_USER = {"X-User-Id": "user-2"}


async def _import(client: AsyncClient, headers, document=None) -> dict:
    """Helper: import a workflow and return the response JSON."""
    resp = await client.post(
        "/api/workflows/import",
        json={"workflow_data": json.dumps(document or WORKFLOW_EXPORT)},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _execute(client: AsyncClient, workflow_id: str, headers, input_data=None):
    return await client.post(
        f"/api/workflows/{workflow_id}/execute",
        json={"input_data": input_data or {}},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


class TestImportExport:

    @pytest.mark.asyncio
    async def test_import_creates_workflow(self, client: AsyncClient, auth_headers):
        data = await _import(client, auth_headers)
        assert data["id"]
        assert data["name"] == "Topic Echo"
        assert data["nodes"] == WORKFLOW_EXPORT["nodes"]
        assert data["is_active"] is True

    @pytest.mark.asyncio
    async def test_import_accepts_object(self, client: AsyncClient, auth_headers):
        resp = await client.post(
            "/api/workflows/import", json={"workflow_data": WORKFLOW_EXPORT}, headers=auth_headers,
        )
        assert resp.status_code == 201

    @pytest.mark.asyncio
    async def test_import_invalid_data(self, client: AsyncClient, auth_headers):
        resp = await client.post(
            "/api/workflows/import",
            json={"workflow_data": json.dumps({"name": "No nodes"})},
            headers=auth_headers,
        )
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["message"] == "Invalid workflow data"
        assert "Missing field: nodes" in detail["errors"]

    @pytest.mark.asyncio
    async def test_import_requires_user(self, client: AsyncClient):
        resp = await client.post("/api/workflows/import", json={"workflow_data": WORKFLOW_EXPORT})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_export(self, client: AsyncClient, auth_headers):
        workflow = await _import(client, auth_headers)

        resp = await client.get(f"/api/workflows/{workflow['id']}/export", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.headers["content-disposition"] == 'attachment; filename="topic-echo-export.json"'
        assert '\n    "name": "Topic Echo"' in resp.text
        document = resp.json()
        assert document["nodes"] == WORKFLOW_EXPORT["nodes"]
        assert document["edges"] == WORKFLOW_EXPORT["edges"]
        assert document["created_at"] is not None

    @pytest.mark.asyncio
    async def test_export_ownership(self, client: AsyncClient, auth_headers):
        workflow = await _import(client, auth_headers)
        resp = await client.get(f"/api/workflows/{workflow['id']}/export", headers=OTHER_USER)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_export_missing(self, client: AsyncClient, auth_headers):
        resp = await client.get("/api/workflows/nope/export", headers=auth_headers)
        assert resp.status_code == 404


class TestValidateEndpoint:

    @pytest.mark.asyncio
    async def test_valid(self, client: AsyncClient):
        resp = await client.post("/api/workflows/validate", json={
            "nodes": WORKFLOW_EXPORT["nodes"], "edges": WORKFLOW_EXPORT["edges"],
        })
        assert resp.status_code == 200
        assert resp.json()["valid"] is True

    @pytest.mark.asyncio
    async def test_reports_errors(self, client: AsyncClient):
        resp = await client.post("/api/workflows/validate", json={
            "nodes": [{"id": "a", "type": "loop"}], "edges": [],
        })
        assert resp.json()["errors"][0]["code"] == "INVALID_NODE_TYPE"

    @pytest.mark.asyncio
    async def test_duplicate_ids(self, client: AsyncClient):
        resp = await client.post("/api/workflows/validate", json={
            "nodes": [{"id": "a", "type": "input"}, {"id": "a", "type": "input"}], "edges": [],
        })
        assert resp.status_code == 422


class TestExecution:

    @pytest.mark.asyncio
    async def test_execute_runs_to_completion(self, client: AsyncClient, auth_headers):
        workflow = await _import(client, auth_headers)

        resp = await _execute(client, workflow["id"], auth_headers, {"topic": "llamas"})
        assert resp.status_code == 202
        data = resp.json()
        assert data["status"] == "pending"
        execution_id = data["execution_id"]

        # Background tasks finish before the ASGI call returns
        status = await client.get(f"/api/executions/{execution_id}", headers=auth_headers)
        assert status.status_code == 200
        body = status.json()
        assert body["status"] == "completed"
        assert body["workflow_id"] == workflow["id"]
        assert body["input_data"] == {"topic": "llamas"}
        assert body["output_data"]["loud"] == "LLAMAS"
        assert body["node_results"]["out"]["output"] == {"loud": "LLAMAS"}
        assert body["error"] is None

    @pytest.mark.asyncio
    async def test_execute_without_body(self, client: AsyncClient, auth_headers):
        workflow = await _import(client, auth_headers)
        resp = await client.post(f"/api/workflows/{workflow['id']}/execute", headers=auth_headers)
        assert resp.status_code == 202

        status = await client.get(f"/api/executions/{resp.json()['execution_id']}", headers=auth_headers)
        assert status.json()["output_data"]["loud"] == "CATS"

    @pytest.mark.asyncio
    async def test_failed_run_reported(self, client: AsyncClient, auth_headers):
        document = dict(WORKFLOW_EXPORT, nodes=WORKFLOW_EXPORT["nodes"][:2] + [{"id": "out", "type": "loop"}])
        workflow = await _import(client, auth_headers, document)

        resp = await _execute(client, workflow["id"], auth_headers)
        status = await client.get(f"/api/executions/{resp.json()['execution_id']}", headers=auth_headers)

        body = status.json()
        assert body["status"] == "failed"
        assert body["error"] == "Unsupported node type: loop"
        assert set(body["node_results"]) == {"in", "up"}

    @pytest.mark.asyncio
    async def test_execute_missing_workflow(self, client: AsyncClient, auth_headers):
        resp = await _execute(client, "nope", auth_headers)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_execute_other_users_workflow(self, client: AsyncClient, auth_headers):
        workflow = await _import(client, auth_headers)
        resp = await _execute(client, workflow["id"], OTHER_USER)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_execute_inactive_workflow(self, client: AsyncClient, auth_headers, session_ctx):
        workflow = await _import(client, auth_headers)
        async with session_ctx() as session:
            stored = await WorkflowRepository(session).get(workflow["id"])
            stored.is_active = False

        resp = await _execute(client, workflow["id"], auth_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Workflow is not active"

    @pytest.mark.asyncio
    async def test_status_ownership(self, client: AsyncClient, auth_headers):
        workflow = await _import(client, auth_headers)
        resp = await _execute(client, workflow["id"], auth_headers)
        execution_id = resp.json()["execution_id"]

        assert (await client.get(f"/api/executions/{execution_id}", headers=OTHER_USER)).status_code == 403
        assert (await client.get("/api/executions/nope", headers=auth_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_stream_replays_buffered_events(self, client: AsyncClient, auth_headers):
        workflow = await _import(client, auth_headers)
        resp = await _execute(client, workflow["id"], auth_headers)
        execution_id = resp.json()["execution_id"]

        stream = await client.get(f"/api/executions/{execution_id}/stream", headers=auth_headers)

        assert stream.status_code == 200
        assert stream.headers["content-type"].startswith("text/event-stream")
        events = [line[len("event: "):] for line in stream.text.splitlines() if line.startswith("event: ")]
        assert events[0] == "node_started"
        assert events[-1] == "WorkflowExecutionCompleted"
        assert events.count("node_completed") == 3
