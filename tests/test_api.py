"""
Integration tests for API endpoints.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from chainscope.jobs.queue import AnalysisQueue
from chainscope.main import create_app
from tests.fakes import FOCAL, WASH_TRADER


@pytest.mark.asyncio
async def test_root_endpoint(test_client: AsyncClient):
    """Test root endpoint returns project info."""
    response = await test_client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert "project" in data
    assert "version" in data
    assert "disclaimer" in data


@pytest.mark.asyncio
async def test_health_endpoint(test_client: AsyncClient):
    """Test health check endpoint."""
    response = await test_client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_connected"] is True
    assert "app_name" in data
    assert "version" in data
    assert "mock_mode" in data


@pytest.mark.asyncio
async def test_submit_query_and_fetch_result(test_client: AsyncClient, job_queue):
    """Test the submit, process and result flow."""
    response = await test_client.post(
        "/api/v1/query",
        json={"query": f"Analyze wallet {FOCAL} for suspicious activity", "user_id": "analyst-1"},
    )

    assert response.status_code == 202
    submitted = response.json()
    assert submitted["state"] == "waiting"
    assert submitted["status_url"] == f"/api/v1/jobs/{submitted['job_id']}"
    assert submitted["result_url"] == f"/api/v1/jobs/{submitted['job_id']}/result"

    await job_queue.drain()

    status = (await test_client.get(submitted["status_url"])).json()
    assert status["state"] == "completed"
    assert status["attempts_made"] == 1
    assert status["user_id"] == "analyst-1"
    assert status["failed_reason"] is None
    assert status["duration_ms"] is not None

    response = await test_client.get(submitted["result_url"])
    assert response.status_code == 200
    result = response.json()
    assert result["state"] == "completed"
    assert result["query_type"] == "abnormality_detection"
    assert result["error"] is None
    assert "### Summary" in result["analysis"]
    assert WASH_TRADER in result["analysis"]
    assert result["result"]["hours_back"] == 10


@pytest.mark.asyncio
async def test_pipeline_error_is_a_completed_job(test_client: AsyncClient, job_queue):
    """Test that a stage error is reported in the result, not as a failed job."""
    response = await test_client.post(
        "/api/v1/query", json={"query": "Is anything unusual happening?"}
    )
    job_id = response.json()["job_id"]

    await job_queue.drain()

    result = (await test_client.get(f"/api/v1/jobs/{job_id}/result")).json()
    assert result["state"] == "completed"
    assert result["error"] == "No addresses or transaction signatures found in query"
    assert result["analysis"].startswith("Error: No addresses")


@pytest.mark.asyncio
async def test_submit_empty_query(test_client: AsyncClient):
    """Test that blank queries are rejected before a job is created."""
    response = await test_client.post("/api/v1/query", json={"query": "   "})

    assert response.status_code == 400
    assert response.json()["detail"] == "Query is required and must be a non-empty string"

    stats = (await test_client.get("/api/v1/queues/stats")).json()
    assert stats["total"] == 0


@pytest.mark.asyncio
async def test_submit_missing_query(test_client: AsyncClient):
    """Test request validation."""
    response = await test_client.post("/api/v1/query", json={"user_id": "analyst-1"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_submit_with_delay_and_priority(test_client: AsyncClient):
    """Test scheduling options set the initial state."""
    delayed = await test_client.post(
        "/api/v1/query",
        json={"query": f"Analyze wallet {FOCAL}", "metadata": {"delay": 30}},
    )
    assert delayed.status_code == 202
    assert delayed.json()["state"] == "delayed"

    result = (
        await test_client.get(f"/api/v1/jobs/{delayed.json()['job_id']}/result")
    ).json()
    assert result["state"] == "delayed"
    assert result["message"] == "Job is still processing"
    assert result["analysis"] is None

    prioritized = await test_client.post(
        "/api/v1/query",
        json={"query": f"Analyze wallet {FOCAL}", "metadata": {"priority": 1, "delay": 30}},
    )
    assert prioritized.json()["state"] == "delayed"

    stats = (await test_client.get("/api/v1/queues/stats")).json()
    assert stats["delayed"] == 2
    assert stats["total"] == 2


@pytest.mark.asyncio
async def test_negative_delay_rejected(test_client: AsyncClient):
    response = await test_client.post(
        "/api/v1/query",
        json={"query": f"Analyze wallet {FOCAL}", "metadata": {"delay": -1}},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_and_remove_jobs(test_client: AsyncClient, job_queue):
    """Test job listing, state filter and removal."""
    first = (
        await test_client.post("/api/v1/query", json={"query": f"Analyze wallet {FOCAL}"})
    ).json()
    await job_queue.drain()

    listing = (await test_client.get("/api/v1/jobs?state=completed")).json()
    assert listing["total"] == 1
    assert listing["jobs"][0]["job_id"] == first["job_id"]

    assert (await test_client.get("/api/v1/jobs?state=failed")).json()["total"] == 0

    response = await test_client.delete(f"/api/v1/jobs/{first['job_id']}")
    assert response.status_code == 200
    assert response.json() == {"job_id": first["job_id"], "removed": True}

    assert (await test_client.get(f"/api/v1/jobs/{first['job_id']}")).status_code == 404
    assert (await test_client.delete(f"/api/v1/jobs/{first['job_id']}")).status_code == 404


@pytest.mark.asyncio
async def test_get_job_audit(test_client: AsyncClient, job_queue):
    """Test the persisted audit trail of a processed job."""
    job_id = (
        await test_client.post("/api/v1/query", json={"query": f"Show wallet {FOCAL}"})
    ).json()["job_id"]
    await job_queue.drain()

    response = await test_client.get(f"/api/v1/jobs/{job_id}/audit")

    assert response.status_code == 200
    data = response.json()
    assert data["job_id"] == job_id
    assert data["total_events"] == len(data["events"])
    nodes = {event["node_name"] for event in data["events"]}
    tools = {event["tool_name"] for event in data["events"] if event["tool_name"]}
    assert {"parse_query", "fetch_data", "analyze_data", "format_response"} <= nodes
    assert {"query_interpreter", "fetch_transactions_by_address", "narrative_synthesizer"} <= tools


@pytest.mark.asyncio
async def test_failed_job_result(session_maker):
    """Test that a job whose runner keeps raising is failed after its attempts."""

    async def runner(job_id, query, session):
        raise RuntimeError("provider unreachable")

    queue = AnalysisQueue(
        session_maker=session_maker, runner=runner, max_attempts=2, backoff_seconds=0
    )
    transport = ASGITransport(app=create_app(job_queue=queue))

    async with AsyncClient(transport=transport, base_url="http://test") as client:
        job_id = (
            await client.post("/api/v1/query", json={"query": f"Analyze wallet {FOCAL}"})
        ).json()["job_id"]
        await queue.drain()

        response = await client.get(f"/api/v1/jobs/{job_id}/result")

    await queue.close()

    assert response.status_code == 500
    assert response.json() == {
        "job_id": job_id,
        "state": "failed",
        "error": "provider unreachable",
        "attempts_made": 2,
    }


@pytest.mark.asyncio
async def test_get_job_not_found(test_client: AsyncClient):
    """Test getting non-existent job."""
    response = await test_client.get(
        "/api/v1/jobs/00000000-0000-0000-0000-000000000000"
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_job_invalid_id(test_client: AsyncClient):
    response = await test_client.get("/api/v1/jobs/not-a-uuid/result")

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid job ID format"


@pytest.mark.asyncio
async def test_get_audit_not_found(test_client: AsyncClient):
    """Test getting audit trail for non-existent job."""
    response = await test_client.get(
        "/api/v1/jobs/00000000-0000-0000-0000-000000000000/audit"
    )

    assert response.status_code == 404
