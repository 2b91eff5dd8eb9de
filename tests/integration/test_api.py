"""
Integration tests for the API endpoints.
"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_jobs.api.main import create_app
from helpdesk_jobs.constants import JobStatus, JobType
from helpdesk_jobs.db import get_async_session
from helpdesk_jobs.queue import enqueue_code_analysis, enqueue_ticket_validation
from helpdesk_jobs.worker.dispatcher import Dispatcher
from helpdesk_jobs.worker.lifecycle import DispatcherLifecycle


@pytest_asyncio.fixture
async def app(services, session_factory) -> AsyncGenerator[FastAPI]:
    """
    Create a FastAPI app wired to the test database.

    ASGITransport does not run the lifespan hook, so the pieces it would
    build are attached here.
    """
    app = create_app()

    async def override_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_async_session] = override_session
    lifecycle = DispatcherLifecycle(Dispatcher(services, poll_interval=0.01))
    app.state.lifecycle = lifecycle

    yield app

    await lifecycle.stop()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestStartEndpoint:
    """Tests for starting the dispatch loop over HTTP."""

    async def test_start_twice_starts_once(self, client: AsyncClient, app: FastAPI):
        first = await client.post("/v1/jobs/start")
        second = await client.post("/v1/jobs/start")

        assert first.status_code == 200
        assert first.json() == {"status": "running", "started": True}
        assert second.status_code == 200
        assert second.json() == {"status": "running", "started": False}
        assert app.state.lifecycle.starts == 1

    async def test_started_loop_processes_jobs(
        self, client: AsyncClient, make_ticket, session_factory, wait_for_job
    ):
        job_id = await enqueue_ticket_validation(await make_ticket(), session_factory)

        await client.post("/v1/jobs/start")

        assert await wait_for_job(job_id) == JobStatus.DONE

        response = await client.get(f"/v1/jobs/{job_id}")
        data = response.json()
        assert data["status"] == JobStatus.DONE
        assert data["processed_at"] is not None

    async def test_start_without_lifecycle(self, client: AsyncClient, app: FastAPI):
        app.state.lifecycle = None

        response = await client.post("/v1/jobs/start")

        assert response.status_code == 503


class TestJobEndpoints:
    """Tests for the read-only job endpoints."""

    async def test_get_job(self, client: AsyncClient, session_factory):
        job_id = await enqueue_ticket_validation(12, session_factory)

        response = await client.get(f"/v1/jobs/{job_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == job_id
        assert data["job_type"] == JobType.VALIDATE_TICKET
        assert data["status"] == JobStatus.PENDING
        assert data["error_message"] is None

    async def test_get_job_not_found(self, client: AsyncClient):
        response = await client.get("/v1/jobs/99999")

        assert response.status_code == 404

    async def test_list_jobs(self, client: AsyncClient, session_factory):
        await enqueue_ticket_validation(1, session_factory)
        await enqueue_code_analysis(1, session_factory)

        response = await client.get("/v1/jobs", params={"job_type": JobType.ANALYZE_CODE.value})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["jobs"][0]["job_type"] == JobType.ANALYZE_CODE

    async def test_list_jobs_by_status(self, client: AsyncClient, session_factory):
        await enqueue_ticket_validation(1, session_factory)

        pending = await client.get("/v1/jobs", params={"status": "PENDING"})
        done = await client.get("/v1/jobs", params={"status": "DONE"})

        assert pending.json()["total"] == 1
        assert done.json()["total"] == 0

    async def test_stats(self, client: AsyncClient, session_factory):
        await enqueue_ticket_validation(1, session_factory)
        await enqueue_ticket_validation(2, session_factory)

        response = await client.get("/v1/jobs/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["queue_depth"] == 2
        assert data["counts"] == {"PENDING": 2, "PROCESSING": 0, "DONE": 0, "FAILED": 0}


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    async def test_health(self, client: AsyncClient, session_factory):
        await enqueue_ticket_validation(1, session_factory)

        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["dispatcher"] == "stopped"
        assert data["queue_depth"] == 1

    async def test_health_reports_running_dispatcher(self, client: AsyncClient):
        await client.post("/v1/jobs/start")

        response = await client.get("/health")

        assert response.json()["dispatcher"] == "running"

    async def test_liveness(self, client: AsyncClient):
        response = await client.get("/live")

        assert response.status_code == 200
        assert response.json() == {"alive": True}

    async def test_readiness(self, client: AsyncClient):
        response = await client.get("/ready")

        assert response.json() == {"ready": True}

    async def test_metrics(self, client: AsyncClient):
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "jobs_enqueued_total" in response.text
