"""
Pytest configuration and shared fixtures.

Tests run against a throwaway SQLite file per test so the atomic claim and
the latest-wins upserts go through a real database.
"""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from helpdesk_jobs.config import Settings
from helpdesk_jobs.db import Ticket, create_session_factory, create_tables, session_scope
from helpdesk_jobs.db.connection import get_test_engine
from helpdesk_jobs.db.repository import JobRepository
from helpdesk_jobs.exceptions import ExternalServiceError
from helpdesk_jobs.types.job import HandlerServices


class StubReasoningClient:
    """Reasoning client double that replays a canned reply."""

    def __init__(self, reply: str = "", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str, max_tokens: int) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply

    async def aclose(self) -> None:
        pass


class StubCodeHost:
    """Code host double backed by an in-memory file map."""

    def __init__(self, contents: dict[str, str] | None = None, extra_files: list[str] | None = None):
        self.contents = contents or {}
        self.files = list(self.contents) + (extra_files or [])
        self.fetched: list[str] = []

    async def list_files(self, max_files: int) -> list[str]:
        return self.files[:max_files]

    async def get_file_content(self, file_path: str) -> str:
        self.fetched.append(file_path)
        if file_path not in self.contents:
            raise ExternalServiceError("Stub", f"API error: 404 {file_path}")
        return self.contents[file_path]

    def build_deep_link(self, file_path: str, start_line: int, end_line: int) -> str:
        return f"stub://{file_path}#{start_line}-{end_line}"

    async def aclose(self) -> None:
        pass


@pytest_asyncio.fixture
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine]:
    """Create a database engine on a fresh SQLite file."""
    engine = get_test_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(async_engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a database session for tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings with no external services configured."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        log_level="DEBUG",
        log_format="console",
        worker_poll_interval_seconds=0.01,
        worker_autostart=False,
        worker_handler_timeout_seconds=None,
        anthropic_api_key=None,
        code_host="bitbucket",
        bitbucket_token=None,
        bitbucket_workspace=None,
        bitbucket_repo=None,
        github_token=None,
        github_owner=None,
        github_repo=None,
        tracing_enabled=False,
    )


@pytest.fixture
def make_services(
    session_factory: async_sessionmaker[AsyncSession],
    test_settings: Settings,
) -> Callable[..., HandlerServices]:
    """Build handler services around the test database."""

    def _make(reasoning=None, code_host=None, settings: Settings | None = None) -> HandlerServices:
        return HandlerServices(
            session_factory=session_factory,
            reasoning=reasoning,
            code_host=code_host,
            settings=settings or test_settings,
        )

    return _make


@pytest.fixture
def services(make_services) -> HandlerServices:
    return make_services()


@pytest.fixture
def reasoning_stub() -> type[StubReasoningClient]:
    return StubReasoningClient


@pytest.fixture
def code_host_stub() -> type[StubCodeHost]:
    return StubCodeHost


@pytest.fixture
def make_ticket(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[int]]:
    """Insert a ticket and return its id. Defaults describe a complete ticket."""

    async def _make(
        title: str = "Login fails for passwords with symbols",
        description: str = (
            "Users cannot login when the password contains special characters "
            "such as ampersands or quotes."
        ),
        acceptance_criteria: str = "Users with any printable password can log in.",
        affected_module: str = "auth",
    ) -> int:
        async with session_scope(session_factory) as session:
            ticket = Ticket(
                title=title,
                description=description,
                acceptance_criteria=acceptance_criteria,
                affected_module=affected_module,
            )
            session.add(ticket)
            await session.flush()
            return ticket.id

    return _make


@pytest.fixture
def wait_for_job(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[str]]:
    """Poll a job until it reaches a terminal status; returns the final status."""

    async def _wait(job_id: int, timeout: float = 5.0) -> str:
        deadline = asyncio.get_running_loop().time() + timeout
        while True:
            async with session_scope(session_factory) as session:
                job = await JobRepository(session).get_job(job_id)
            if job is not None and job.is_terminal:
                return job.status
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError(f"Job {job_id} did not finish, status={job and job.status}")
            await asyncio.sleep(0.01)

    return _wait
