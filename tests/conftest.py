"""
Shared fixtures: a file-backed SQLite database, record factories and
deterministic executors for the run engine.
"""
import os
import tempfile
import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from agent_router.config.models import AgentStatus, Base
from agent_router.config.schema import AgentCreate, TeamCreate
from agent_router.errors import ExecutorError
from agent_router.services.agent_service import AgentService
from agent_router.services.run_engine import RunEngine
from agent_router.tools.executor_tool import AgentExecutor, ExecutionOutput

# A file-based database lets background run workers share it with the test thread
DB_FILE = tempfile.NamedTemporaryFile(suffix=".db", delete=False).name
SQLALCHEMY_DATABASE_URL = f"sqlite:///{DB_FILE}"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

WORKSPACE = "ws-1"


class StaticExecutor(AgentExecutor):
    """Succeeds at once with a fixed output and records every call."""

    def __init__(self, output=None, metrics=None):
        self.output = {"result": "done"} if output is None else output
        self.metrics = {"tokens_used": 42} if metrics is None else metrics
        self.calls = []

    def invoke(self, agent, payload):
        self.calls.append((agent, payload))
        return ExecutionOutput(output=self.output, metrics=self.metrics)


class FailingExecutor(AgentExecutor):
    def __init__(self, message="boom"):
        self.message = message

    def invoke(self, agent, payload):
        raise ExecutorError(self.message)


class EmptyExecutor(AgentExecutor):
    def invoke(self, agent, payload):
        return None


class BlockingExecutor(StaticExecutor):
    """Holds each call until ``release`` is set."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.release = threading.Event()

    def invoke(self, agent, payload):
        self.release.wait(5)
        return super().invoke(agent, payload)


@pytest.fixture(scope="session", autouse=True)
def db_file():
    yield
    engine.dispose()
    if os.path.exists(DB_FILE):
        os.remove(DB_FILE)


@pytest.fixture
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session(tables):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_agent(session):
    def _make_agent(name, capabilities=(), status=AgentStatus.ACTIVE, workspace_id=WORKSPACE):
        return AgentService.create_agent(session, AgentCreate(
            name=name,
            workspace_id=workspace_id,
            status=status,
            prompt=f"You are {name}.",
            capabilities=list(capabilities),
        ))
    return _make_agent


@pytest.fixture
def make_team(session):
    def _make_team(name, members=(), workspace_id=WORKSPACE):
        """members: iterable of agents or (agent, role) pairs, in insertion order."""
        team = AgentService.create_team(session, TeamCreate(name=name, workspace_id=workspace_id))
        for member in members:
            agent, role = member if isinstance(member, tuple) else (member, "member")
            AgentService.add_agent_to_team(session, team.id, agent.id, role)
        session.refresh(team)
        return team
    return _make_team


@pytest.fixture
def engine_for(tables):
    """Build run engines around a given executor; all are shut down after the test."""
    engines = []

    def _engine_for(executor):
        run_engine = RunEngine(TestingSessionLocal, executor=executor, max_workers=2)
        engines.append(run_engine)
        return run_engine

    yield _engine_for
    for run_engine in engines:
        run_engine.shutdown(wait=True)
