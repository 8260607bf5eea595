"""
Run Engine: creates run records and drives them to a terminal state.

A run starts ``pending`` and is resolved exactly once, to ``completed``
(output set, error null) or ``failed`` (error set, output null). The row is
created synchronously and a RunHandle returned at once; the executor call
and the terminal transition happen on a background worker with its own
database session. Terminal transitions are compare-and-set on the pending
status, and a successful completion increments the agent's usage counter
in the same transaction.
"""
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional
import logging
import time

from sqlalchemy import update
from sqlalchemy.orm import Session

from agent_router.config import settings
from agent_router.config.models import Agent, AgentRun, RunStatus
from agent_router.config.models.base import utcnow
from agent_router.config.schema import RunRead
from agent_router.errors import ExecutorError
from agent_router.tools.executor_tool import AgentExecutor, build_executor

logger = logging.getLogger(__name__)


def agent_profile(agent: Agent) -> Dict[str, Any]:
    """The part of an agent configuration handed to the executor."""
    return {
        "id": agent.id,
        "name": agent.name,
        "type": agent.type,
        "prompt": agent.prompt,
        "llm_config": dict(agent.llm_config or {}),
    }


class RunHandle:
    """Handle to a dispatched run. The run may still be pending when the handle is returned."""

    def __init__(self, run_id: str, agent_id: str, future: Future):
        self.run_id = run_id
        self.agent_id = agent_id
        self._future = future

    def done(self) -> bool:
        return self._future.done()

    def wait(self, timeout: Optional[float] = None) -> RunRead:
        """
        Block until the run reaches a terminal state.

        Raises:
            concurrent.futures.TimeoutError: If the run is still pending after timeout seconds
        """
        return self._future.result(timeout=timeout)


class RunEngine:
    """Service that records agent runs and resolves them through the executor collaborator."""

    def __init__(self, session_factory: Callable[[], Session], executor: AgentExecutor = None,
                 max_workers: int = None):
        """
        Args:
            session_factory: Creates the sessions used by background completions
            executor: Executor backend; defaults to the one configured by EXECUTOR_BACKEND
            max_workers: Background completion threads (defaults to RUN_WORKERS)
        """
        self.session_factory = session_factory
        self.executor = executor or build_executor()
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers or settings.RUN_WORKERS,
            thread_name_prefix="agent-run",
        )

    def start_run(self, session: Session, agent_id: str, payload: Dict[str, Any]) -> RunHandle:
        """
        Create a pending run for an agent and schedule its execution.

        Args:
            session: SQLAlchemy DB session used for the synchronous insert
            agent_id: Agent that executes the run
            payload: Execution payload stored as the run input

        Returns:
            RunHandle for the new run

        Raises:
            ValueError: If the agent does not exist
        """
        agent = session.get(Agent, agent_id)
        if agent is None:
            raise ValueError(f"Agent ID {agent_id} not found")
        profile = agent_profile(agent)

        run = AgentRun(
            agent_id=agent_id,
            status=RunStatus.PENDING,
            input=payload,
            started_at=utcnow(),
        )
        session.add(run)
        session.commit()
        run_id = run.id
        logger.info(f"Run {run_id} created for agent {agent_id}")

        try:
            future = self._pool.submit(self._execute, run_id, agent_id, profile, payload)
        except RuntimeError as e:
            # Pool already shut down; the run must not stay pending
            self.fail_run(run_id, f"Run could not be scheduled: {e}")
            raise
        return RunHandle(run_id, agent_id, future)

    def _execute(self, run_id: str, agent_id: str, profile: Dict[str, Any], payload: Dict[str, Any]) -> RunRead:
        started = time.monotonic()
        try:
            result = self.executor.invoke(profile, payload)
            if result is None or result.output is None:
                raise ExecutorError("Executor returned no output")
        except Exception as e:
            logger.error(f"Run {run_id} failed: {e}")
            self.fail_run(run_id, str(e) or e.__class__.__name__)
        else:
            metrics = dict(result.metrics or {})
            metrics["latency_ms"] = int((time.monotonic() - started) * 1000)
            self.complete_run(run_id, agent_id, result.output, metrics)

        with self.session_factory() as session:
            return RunRead.model_validate(session.get(AgentRun, run_id))

    def complete_run(self, run_id: str, agent_id: str, output: Any,
                     metrics: Optional[Dict[str, Any]] = None) -> bool:
        """
        Resolve a pending run to completed and count the usage on its agent.

        Returns:
            True if this call performed the transition, False if the run was already terminal
        """
        if output is None:
            raise ValueError("A completed run requires an output")

        with self.session_factory() as session:
            result = session.execute(
                update(AgentRun)
                .where(AgentRun.id == run_id, AgentRun.status == RunStatus.PENDING)
                .values(
                    status=RunStatus.COMPLETED,
                    output=output,
                    error=None,
                    metrics=metrics,
                    completed_at=utcnow(),
                )
            )
            if result.rowcount != 1:
                session.rollback()
                logger.warning(f"Run {run_id} is no longer pending; completion ignored")
                return False

            session.execute(
                update(Agent)
                .where(Agent.id == agent_id)
                .values(usage_count=Agent.usage_count + 1)
            )
            session.commit()

        logger.info(f"Run {run_id} completed")
        return True

    def fail_run(self, run_id: str, error: str) -> bool:
        """
        Resolve a pending run to failed.

        Returns:
            True if this call performed the transition, False if the run was already terminal
        """
        with self.session_factory() as session:
            result = session.execute(
                update(AgentRun)
                .where(AgentRun.id == run_id, AgentRun.status == RunStatus.PENDING)
                .values(
                    status=RunStatus.FAILED,
                    output=None,
                    error=error or "Unknown error occurred",
                    completed_at=utcnow(),
                )
            )
            if result.rowcount != 1:
                session.rollback()
                logger.warning(f"Run {run_id} is no longer pending; failure ignored")
                return False
            session.commit()

        logger.info(f"Run {run_id} failed")
        return True

    @staticmethod
    def get_run(session: Session, run_id: str) -> AgentRun:
        """
        Raises:
            ValueError: If the run does not exist
        """
        run = session.get(AgentRun, run_id)
        if run is None:
            raise ValueError(f"Run ID {run_id} not found")
        return run

    @staticmethod
    def list_runs(session: Session, agent_id: str, limit: int = 10) -> List[AgentRun]:
        """Most recent runs of an agent, newest first."""
        return session.query(AgentRun).filter(
            AgentRun.agent_id == agent_id,
        ).order_by(AgentRun.created_at.desc()).limit(limit).all()

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
