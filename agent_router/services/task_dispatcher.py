"""
Task Dispatcher: picks one executor for a task request and hands it to the Run Engine.

``execute_task`` is a failure boundary. Every error raised while resolving,
selecting or starting the run is logged and returned as a failed TaskResult;
nothing propagates to the caller.
"""
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session, selectinload

from agent_router.config.models import AgentTeamMember, CandidateKind, LEAD_ROLE, RunStatus
from agent_router.config.models.base import utcnow
from agent_router.config.schema import Candidate, TaskRequest, TaskResult
from agent_router.errors import EmptyTeamError, NoSuitableAgentsError
from agent_router.services.candidate_resolver import CandidateResolver
from agent_router.services.run_engine import RunEngine, RunHandle

logger = logging.getLogger(__name__)


def _promote(candidates: List[Candidate], kind: CandidateKind, preferred_id: Optional[str]) -> List[Candidate]:
    """Move matching candidates to the front, keeping the relative order of everything else."""
    if not preferred_id:
        return candidates
    matched = [c for c in candidates if c.kind == kind and c.id == preferred_id]
    rest = [c for c in candidates if not (c.kind == kind and c.id == preferred_id)]
    return matched + rest


def order_candidates(
    candidates: List[Candidate],
    preferred_agent_id: Optional[str] = None,
    preferred_team_id: Optional[str] = None,
) -> List[Candidate]:
    """
    Final dispatch order: priority descending (stable), then the preferred agent
    promoted to the front, then the preferred team promoted after it. When both
    preferences match, the team ends up first.
    """
    ordered = sorted(candidates, key=lambda c: c.priority, reverse=True)
    ordered = _promote(ordered, CandidateKind.AGENT, preferred_agent_id)
    ordered = _promote(ordered, CandidateKind.TEAM, preferred_team_id)
    return ordered


class TaskDispatcher:
    """Service that routes task requests to the best-qualified agent or team."""

    def __init__(self, run_engine: RunEngine):
        self.run_engine = run_engine

    def execute_task(self, session: Session, request: TaskRequest, wait: bool = False,
                     timeout: Optional[float] = None) -> TaskResult:
        """
        Execute a task using an appropriate agent or team.

        Args:
            session: SQLAlchemy DB session
            request: The task request
            wait: Block until the run reaches a terminal state
            timeout: Seconds to wait when wait is True (None waits indefinitely)

        Returns:
            TaskResult. Without wait, a successful result means the run was
            dispatched and is pending; with wait, it reflects the run's terminal state.
        """
        try:
            candidates = CandidateResolver.find_suitable_agents(
                session,
                request.module_type,
                request.required_capabilities,
                request.workspace_id,
            )
            if not candidates:
                raise NoSuitableAgentsError()

            best = order_candidates(candidates, request.preferred_agent_id, request.preferred_team_id)[0]

            # Task-specific context travels with the payload
            task_context = {
                "taskType": request.task_type,
                "moduleType": request.module_type.value,
                "moduleId": request.module_id,
                "priority": request.priority,
            }
            payload = dict(request.input)
            payload["taskContext"] = task_context

            if best.kind == CandidateKind.AGENT:
                handle = self.run_engine.start_run(session, best.id, payload)
                logger.info(f"Task {request.task_type} dispatched to agent {best.id} (run {handle.run_id})")
                return self._result(handle, None, wait, timeout, {})

            handle, member_count = self._dispatch_to_team(session, best, payload)
            logger.info(
                f"Task {request.task_type} dispatched to team {best.id} via agent {handle.agent_id} "
                f"(run {handle.run_id})"
            )
            return self._result(handle, best.id, wait, timeout, {"teamMembers": member_count})

        except Exception as e:
            logger.exception(f"Error executing task: {e}")
            try:
                session.rollback()
            except Exception:
                logger.exception("Rollback failed after task error")
            return TaskResult(
                success=False,
                agent_id="",
                output=None,
                error=str(e) or "Unknown error occurred",
                completed_at=utcnow(),
            )

    def _dispatch_to_team(self, session: Session, team: Candidate, payload: Dict[str, Any]):
        members = session.query(AgentTeamMember).filter(
            AgentTeamMember.team_id == team.id,
        ).options(
            selectinload(AgentTeamMember.agent),
        ).order_by(AgentTeamMember.position, AgentTeamMember.created_at).all()

        if not members:
            raise EmptyTeamError()

        # The lead executes on behalf of the team; otherwise the first member does
        lead = next((m for m in members if m.role == LEAD_ROLE), members[0])

        payload["isTeamLead"] = True
        payload["teamContext"] = {
            "teamId": team.id,
            "teamName": team.name,
            "members": [
                {"id": m.agent_id, "name": m.agent.name, "role": m.role}
                for m in members
            ],
        }
        return self.run_engine.start_run(session, lead.agent_id, payload), len(members)

    def _result(self, handle: RunHandle, team_id: Optional[str], wait: bool, timeout: Optional[float],
                extra_metrics: Dict[str, Any]) -> TaskResult:
        if not wait:
            return TaskResult(
                success=True,
                agent_id=handle.agent_id,
                team_id=team_id,
                run_id=handle.run_id,
                status=RunStatus.PENDING,
                output={"runId": handle.run_id, "status": RunStatus.PENDING.value},
                completed_at=utcnow(),
                metrics=extra_metrics or None,
            )

        try:
            run = handle.wait(timeout)
        except FutureTimeoutError:
            logger.warning(f"Timed out waiting for run {handle.run_id}")
            return TaskResult(
                success=False,
                agent_id=handle.agent_id,
                team_id=team_id,
                run_id=handle.run_id,
                status=RunStatus.PENDING,
                error=f"Timed out waiting for run {handle.run_id}",
                completed_at=utcnow(),
            )

        metrics = dict(run.metrics or {})
        metrics.update(extra_metrics)
        return TaskResult(
            success=run.status == RunStatus.COMPLETED,
            agent_id=run.agent_id,
            team_id=team_id,
            run_id=run.id,
            status=run.status,
            output=run.output,
            error=run.error,
            completed_at=run.completed_at or utcnow(),
            metrics=metrics or None,
        )
