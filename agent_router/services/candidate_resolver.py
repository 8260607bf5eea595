"""
Candidate Resolver: ranks the agents and teams eligible to execute a task.

Resolution is two-tier. Explicit module assignments are tried first; only
when none of them qualifies, and the task names at least one required
capability, are all active agents and all teams of the workspace scanned
by capability with a default priority of 0.
"""
from typing import List, Optional, Union
import logging

from sqlalchemy.orm import Session, selectinload

from agent_router.config.models import (
    Agent, AgentStatus, AgentTeam, AgentTeamMember, CandidateKind, ModuleAgentAssignment, ModuleType,
)
from agent_router.config.schema import Candidate
from agent_router.services.assignment_store import AssignmentService
from agent_router.services.capability_registry import satisfies

logger = logging.getLogger(__name__)

FALLBACK_PRIORITY = 0


def _assignment_candidate(assignment: ModuleAgentAssignment, required: List[str]) -> Optional[Candidate]:
    if assignment.team_id:
        team = assignment.team
        # Skip if the team doesn't exist or has no members
        if team is None or not team.members:
            return None
        if not satisfies(team, required):
            return None
        return Candidate(
            kind=CandidateKind.TEAM,
            id=team.id,
            priority=assignment.priority,
            name=team.name,
            description=team.description,
        )

    agent = assignment.agent
    if agent is None or not satisfies(agent, required):
        return None
    return Candidate(
        kind=CandidateKind.AGENT,
        id=agent.id,
        priority=assignment.priority,
        name=agent.name,
        description=agent.description,
    )


class CandidateResolver:
    """Service responsible for finding the agents and teams suitable for a module task."""

    @staticmethod
    def find_suitable_agents(
        session: Session,
        module_type: Union[ModuleType, str],
        required_capabilities: Optional[List[str]],
        workspace_id: str,
    ) -> List[Candidate]:
        """
        Find agents or teams suitable for a module type and required capabilities.

        Args:
            session: SQLAlchemy DB session
            module_type: Module the task belongs to
            required_capabilities: Capability keys the executor must hold (may be empty)
            workspace_id: Workspace scope for assignments and the capability scan

        Returns:
            Ordered list of candidates. Assignment-sourced candidates come sorted by
            priority descending; fallback candidates (priority 0) follow, agents before teams.
            Empty when nothing qualifies.
        """
        required = list(required_capabilities or [])

        try:
            assignments = AssignmentService.load_active_assignments(session, module_type, workspace_id)
            candidates = []
            for assignment in assignments:
                candidate = _assignment_candidate(assignment, required)
                if candidate is not None:
                    candidates.append(candidate)

            if candidates:
                # Explicit assignments win outright; no fallback scan
                return sorted(candidates, key=lambda c: c.priority, reverse=True)

            if not required:
                # No constraint and no binding: refuse to guess an executor
                return []

            candidates.extend(CandidateResolver._scan_agents(session, workspace_id, required))
            candidates.extend(CandidateResolver._scan_teams(session, workspace_id, required))
            return candidates
        except Exception as e:
            logger.error(f"Error finding suitable agents: {e}")
            raise

    @staticmethod
    def _scan_agents(session: Session, workspace_id: str, required: List[str]) -> List[Candidate]:
        agents = session.query(Agent).filter(
            Agent.workspace_id == workspace_id,
            Agent.status == AgentStatus.ACTIVE,
        ).options(
            selectinload(Agent.capabilities),
        ).order_by(Agent.created_at, Agent.id).all()

        return [
            Candidate(
                kind=CandidateKind.AGENT,
                id=agent.id,
                priority=FALLBACK_PRIORITY,
                name=agent.name,
                description=agent.description,
            )
            for agent in agents
            if satisfies(agent, required)
        ]

    @staticmethod
    def _scan_teams(session: Session, workspace_id: str, required: List[str]) -> List[Candidate]:
        teams = session.query(AgentTeam).filter(
            AgentTeam.workspace_id == workspace_id,
        ).options(
            selectinload(AgentTeam.members).selectinload(AgentTeamMember.agent).selectinload(Agent.capabilities),
        ).order_by(AgentTeam.created_at, AgentTeam.id).all()

        return [
            Candidate(
                kind=CandidateKind.TEAM,
                id=team.id,
                priority=FALLBACK_PRIORITY,
                name=team.name,
                description=team.description,
            )
            for team in teams
            if team.members and satisfies(team, required)
        ]
