"""
Assignment Store for binding agents and teams to CRM modules.

Assignments are never physically removed by the routing engine; deactivation
sets is_active False so the binding history is preserved.
"""
from typing import List, Optional, Union
import logging

from sqlalchemy.orm import Session, selectinload

from agent_router.config.models import (
    Agent, AgentTeam, AgentTeamMember, ModuleAgentAssignment, ModuleTaskDefinition, ModuleType,
)

logger = logging.getLogger(__name__)


def module_key(module_type: Union[ModuleType, str]) -> str:
    """Validate a module type and return its stored string form."""
    return ModuleType(module_type).value


class AssignmentService:
    """Service responsible for module assignments and module task definitions."""

    @staticmethod
    def assign_agent_to_module(
        session: Session,
        agent_id: Optional[str],
        team_id: Optional[str],
        module_type: Union[ModuleType, str],
        module_id: Optional[str] = None,
        priority: int = 1,
        capabilities: Optional[List[str]] = None,
    ) -> ModuleAgentAssignment:
        """
        Bind an agent or a team to a module type (and optionally one module instance).

        Args:
            session: SQLAlchemy DB session
            agent_id: Agent to bind (mutually exclusive with team_id)
            team_id: Team to bind (mutually exclusive with agent_id)
            module_type: Module type, e.g. 'email'
            module_id: Optional specific module instance
            priority: Higher number = higher priority
            capabilities: Capabilities required for this assignment

        Returns:
            The new active ModuleAgentAssignment

        Raises:
            ValueError: If neither or both executors are given, or the executor does not exist
        """
        if not agent_id and not team_id:
            raise ValueError("Either agentId or teamId must be provided")
        if agent_id and team_id:
            raise ValueError("Only one of agentId or teamId may be provided")

        module = module_key(module_type)

        if agent_id:
            owner = session.get(Agent, agent_id)
            if owner is None:
                raise ValueError(f"Agent ID {agent_id} not found")
        else:
            owner = session.get(AgentTeam, team_id)
            if owner is None:
                raise ValueError(f"Team ID {team_id} not found")

        assignment = ModuleAgentAssignment(
            agent_id=agent_id or None,
            team_id=team_id or None,
            workspace_id=owner.workspace_id,
            module_type=module,
            module_id=module_id or None,
            is_active=True,
            priority=priority,
            capabilities=list(capabilities or []),
        )
        session.add(assignment)
        try:
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Error assigning agent to module: {e}")
            raise
        session.refresh(assignment)

        logger.info(
            f"Assigned {'agent ' + agent_id if agent_id else 'team ' + team_id} "
            f"to module {module} (priority {priority})"
        )
        return assignment

    @staticmethod
    def remove_agent_from_module(session: Session, assignment_id: str) -> None:
        """
        Soft-deactivate an assignment.

        Raises:
            ValueError: If the assignment does not exist
        """
        assignment = session.get(ModuleAgentAssignment, assignment_id)
        if assignment is None:
            raise ValueError(f"Assignment ID {assignment_id} not found")

        assignment.is_active = False
        session.commit()
        logger.info(f"Deactivated assignment {assignment_id}")

    @staticmethod
    def get_agents_for_module(
        session: Session,
        module_type: Union[ModuleType, str],
        module_id: Optional[str] = None,
    ) -> List[ModuleAgentAssignment]:
        """Active assignments for a module, highest priority first, optionally narrowed to one instance."""
        query = session.query(ModuleAgentAssignment).filter(
            ModuleAgentAssignment.module_type == module_key(module_type),
            ModuleAgentAssignment.is_active == True,
        )
        if module_id:
            query = query.filter(ModuleAgentAssignment.module_id == module_id)

        return query.options(
            selectinload(ModuleAgentAssignment.agent),
            selectinload(ModuleAgentAssignment.team)
            .selectinload(AgentTeam.members)
            .selectinload(AgentTeamMember.agent),
        ).order_by(ModuleAgentAssignment.priority.desc()).all()

    @staticmethod
    def load_active_assignments(
        session: Session,
        module_type: Union[ModuleType, str],
        workspace_id: str,
    ) -> List[ModuleAgentAssignment]:
        """
        Active assignments for a module type within a workspace, with the bound
        agent's capabilities or the team's members and their capabilities loaded.
        """
        return session.query(ModuleAgentAssignment).filter(
            ModuleAgentAssignment.module_type == module_key(module_type),
            ModuleAgentAssignment.workspace_id == workspace_id,
            ModuleAgentAssignment.is_active == True,
        ).options(
            selectinload(ModuleAgentAssignment.agent).selectinload(Agent.capabilities),
            selectinload(ModuleAgentAssignment.team)
            .selectinload(AgentTeam.members)
            .selectinload(AgentTeamMember.agent)
            .selectinload(Agent.capabilities),
        ).order_by(
            ModuleAgentAssignment.priority.desc(),
            ModuleAgentAssignment.created_at,
            ModuleAgentAssignment.id,
        ).all()

    @staticmethod
    def define_module_task(
        session: Session,
        name: str,
        description: str,
        module_type: Union[ModuleType, str],
        required_capabilities: Optional[List[str]] = None,
        is_system: bool = False,
    ) -> ModuleTaskDefinition:
        """Register a task a module can request, with the capabilities it needs."""
        task = ModuleTaskDefinition(
            name=name,
            description=description,
            module_type=module_key(module_type),
            required_capabilities=list(required_capabilities or []),
            is_system=is_system,
            is_active=True,
        )
        session.add(task)
        session.commit()
        session.refresh(task)
        return task

    @staticmethod
    def get_module_tasks(session: Session, module_type: Union[ModuleType, str]) -> List[ModuleTaskDefinition]:
        return session.query(ModuleTaskDefinition).filter(
            ModuleTaskDefinition.module_type == module_key(module_type),
            ModuleTaskDefinition.is_active == True,
        ).order_by(ModuleTaskDefinition.created_at).all()
