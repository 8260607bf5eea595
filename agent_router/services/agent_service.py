"""
Agent Service for managing agents, their capabilities, and agent teams.
"""
from typing import List, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from agent_router.config.models import Agent, AgentCapability, AgentTeam, AgentTeamMember
from agent_router.config.schema import AgentCreate, AgentUpdate, TeamCreate
from agent_router.services.capability_registry import CapabilityKey

logger = logging.getLogger(__name__)


def _build_capabilities(capabilities: List[str]) -> List[AgentCapability]:
    """Turn 'type_name' strings into capability rows, e.g. 'web_search' -> (WEB, search)."""
    rows = []
    for position, raw in enumerate(capabilities):
        key = CapabilityKey.parse((raw or "").strip())
        if not key.type:
            continue
        rows.append(AgentCapability(type=key.type.upper(), name=key.name, config={}, position=position))
    return rows


class AgentService:
    """Service responsible for agent and team configuration records."""

    @staticmethod
    def create_agent(session: Session, data: AgentCreate) -> Agent:
        """Create an agent together with its capability rows."""
        agent = Agent(
            workspace_id=data.workspace_id,
            user_id=data.user_id,
            name=data.name,
            description=data.description,
            type=data.type,
            status=data.status,
            prompt=data.prompt,
            llm_config=data.llm_config.model_dump(),
            settings=data.settings,
            usage_count=0,
        )
        agent.capabilities = _build_capabilities(data.capabilities)
        session.add(agent)
        session.commit()
        session.refresh(agent)
        logger.info(f"Created agent {agent.id} ({agent.name}) with {len(agent.capabilities)} capabilities")
        return agent

    @staticmethod
    def get_agent(session: Session, agent_id: str) -> Agent:
        """
        Raises:
            ValueError: If the agent does not exist
        """
        agent = session.query(Agent).filter(Agent.id == agent_id).options(
            selectinload(Agent.capabilities),
        ).first()
        if not agent:
            raise ValueError(f"Agent ID {agent_id} not found")
        return agent

    @staticmethod
    def get_agents(session: Session, workspace_id: str) -> List[Agent]:
        return session.query(Agent).filter(Agent.workspace_id == workspace_id).options(
            selectinload(Agent.capabilities),
        ).order_by(Agent.updated_at.desc()).all()

    @staticmethod
    def get_user_agents(session: Session, user_id: str, workspace_id: str) -> List[Agent]:
        """Agents a user created in a workspace, most recently updated first."""
        return session.query(Agent).filter(
            Agent.user_id == user_id,
            Agent.workspace_id == workspace_id,
        ).options(
            selectinload(Agent.capabilities),
        ).order_by(Agent.updated_at.desc()).all()

    @staticmethod
    def update_agent(session: Session, agent_id: str, data: AgentUpdate) -> Agent:
        """
        Update an agent. When capabilities are given they replace the existing ones.

        Raises:
            ValueError: If the agent does not exist
        """
        agent = AgentService.get_agent(session, agent_id)

        changes = data.model_dump(exclude_unset=True, exclude={"capabilities", "llm_config"})
        for field, value in changes.items():
            setattr(agent, field, value)
        if data.llm_config is not None:
            agent.llm_config = data.llm_config.model_dump()

        if data.capabilities is not None:
            agent.capabilities.clear()
            session.flush()
            agent.capabilities.extend(_build_capabilities(data.capabilities))

        session.commit()
        session.refresh(agent)
        return agent

    @staticmethod
    def delete_agent(session: Session, agent_id: str) -> None:
        """
        Delete an agent; its capabilities, memberships, assignments and runs go with it.

        Raises:
            ValueError: If the agent does not exist
        """
        agent = AgentService.get_agent(session, agent_id)
        session.delete(agent)
        session.commit()
        logger.info(f"Deleted agent {agent_id}")

    @staticmethod
    def create_team(session: Session, data: TeamCreate) -> AgentTeam:
        team = AgentTeam(
            workspace_id=data.workspace_id,
            user_id=data.user_id,
            name=data.name,
            description=data.description,
        )
        session.add(team)
        session.commit()
        session.refresh(team)
        return team

    @staticmethod
    def get_team(session: Session, team_id: str) -> AgentTeam:
        """
        Raises:
            ValueError: If the team does not exist
        """
        team = session.query(AgentTeam).filter(AgentTeam.id == team_id).options(
            selectinload(AgentTeam.members).selectinload(AgentTeamMember.agent),
        ).first()
        if not team:
            raise ValueError(f"Team ID {team_id} not found")
        return team

    @staticmethod
    def get_teams(session: Session, workspace_id: str) -> List[AgentTeam]:
        return session.query(AgentTeam).filter(AgentTeam.workspace_id == workspace_id).options(
            selectinload(AgentTeam.members).selectinload(AgentTeamMember.agent),
        ).order_by(AgentTeam.updated_at.desc()).all()

    @staticmethod
    def add_agent_to_team(session: Session, team_id: str, agent_id: str,
                          role: Optional[str] = "member") -> AgentTeamMember:
        """
        Append an agent to the end of a team's member list.

        Raises:
            ValueError: If the team or agent does not exist
        """
        if session.get(AgentTeam, team_id) is None:
            raise ValueError(f"Team ID {team_id} not found")
        if session.get(Agent, agent_id) is None:
            raise ValueError(f"Agent ID {agent_id} not found")

        last_position = session.query(func.max(AgentTeamMember.position)).filter(
            AgentTeamMember.team_id == team_id,
        ).scalar()

        member = AgentTeamMember(
            team_id=team_id,
            agent_id=agent_id,
            role=role,
            position=0 if last_position is None else last_position + 1,
        )
        session.add(member)
        session.commit()
        session.refresh(member)
        return member

    @staticmethod
    def remove_agent_from_team(session: Session, team_id: str, agent_id: str) -> int:
        """Remove an agent from a team. Returns the number of memberships removed."""
        removed = session.query(AgentTeamMember).filter(
            AgentTeamMember.team_id == team_id,
            AgentTeamMember.agent_id == agent_id,
        ).delete()
        session.commit()
        return removed

    @staticmethod
    def delete_team(session: Session, team_id: str) -> None:
        """
        Delete a team together with its memberships and assignments.

        Raises:
            ValueError: If the team does not exist
        """
        team = AgentService.get_team(session, team_id)
        session.delete(team)
        session.commit()
        logger.info(f"Deleted team {team_id}")
