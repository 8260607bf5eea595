from .base import Base
from .enum_models import AgentStatus, RunStatus, ModuleType, CandidateKind
from .agent_models import Agent, AgentCapability
from .team_models import AgentTeam, AgentTeamMember, LEAD_ROLE
from .assignment_models import ModuleAgentAssignment, ModuleTaskDefinition
from .run_models import AgentRun
from .crm_models import EmailThread, Email, Contact, Lead, FollowUpTask, CalendarEvent

__all__ = [
    'Base', 'AgentStatus', 'RunStatus', 'ModuleType', 'CandidateKind',
    'Agent', 'AgentCapability', 'AgentTeam', 'AgentTeamMember', 'LEAD_ROLE',
    'ModuleAgentAssignment', 'ModuleTaskDefinition', 'AgentRun',
    'EmailThread', 'Email', 'Contact', 'Lead', 'FollowUpTask', 'CalendarEvent',
]
