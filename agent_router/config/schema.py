from datetime import datetime
from typing import List, Dict, Optional, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agent_router.config.models.enum_models import AgentStatus, CandidateKind, ModuleType, RunStatus

class LLMConfig(BaseModel):
    """Model configuration handed to the executor for an agent."""
    model_config = ConfigDict(protected_namespaces=())

    provider: str = Field("openai", description="Model provider name")
    model_name: str = Field("gpt-4", description="Model identifier at the provider")
    temperature: float = Field(0.7, description="Sampling temperature")
    max_tokens: int = Field(1024, description="Upper bound on generated tokens")
    system_message: Optional[str] = Field(None, description="Optional system message prepended to the prompt")

class AgentCreate(BaseModel):
    """Definition of a single agent."""
    name: str = Field(..., description="Human-readable name for the agent")
    workspace_id: str = Field(..., description="Workspace that owns the agent")
    user_id: Optional[str] = Field(None, description="Creating user")
    description: Optional[str] = None
    type: str = Field("assistant", description="Free-form agent type tag")
    status: AgentStatus = Field(AgentStatus.DRAFT, description="Lifecycle status")
    prompt: str = Field("", description="Instruction prompt for the agent")
    llm_config: LLMConfig = Field(default_factory=LLMConfig)
    settings: Dict[str, Any] = Field(default_factory=dict)
    capabilities: List[str] = Field(default_factory=list, description="Capability keys in 'type_name' form, e.g. 'email_access'")

class AgentUpdate(BaseModel):
    """Partial agent update. Capabilities, when given, replace the agent's current list."""
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    status: Optional[AgentStatus] = None
    prompt: Optional[str] = None
    llm_config: Optional[LLMConfig] = None
    settings: Optional[Dict[str, Any]] = None
    capabilities: Optional[List[str]] = None

class TeamCreate(BaseModel):
    name: str
    workspace_id: str
    user_id: Optional[str] = None
    description: Optional[str] = None

class TeamMemberCreate(BaseModel):
    agent_id: str
    role: Optional[str] = Field("member", description="Role tag within the team; 'lead' marks the executing member")

class AssignmentCreate(BaseModel):
    """Request to bind an agent or a team to a module."""
    agent_id: Optional[str] = None
    team_id: Optional[str] = None
    module_type: ModuleType
    module_id: Optional[str] = None
    priority: int = Field(1, description="Higher number = higher priority")
    capabilities: List[str] = Field(default_factory=list, description="Capabilities required for this assignment")

    @model_validator(mode="after")
    def _one_executor(self):
        if bool(self.agent_id) == bool(self.team_id):
            raise ValueError("Exactly one of agent_id or team_id must be provided")
        return self

class AssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agent_id: Optional[str] = None
    team_id: Optional[str] = None
    workspace_id: str
    module_type: str
    module_id: Optional[str] = None
    is_active: bool
    priority: int
    capabilities: List[str]
    created_at: datetime
    updated_at: datetime

class ModuleTaskDefinitionCreate(BaseModel):
    name: str
    description: str = ""
    module_type: ModuleType
    required_capabilities: List[str] = Field(default_factory=list)
    is_system: bool = False

class Candidate(BaseModel):
    """An agent or team eligible to execute a task, prior to final selection."""
    kind: CandidateKind
    id: str
    priority: int = 0
    name: Optional[str] = None
    description: Optional[str] = None

class TaskRequest(BaseModel):
    """A unit of work tied to a business module."""
    task_type: str = Field(..., description="Task identifier, e.g. 'qualify_lead'")
    module_type: ModuleType
    module_id: Optional[str] = None
    input: Dict[str, Any] = Field(default_factory=dict, description="Task input merged into the execution payload")
    user_id: Optional[str] = None
    workspace_id: str
    priority: Literal["low", "normal", "high"] = "normal"
    required_capabilities: List[str] = Field(default_factory=list)
    preferred_agent_id: Optional[str] = None
    preferred_team_id: Optional[str] = None

class TaskResult(BaseModel):
    """Outcome of a dispatch. agent_id is empty when no executor was reached."""
    success: bool
    agent_id: str = ""
    team_id: Optional[str] = None
    run_id: Optional[str] = None
    status: Optional[RunStatus] = None
    output: Optional[Any] = None
    error: Optional[str] = None
    completed_at: datetime
    metrics: Optional[Dict[str, Any]] = None

class RunRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agent_id: str
    status: RunStatus
    input: Dict[str, Any]
    output: Optional[Any] = None
    error: Optional[str] = None
    metrics: Optional[Dict[str, Any]] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

class CapabilityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    name: str

class AgentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    name: str
    description: Optional[str] = None
    type: str
    status: AgentStatus
    prompt: str
    llm_config: Dict[str, Any]
    usage_count: int
    capabilities: List[CapabilityRead]

class TeamMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agent_id: str
    role: Optional[str] = None
    position: int

class TeamRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    name: str
    description: Optional[str] = None
    members: List[TeamMemberRead]

class ModuleTaskDefinitionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    module_type: str
    required_capabilities: List[str]
    is_system: bool
    is_active: bool

class AdapterRequest(BaseModel):
    """Caller context for module adapter endpoints."""
    user_id: str
    workspace_id: str
    preferred_agent_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None

class AgentRunCreate(BaseModel):
    """Direct run of one agent, bypassing candidate resolution."""
    input: Dict[str, Any] = Field(default_factory=dict, description="Execution payload stored as the run input")
