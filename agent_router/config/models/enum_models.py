import enum


class AgentStatus(str, enum.Enum):
    """Lifecycle status of an agent configuration."""
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"
    TRAINING = "training"


class RunStatus(str, enum.Enum):
    """Lifecycle status of a single agent run. PENDING is the only non-terminal state."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ModuleType(str, enum.Enum):
    """Business areas that agents and teams can be bound to."""
    EMAIL = "email"
    CONTACT = "contact"
    TEMPLATE = "template"
    WORKFLOW = "workflow"
    CALENDAR = "calendar"
    LEAD = "lead"
    TASK = "task"


class CandidateKind(str, enum.Enum):
    AGENT = "agent"
    TEAM = "team"


def enum_values(enum_cls):
    """Persist enum values (not member names) in VARCHAR-backed Enum columns."""
    return [member.value for member in enum_cls]
