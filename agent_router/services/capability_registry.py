"""
Capability Registry: normalized capability key sets for agents and teams.

A capability is stored as a (type, name) pair and matched through its
lowercase ``type_name`` key. A team's capability set is the union of its
members' sets; a team with no members has no capabilities.
"""
from typing import Iterable, FrozenSet, Union

from agent_router.config.models import Agent, AgentTeam


class CapabilityKey:
    """Normalized capability key. Equality and hashing use the ``type_name`` string only."""
    __slots__ = ("type", "name")

    def __init__(self, type: str, name: str = ""):
        self.type = (type or "").lower()
        self.name = (name or "").lower()

    @property
    def key(self) -> str:
        return f"{self.type}_{self.name}" if self.name else self.type

    @classmethod
    def parse(cls, raw: str) -> "CapabilityKey":
        """Split a 'type_name' string on its first underscore, e.g. 'web_search' -> ('web', 'search')."""
        type_, _, name = (raw or "").partition("_")
        return cls(type_, name)

    @classmethod
    def of(cls, capability) -> "CapabilityKey":
        return cls(capability.type, capability.name)

    def __eq__(self, other):
        if isinstance(other, CapabilityKey):
            return self.key == other.key
        return NotImplemented

    def __hash__(self):
        return hash(self.key)

    def __str__(self):
        return self.key

    def __repr__(self):
        return f"CapabilityKey({self.key!r})"


def normalize(required: Iterable[str]) -> FrozenSet[CapabilityKey]:
    """
    Normalize a list of required capability strings. Duplicates collapse; a blank
    entry is kept and can never be satisfied.
    """
    return frozenset(CapabilityKey.parse(r) for r in (required or []))


def agent_capabilities(agent: Agent) -> FrozenSet[CapabilityKey]:
    if agent is None:
        return frozenset()
    return frozenset(CapabilityKey.of(cap) for cap in (agent.capabilities or []))


def team_capabilities(team: AgentTeam) -> FrozenSet[CapabilityKey]:
    if team is None:
        return frozenset()
    keys = set()
    for member in team.members or []:
        keys |= agent_capabilities(member.agent)
    return frozenset(keys)


def capabilities_of(entity: Union[Agent, AgentTeam]) -> FrozenSet[CapabilityKey]:
    """Capability key set of an agent, or the union over a team's members."""
    if isinstance(entity, AgentTeam):
        return team_capabilities(entity)
    return agent_capabilities(entity)


def capability_strings(entity: Union[Agent, AgentTeam]) -> FrozenSet[str]:
    return frozenset(k.key for k in capabilities_of(entity))


def satisfies(entity: Union[Agent, AgentTeam], required: Iterable[str]) -> bool:
    """
    True when every required capability (case-insensitive) is in the entity's set.

    An empty requirement is satisfied by anything.
    """
    needed = normalize(required)
    if not needed:
        return True
    return needed <= capabilities_of(entity)
