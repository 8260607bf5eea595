"""
Tests for two-tier candidate resolution: module assignments first, then the
workspace capability scan.
"""
from agent_router.config.models import AgentStatus, CandidateKind, ModuleType
from agent_router.services.assignment_store import AssignmentService
from agent_router.services.candidate_resolver import CandidateResolver

from conftest import WORKSPACE


def resolve(session, required, module_type=ModuleType.EMAIL, workspace_id=WORKSPACE):
    return CandidateResolver.find_suitable_agents(session, module_type, required, workspace_id)


def assign(session, agent=None, team=None, priority=1, module_type=ModuleType.EMAIL):
    return AssignmentService.assign_agent_to_module(
        session,
        agent.id if agent else None,
        team.id if team else None,
        module_type,
        priority=priority,
    )


def test_assignments_sorted_by_priority_descending(session, make_agent):
    five = make_agent("five")
    one = make_agent("one")
    nine = make_agent("nine")
    assign(session, agent=five, priority=5)
    assign(session, agent=one, priority=1)
    assign(session, agent=nine, priority=9)

    candidates = resolve(session, [])

    assert [c.id for c in candidates] == [nine.id, five.id, one.id]
    assert [c.priority for c in candidates] == [9, 5, 1]
    assert all(c.kind == CandidateKind.AGENT for c in candidates)


def test_assignments_for_other_modules_are_ignored(session, make_agent):
    agent = make_agent("contact-agent")
    assign(session, agent=agent, module_type=ModuleType.CONTACT)

    assert resolve(session, [], module_type=ModuleType.EMAIL) == []
    assert [c.id for c in resolve(session, [], module_type=ModuleType.CONTACT)] == [agent.id]


def test_team_without_members_is_never_a_candidate(session, make_agent, make_team):
    agent = make_agent("solo", ["email_access"])
    empty = make_team("empty")
    assign(session, team=empty, priority=10)
    assign(session, agent=agent, priority=1)

    candidates = resolve(session, [])

    assert [c.id for c in candidates] == [agent.id]


def test_no_requirement_and_no_assignment_returns_nothing(session, make_agent):
    make_agent("idle", ["email_access"])

    assert resolve(session, []) == []


def test_fallback_scan_when_no_assignment(session, make_agent, make_team):
    mailer = make_agent("mailer", ["email_access"])
    make_agent("draft", ["email_access"], status=AgentStatus.DRAFT)
    make_agent("searcher", ["web_search"])
    make_agent("elsewhere", ["email_access"], workspace_id="ws-2")
    team = make_team("mail team", [make_agent("member", ["email_access"], status=AgentStatus.DRAFT)])
    make_team("web team", [make_agent("web member", ["web_search"], status=AgentStatus.DRAFT)])

    candidates = resolve(session, ["email_access"])

    assert [(c.kind, c.id) for c in candidates] == [
        (CandidateKind.AGENT, mailer.id),
        (CandidateKind.TEAM, team.id),
    ]
    assert all(c.priority == 0 for c in candidates)


def test_qualifying_assignment_suppresses_fallback(session, make_agent):
    assigned = make_agent("assigned", ["email_access"])
    make_agent("unassigned", ["email_access"])
    assign(session, agent=assigned, priority=3)

    candidates = resolve(session, ["email_access"])

    assert [c.id for c in candidates] == [assigned.id]


def test_unqualified_assignment_falls_back_to_scan(session, make_agent):
    assigned = make_agent("assigned", ["web_search"])
    scanned = make_agent("scanned", ["email_access"])
    assign(session, agent=assigned, priority=3)

    candidates = resolve(session, ["email_access"])

    assert [c.id for c in candidates] == [scanned.id]
    assert candidates[0].priority == 0


def test_team_qualifies_through_member_union(session, make_agent, make_team):
    mail = make_agent("mail", ["email_access"])
    web = make_agent("web", ["web_search"])
    team = make_team("crew", [mail, web])
    assign(session, team=team, priority=2)

    candidates = resolve(session, ["EMAIL_ACCESS", "web_search"])

    assert len(candidates) == 1
    assert candidates[0].kind == CandidateKind.TEAM
    assert candidates[0].id == team.id
    assert candidates[0].name == "crew"


def test_deactivated_assignment_is_ignored(session, make_agent):
    agent = make_agent("retired", ["email_access"], status=AgentStatus.DRAFT)
    assignment = assign(session, agent=agent)
    AssignmentService.remove_agent_from_module(session, assignment.id)

    assert resolve(session, []) == []


def test_assignments_scoped_to_workspace(session, make_agent):
    other = make_agent("other", workspace_id="ws-2")
    assign(session, agent=other)

    assert resolve(session, []) == []
    assert [c.id for c in resolve(session, [], workspace_id="ws-2")] == [other.id]


def test_resolution_is_repeatable(session, make_agent, make_team):
    make_agent("a", ["email_access"])
    make_agent("b", ["email_access"])
    make_team("t", [make_agent("c", ["email_access"])])

    first = resolve(session, ["email_access"])
    second = resolve(session, ["email_access"])

    assert first == second
    assert len(first) == 4


def test_blank_requirement_matches_nothing(session, make_agent, make_team):
    make_agent("idle")
    make_agent("mailer", ["email_access"])
    make_team("crew", [make_agent("member", ["web_search"])])

    assert resolve(session, [""]) == []
    assert resolve(session, ["email_access", ""]) == []
