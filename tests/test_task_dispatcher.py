"""
Tests for task dispatch: candidate ordering, team-lead selection, payload
enrichment and the failure boundary of execute_task.
"""
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from agent_router.config.models import AgentStatus, CandidateKind, ModuleType, RunStatus
from agent_router.config.schema import Candidate, TaskRequest
from agent_router.services.assignment_store import AssignmentService
from agent_router.services.run_engine import RunEngine
from agent_router.services.task_dispatcher import TaskDispatcher, order_candidates

from conftest import WORKSPACE, BlockingExecutor, FailingExecutor, StaticExecutor


def task(**overrides):
    fields = dict(
        task_type="summarize_thread",
        module_type=ModuleType.EMAIL,
        module_id="email-1",
        input={"text": "hello"},
        user_id="user-1",
        workspace_id=WORKSPACE,
        priority="high",
        required_capabilities=["email_access"],
    )
    fields.update(overrides)
    return TaskRequest(**fields)


def agent_candidate(id, priority=0):
    return Candidate(kind=CandidateKind.AGENT, id=id, priority=priority)


def team_candidate(id, priority=0):
    return Candidate(kind=CandidateKind.TEAM, id=id, priority=priority)


def test_order_by_priority_is_stable():
    ordered = order_candidates([agent_candidate("a", 1), agent_candidate("b", 5), agent_candidate("c", 1)])
    assert [c.id for c in ordered] == ["b", "a", "c"]


def test_preferred_agent_moves_to_front():
    ordered = order_candidates(
        [agent_candidate("a", 9), agent_candidate("b", 5), agent_candidate("c", 1)],
        preferred_agent_id="c",
    )
    assert [c.id for c in ordered] == ["c", "a", "b"]


def test_preferred_team_wins_over_preferred_agent():
    ordered = order_candidates(
        [agent_candidate("a", 9), team_candidate("t", 1), agent_candidate("b", 5)],
        preferred_agent_id="b",
        preferred_team_id="t",
    )
    assert [c.id for c in ordered] == ["t", "b", "a"]


def test_preference_must_match_kind():
    ordered = order_candidates([agent_candidate("x", 9), team_candidate("y", 1)], preferred_agent_id="y")
    assert [c.id for c in ordered] == ["x", "y"]


def test_unknown_preference_is_ignored():
    ordered = order_candidates([agent_candidate("a", 1), agent_candidate("b", 2)], preferred_agent_id="zzz")
    assert [c.id for c in ordered] == ["b", "a"]


def test_no_candidates_returns_failure(session, engine_for):
    result = TaskDispatcher(engine_for(StaticExecutor())).execute_task(session, task())

    assert result.success is False
    assert result.agent_id == ""
    assert result.error == "No suitable agents found for this task"
    assert result.output is None
    assert result.completed_at is not None


def test_dispatch_to_agent_without_waiting(session, make_agent, engine_for):
    agent = make_agent("mailer", ["email_access"])
    executor = BlockingExecutor()

    result = TaskDispatcher(engine_for(executor)).execute_task(session, task())

    assert result.success is True
    assert result.agent_id == agent.id
    assert result.team_id is None
    assert result.status == RunStatus.PENDING
    assert result.output == {"runId": result.run_id, "status": "pending"}
    assert RunEngine.get_run(session, result.run_id).status == RunStatus.PENDING
    executor.release.set()


def test_payload_carries_task_context(session, make_agent, engine_for):
    make_agent("mailer", ["email_access"])

    result = TaskDispatcher(engine_for(StaticExecutor())).execute_task(session, task(), wait=True, timeout=5)

    run = RunEngine.get_run(session, result.run_id)
    assert run.input["text"] == "hello"
    assert run.input["taskContext"] == {
        "taskType": "summarize_thread",
        "moduleType": "email",
        "moduleId": "email-1",
        "priority": "high",
    }
    assert "teamContext" not in run.input


def test_waiting_for_completed_run(session, make_agent, engine_for):
    agent = make_agent("mailer", ["email_access"])
    executor = StaticExecutor(output={"summary": "short"}, metrics={"tokens_used": 3})

    result = TaskDispatcher(engine_for(executor)).execute_task(session, task(), wait=True, timeout=5)

    assert result.success is True
    assert result.agent_id == agent.id
    assert result.status == RunStatus.COMPLETED
    assert result.output == {"summary": "short"}
    assert result.error is None
    assert result.metrics["tokens_used"] == 3


def test_waiting_for_failed_run_keeps_agent(session, make_agent, engine_for):
    agent = make_agent("mailer", ["email_access"])

    result = TaskDispatcher(engine_for(FailingExecutor("rate limited"))).execute_task(
        session, task(), wait=True, timeout=5,
    )

    assert result.success is False
    assert result.agent_id == agent.id
    assert result.status == RunStatus.FAILED
    assert result.error == "rate limited"
    assert result.output is None


def test_wait_timeout_reports_failure(session, make_agent, engine_for):
    make_agent("mailer", ["email_access"])
    executor = BlockingExecutor()

    result = TaskDispatcher(engine_for(executor)).execute_task(session, task(), wait=True, timeout=0.05)
    executor.release.set()

    assert result.success is False
    assert result.status == RunStatus.PENDING
    assert result.error == f"Timed out waiting for run {result.run_id}"


def test_preferred_agent_is_dispatched(session, make_agent, engine_for):
    high = make_agent("high", ["email_access"])
    low = make_agent("low", ["email_access"])
    AssignmentService.assign_agent_to_module(session, high.id, None, ModuleType.EMAIL, priority=9)
    AssignmentService.assign_agent_to_module(session, low.id, None, ModuleType.EMAIL, priority=1)
    dispatcher = TaskDispatcher(engine_for(StaticExecutor()))

    assert dispatcher.execute_task(session, task()).agent_id == high.id
    assert dispatcher.execute_task(session, task(preferred_agent_id=low.id)).agent_id == low.id


def test_team_lead_executes_for_team(session, make_agent, make_team, engine_for):
    first = make_agent("first", ["email_access"], status=AgentStatus.DRAFT)
    lead = make_agent("lead", ["web_search"], status=AgentStatus.DRAFT)
    team = make_team("crew", [first, (lead, "lead")])
    AssignmentService.assign_agent_to_module(session, None, team.id, ModuleType.EMAIL)

    result = TaskDispatcher(engine_for(StaticExecutor())).execute_task(session, task(), wait=True, timeout=5)

    assert result.success is True
    assert result.agent_id == lead.id
    assert result.team_id == team.id
    assert result.metrics["teamMembers"] == 2

    run = RunEngine.get_run(session, result.run_id)
    assert run.agent_id == lead.id
    assert run.input["isTeamLead"] is True
    assert run.input["teamContext"] == {
        "teamId": team.id,
        "teamName": "crew",
        "members": [
            {"id": first.id, "name": "first", "role": "member"},
            {"id": lead.id, "name": "lead", "role": "lead"},
        ],
    }


def test_first_member_executes_without_lead(session, make_agent, make_team, engine_for):
    first = make_agent("first", ["email_access"], status=AgentStatus.DRAFT)
    second = make_agent("second", ["email_access"], status=AgentStatus.DRAFT)
    team = make_team("crew", [first, second])

    result = TaskDispatcher(engine_for(StaticExecutor())).execute_task(
        session, task(preferred_team_id=team.id),
    )

    assert result.success is True
    assert result.team_id == team.id
    assert result.agent_id == first.id


def test_preferred_team_beats_preferred_agent(session, make_agent, make_team, engine_for):
    solo = make_agent("solo", ["email_access"])
    member = make_agent("member", ["email_access"])
    team = make_team("crew", [member])

    result = TaskDispatcher(engine_for(StaticExecutor())).execute_task(
        session, task(preferred_agent_id=solo.id, preferred_team_id=team.id),
    )

    assert result.team_id == team.id
    assert result.agent_id == member.id


def test_selected_team_without_members(session, make_team, engine_for):
    team = make_team("hollow")
    candidates = [Candidate(kind=CandidateKind.TEAM, id=team.id, name=team.name)]

    with patch("agent_router.services.task_dispatcher.CandidateResolver.find_suitable_agents",
               return_value=candidates):
        result = TaskDispatcher(engine_for(StaticExecutor())).execute_task(session, task())

    assert result.success is False
    assert result.error == "Team has no members"
    assert result.agent_id == ""


def test_persistence_error_becomes_failed_result(session, make_agent):
    make_agent("mailer", ["email_access"])
    run_engine = MagicMock()
    run_engine.start_run.side_effect = OperationalError("INSERT INTO agent_run", {}, Exception("disk full"))

    result = TaskDispatcher(run_engine).execute_task(session, task())

    assert result.success is False
    assert result.agent_id == ""
    assert "disk full" in result.error
