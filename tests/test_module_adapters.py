"""
Tests for the email and contact adapters built on the dispatcher.
"""
from datetime import datetime

import pytest

from agent_router.config.models import CalendarEvent, Contact, Email, EmailThread, FollowUpTask, Lead, ModuleType
from agent_router.services.module_adapters import ModuleAdapterService
from agent_router.services.run_engine import RunEngine
from agent_router.services.task_dispatcher import TaskDispatcher

from conftest import WORKSPACE, FailingExecutor, StaticExecutor


def adapters_for(engine_for, executor):
    return ModuleAdapterService(TaskDispatcher(engine_for(executor)), wait_timeout=5)


@pytest.fixture
def inbound_email(session):
    thread = EmailThread(workspace_id=WORKSPACE, subject="Pricing")
    email = Email(
        workspace_id=WORKSPACE,
        user_id="user-1",
        thread=thread,
        from_email="jane@acme.com",
        to_emails=["sales@example.com"],
        subject="Pricing",
        body="Could you send a quote and set up a demo next week?",
        sent_at=datetime(2026, 10, 1, 9, 30),
    )
    session.add(email)
    session.commit()
    return email


@pytest.fixture
def contact(session):
    contact = Contact(
        workspace_id=WORKSPACE,
        first_name="Jane",
        last_name="Doe",
        email="jane@acme.com",
        company="Acme",
        notes="Met at conference",
    )
    session.add(contact)
    session.commit()
    return contact


def drafts(session):
    return session.query(Email).filter(Email.is_draft == True).all()


def test_email_response_saves_draft_reply(session, make_agent, engine_for, inbound_email):
    agent = make_agent("mailer", ["email_access"])
    executor = StaticExecutor(output={"response": "Quote attached."})

    result = adapters_for(engine_for, executor).generate_email_response(
        session, inbound_email.id, "user-1", WORKSPACE,
    )

    assert result.success is True
    [draft] = drafts(session)
    assert draft.subject == "Re: Pricing"
    assert draft.body == "Quote attached."
    assert draft.thread_id == inbound_email.thread_id
    assert draft.to_emails == ["jane@acme.com"]
    assert draft.from_email == "sales@example.com"
    assert draft.generated_by_agent_id == agent.id

    _, payload = executor.calls[0]
    assert payload["emailSubject"] == "Pricing"
    assert payload["threadHistory"][0]["from"] == "jane@acme.com"
    assert payload["taskContext"]["taskType"] == "generate_email_response"
    assert payload["taskContext"]["moduleType"] == ModuleType.EMAIL.value


def test_email_response_uses_preferred_agent(session, make_agent, engine_for, inbound_email):
    make_agent("first", ["email_access"])
    preferred = make_agent("preferred", ["email_access"])

    result = adapters_for(engine_for, StaticExecutor(output={"response": "Hi"})).generate_email_response(
        session, inbound_email.id, "user-1", WORKSPACE, preferred_agent_id=preferred.id,
    )

    assert result.agent_id == preferred.id


def test_failed_dispatch_leaves_email_untouched(session, make_agent, engine_for, inbound_email):
    make_agent("mailer", ["email_access"])

    result = adapters_for(engine_for, FailingExecutor("boom")).generate_email_response(
        session, inbound_email.id, "user-1", WORKSPACE,
    )

    assert result.success is False
    assert result.error == "boom"
    assert drafts(session) == []


def test_output_without_response_is_not_saved(session, make_agent, engine_for, inbound_email):
    make_agent("mailer", ["email_access"])

    result = adapters_for(engine_for, StaticExecutor(output={"result": "done"})).generate_email_response(
        session, inbound_email.id, "user-1", WORKSPACE,
    )

    assert result.success is True
    assert drafts(session) == []


def test_no_agent_for_email(session, engine_for, inbound_email):
    result = adapters_for(engine_for, StaticExecutor()).generate_email_response(
        session, inbound_email.id, "user-1", WORKSPACE,
    )

    assert result.success is False
    assert result.error == "No suitable agents found for this task"


def test_missing_email(session, engine_for):
    with pytest.raises(ValueError, match="Email not found"):
        adapters_for(engine_for, StaticExecutor()).generate_email_response(session, "nope", "user-1", WORKSPACE)


def test_qualify_lead_appends_notes(session, make_agent, engine_for, contact):
    make_agent("researcher", ["web_search", "database_access"])
    executor = StaticExecutor(output={"qualification": "Strong fit, budget confirmed."})

    result = adapters_for(engine_for, executor).qualify_lead(
        session, contact.id, "user-1", WORKSPACE, {"source": "conference"},
    )

    assert result.success is True
    session.refresh(contact)
    assert contact.notes == "Met at conference\n\n--- AI Qualification ---\nStrong fit, budget confirmed."

    _, payload = executor.calls[0]
    assert payload["contact"]["name"] == "Jane Doe"
    assert payload["additionalInfo"] == {"source": "conference"}


def test_qualify_lead_requires_both_capabilities(session, make_agent, engine_for, contact):
    make_agent("searcher", ["web_search"])

    result = adapters_for(engine_for, StaticExecutor(output={"qualification": "x"})).qualify_lead(
        session, contact.id, "user-1", WORKSPACE,
    )

    assert result.success is False
    session.refresh(contact)
    assert contact.notes == "Met at conference"


def test_missing_contact(session, engine_for):
    with pytest.raises(ValueError, match="Contact not found"):
        adapters_for(engine_for, StaticExecutor()).qualify_lead(session, "nope", "user-1", WORKSPACE)


def test_analyze_email_records_findings(session, make_agent, engine_for, inbound_email):
    make_agent("analyst", ["email_access"])
    executor = StaticExecutor(output={
        "lead": {"detected": True, "name": "Jane Doe", "email": "jane@acme.com", "company": "Acme", "value": 5000},
        "tasks": [
            {"title": "Send quote", "priority": "high", "dueDate": "2026-10-05T12:00:00Z"},
            {"title": "Check references", "priority": "whenever"},
            {"description": "no title"},
        ],
        "events": [
            {"title": "Demo", "startTime": "2026-10-08T15:00:00Z", "meetingLink": "https://meet.example.com/x"},
            {"title": "Someday"},
        ],
    })

    result = adapters_for(engine_for, executor).analyze_email(session, inbound_email.id, "user-1", WORKSPACE)

    assert result.success is True
    [lead] = session.query(Lead).all()
    assert (lead.name, lead.company, lead.value) == ("Jane Doe", "Acme", 5000)
    assert lead.source_email_id == inbound_email.id

    tasks = {t.title: t for t in session.query(FollowUpTask).all()}
    assert set(tasks) == {"Send quote", "Check references"}
    assert tasks["Send quote"].priority == "HIGH"
    assert tasks["Send quote"].due_date is not None
    assert tasks["Check references"].priority == "MEDIUM"
    assert tasks["Check references"].assigned_to == "user-1"

    [event] = session.query(CalendarEvent).all()
    assert event.title == "Demo"
    assert event.meeting_link == "https://meet.example.com/x"


def test_analyze_email_without_findings(session, make_agent, engine_for, inbound_email):
    make_agent("analyst", ["email_access"])

    result = adapters_for(engine_for, StaticExecutor(output={"lead": {"detected": False}})).analyze_email(
        session, inbound_email.id, "user-1", WORKSPACE,
    )

    assert result.success is True
    assert session.query(Lead).count() == 0
    assert session.query(FollowUpTask).count() == 0
    assert session.query(CalendarEvent).count() == 0
