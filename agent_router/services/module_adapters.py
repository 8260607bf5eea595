"""
Module Adapters: connect CRM modules (email, contacts) to the task dispatcher.

Each adapter loads a domain aggregate, shapes it into a TaskRequest with the
capabilities that task type needs, waits for the run and, only when the run
succeeded with output of the expected shape, writes the result back. A failed
dispatch leaves domain records untouched.
"""
from datetime import datetime
from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from agent_router.config import settings
from agent_router.config.models import CalendarEvent, Contact, Email, FollowUpTask, Lead, ModuleType
from agent_router.config.schema import TaskRequest, TaskResult
from agent_router.services.task_dispatcher import TaskDispatcher

logger = logging.getLogger(__name__)

EMAIL_RESPONSE_CAPABILITIES = ["email_access"]
EMAIL_ANALYSIS_CAPABILITIES = ["email_access"]
LEAD_QUALIFICATION_CAPABILITIES = ["web_search", "database_access"]

QUALIFICATION_HEADER = "--- AI Qualification ---"
TASK_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _output_dict(result: TaskResult) -> Optional[Dict[str, Any]]:
    if result.success and isinstance(result.output, dict):
        return result.output
    return None


class ModuleAdapterService:
    """Module-specific integrations built on the task dispatcher."""

    def __init__(self, dispatcher: TaskDispatcher, wait_timeout: float = None):
        self.dispatcher = dispatcher
        self.wait_timeout = settings.ADAPTER_WAIT_TIMEOUT if wait_timeout is None else wait_timeout

    def _execute(self, session: Session, request: TaskRequest) -> TaskResult:
        return self.dispatcher.execute_task(session, request, wait=True, timeout=self.wait_timeout)

    @staticmethod
    def _get_email(session: Session, email_id: str) -> Email:
        email = session.get(Email, email_id)
        if email is None:
            raise ValueError("Email not found")
        return email

    def generate_email_response(self, session: Session, email_id: str, user_id: str, workspace_id: str,
                                preferred_agent_id: Optional[str] = None) -> TaskResult:
        """
        Draft a reply to an email with an agent holding email access.

        A successful run whose output carries a ``response`` string is saved as
        a draft reply in the email's thread.

        Raises:
            ValueError: If the email does not exist
        """
        email = self._get_email(session, email_id)
        history = email.thread.emails if email.thread else []

        request = TaskRequest(
            task_type="generate_email_response",
            module_type=ModuleType.EMAIL,
            module_id=email_id,
            input={
                "emailSubject": email.subject,
                "emailBody": email.body,
                "threadHistory": [
                    {
                        "from": e.from_email,
                        "to": list(e.to_emails or []),
                        "subject": e.subject,
                        "body": e.body,
                        "sentAt": _iso(e.sent_at),
                    }
                    for e in history
                ],
            },
            user_id=user_id,
            workspace_id=workspace_id,
            required_capabilities=EMAIL_RESPONSE_CAPABILITIES,
            preferred_agent_id=preferred_agent_id,
        )
        result = self._execute(session, request)

        output = _output_dict(result)
        if output and isinstance(output.get("response"), str):
            subject = email.subject or ""
            draft = Email(
                workspace_id=email.workspace_id,
                user_id=user_id,
                thread_id=email.thread_id,
                from_email=(email.to_emails or [None])[0],
                to_emails=[email.from_email] if email.from_email else [],
                subject=subject if subject.lower().startswith("re:") else f"Re: {subject}",
                body=output["response"],
                is_draft=True,
                generated_by_agent_id=result.agent_id,
            )
            session.add(draft)
            self._commit(session, "Error saving generated email response")
            logger.info(f"Saved draft reply {draft.id} for email {email_id}")

        return result

    def qualify_lead(self, session: Session, contact_id: str, user_id: str, workspace_id: str,
                     additional_info: Any = None) -> TaskResult:
        """
        Qualify a contact with an agent that can search the web and query the database.

        A ``qualification`` in the output is appended to the contact's notes.

        Raises:
            ValueError: If the contact does not exist
        """
        contact = session.get(Contact, contact_id)
        if contact is None:
            raise ValueError("Contact not found")

        request = TaskRequest(
            task_type="qualify_lead",
            module_type=ModuleType.CONTACT,
            module_id=contact_id,
            input={
                "contact": {
                    "name": f"{contact.first_name or ''} {contact.last_name or ''}".strip(),
                    "email": contact.email,
                    "company": contact.company,
                    "title": contact.title,
                    "industry": contact.industry,
                    "phone": contact.phone,
                    "notes": contact.notes,
                },
                "additionalInfo": additional_info,
            },
            user_id=user_id,
            workspace_id=workspace_id,
            required_capabilities=LEAD_QUALIFICATION_CAPABILITIES,
        )
        result = self._execute(session, request)

        output = _output_dict(result)
        if output and output.get("qualification"):
            block = f"{QUALIFICATION_HEADER}\n{output['qualification']}"
            contact.notes = f"{contact.notes}\n\n{block}" if contact.notes else block
            self._commit(session, "Error saving lead qualification")
            logger.info(f"Appended qualification to contact {contact_id}")

        return result

    def analyze_email(self, session: Session, email_id: str, user_id: str, workspace_id: str) -> TaskResult:
        """
        Analyze an email and record the lead, follow-up tasks and events the agent found.

        Raises:
            ValueError: If the email does not exist
        """
        email = self._get_email(session, email_id)

        request = TaskRequest(
            task_type="analyze_email",
            module_type=ModuleType.EMAIL,
            module_id=email_id,
            input={
                "emailSubject": email.subject,
                "emailBody": email.body,
                "from": email.from_email,
                "to": list(email.to_emails or []),
                "sentAt": _iso(email.sent_at),
            },
            user_id=user_id,
            workspace_id=workspace_id,
            required_capabilities=EMAIL_ANALYSIS_CAPABILITIES,
        )
        result = self._execute(session, request)

        output = _output_dict(result)
        if not output:
            return result

        created = 0
        lead = output.get("lead")
        if isinstance(lead, dict) and lead.get("detected"):
            session.add(Lead(
                workspace_id=email.workspace_id,
                source_email_id=email.id,
                name=lead.get("name") or "Unknown",
                company=lead.get("company"),
                email=lead.get("email") or "unknown@example.com",
                phone=lead.get("phone"),
                position=lead.get("position"),
                value=lead.get("value"),
                confidence=lead.get("confidence"),
                notes=lead.get("notes"),
            ))
            created += 1

        for task in output.get("tasks") or []:
            if not isinstance(task, dict) or not task.get("title"):
                continue
            priority = str(task.get("priority") or "MEDIUM").upper()
            session.add(FollowUpTask(
                workspace_id=email.workspace_id,
                source_email_id=email.id,
                title=task["title"],
                description=task.get("description"),
                due_date=_parse_datetime(task.get("dueDate")),
                priority=priority if priority in TASK_PRIORITIES else "MEDIUM",
                assigned_to=task.get("assignTo") or email.user_id,
            ))
            created += 1

        for event in output.get("events") or []:
            if not isinstance(event, dict) or not event.get("title"):
                continue
            start_time = _parse_datetime(event.get("startTime"))
            if start_time is None:
                logger.warning(f"Skipping event '{event['title']}' from email {email_id}: no valid startTime")
                continue
            session.add(CalendarEvent(
                workspace_id=email.workspace_id,
                source_email_id=email.id,
                title=event["title"],
                description=event.get("description"),
                start_time=start_time,
                end_time=_parse_datetime(event.get("endTime")),
                all_day=bool(event.get("allDay", False)),
                location=event.get("location"),
                meeting_link=event.get("meetingLink"),
                attendees=list(event.get("attendees") or []),
            ))
            created += 1

        if created:
            self._commit(session, "Error saving email analysis results")
            logger.info(f"Recorded {created} items from analysis of email {email_id}")

        return result

    @staticmethod
    def _commit(session: Session, message: str) -> None:
        try:
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"{message}: {e}")
            raise
