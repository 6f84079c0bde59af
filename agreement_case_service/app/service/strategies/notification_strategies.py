import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase

from agreement_case_service.app.config import settings
from agreement_case_service.app.models.case_db import CaseDB
from agreement_case_service.app.service.access import Role
from agreement_case_service.app.service.events import models as domain_event_models
from agreement_case_service.app.service.events.models import NotificationTrigger
from agreement_case_service.app.service.workflow.intents import Audience, NotificationIntent
from agreement_case_service.infrastructure.database import directory_store

logger = logging.getLogger(__name__)


class _BlankDefault(dict):
    def __missing__(self, key):
        return ""


# (subject, text) per trigger; placeholders come from the intent context plus case fields
MESSAGE_TEMPLATES: Dict[NotificationTrigger, Tuple[str, str]] = {
    NotificationTrigger.AGREEMENT_DRAFT_READY: (
        "Agreement submitted: Case {case_id}",
        "The agreement for case {case_id} has been submitted and the case is now locked.\n\n"
        "Your draft agreement is being prepared. View the case: {case_link}\n\n"
        "If you have questions, contact support.",
    ),
    NotificationTrigger.CASE_READY_FOR_CM: (
        "Agreement submitted: case {case_id}",
        "Case {case_id} has been submitted and fully locked and is ready for case-manager review. View: {case_link}",
    ),
    NotificationTrigger.PRE_QUESTIONNAIRE_SUBMITTED: (
        "Pre-questionnaire received: Case {case_id}",
        "Thank you, your pre-lawyer questionnaire for case {case_id} has been received.\n"
        "Once your partner has submitted theirs you can select a lawyer.",
    ),
    NotificationTrigger.PRE_QUESTIONNAIRES_COMPLETED: (
        "Agreement status: First step completed",
        "Both parties have submitted their pre-lawyer questionnaires for case {case_id}.\n"
        "The case is waiting in the case-manager queue. View: {case_link}",
    ),
    NotificationTrigger.LAWYER_SELECTED: (
        "Lawyer selected: Case {case_id}",
        "{lawyer_name} has been selected as a lawyer on case {case_id}.\n"
        "Each of you must be advised by a different lawyer. View the case: {case_link}",
    ),
    NotificationTrigger.LAWYER_INTRODUCTION: (
        "Your lawyer: {lawyer_name}",
        "Hello,\n\nYou selected {lawyer_name} for case {case_id}.\n"
        "Email: {lawyer_email}\nPhone: {lawyer_phone}\n\n"
        "They have been sent your introduction and will be in touch.",
    ),
    NotificationTrigger.CLIENT_INTRODUCTION: (
        "New client introduction: Case {case_id}",
        "Hello,\n\n{client_name} ({client_email}) has selected you as their lawyer for case {case_id}.\n\n"
        "Message from the client:\n{client_message}",
    ),
    NotificationTrigger.PROCEED_TO_LAWYER: (
        "First phase completed: Case {case_id}",
        "Hello,\n\nThe first phase of questionnaires has been submitted by both you and your partner for case {case_id}.\n"
        "You have now moved to the pre-lawyer questionnaires and may proceed to select a lawyer.\n"
        "If you have questions, contact support.",
    ),
    NotificationTrigger.CASE_MANAGER_ASSIGNED: (
        "Your case manager: Case {case_id}",
        "Hello,\n\n{manager_name} is now the case manager for case {case_id}.\n"
        "Email: {manager_email}\nPhone: {manager_phone}",
    ),
    NotificationTrigger.CASE_MOVED_TO_CM: (
        "Case moved to case-manager review: case {case_id}",
        "Case {case_id} has been moved to case-manager review. View: {case_link}",
    ),
    NotificationTrigger.CASE_INVITE: (
        "You are invited",
        "You have been invited to complete an agreement together. Accept: {invite_url}",
    ),
}


def compose_message(trigger: NotificationTrigger, case: CaseDB, context: Dict[str, Any]) -> Tuple[str, str]:
    subject_template, text_template = MESSAGE_TEMPLATES[NotificationTrigger(trigger)]
    values = _BlankDefault({k: v for k, v in context.items() if v is not None})
    values["case_id"] = case.id
    values["case_title"] = case.title
    values["case_link"] = f"{settings.APP_SERVER_URL.rstrip('/')}/cases/{case.id}"
    subject = subject_template.format_map(values)
    text = text_template.format_map(values) + f"\n\nRegards,\n{settings.NOTIFICATION_BRAND_NAME} Team\n"
    return subject, text


class NotificationStrategy(ABC):
    @abstractmethod
    async def resolve_recipients(
        self,
        intent: NotificationIntent,
        case: CaseDB,
        db: AsyncIOMotorDatabase
    ) -> List[str]:
        """Return the email addresses the intent should reach."""
        pass

    async def enrich_context(self, intent: NotificationIntent, case: CaseDB, db: AsyncIOMotorDatabase) -> Dict[str, Any]:
        return dict(intent.context)

    async def prepare_notification(
        self,
        intent: NotificationIntent,
        case: CaseDB,
        db: AsyncIOMotorDatabase
    ) -> Optional[domain_event_models.NotificationRequiredEventPayload]:
        """
        Turns a workflow intent into the payload of a NotificationRequiredEvent.

        Returns None when no recipient could be resolved; that is logged and not an error.
        """
        recipients = list(dict.fromkeys(r.strip() for r in await self.resolve_recipients(intent, case, db) if r and r.strip()))
        if not recipients:
            logger.warning(f"No recipients resolved for {intent.trigger} on case {case.id}; notification skipped.")
            return None

        context = await self.enrich_context(intent, case, db)
        subject, text = compose_message(intent.trigger, case, context)
        return domain_event_models.NotificationRequiredEventPayload(
            trigger=intent.trigger,
            recipients=recipients,
            subject=subject,
            text=text,
            context_data={**context, "case_id": case.id},
        )


class PartiesNotificationStrategy(NotificationStrategy):
    async def resolve_recipients(self, intent, case, db) -> List[str]:
        users = await directory_store.get_users_by_ids(db, [case.owner, case.invited_user])
        emails = [u.email for u in users]
        if not case.invited_user and case.invited_email:
            emails.append(case.invited_email)
        return emails


class UsersNotificationStrategy(NotificationStrategy):
    async def resolve_recipients(self, intent, case, db) -> List[str]:
        users = await directory_store.get_users_by_ids(db, intent.user_ids)
        return [u.email for u in users]


class CaseManagerPoolNotificationStrategy(NotificationStrategy):
    async def resolve_recipients(self, intent, case, db) -> List[str]:
        managers = await directory_store.list_users_by_role(db, Role.CASE_MANAGER)
        emails = [m.email for m in managers]
        if not emails:
            emails = settings.case_manager_fallback_emails()
            logger.debug(f"No case_manager users in directory; using {len(emails)} configured fallback address(es).")
        return emails


class LawyerNotificationStrategy(NotificationStrategy):
    async def resolve_recipients(self, intent, case, db) -> List[str]:
        lawyer = await directory_store.get_lawyer_by_id(db, intent.lawyer_id)
        return [lawyer.contact_email] if lawyer and lawyer.contact_email else []

    async def enrich_context(self, intent, case, db) -> Dict[str, Any]:
        context = dict(intent.context)
        client = await directory_store.get_user_by_id(db, context.get("client_id"))
        if client:
            context.setdefault("client_name", client.display_name)
            context.setdefault("client_email", client.email)
        if not context.get("client_message"):
            context["client_message"] = "(no message provided)"
        return context


class DirectEmailNotificationStrategy(NotificationStrategy):
    async def resolve_recipients(self, intent, case, db) -> List[str]:
        return [intent.email] if intent.email else []


_STRATEGIES: Dict[Audience, NotificationStrategy] = {
    Audience.PARTIES: PartiesNotificationStrategy(),
    Audience.USERS: UsersNotificationStrategy(),
    Audience.CASE_MANAGERS: CaseManagerPoolNotificationStrategy(),
    Audience.LAWYER: LawyerNotificationStrategy(),
    Audience.EMAIL: DirectEmailNotificationStrategy(),
}

def get_notification_strategy(intent: NotificationIntent) -> NotificationStrategy:
    return _STRATEGIES[Audience(intent.audience)]
