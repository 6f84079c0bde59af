# Case creation, partner invitations and partner removal
import datetime
import logging
import secrets
from typing import List, Optional, Tuple
from urllib.parse import urlencode

from agreement_case_service.app.config import settings
from agreement_case_service.app.models.case_db import CaseDB, CaseStep, Party, PreQuestionnaire, REQUIRED_STEPS
from agreement_case_service.app.service.access import Actor
from agreement_case_service.app.service.events.models import NotificationTrigger
from agreement_case_service.app.service.exceptions import (
    ConflictError, ForbiddenActionError, InvalidInputError, PreconditionFailedError,
)
from agreement_case_service.app.service.workflow.intents import NotificationIntent, to_email

logger = logging.getLogger(__name__)


def create_case(owner_id: str, title: Optional[str], now: datetime.datetime) -> CaseDB:
    if not owner_id:
        raise InvalidInputError("A case needs an owner.")
    return CaseDB(owner=owner_id, title=title or "Untitled case", created_at=now, updated_at=now)


def _require_owner_or_privileged(case: CaseDB, actor: Actor, action: str) -> None:
    if actor.is_privileged or case.owner == actor.id:
        return
    raise ForbiddenActionError(case.id, f"Only the case owner can {action}.")


def build_invite_url(token: str, case_id: str, email: str) -> str:
    query = urlencode({"token": token, "caseId": case_id, "email": email})
    return f"{settings.APP_SERVER_URL.rstrip('/')}/auth/accept-invite?{query}"


def invite_partner(
    case: CaseDB,
    actor: Actor,
    email: str,
    now: datetime.datetime,
) -> Tuple[str, List[NotificationIntent]]:
    _require_owner_or_privileged(case, actor, "invite a partner")
    if case.invited_user:
        raise ConflictError(f"Case '{case.id}' already has a partner attached.")
    normalised = (email or "").strip().lower()
    if "@" not in normalised:
        raise InvalidInputError(f"'{email}' is not a valid email address.")

    token = secrets.token_hex(32)
    case.invited_email = normalised
    case.invite_token = token
    case.invite_token_expires = now + datetime.timedelta(hours=settings.INVITE_TOKEN_EXPIRY_HOURS)

    invite_url = build_invite_url(token, case.id, normalised)
    logger.info(f"Invite issued for case {case.id} to {normalised}, expires {case.invite_token_expires.isoformat()}.")
    return invite_url, [to_email(NotificationTrigger.CASE_INVITE, normalised, invite_url=invite_url)]


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    # Mongo hands back naive datetimes unless the client is tz-aware.
    return value if value.tzinfo else value.replace(tzinfo=datetime.UTC)


def accept_invite(case: CaseDB, user_id: str, token: str, now: datetime.datetime) -> List[NotificationIntent]:
    if case.owner == user_id:
        raise InvalidInputError("The case owner cannot accept their own invite.")
    if not case.invite_token or not token or not secrets.compare_digest(case.invite_token, token):
        raise ForbiddenActionError(case.id, "Invite token is invalid for this case.")
    if case.invite_token_expires and _as_utc(case.invite_token_expires) < _as_utc(now):
        raise PreconditionFailedError(case.id, "Invite token has expired; ask the case owner for a new invite.")

    case.invited_user = user_id
    case.invite_token = None
    case.invite_token_expires = None
    logger.info(f"User {user_id} joined case {case.id} as invited partner.")
    return []


def remove_partner(case: CaseDB, actor: Actor, now: datetime.datetime) -> List[NotificationIntent]:
    _require_owner_or_privileged(case, actor, "remove the partner")
    if case.fully_locked:
        raise PreconditionFailedError(case.id, "Partner cannot be removed while the case is fully locked.")
    if not (case.invited_user or case.invited_email):
        raise InvalidInputError(f"Case '{case.id}' has no partner or pending invite to remove.")

    for number in REQUIRED_STEPS[Party.USER2]:
        case.steps[number - 1] = CaseStep(number=number)
    case.pre_questionnaire_user2 = PreQuestionnaire()
    case.approval.user2_approved = False
    case.approval.user2_approved_at = None

    removed = case.invited_user or case.invited_email
    case.invited_user = None
    case.invited_email = None
    case.invite_token = None
    case.invite_token_expires = None
    logger.info(f"Partner {removed} removed from case {case.id} by {actor.id} at {now.isoformat()}.")
    return []
