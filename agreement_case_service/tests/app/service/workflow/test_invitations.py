import datetime
from urllib.parse import parse_qs, urlparse

import pytest

from agreement_case_service.app.models.case_db import WorkflowStatus
from agreement_case_service.app.service.events.models import NotificationTrigger
from agreement_case_service.app.service.exceptions import (
    ConflictError, ForbiddenActionError, InvalidInputError, PreconditionFailedError,
)
from agreement_case_service.app.service.workflow.intents import Audience
from agreement_case_service.app.service.workflow.invitations import (
    accept_invite, create_case, invite_partner, remove_partner,
)

from agreement_case_service.tests.factories import NOW, OWNER_ID, PARTNER_ID


def test_create_case_defaults():
    case = create_case(OWNER_ID, None, NOW)

    assert case.owner == OWNER_ID
    assert case.title == "Untitled case"
    assert case.workflow_status == WorkflowStatus.DRAFT
    assert case.created_at == NOW
    assert len(case.steps) == 7


def test_create_case_requires_owner():
    with pytest.raises(InvalidInputError):
        create_case("", "Title", NOW)


def test_invite_partner_issues_token_and_url(case_factory, owner, mocker):
    mocker.patch("agreement_case_service.app.service.workflow.invitations.settings.APP_SERVER_URL",
                 "https://app.example.com/")
    case = case_factory(invited=False)

    url, intents = invite_partner(case, owner, "  Partner@Example.COM ", NOW)

    assert case.invited_email == "partner@example.com"
    assert len(case.invite_token) == 64
    assert case.invite_token_expires > NOW
    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://app.example.com/auth/accept-invite"
    query = parse_qs(parsed.query)
    assert query["token"] == [case.invite_token]
    assert query["caseId"] == [case.id]
    assert query["email"] == ["partner@example.com"]
    assert len(intents) == 1
    assert intents[0].trigger == NotificationTrigger.CASE_INVITE
    assert intents[0].audience == Audience.EMAIL
    assert intents[0].email == "partner@example.com"


def test_reinvite_replaces_previous_token(case_factory, owner):
    case = case_factory(invited=False)
    invite_partner(case, owner, "first@example.com", NOW)
    first_token = case.invite_token

    invite_partner(case, owner, "second@example.com", NOW)

    assert case.invite_token != first_token
    assert case.invited_email == "second@example.com"


def test_invite_requires_owner_or_privileged(case_factory, partner, outsider, manager):
    case = case_factory(invited=False)
    with pytest.raises(ForbiddenActionError):
        invite_partner(case, outsider, "x@example.com", NOW)
    with pytest.raises(ForbiddenActionError):
        invite_partner(case, partner, "x@example.com", NOW)

    invite_partner(case, manager, "x@example.com", NOW)
    assert case.invite_token


def test_invite_conflicts_when_partner_attached(case_factory, owner):
    with pytest.raises(ConflictError):
        invite_partner(case_factory(invited=True), owner, "x@example.com", NOW)


@pytest.mark.parametrize("email", ["", "not-an-email", None])
def test_invite_rejects_bad_email(case_factory, owner, email):
    with pytest.raises(InvalidInputError):
        invite_partner(case_factory(invited=False), owner, email, NOW)


def test_accept_invite_attaches_partner(case_factory, owner):
    case = case_factory(invited=False)
    invite_partner(case, owner, "partner@example.com", NOW)
    token = case.invite_token

    accept_invite(case, PARTNER_ID, token, NOW + datetime.timedelta(hours=1))

    assert case.invited_user == PARTNER_ID
    assert case.invite_token is None
    assert case.invite_token_expires is None
    assert case.invited_email == "partner@example.com"


def test_accept_invite_with_wrong_token_is_forbidden(case_factory, owner):
    case = case_factory(invited=False)
    invite_partner(case, owner, "partner@example.com", NOW)

    with pytest.raises(ForbiddenActionError):
        accept_invite(case, PARTNER_ID, "0" * 64, NOW)
    assert case.invited_user is None


def test_accept_invite_without_pending_invite_is_forbidden(case_factory):
    with pytest.raises(ForbiddenActionError):
        accept_invite(case_factory(invited=False), PARTNER_ID, "anything", NOW)


def test_expired_invite_is_rejected(case_factory, owner):
    case = case_factory(invited=False)
    invite_partner(case, owner, "partner@example.com", NOW)
    token = case.invite_token

    with pytest.raises(PreconditionFailedError):
        accept_invite(case, PARTNER_ID, token, NOW + datetime.timedelta(days=30))
    assert case.invited_user is None


def test_naive_expiry_from_storage_is_treated_as_utc(case_factory, owner):
    case = case_factory(invited=False)
    invite_partner(case, owner, "partner@example.com", NOW)
    case.invite_token_expires = (NOW + datetime.timedelta(hours=2)).replace(tzinfo=None)

    accept_invite(case, PARTNER_ID, case.invite_token, NOW + datetime.timedelta(hours=1))
    assert case.invited_user == PARTNER_ID


def test_owner_cannot_accept_own_invite(case_factory, owner):
    case = case_factory(invited=False)
    invite_partner(case, owner, "partner@example.com", NOW)

    with pytest.raises(InvalidInputError):
        accept_invite(case, OWNER_ID, case.invite_token, NOW)


def test_remove_partner_resets_partner_state(case_factory, owner, partner):
    case = case_factory(submitted_steps=(1, 2, 3, 4), pre_questionnaires_submitted=True)
    case.approval.user1_approved = True
    case.approval.user2_approved = True

    remove_partner(case, owner, NOW)

    assert case.invited_user is None
    assert case.invited_email is None
    assert case.step(3).data == {} and case.step_status(3).submitted is False
    assert case.step(4).data == {} and case.step_status(4).submitted is False
    assert case.step(1).data == {"filled": 1}
    assert case.pre_questionnaire_user2.submitted is False
    assert case.pre_questionnaire_user1.submitted is True
    assert case.approval.user2_approved is False
    assert case.approval.user1_approved is True


def test_remove_pending_invite(case_factory, owner):
    case = case_factory(invited=False)
    invite_partner(case, owner, "partner@example.com", NOW)

    remove_partner(case, owner, NOW)

    assert case.invite_token is None
    assert case.invited_email is None


def test_remove_partner_validations(case_factory, owner, partner):
    with pytest.raises(ForbiddenActionError):
        remove_partner(case_factory(), partner, NOW)
    with pytest.raises(PreconditionFailedError):
        remove_partner(case_factory(sealed=True), owner, NOW)
    with pytest.raises(InvalidInputError):
        remove_partner(case_factory(invited=False), owner, NOW)
