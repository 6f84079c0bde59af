import pytest

from agreement_case_service.app.models.case_db import WorkflowStatus
from agreement_case_service.app.service.access import Actor, EndUserType, Role
from agreement_case_service.app.service.events.models import NotificationTrigger
from agreement_case_service.app.service.exceptions import (
    ForbiddenActionError, InvalidInputError, PreconditionFailedError,
)
from agreement_case_service.app.service.workflow.intents import Audience
from agreement_case_service.app.service.workflow.step_updates import case_view, unlock_step, update_step

from agreement_case_service.tests.factories import MANAGER_ID, NOW, OWNER_ID, PARTNER_ID


def test_update_step_writes_data_and_marks_submitted(case_factory, owner):
    case = case_factory()

    intents = update_step(case, 1, {"firstName": "Olivia"}, owner, NOW)

    assert intents == []
    step = case.step(1)
    assert step.data == {"firstName": "Olivia"}
    assert step.status.submitted is True
    assert step.status.submitted_by == OWNER_ID
    assert step.status.submitted_at == NOW
    assert step.status.locked is False


@pytest.mark.parametrize("step_number", [0, 8, 42])
def test_invalid_step_number_is_rejected(case_factory, owner, step_number):
    with pytest.raises(InvalidInputError):
        update_step(case_factory(), step_number, {}, owner, NOW)


def test_outsider_cannot_update_steps(case_factory, outsider):
    with pytest.raises(ForbiddenActionError):
        update_step(case_factory(), 1, {}, outsider, NOW)


@pytest.mark.parametrize("step_number", [3, 4])
def test_owner_cannot_submit_partner_steps(case_factory, owner, step_number):
    with pytest.raises(ForbiddenActionError):
        update_step(case_factory(), step_number, {}, owner, NOW)


@pytest.mark.parametrize("step_number", [1, 2, 5, 6, 7])
def test_partner_cannot_submit_owner_steps(case_factory, partner, step_number):
    with pytest.raises(ForbiddenActionError):
        update_step(case_factory(), step_number, {}, partner, NOW)


def test_declared_user_type_must_match_party(case_factory):
    confused_owner = Actor(id=OWNER_ID, role=Role.END_USER, end_user_type=EndUserType.USER2)
    with pytest.raises(ForbiddenActionError):
        update_step(case_factory(), 1, {}, confused_owner, NOW)


def test_privileged_actor_can_submit_any_step(case_factory, manager):
    case = case_factory()
    update_step(case, 3, {"x": 1}, manager, NOW)
    assert case.step_status(3).submitted_by == MANAGER_ID


def test_cm_stage_edits_are_reserved_for_assigned_manager(case_factory, owner):
    case = case_factory()
    case.workflow_status = WorkflowStatus.CM
    case.assigned_case_manager = MANAGER_ID

    with pytest.raises(ForbiddenActionError, match="case-manager review"):
        update_step(case, 1, {}, owner, NOW)


def test_fully_locked_case_rejects_non_privileged_writes(case_factory, partner):
    case = case_factory(sealed=True)
    with pytest.raises(ForbiddenActionError, match="fully locked"):
        update_step(case, 3, {}, partner, NOW)


def test_fully_locked_case_accepts_privileged_writes(case_factory, manager):
    case = case_factory(sealed=True)
    update_step(case, 2, {"fixed": True}, manager, NOW)

    assert case.step(2).data == {"fixed": True}
    assert case.fully_locked and case.all_steps_locked()


def test_final_step_requires_invited_user(case_factory, owner):
    case = case_factory(invited=False, submitted_steps=(1, 2, 3, 4, 5, 6))

    with pytest.raises(PreconditionFailedError, match="no invited user"):
        update_step(case, 7, {}, owner, NOW)
    assert case.fully_locked is False


def test_final_step_lists_missing_steps_per_party(case_factory, owner):
    case = case_factory(submitted_steps=(1, 5, 3))

    with pytest.raises(PreconditionFailedError) as exc_info:
        update_step(case, 7, {"done": True}, owner, NOW)

    message = str(exc_info.value)
    assert "owner missing steps: 2, 6" in message
    assert "invited user missing steps: 4" in message
    assert exc_info.value.missing_steps == {"user1": [2, 6], "user2": [4]}
    assert case.fully_locked is False
    assert case.step_status(7).submitted is False
    assert case.step(7).data == {}


def test_final_step_seals_case_and_emits_notifications(case_factory, owner):
    case = case_factory(submitted_steps=(1, 2, 3, 4, 5, 6))

    intents = update_step(case, 7, {"done": True}, owner, NOW)

    assert case.fully_locked is True
    assert case.fully_locked_by == OWNER_ID
    assert case.all_steps_locked()
    assert all(s.status.locked_by == OWNER_ID for s in case.steps)
    assert [(i.trigger, i.audience) for i in intents] == [
        (NotificationTrigger.AGREEMENT_DRAFT_READY, Audience.PARTIES),
        (NotificationTrigger.CASE_READY_FOR_CM, Audience.CASE_MANAGERS),
    ]


def test_unlock_step_requires_privilege(case_factory, owner):
    with pytest.raises(ForbiddenActionError):
        unlock_step(case_factory(sealed=True), 1, owner, NOW)


def test_unlock_step_on_sealed_case_releases_full_lock(case_factory, manager):
    case = case_factory(sealed=True)

    unlock_step(case, 4, manager, NOW)

    status = case.step_status(4)
    assert status.locked is False
    assert status.unlocked_by == MANAGER_ID
    assert case.fully_locked is False
    assert case.step_status(1).locked is True


def test_partner_can_edit_after_step_unlock(case_factory, manager, partner):
    case = case_factory(sealed=True)
    unlock_step(case, 3, manager, NOW)

    update_step(case, 3, {"changed": True}, partner, NOW)
    assert case.step(3).data == {"changed": True}


def test_case_view_merges_templates(case_factory):
    case = case_factory()
    case.step(1).data = {"firstName": "Olivia"}

    view = case_view(case)

    step1 = view["steps"][0]["data"]
    assert step1["firstName"] == "Olivia"
    assert step1["lastName"] is None
    assert "earningsEntries" in view["steps"][1]["data"]
    assert view["id"] == case.id
    assert view["owner"] == OWNER_ID
    assert view["invited_user"] == PARTNER_ID
