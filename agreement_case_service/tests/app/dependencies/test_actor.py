import pytest
from fastapi import HTTPException

from agreement_case_service.app.dependencies.actor import get_current_actor
from agreement_case_service.app.service.access import EndUserType, Role


@pytest.mark.asyncio
async def test_actor_from_headers():
    actor = await get_current_actor(x_actor_id="u-1", x_actor_role="Case_Manager", x_end_user_type=None)

    assert actor.id == "u-1"
    assert actor.role == Role.CASE_MANAGER
    assert actor.is_privileged


@pytest.mark.asyncio
async def test_role_defaults_to_end_user():
    actor = await get_current_actor(x_actor_id="u-2", x_actor_role=None, x_end_user_type="user2")

    assert actor.role == Role.END_USER
    assert actor.end_user_type == EndUserType.USER2
    assert not actor.is_privileged


@pytest.mark.asyncio
async def test_missing_actor_id_is_unauthorized():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_actor(x_actor_id=None, x_actor_role=None, x_end_user_type=None)
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("role, user_type", [("wizard", None), ("end_user", "user3")])
async def test_unknown_header_values_are_bad_request(role, user_type):
    with pytest.raises(HTTPException) as exc_info:
        await get_current_actor(x_actor_id="u-3", x_actor_role=role, x_end_user_type=user_type)
    assert exc_info.value.status_code == 400
