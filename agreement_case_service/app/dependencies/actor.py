from typing import Optional

from fastapi import Header, HTTPException

from agreement_case_service.app.service.access import Actor, EndUserType, Role


async def get_current_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_role: Optional[str] = Header(default=None),
    x_end_user_type: Optional[str] = Header(default=None),
) -> Actor:
    """
    FastAPI dependency resolving the caller from the headers set by the upstream gateway.
    Authentication itself happens before requests reach this service.
    """
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id header.")
    try:
        role = Role(x_actor_role.lower()) if x_actor_role else Role.END_USER
        end_user_type = EndUserType(x_end_user_type.lower()) if x_end_user_type else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid actor header: {e}")
    return Actor(id=x_actor_id, role=role, end_user_type=end_user_type)
