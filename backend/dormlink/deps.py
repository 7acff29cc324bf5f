"""Request dependencies — the authenticated actor.

Authentication happens upstream; the proxy forwards the verified identity
in headers. Services receive the actor explicitly and never look it up.
"""
from fastapi import Header, HTTPException, status

from dormlink.schemas.actor import Actor, Role


def get_actor(
    x_actor_id: str = Header(..., max_length=120, description="Authenticated user id"),
    x_actor_name: str = Header("", max_length=100, description="Display name"),
    x_actor_role: str = Header(..., description="student, faculty or gate"),
) -> Actor:
    try:
        role = Role(x_actor_role)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Unknown role: {x_actor_role}")
    if role == Role.guardian:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Guardians act through approval links")
    return Actor(id=x_actor_id, display_name=x_actor_name or x_actor_id, role=role)
