# erlink/utils/auth.py
from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Header, HTTPException

from erlink.exceptions import Forbidden

ROLES = {"paramedic", "hospital", "admin"}


@dataclass(frozen=True)
class Actor:
    """Authenticated identity handed over by the external auth layer."""

    id: str
    role: str


def actor_from_headers(actor_id: Optional[str], actor_role: Optional[str]) -> Optional[Actor]:
    """None when the identity headers are missing or name an unknown role."""
    if not actor_id or not actor_id.strip() or not actor_role:
        return None
    role = actor_role.strip().lower()
    if role not in ROLES:
        return None
    return Actor(id=actor_id.strip(), role=role)


def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    actor = actor_from_headers(x_actor_id, x_actor_role)
    if actor is None:
        raise HTTPException(status_code=401, detail="Missing or invalid actor identity")
    return actor


def require_role(actor: Actor, *roles: str):
    if actor.role not in roles:
        raise Forbidden(f"{actor.role} actors cannot perform this operation")


def is_hospital_owner(actor: Actor, hospital_id: str) -> bool:
    return actor.role == "hospital" and actor.id == hospital_id


def require_hospital_owner(actor: Actor, hospital_id: str):
    """Hospital staff may only mutate their own hospital."""
    if not is_hospital_owner(actor, hospital_id):
        raise Forbidden(f"{actor.id} cannot act on behalf of hospital {hospital_id}")


def require_case_reader(actor: Actor, case):
    """Patient data is visible to the submitting paramedic, the assigned hospital and admins."""
    if actor.role == "admin":
        return
    if actor.role == "paramedic" and actor.id == case.paramedic_id:
        return
    if is_hospital_owner(actor, case.assigned_hospital_id):
        return
    raise Forbidden(f"{actor.id} cannot read case {case.id}")


def scope_case_filters(
    actor: Actor, hospital_id: Optional[str], paramedic_id: Optional[str]
) -> Tuple[Optional[str], Optional[str]]:
    """Narrow patient log filters to the cases the actor may read."""
    if actor.role == "paramedic":
        if paramedic_id and paramedic_id != actor.id:
            raise Forbidden(f"{actor.id} cannot read cases of paramedic {paramedic_id}")
        return hospital_id, actor.id
    if actor.role == "hospital":
        if hospital_id and hospital_id != actor.id:
            raise Forbidden(f"{actor.id} cannot read cases of hospital {hospital_id}")
        return actor.id, paramedic_id
    return hospital_id, paramedic_id
