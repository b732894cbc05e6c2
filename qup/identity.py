"""Identity lookup.

Authentication happens elsewhere; what reaches the queue service is a bearer
token. An `IdentityProvider` turns that token into a typed actor, or None if
the token is unknown. Nothing in a request body is trusted for role or
business membership.
"""

from __future__ import annotations

from typing import Any, Protocol

from .models import CUSTOMER, EMPLOYEE, MANAGER, Actor, CustomerActor, EmployeeActor, ManagerActor


class IdentityProvider(Protocol):
    def resolve(self, token: str) -> Actor | None: ...


def actor_from_record(principal_id: str, record: dict[str, Any]) -> Actor:
    """Build an actor from a `{"userType": ..., "businessName": ...}` record."""
    user_type = record.get("userType")
    if user_type == CUSTOMER:
        return CustomerActor(id=principal_id)
    business_name = record.get("businessName")
    if not business_name:
        raise ValueError(f"{user_type} {principal_id!r} has no businessName")
    if user_type == EMPLOYEE:
        return EmployeeActor(id=principal_id, business_name=str(business_name))
    if user_type == MANAGER:
        return ManagerActor(id=principal_id, business_name=str(business_name))
    raise ValueError(f"unknown userType {user_type!r} for {principal_id!r}")


class StaticIdentityProvider:
    """Token table loaded at startup (seed file `tokens` section)."""

    def __init__(self, actors: dict[str, Actor] | None = None) -> None:
        self._actors: dict[str, Actor] = dict(actors or {})

    def register(self, token: str, actor: Actor) -> None:
        self._actors[token] = actor

    def resolve(self, token: str) -> Actor | None:
        if not token:
            return None
        return self._actors.get(token)
