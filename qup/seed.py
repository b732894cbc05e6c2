from __future__ import annotations

# Seed data.
#
# The service keeps its documents in memory, so a deployment starts from a
# JSON file:
#
#   {
#     "businesses": [{"name": "Cafe", "averageWaitTime": 5, "timezone": "...",
#                     "hours": {"startTime": [...7], "endTime": [...7]}}],
#     "users": {"alice@example.com": {"userType": "customer"},
#               "bob@example.com": {"userType": "employee", "businessName": "Cafe", "isOnline": true}},
#     "tokens": {"token-alice": "alice@example.com"}
#   }

import json
from pathlib import Path
from typing import Any

from .identity import StaticIdentityProvider, actor_from_record
from .models import CUSTOMER, Business, Customer, StaffMember
from .store import BUSINESSES, USERS, QueueStateStore


def apply_seed(data: dict[str, Any], state: QueueStateStore) -> StaticIdentityProvider:
    """Write seed documents into the store and build the token table."""
    for raw in data.get("businesses", []):
        business = Business.from_doc(raw)
        state.store.put(BUSINESSES, business.name, business.to_doc())

    users: dict[str, dict[str, Any]] = data.get("users", {})
    for user_id, raw in users.items():
        if raw.get("userType") == CUSTOMER:
            doc = Customer.from_doc(user_id, raw).to_doc()
        else:
            doc = StaffMember.from_doc(user_id, raw).to_doc()
        state.store.put(USERS, user_id, doc)

    identity = StaticIdentityProvider()
    for token, user_id in data.get("tokens", {}).items():
        if user_id not in users:
            raise ValueError(f"token {token!r} refers to unknown user {user_id!r}")
        identity.register(token, actor_from_record(user_id, users[user_id]))
    return identity


def load_seed(path: str | Path, state: QueueStateStore) -> StaticIdentityProvider:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: seed file must contain a JSON object")
    return apply_seed(data, state)
