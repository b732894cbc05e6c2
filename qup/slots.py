from __future__ import annotations

# Queue slot construction.
#
# A slot's password is the short code the customer reads out to staff when
# called. VIPs have no account, so they get a synthetic customer id instead.

import secrets
import string

from .models import QueueSlot

PASSWORD_LENGTH = 8
_PASSWORD_ALPHABET = string.ascii_uppercase + string.digits


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def create_queue_slot(customer_id: str, ticket_number: int) -> QueueSlot:
    """Build a regular slot.

    Args:
        customer_id: account id of the customer taking the slot.
        ticket_number: the queue's next regular ticket (0 for a new session).
    """
    if ticket_number < 0:
        raise ValueError("ticket_number must be >= 0")
    return QueueSlot(customer=customer_id, ticket_number=ticket_number, password=generate_password())


def create_vip_slot(ticket_number: int) -> QueueSlot:
    """Build a VIP slot; VIP tickets come from their own series."""
    if ticket_number < 0:
        raise ValueError("ticket_number must be >= 0")
    return QueueSlot(
        customer=f"VIP-{secrets.token_hex(4)}",
        ticket_number=ticket_number,
        password=generate_password(),
        is_vip=True,
    )
