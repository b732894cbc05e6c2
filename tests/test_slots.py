import pytest

from qup.slots import PASSWORD_LENGTH, create_queue_slot, create_vip_slot


def test_queue_slot_has_given_ticket_and_fixed_length_password():
    slot = create_queue_slot("alice@example.com", 7)
    assert slot.customer == "alice@example.com"
    assert slot.ticket_number == 7
    assert len(slot.password) == PASSWORD_LENGTH
    assert slot.password.isalnum()
    assert slot.is_vip is False


def test_queue_slot_rejects_negative_ticket():
    with pytest.raises(ValueError):
        create_queue_slot("alice@example.com", -1)


def test_vip_slots_get_distinct_synthetic_customers():
    a = create_vip_slot(0)
    b = create_vip_slot(1)
    assert a.is_vip and b.is_vip
    assert a.customer.startswith("VIP-")
    assert a.customer != b.customer
    assert (a.ticket_number, b.ticket_number) == (0, 1)
