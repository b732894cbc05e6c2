from __future__ import annotations

# Queue state machine.
#
#   INACTIVE --activate--> ACTIVE --deactivate--> INACTIVE
#
# Every mutation runs inside `QueueStateStore.with_queue`, so preconditions are
# checked against the same snapshot that gets written, and a failed check
# writes nothing. Customer `currentQueue` pointers are updated in the same
# commit as the queue they point at.

import logging
from datetime import datetime, timezone as dt_timezone
from typing import Any, Callable

from .errors import AlreadyQueued, NotFound, NotQueued, QueueInactive, SlotNotFound, StoreClosed, Unauthorized
from .estimator import estimate
from .models import (
    Actor,
    Customer,
    CustomerActor,
    EmployeeActor,
    ManagerActor,
    Queue,
    QueueSlot,
    QueueSnapshot,
    StaffMember,
)
from .schedule import is_open_now, local_now, weekday_index
from .slots import create_queue_slot, create_vip_slot
from .store import BusinessTransaction, QueueStateStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(dt_timezone.utc)


def _require_customer(actor: Actor) -> CustomerActor:
    if not isinstance(actor, CustomerActor):
        raise Unauthorized("unauthorized. Login as a customer!")
    return actor


def _require_employee(actor: Actor, business_name: str) -> EmployeeActor:
    if not isinstance(actor, EmployeeActor):
        raise Unauthorized("unauthorized. Login as an employee of the business!")
    if actor.business_name != business_name:
        raise Unauthorized("employee is not part of the business!")
    return actor


def _require_manager(actor: Actor, business_name: str) -> ManagerActor:
    if not isinstance(actor, ManagerActor):
        raise Unauthorized("unauthorized. Login as a manager of the business!")
    if actor.business_name != business_name:
        raise Unauthorized("manager is not part of the business!")
    return actor


def _require_staff(actor: Actor, business_name: str) -> EmployeeActor | ManagerActor:
    if not isinstance(actor, (EmployeeActor, ManagerActor)):
        raise Unauthorized("unauthorized. Login as an employee or manager of the business!")
    if actor.business_name != business_name:
        raise Unauthorized("employee is not part of the business!")
    return actor


class QueueOperations:
    """Transitions and queries over business queues."""

    def __init__(self, state: QueueStateStore, *, clock: Clock = utc_now) -> None:
        self.state = state
        self._clock = clock

    # -------------------- customer transitions --------------------

    def enter(self, actor: Actor, business_name: str) -> QueueSnapshot:
        """Append the customer to the back of the line."""
        customer_actor = _require_customer(actor)

        def mutate(queue: Queue, btx: BusinessTransaction) -> QueueSlot:
            customer = btx.get_customer(customer_actor.id)
            if customer.current_queue is not None or queue.index_of(customer.id) != -1:
                raise AlreadyQueued("You are already enrolled in a queue!")
            if not queue.is_active:
                raise QueueInactive("Queue is currently not active")

            slot = create_queue_slot(customer.id, queue.next_ticket_number)
            queue.next_ticket_number += 1
            queue.queue_slots.append(slot)

            customer.current_queue = business_name
            btx.put_customer(customer)
            return slot

        slot, queue = self.state.with_queue(business_name, mutate)
        logger.info("%s entered %s with ticket %d", customer_actor.id, business_name, slot.ticket_number)
        return QueueSnapshot.of(business_name, queue)

    def abandon(self, actor: Actor, business_name: str | None = None) -> QueueSnapshot:
        """Remove the customer's slot. Allowed whether or not the queue is active.

        `business_name` defaults to the customer's `currentQueue`; if given it
        must match it.
        """
        customer_actor = _require_customer(actor)
        target = business_name or self.state.get_customer(customer_actor.id).current_queue
        if target is None:
            raise NotQueued("You are not currently in a queue")

        def mutate(queue: Queue, btx: BusinessTransaction) -> None:
            customer = btx.get_customer(customer_actor.id)
            if customer.current_queue != target:
                raise NotQueued("You are not currently in this queue")
            idx = queue.index_of(customer.id)
            if idx == -1:
                raise SlotNotFound(f"{customer.id} points at {target} but holds no slot there")
            del queue.queue_slots[idx]

            customer.current_queue = None
            btx.put_customer(customer)

        _none, queue = self.state.with_queue(target, mutate)
        logger.info("%s left %s", customer_actor.id, target)
        return QueueSnapshot.of(target, queue)

    # -------------------- staff transitions --------------------

    def vip_insert(self, actor: Actor, business_name: str) -> tuple[QueueSlot, QueueSnapshot]:
        """Put a VIP at the very front of the line."""
        _require_employee(actor, business_name)

        def mutate(queue: Queue, _btx: BusinessTransaction) -> QueueSlot:
            if not queue.is_active:
                raise QueueInactive("the queue is no longer active!")
            slot = create_vip_slot(queue.next_vip_ticket_number)
            queue.next_vip_ticket_number += 1
            queue.queue_slots.insert(0, slot)
            return slot

        slot, queue = self.state.with_queue(business_name, mutate)
        logger.info("VIP %s added to the front of %s", slot.customer, business_name)
        return slot, QueueSnapshot.of(business_name, queue)

    def activate(self, actor: Actor, business_name: str) -> QueueSnapshot:
        _require_manager(actor, business_name)
        now = self._clock()

        def mutate(queue: Queue, btx: BusinessTransaction) -> None:
            if queue.is_active:
                return
            business = btx.business
            if not is_open_now(business.hours, business.timezone, now):
                raise StoreClosed("The store is closed now!")
            queue.is_active = True

        _none, queue = self.state.with_queue(business_name, mutate)
        logger.info("queue %s activated", business_name)
        return QueueSnapshot.of(business_name, queue)

    def deactivate(self, actor: Actor, business_name: str) -> QueueSnapshot:
        """Close the queue, evicting everyone in it in the same commit."""
        _require_manager(actor, business_name)

        def mutate(queue: Queue, btx: BusinessTransaction) -> int:
            evicted = 0
            for slot in queue.queue_slots:
                if slot.is_vip:
                    continue
                customer = btx.find_customer(slot.customer)
                if customer is None or customer.current_queue != business_name:
                    logger.warning("slot for %s in %s has no matching customer pointer", slot.customer, business_name)
                    continue
                customer.current_queue = None
                btx.put_customer(customer)
                evicted += 1

            queue.queue_slots = []
            queue.is_active = False
            queue.next_ticket_number = 0
            queue.next_vip_ticket_number = 0
            return evicted

        evicted, queue = self.state.with_queue(business_name, mutate)
        logger.info("queue %s deactivated, %d customers evicted", business_name, evicted)
        return QueueSnapshot.of(business_name, queue)

    def toggle_status(self, actor: Actor, business_name: str) -> QueueSnapshot:
        """Activate an inactive queue or deactivate an active one."""
        _require_manager(actor, business_name)
        if self.state.load_business(business_name).queue.is_active:
            return self.deactivate(actor, business_name)
        return self.activate(actor, business_name)

    # -------------------- staff presence --------------------

    def check_in(self, actor: Actor) -> dict[str, Any]:
        """Flip the employee between online and offline."""
        if not isinstance(actor, EmployeeActor):
            raise Unauthorized("unauthorized. Login as an employee of the business!")

        def toggle(staff: StaffMember) -> bool:
            if staff.business_name != actor.business_name:
                raise Unauthorized("employee is not part of the business!")
            staff.is_online = not staff.is_online
            return staff.is_online

        is_online = self.state.update_staff(actor.id, toggle)
        logger.info("%s is now %s at %s", actor.id, "online" if is_online else "offline", actor.business_name)
        return {"isOnline": is_online}

    def online_employees(self, actor: Actor, business_name: str) -> dict[str, Any]:
        _require_staff(actor, business_name)
        self.state.load_business(business_name)
        return {"onlineEmployees": self.state.online_staff_count(business_name)}

    # -------------------- queries --------------------

    def queue_info(self, actor: Actor, business_name: str) -> dict[str, Any]:
        """Staff view of the whole queue."""
        _require_staff(actor, business_name)
        business = self.state.load_business(business_name)
        queue = business.queue
        wait = estimate(
            position=len(queue.queue_slots),
            average_wait_time=business.average_wait_time,
            online_staff_count=self.state.online_staff_count(business_name),
        )
        return {
            "queueList": [s.to_doc() for s in queue.queue_slots],
            "isActive": queue.is_active,
            "currentWaitTime": wait,
            "queueLength": len(queue.queue_slots),
        }

    def slot_info(self, actor: Actor) -> dict[str, Any]:
        """The customer's own ticket, position and ETA."""
        customer_actor = _require_customer(actor)
        customer = self.state.get_customer(customer_actor.id)
        if customer.current_queue is None:
            raise NotQueued("You are not in a queue")
        business_name = customer.current_queue
        business = self.state.load_business(business_name)

        if not business.queue.is_active:
            self._clear_stale_pointer(customer.id, business_name)
            raise QueueInactive("the queue is no longer active!")

        idx = business.queue.index_of(customer.id)
        if idx == -1:
            raise SlotNotFound(f"could not find the position of {customer.id} in {business_name}")
        slot = business.queue.queue_slots[idx]
        wait = estimate(
            position=idx,
            average_wait_time=business.average_wait_time,
            online_staff_count=self.state.online_staff_count(business_name),
        )
        return {
            "businessName": business_name,
            "ticketNumber": slot.ticket_number,
            "password": slot.password,
            "currentWaitTime": wait,
            "queuePosition": idx + 1,
        }

    def _clear_stale_pointer(self, customer_id: str, business_name: str) -> None:
        def clear(customer: Customer) -> None:
            if customer.current_queue == business_name:
                customer.current_queue = None

        self.state.update_customer(customer_id, clear)

    # -------------------- favourites --------------------

    def favorite_queues(self, actor: Actor) -> dict[str, dict[str, Any]]:
        customer = self.state.get_customer(_require_customer(actor).id)
        now = self._clock()
        out: dict[str, dict[str, Any]] = {}
        for name in sorted(customer.favorite_businesses):
            try:
                business = self.state.load_business(name)
            except NotFound:
                continue
            start = end = None
            if business.hours is not None:
                start, end = business.hours.for_weekday(weekday_index(local_now(business.timezone, now)))
            length = len(business.queue.queue_slots)
            out[name] = {
                "isActive": business.queue.is_active,
                "currentWaitTime": length * business.average_wait_time,
                "queueLength": length,
                "address": business.address,
                "startTime": start,
                "endTime": end,
                "phoneNumber": business.phone_number,
                "website": business.website,
            }
        return out

    def toggle_favorite(self, actor: Actor, business_name: str) -> bool:
        """Add or remove a favourite business. Returns True if it is now a favourite."""
        customer_actor = _require_customer(actor)
        self.state.load_business(business_name)

        def toggle(customer: Customer) -> bool:
            if business_name in customer.favorite_businesses:
                customer.favorite_businesses.discard(business_name)
                return False
            customer.favorite_businesses.add(business_name)
            return True

        return self.state.update_customer(customer_actor.id, toggle)
