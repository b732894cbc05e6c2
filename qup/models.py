from __future__ import annotations

# Data model.
#
# Records are plain dataclasses. The store keeps JSON-like documents, so each
# record knows how to convert itself to and from the document layout
# (camelCase keys, as the business/user documents have always been stored).

from dataclasses import dataclass, field
from typing import Any, Union

DEFAULT_TIMEZONE = "America/Los_Angeles"

CUSTOMER = "customer"
EMPLOYEE = "employee"
MANAGER = "manager"


# -------------------- actors --------------------


@dataclass(frozen=True)
class CustomerActor:
    id: str


@dataclass(frozen=True)
class EmployeeActor:
    id: str
    business_name: str


@dataclass(frozen=True)
class ManagerActor:
    id: str
    business_name: str


Actor = Union[CustomerActor, EmployeeActor, ManagerActor]


# -------------------- queue --------------------


@dataclass
class QueueSlot:
    customer: str
    ticket_number: int
    password: str
    is_vip: bool = False

    def to_doc(self) -> dict[str, Any]:
        return {
            "customer": self.customer,
            "ticketNumber": self.ticket_number,
            "password": self.password,
            "isVIP": self.is_vip,
        }

    @classmethod
    def from_doc(cls, doc: dict[str, Any]) -> QueueSlot:
        return cls(
            customer=str(doc["customer"]),
            ticket_number=int(doc["ticketNumber"]),
            password=str(doc["password"]),
            is_vip=bool(doc.get("isVIP", False)),
        )


@dataclass
class Queue:
    is_active: bool = False
    queue_slots: list[QueueSlot] = field(default_factory=list)  # front is served next
    next_ticket_number: int = 0
    next_vip_ticket_number: int = 0

    def index_of(self, customer_id: str) -> int:
        """Position of the customer's slot, or -1."""
        for i, slot in enumerate(self.queue_slots):
            if slot.customer == customer_id:
                return i
        return -1

    def to_doc(self) -> dict[str, Any]:
        return {
            "isActive": self.is_active,
            "queueSlots": [s.to_doc() for s in self.queue_slots],
            "nextTicketNumber": self.next_ticket_number,
            "nextVipTicketNumber": self.next_vip_ticket_number,
        }

    @classmethod
    def from_doc(cls, doc: dict[str, Any] | None) -> Queue:
        doc = doc or {}
        slots = [QueueSlot.from_doc(s) for s in doc.get("queueSlots", [])]
        # Documents written before the counters existed continue after the last slot.
        regular = [s.ticket_number for s in slots if not s.is_vip]
        return cls(
            is_active=bool(doc.get("isActive", False)),
            queue_slots=slots,
            next_ticket_number=int(doc.get("nextTicketNumber", max(regular) + 1 if regular else 0)),
            next_vip_ticket_number=int(doc.get("nextVipTicketNumber", 0)),
        )


# -------------------- business --------------------


@dataclass
class WeeklyHours:
    """Opening hours, one "HH:MM" pair per weekday (index 0 = Sunday)."""

    start_time: list[str | None] = field(default_factory=list)
    end_time: list[str | None] = field(default_factory=list)

    def for_weekday(self, day: int) -> tuple[str | None, str | None]:
        start = self.start_time[day] if day < len(self.start_time) else None
        end = self.end_time[day] if day < len(self.end_time) else None
        return start, end

    def to_doc(self) -> dict[str, Any]:
        return {"startTime": list(self.start_time), "endTime": list(self.end_time)}

    @classmethod
    def from_doc(cls, doc: dict[str, Any] | None) -> WeeklyHours | None:
        if not doc:
            return None
        return cls(start_time=list(doc.get("startTime") or []), end_time=list(doc.get("endTime") or []))


@dataclass
class Business:
    name: str
    queue: Queue = field(default_factory=Queue)
    hours: WeeklyHours | None = None
    average_wait_time: float = 0.0  # minutes per service
    timezone: str = DEFAULT_TIMEZONE
    address: str = ""
    phone_number: str = ""
    website: str = ""

    def to_doc(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "queue": self.queue.to_doc(),
            "hours": self.hours.to_doc() if self.hours else None,
            "averageWaitTime": self.average_wait_time,
            "timezone": self.timezone,
            "address": self.address,
            "phoneNumber": self.phone_number,
            "website": self.website,
        }

    @classmethod
    def from_doc(cls, doc: dict[str, Any]) -> Business:
        return cls(
            name=str(doc["name"]),
            queue=Queue.from_doc(doc.get("queue")),
            hours=WeeklyHours.from_doc(doc.get("hours")),
            average_wait_time=float(doc.get("averageWaitTime", 0) or 0),
            timezone=str(doc.get("timezone") or DEFAULT_TIMEZONE),
            address=str(doc.get("address", "")),
            phone_number=str(doc.get("phoneNumber", "")),
            website=str(doc.get("website", "")),
        )


# -------------------- users --------------------


@dataclass
class Customer:
    id: str
    current_queue: str | None = None
    favorite_businesses: set[str] = field(default_factory=set)

    def to_doc(self) -> dict[str, Any]:
        return {
            "userType": CUSTOMER,
            "currentQueue": self.current_queue,
            "favoriteBusinesses": sorted(self.favorite_businesses),
        }

    @classmethod
    def from_doc(cls, user_id: str, doc: dict[str, Any]) -> Customer:
        return cls(
            id=user_id,
            current_queue=doc.get("currentQueue"),
            favorite_businesses=set(doc.get("favoriteBusinesses") or []),
        )


@dataclass
class StaffMember:
    id: str
    business_name: str
    user_type: str = EMPLOYEE
    is_online: bool = False

    def to_doc(self) -> dict[str, Any]:
        return {"userType": self.user_type, "businessName": self.business_name, "isOnline": self.is_online}

    @classmethod
    def from_doc(cls, user_id: str, doc: dict[str, Any]) -> StaffMember:
        return cls(
            id=user_id,
            business_name=str(doc.get("businessName", "")),
            user_type=str(doc.get("userType", EMPLOYEE)),
            is_online=bool(doc.get("isOnline", False)),
        )


# -------------------- snapshots --------------------


@dataclass(frozen=True)
class QueueSnapshot:
    """What a caller sees after an operation."""

    business_name: str
    is_active: bool
    queue_slots: list[dict[str, Any]]

    @property
    def queue_length(self) -> int:
        return len(self.queue_slots)

    @classmethod
    def of(cls, business_name: str, queue: Queue) -> QueueSnapshot:
        return cls(
            business_name=business_name,
            is_active=queue.is_active,
            queue_slots=[s.to_doc() for s in queue.queue_slots],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "businessName": self.business_name,
            "isActive": self.is_active,
            "queueSlots": self.queue_slots,
            "queueLength": self.queue_length,
        }
