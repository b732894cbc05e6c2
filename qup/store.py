from __future__ import annotations

# Queue state storage.
#
# This file contains two layers:
# 1) `DocumentStore`: a versioned document store with optimistic multi-document
#    transactions (the persistent-store role; in memory, thread safe)
# 2) `QueueStateStore`: the queue-level contract on top of it, most
#    importantly `with_queue()`, the atomic per-business read-modify-write.
#
# Transactions never hold a lock while user code runs. Reads remember the
# version they saw; commit locks only the touched documents (in sorted order),
# re-checks those versions and writes everything or nothing. A conflict reruns
# the whole transaction a bounded number of times.

import copy
import logging
import threading
from typing import Any, Callable, Iterator, TypeVar

from .errors import NotFound, StorageFailure
from .models import CUSTOMER, EMPLOYEE, MANAGER, Business, Customer, Queue, StaffMember

logger = logging.getLogger(__name__)

T = TypeVar("T")

BUSINESSES = "businesses"
USERS = "users"

DocKey = tuple[str, str]
ChangeListener = Callable[[str, str, "dict[str, Any] | None"], None]

DEFAULT_MAX_RETRIES = 5


class Transaction:
    """Buffered reads/writes against a `DocumentStore`."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self.read_versions: dict[DocKey, int] = {}
        self.writes: dict[DocKey, dict[str, Any] | None] = {}

    def get(self, collection: str, key: str) -> dict[str, Any] | None:
        k = (collection, key)
        if k in self.writes:
            return copy.deepcopy(self.writes[k])
        version, doc = self._store.read(collection, key)
        self.read_versions.setdefault(k, version)
        return doc

    def set(self, collection: str, key: str, doc: dict[str, Any]) -> None:
        self.writes[(collection, key)] = copy.deepcopy(doc)

    def delete(self, collection: str, key: str) -> None:
        self.writes[(collection, key)] = None


class DocumentStore:
    def __init__(self) -> None:
        # Deleted documents stay as (version, None) so stale readers still conflict.
        self._docs: dict[DocKey, tuple[int, dict[str, Any] | None]] = {}
        self._locks: dict[DocKey, threading.Lock] = {}
        self._meta_lock = threading.Lock()
        self._listeners: list[ChangeListener] = []

    # -------------------- plain access --------------------

    def read(self, collection: str, key: str) -> tuple[int, dict[str, Any] | None]:
        """Return (version, copy of document). Missing documents are version 0."""
        with self._meta_lock:
            version, doc = self._docs.get((collection, key), (0, None))
        return version, copy.deepcopy(doc)

    def put(self, collection: str, key: str, doc: dict[str, Any]) -> None:
        """Unconditional write (seeding, admin tools)."""
        tx = Transaction(self)
        tx.set(collection, key, doc)
        self._commit(tx)

    def scan(self, collection: str) -> Iterator[tuple[str, dict[str, Any]]]:
        """Snapshot iteration over one collection."""
        with self._meta_lock:
            items = [(k[1], doc) for k, (_v, doc) in self._docs.items() if k[0] == collection and doc is not None]
        for key, doc in items:
            yield key, copy.deepcopy(doc)

    def add_listener(self, listener: ChangeListener) -> None:
        """Register a callback run after every committed write."""
        self._listeners.append(listener)

    # -------------------- transactions --------------------

    def run_transaction(self, fn: Callable[[Transaction], T], *, max_retries: int = DEFAULT_MAX_RETRIES) -> T:
        """Run `fn` in a transaction, retrying on write conflicts.

        `fn` may run several times and must only touch the store through the
        transaction it is given. Exceptions from `fn` abort without writing.
        An exception raised after reading a document that has since changed
        counts as a conflict and is retried.

        Raises:
            StorageFailure: still conflicting after `max_retries` retries.
        """
        for attempt in range(max_retries + 1):
            tx = Transaction(self)
            try:
                result = fn(tx)
            except Exception:
                if self._reads_current(tx):
                    raise
                logger.debug("transaction failed on a stale read, attempt %d/%d", attempt + 1, max_retries + 1)
                continue
            if self._commit(tx):
                return result
            logger.debug("transaction conflict, attempt %d/%d", attempt + 1, max_retries + 1)
        raise StorageFailure(f"transaction conflict persisted after {max_retries} retries")

    def _reads_current(self, tx: Transaction) -> bool:
        with self._meta_lock:
            return all(self._docs.get(k, (0, None))[0] == seen for k, seen in tx.read_versions.items())

    def _lock_for(self, k: DocKey) -> threading.Lock:
        with self._meta_lock:
            lock = self._locks.get(k)
            if lock is None:
                lock = self._locks[k] = threading.Lock()
            return lock

    def _commit(self, tx: Transaction) -> bool:
        keys = sorted(set(tx.read_versions) | set(tx.writes))
        locks = [self._lock_for(k) for k in keys]
        for lock in locks:
            lock.acquire()
        try:
            # Every writer of these keys holds their locks, so versions can't move now.
            for k, seen in tx.read_versions.items():
                if self._docs.get(k, (0, None))[0] != seen:
                    return False
            with self._meta_lock:
                for k, doc in tx.writes.items():
                    version = self._docs.get(k, (0, None))[0] + 1
                    self._docs[k] = (version, doc)
        finally:
            for lock in reversed(locks):
                lock.release()

        self._notify(tx.writes)
        return True

    def _notify(self, writes: dict[DocKey, dict[str, Any] | None]) -> None:
        for (collection, key), doc in writes.items():
            for listener in list(self._listeners):
                try:
                    listener(collection, key, copy.deepcopy(doc))
                except Exception:
                    # Listeners are fire-and-forget side effects.
                    logger.exception("change listener failed for %s/%s", collection, key)


class QueueStateStore:
    """Authoritative queue state per business."""

    def __init__(self, store: DocumentStore | None = None, *, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        self.store = store or DocumentStore()
        self.max_retries = max_retries

    # -------------------- queue read-modify-write --------------------

    def with_queue(
        self,
        business_name: str,
        mutator: Callable[[Queue, BusinessTransaction], T],
    ) -> tuple[T, Queue]:
        """Atomically apply `mutator` to a business's queue.

        The mutator gets a private copy of the Queue plus a `BusinessTransaction`
        for reading the business and customer records it needs. If it returns,
        the queue (and any customer records it changed) are written in one
        commit; if it raises, nothing is written.

        Raises:
            NotFound: no business has that name.
            StorageFailure: concurrent writers kept winning.
        """

        def run(tx: Transaction) -> tuple[T, Queue]:
            doc = tx.get(BUSINESSES, business_name)
            if doc is None:
                raise NotFound(f"no business named {business_name!r}")
            business = Business.from_doc(doc)
            btx = BusinessTransaction(tx, business)
            result = mutator(business.queue, btx)
            doc["queue"] = business.queue.to_doc()
            tx.set(BUSINESSES, business_name, doc)
            return result, business.queue

        return self.store.run_transaction(run, max_retries=self.max_retries)

    def update_customer(self, customer_id: str, mutator: Callable[[Customer], T]) -> T:
        """Atomically apply `mutator` to one customer record."""

        def run(tx: Transaction) -> T:
            customer = _load_customer(tx, customer_id)
            result = mutator(customer)
            tx.set(USERS, customer_id, customer.to_doc())
            return result

        return self.store.run_transaction(run, max_retries=self.max_retries)

    def update_staff(self, staff_id: str, mutator: Callable[[StaffMember], T]) -> T:
        """Atomically apply `mutator` to one employee or manager record."""

        def run(tx: Transaction) -> T:
            doc = tx.get(USERS, staff_id)
            if doc is None or doc.get("userType") not in (EMPLOYEE, MANAGER):
                raise NotFound(f"no staff member {staff_id!r}")
            staff = StaffMember.from_doc(staff_id, doc)
            result = mutator(staff)
            doc.update(staff.to_doc())
            tx.set(USERS, staff_id, doc)
            return result

        return self.store.run_transaction(run, max_retries=self.max_retries)

    # -------------------- snapshot reads --------------------

    def load_business(self, business_name: str) -> Business:
        _v, doc = self.store.read(BUSINESSES, business_name)
        if doc is None:
            raise NotFound(f"no business named {business_name!r}")
        return Business.from_doc(doc)

    def get_customer(self, customer_id: str) -> Customer:
        _v, doc = self.store.read(USERS, customer_id)
        if doc is None or doc.get("userType") != CUSTOMER:
            raise NotFound(f"no customer {customer_id!r}")
        return Customer.from_doc(customer_id, doc)

    def online_staff_count(self, business_name: str) -> int:
        """Employees of the business flagged online (may be slightly stale)."""
        return sum(
            1
            for _key, doc in self.store.scan(USERS)
            if doc.get("userType") == EMPLOYEE
            and doc.get("businessName") == business_name
            and doc.get("isOnline")
        )

    def add_listener(self, listener: ChangeListener) -> None:
        self.store.add_listener(listener)


class BusinessTransaction:
    """What a `with_queue` mutator may touch besides the queue itself."""

    def __init__(self, tx: Transaction, business: Business) -> None:
        self._tx = tx
        self.business = business

    def get_customer(self, customer_id: str) -> Customer:
        return _load_customer(self._tx, customer_id)

    def find_customer(self, customer_id: str) -> Customer | None:
        doc = self._tx.get(USERS, customer_id)
        if doc is None or doc.get("userType") != CUSTOMER:
            return None
        return Customer.from_doc(customer_id, doc)

    def put_customer(self, customer: Customer) -> None:
        self._tx.set(USERS, customer.id, customer.to_doc())


def _load_customer(tx: Transaction, customer_id: str) -> Customer:
    doc = tx.get(USERS, customer_id)
    if doc is None or doc.get("userType") != CUSTOMER:
        raise NotFound(f"no customer {customer_id!r}")
    return Customer.from_doc(customer_id, doc)
