"""Error taxonomy and the shared error envelope.

Operations raise `QueueError` subclasses. Callers at the edge (the MQTT
service, the CLI) use `capture()` to turn a call into an `Outcome` so nothing
escapes as an uncaught fault, and render failures with `ErrorResponse` so
messages look the same everywhere.

`NoHours` reports the `store_closed` kind: like `StoreClosed` it means the
queue cannot be activated right now. Any other exception reaching `capture()`
is logged and reported as `internal_error`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


# Outcome kinds callers map to their own status representation.
SUCCESS = "success"
UNAUTHORIZED = "unauthorized"
NOT_FOUND = "not_found"
CONFLICT = "conflict"
INACTIVE_QUEUE = "inactive_queue"
STORE_CLOSED = "store_closed"
INTERNAL_ERROR = "internal_error"
BAD_REQUEST = "bad_request"

GENERIC_MESSAGE = "Internal Error. Something went wrong!"


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    def to_message(self, *, corr_id: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if corr_id is not None:
            msg["corr_id"] = corr_id
        return msg


class QueueError(Exception):
    """Base class for every failure an operation reports."""

    code = "queue_error"
    kind = INTERNAL_ERROR
    # Unexpected errors are logged and hidden behind a generic message.
    expected = True

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_response(self) -> ErrorResponse:
        if not self.expected:
            return ErrorResponse(INTERNAL_ERROR, GENERIC_MESSAGE)
        return ErrorResponse(self.code, self.message)


class Unauthorized(QueueError):
    code = "unauthorized"
    kind = UNAUTHORIZED


class NotFound(QueueError):
    code = "not_found"
    kind = NOT_FOUND


class AlreadyQueued(QueueError):
    code = "already_queued"
    kind = CONFLICT


class NotQueued(QueueError):
    code = "not_queued"
    kind = CONFLICT


class QueueInactive(QueueError):
    code = "queue_inactive"
    kind = INACTIVE_QUEUE


class StoreClosed(QueueError):
    code = "store_closed"
    kind = STORE_CLOSED


class NoHours(QueueError):
    code = "no_hours"
    kind = STORE_CLOSED


class NoStaffOnline(QueueError):
    code = "no_staff_online"
    kind = NOT_FOUND


class BadRequest(QueueError):
    """The request message itself is malformed."""

    code = "bad_request"
    kind = BAD_REQUEST


class SlotNotFound(QueueError):
    """The customer's `currentQueue` pointer names a queue they are not in."""

    code = "slot_not_found"
    kind = INTERNAL_ERROR
    expected = False


class StorageFailure(QueueError):
    code = "storage_failure"
    kind = INTERNAL_ERROR
    expected = False


@dataclass(frozen=True)
class Outcome:
    kind: str
    value: Any = None
    error: ErrorResponse | None = None

    @property
    def ok(self) -> bool:
        return self.kind == SUCCESS

    def to_message(self, *, corr_id: str | None = None) -> dict[str, Any]:
        if self.error is not None:
            msg = self.error.to_message(corr_id=corr_id)
            msg["kind"] = self.kind
            return msg
        msg = {"type": "result", "kind": self.kind, "result": self.value}
        if corr_id is not None:
            msg["corr_id"] = corr_id
        return msg


def capture(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Outcome:
    """Run an operation and fold its result or error into an Outcome."""
    try:
        value = fn(*args, **kwargs)
    except QueueError as e:
        if not e.expected:
            logger.error("unexpected %s in %s: %s", e.code, getattr(fn, "__name__", fn), e.message)
        return Outcome(kind=e.kind, error=e.to_response())
    except Exception:
        logger.exception("unhandled error in %s", getattr(fn, "__name__", fn))
        return Outcome(kind=INTERNAL_ERROR, error=ErrorResponse(INTERNAL_ERROR, GENERIC_MESSAGE))
    return Outcome(kind=SUCCESS, value=value)
