from __future__ import annotations

# Wait time estimation.
#
#   minutes = position * average_wait_time / online_staff_count
#
# `position` is a zero-based index for one customer's ETA, or the queue
# length for the wait a newcomer would face.

from .errors import NoStaffOnline


def estimate(*, position: int, average_wait_time: float, online_staff_count: int) -> float:
    """Estimate minutes until `position` is served.

    Args:
        position: zero-based index in the queue (>= 0), or the queue length.
        average_wait_time: minutes one server needs per customer (>= 0).
        online_staff_count: employees currently serving.

    Raises:
        NoStaffOnline: nobody is online, so there is no service rate.
        ValueError: on negative inputs.
    """
    if position < 0:
        raise ValueError("position must be >= 0")
    if average_wait_time < 0:
        raise ValueError("average_wait_time must be >= 0")
    if online_staff_count < 0:
        raise ValueError("online_staff_count must be >= 0")
    if online_staff_count == 0:
        raise NoStaffOnline("No employees are online to serve the queue")

    return float(position * average_wait_time / online_staff_count)
