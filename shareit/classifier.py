"""
Booking state classifier.

Maps an abstract `BookingState` plus the point of view (booker or item owner)
onto filter clauses and a fixed ordering over the bookings table. Every list
view is built from `state_filter`, so the six states behave the same way for
both subjects apart from the REJECTED bucket, which for bookers also covers
canceled bookings.
"""

import datetime
import enum

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

from .models import Booking, BookingState, BookingStatus


class Subject(str, enum.Enum):
    BOOKER = "booker"
    OWNER = "owner"


REJECTED_STATUSES = {
    Subject.BOOKER: (BookingStatus.REJECTED, BookingStatus.CANCELED),
    Subject.OWNER: (BookingStatus.REJECTED,),
}

# most recent / furthest in the future first
ORDERING = (Booking.start.desc(), Booking.id.desc())


def state_filter(
    state: BookingState, now: datetime.datetime, subject: Subject
) -> list[ColumnElement[bool]]:
    """Return the WHERE clauses selecting bookings in `state` at instant `now`."""
    if state == BookingState.ALL:
        return []
    if state == BookingState.CURRENT:
        return [and_(Booking.start <= now, Booking.end >= now)]
    if state == BookingState.FUTURE:
        return [Booking.start > now]
    if state == BookingState.PAST:
        return [Booking.end < now]
    if state == BookingState.WAITING:
        return [Booking.status == BookingStatus.WAITING]
    if state == BookingState.REJECTED:
        return [Booking.status.in_(REJECTED_STATUSES[subject])]
    raise ValueError(f"Unknown state: {state}")
