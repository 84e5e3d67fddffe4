"""
Booking lifecycle and booking list views.

`BookingService` is the only code path that creates bookings or changes
their status. A booking starts WAITING and moves once, to APPROVED or
REJECTED, at the item owner's request.
"""

import datetime
import logging
from typing import Optional, Sequence

from sqlmodel import Session

from .classifier import Subject
from .clock import Clock, system_clock
from .exceptions import (
    BadRequestError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from .models import Booking, BookingState, BookingStatus
from .repository import BookingRepository, ItemRepository, UserRepository

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(self, session: Session, clock: Clock = system_clock):
        self.bookings = BookingRepository(session)
        self.items = ItemRepository(session)
        self.users = UserRepository(session)
        self.clock = clock

    def create(
        self,
        requester_id: int,
        item_id: int,
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> Booking:
        """Request a booking of `item_id` for [start, end].

        Owners cannot book their own items; that case is reported as a
        missing item. The item's availability flag is read, never changed.
        """
        if start >= end:
            raise BadRequestError("start must be before end")
        booker = self.users.require(requester_id)
        item = self.items.require(item_id)
        if item.owner_id == requester_id:
            raise NotFoundError("Owner cannot book their own item")
        if not item.available:
            raise InvalidStateError(f"Item with id {item_id} is not available")

        booking = self.bookings.create(
            Booking(start=start, end=end, item_id=item.id, booker_id=booker.id)
        )
        logger.info(
            "Booking %s created for item %s by user %s",
            booking.id,
            item.id,
            booker.id,
        )
        return booking

    def set_approval(self, caller_id: int, booking_id: int, approve: bool) -> Booking:
        booking = self.bookings.require(booking_id)
        if booking.status != BookingStatus.WAITING:
            raise InvalidStateError(
                f"Booking {booking_id} has already been {booking.status.value.lower()}"
            )
        item = self.items.require(booking.item_id)
        if item.owner_id != caller_id:
            raise ForbiddenError(f"Item {item.id} does not belong to user {caller_id}")

        new_status = BookingStatus.APPROVED if approve else BookingStatus.REJECTED
        if not self.bookings.compare_and_set_status(
            booking_id, BookingStatus.WAITING, new_status
        ):
            raise InvalidStateError(f"Booking {booking_id} is no longer waiting")
        logger.info("Booking %s %s by owner %s", booking_id, new_status.value, caller_id)
        return self.bookings.require(booking_id)

    def get_by_id(self, caller_id: int, booking_id: int) -> Booking:
        booking = self.bookings.require(booking_id)
        item = self.items.require(booking.item_id)
        if caller_id not in (booking.booker_id, item.owner_id):
            # not visible to this caller; do not reveal that it exists
            raise NotFoundError(f"Booking with id {booking_id} not found")
        return booking

    def list_for_booker(
        self,
        booker_id: int,
        state: BookingState = BookingState.ALL,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Sequence[Booking]:
        self.users.require(booker_id)
        return self.bookings.find_for(
            Subject.BOOKER, booker_id, state, self.clock(), offset, limit
        )

    def list_for_owner(
        self,
        owner_id: int,
        state: BookingState = BookingState.ALL,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Sequence[Booking]:
        self.users.require(owner_id)
        if not self.items.owner_has_items(owner_id):
            raise NotFoundError(f"User {owner_id} does not own any items")
        return self.bookings.find_for(
            Subject.OWNER, owner_id, state, self.clock(), offset, limit
        )
