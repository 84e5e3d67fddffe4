import datetime

import pytest
from sqlmodel import Session

from .bookings import BookingService
from .clock import fixed_clock
from .conftest import DAY, NOW, add
from .database import engine
from .exceptions import (
    BadRequestError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from .models import BookingCreate, BookingState, BookingStatus, Item
from .repository import BookingRepository


@pytest.fixture
def service(session):
    return BookingService(session, fixed_clock(NOW))


# --------
# Creation
# --------


def test_create_booking_is_waiting(service, item, booker):
    booking = service.create(booker.id, item.id, NOW + DAY, NOW + 2 * DAY)

    assert booking.id is not None
    assert booking.status == BookingStatus.WAITING
    assert booking.start < booking.end
    assert booking.item_id == item.id
    assert booking.booker_id == booker.id


def test_create_does_not_change_item_availability(service, session, item, booker):
    service.create(booker.id, item.id, NOW + DAY, NOW + 2 * DAY)
    session.refresh(item)
    assert item.available is True


def test_owner_cannot_book_own_item(service, session, item, owner):
    with pytest.raises(NotFoundError):
        service.create(owner.id, item.id, NOW + DAY, NOW + 2 * DAY)
    assert BookingRepository(session).count() == 0


def test_cannot_book_unavailable_item(service, session, owner, booker):
    unavailable = add(
        session,
        Item(name="Saw", description="Hand saw", available=False, owner_id=owner.id),
    )
    with pytest.raises(InvalidStateError):
        service.create(booker.id, unavailable.id, NOW + DAY, NOW + 2 * DAY)
    assert BookingRepository(session).count() == 0


def test_create_with_unknown_user(service, item):
    with pytest.raises(NotFoundError):
        service.create(999, item.id, NOW + DAY, NOW + 2 * DAY)


def test_create_with_unknown_item(service, booker):
    with pytest.raises(NotFoundError):
        service.create(booker.id, 999, NOW + DAY, NOW + 2 * DAY)


def test_create_rejects_inverted_interval(service, session, item, booker):
    with pytest.raises(BadRequestError):
        service.create(booker.id, item.id, NOW + 2 * DAY, NOW + DAY)
    with pytest.raises(BadRequestError):
        service.create(booker.id, item.id, NOW + DAY, NOW + DAY)
    assert BookingRepository(session).count() == 0


def test_overlapping_bookings_are_allowed(service, item, booker, stranger):
    first = service.create(booker.id, item.id, NOW + DAY, NOW + 3 * DAY)
    second = service.create(stranger.id, item.id, NOW + 2 * DAY, NOW + 4 * DAY)
    assert first.id != second.id


# --------
# Approval
# --------


def test_owner_approves_booking(service, make_booking, owner):
    booking = make_booking(NOW + DAY, NOW + 2 * DAY)
    updated = service.set_approval(owner.id, booking.id, True)
    assert updated.status == BookingStatus.APPROVED


def test_owner_rejects_booking(service, make_booking, owner):
    booking = make_booking(NOW + DAY, NOW + 2 * DAY)
    updated = service.set_approval(owner.id, booking.id, False)
    assert updated.status == BookingStatus.REJECTED


@pytest.mark.parametrize("first, second", [(True, True), (True, False), (False, True)])
def test_approval_happens_only_once(service, make_booking, owner, first, second):
    booking = make_booking(NOW + DAY, NOW + 2 * DAY)
    decided = service.set_approval(owner.id, booking.id, first).status

    with pytest.raises(InvalidStateError):
        service.set_approval(owner.id, booking.id, second)
    assert service.get_by_id(owner.id, booking.id).status == decided


def test_non_owner_cannot_approve(service, make_booking, booker, stranger):
    booking = make_booking(NOW + DAY, NOW + 2 * DAY)
    with pytest.raises(ForbiddenError):
        service.set_approval(stranger.id, booking.id, True)
    with pytest.raises(ForbiddenError):
        service.set_approval(booker.id, booking.id, True)
    assert service.get_by_id(booker.id, booking.id).status == BookingStatus.WAITING


def test_approve_unknown_booking(service, owner):
    with pytest.raises(NotFoundError):
        service.set_approval(owner.id, 999, True)


def test_canceled_booking_cannot_be_decided(service, make_booking, owner):
    booking = make_booking(NOW + DAY, NOW + 2 * DAY, status=BookingStatus.CANCELED)
    with pytest.raises(InvalidStateError):
        service.set_approval(owner.id, booking.id, True)


def test_status_compare_and_set_lets_one_writer_win(make_booking):
    booking = make_booking(NOW + DAY, NOW + 2 * DAY)

    # two requests that both read WAITING before either writes
    with Session(engine) as first, Session(engine) as second:
        assert BookingRepository(first).require(booking.id).status == BookingStatus.WAITING
        assert BookingRepository(second).require(booking.id).status == BookingStatus.WAITING

        won = BookingRepository(first).compare_and_set_status(
            booking.id, BookingStatus.WAITING, BookingStatus.APPROVED
        )
        lost = BookingRepository(second).compare_and_set_status(
            booking.id, BookingStatus.WAITING, BookingStatus.REJECTED
        )

    assert won is True
    assert lost is False
    with Session(engine) as fresh:
        assert BookingRepository(fresh).require(booking.id).status == BookingStatus.APPROVED


# ----------
# Visibility
# ----------


def test_booker_and_owner_can_see_booking(service, make_booking, owner, booker):
    booking = make_booking(NOW + DAY, NOW + 2 * DAY)
    assert service.get_by_id(booker.id, booking.id).id == booking.id
    assert service.get_by_id(owner.id, booking.id).id == booking.id


def test_third_party_gets_not_found(service, make_booking, stranger):
    booking = make_booking(NOW + DAY, NOW + 2 * DAY)
    with pytest.raises(NotFoundError):
        service.get_by_id(stranger.id, booking.id)


def test_unknown_booking_not_found(service, booker):
    with pytest.raises(NotFoundError):
        service.get_by_id(booker.id, 12345)


# -----------------
# Full request flow
# -----------------


def test_request_approve_and_list(service, item, owner, booker, stranger):
    booking = service.create(booker.id, item.id, NOW + DAY, NOW + 2 * DAY)
    assert booking.status == BookingStatus.WAITING

    approved = service.set_approval(owner.id, booking.id, True)
    assert approved.status == BookingStatus.APPROVED

    with pytest.raises(NotFoundError):
        service.get_by_id(stranger.id, booking.id)

    future = service.list_for_booker(booker.id, BookingState.FUTURE)
    assert [b.id for b in future] == [booking.id]
    assert service.list_for_booker(booker.id, BookingState.PAST) == []


# ----------
# Timestamps
# ----------


def test_booking_times_round_trip(service, item, booker):
    booking = service.create(booker.id, item.id, NOW + DAY, NOW + 2 * DAY)

    with Session(engine) as fresh:
        stored = BookingRepository(fresh).require(booking.id)
        assert stored.start == NOW + DAY
        assert stored.end == NOW + 2 * DAY
        assert stored.start.tzinfo is None


def test_aware_input_is_stored_as_local_time():
    start = datetime.datetime(2025, 6, 2, 9, 0, tzinfo=datetime.timezone.utc)
    request = BookingCreate(item_id=1, start=start, end=start + DAY)
    assert request.start.tzinfo is None
    assert request.start == start.astimezone().replace(tzinfo=None)
