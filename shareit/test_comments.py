import pytest

from .clock import fixed_clock
from .conftest import DAY, NOW
from .exceptions import CommentNotAllowedError, NotFoundError
from .items import ItemService
from .models import BookingStatus
from .repository import CommentRepository


@pytest.fixture
def service(session):
    return ItemService(session, fixed_clock(NOW))


def test_finished_approved_rental_can_comment(service, session, item, booker, make_booking):
    make_booking(NOW - 3 * DAY, NOW - DAY, BookingStatus.APPROVED)

    comment = service.add_comment(booker.id, item.id, "great")

    assert comment.id is not None
    assert comment.text == "great"
    assert comment.author_id == booker.id
    assert comment.item_id == item.id
    assert comment.created == NOW
    assert [c.id for c in CommentRepository(session).list_for_item(item.id)] == [comment.id]


def test_repeat_comments_are_kept(service, session, item, booker, make_booking):
    make_booking(NOW - 3 * DAY, NOW - DAY, BookingStatus.APPROVED)
    first = service.add_comment(booker.id, item.id, "great")
    second = service.add_comment(booker.id, item.id, "great")
    assert first.id != second.id
    assert len(CommentRepository(session).list_for_item(item.id)) == 2


def test_user_without_booking_cannot_comment(service, item, stranger, make_booking):
    make_booking(NOW - 3 * DAY, NOW - DAY, BookingStatus.APPROVED)
    with pytest.raises(CommentNotAllowedError):
        service.add_comment(stranger.id, item.id, "great")


@pytest.mark.parametrize("status", [BookingStatus.WAITING, BookingStatus.REJECTED, BookingStatus.CANCELED])
def test_unapproved_booking_cannot_comment(service, item, booker, make_booking, status):
    make_booking(NOW - 3 * DAY, NOW - DAY, status)
    with pytest.raises(CommentNotAllowedError):
        service.add_comment(booker.id, item.id, "great")


def test_unfinished_booking_cannot_comment(service, item, booker, make_booking):
    make_booking(NOW - DAY, NOW + DAY, BookingStatus.APPROVED)
    with pytest.raises(CommentNotAllowedError):
        service.add_comment(booker.id, item.id, "too early")


def test_booking_ending_now_is_not_finished(service, item, booker, make_booking):
    make_booking(NOW - DAY, NOW, BookingStatus.APPROVED)
    with pytest.raises(CommentNotAllowedError):
        service.add_comment(booker.id, item.id, "too early")


def test_only_first_booking_counts(service, item, booker, make_booking):
    make_booking(NOW - 5 * DAY, NOW - 4 * DAY, BookingStatus.REJECTED)
    make_booking(NOW - 3 * DAY, NOW - DAY, BookingStatus.APPROVED)
    with pytest.raises(CommentNotAllowedError):
        service.add_comment(booker.id, item.id, "great")


def test_unknown_user_or_item(service, item, booker):
    with pytest.raises(NotFoundError):
        service.add_comment(999, item.id, "great")
    with pytest.raises(NotFoundError):
        service.add_comment(booker.id, 999, "great")
