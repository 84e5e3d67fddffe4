import logging
from typing import Sequence

from sqlmodel import Session

from .clock import Clock, system_clock
from .exceptions import CommentNotAllowedError, NotFoundError
from .models import (
    Booking,
    BookingShort,
    BookingStatus,
    Comment,
    CommentRead,
    Item,
    ItemCreate,
    ItemDetail,
    ItemUpdate,
)
from .repository import (
    BookingRepository,
    CommentRepository,
    ItemRepository,
    ItemRequestRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


def _short(booking: Booking | None) -> BookingShort | None:
    if booking is None:
        return None
    return BookingShort(
        id=booking.id,
        booker_id=booking.booker_id,
        start=booking.start,
        end=booking.end,
    )


def comment_read(comment: Comment) -> CommentRead:
    return CommentRead(
        id=comment.id,
        text=comment.text,
        item_id=comment.item_id,
        author_name=comment.author.name,
        created=comment.created,
    )


class ItemService:
    def __init__(self, session: Session, clock: Clock = system_clock):
        self.items = ItemRepository(session)
        self.users = UserRepository(session)
        self.bookings = BookingRepository(session)
        self.comments = CommentRepository(session)
        self.requests = ItemRequestRepository(session)
        self.clock = clock

    def create(self, owner_id: int, data: ItemCreate) -> Item:
        self.users.require(owner_id)
        if data.request_id is not None:
            self.requests.require(data.request_id)
        item = self.items.create(Item(**data.model_dump(), owner_id=owner_id))
        logger.info("Item %s created by user %s", item.id, owner_id)
        return item

    def update(self, item_id: int, owner_id: int, data: ItemUpdate) -> Item:
        self.users.require(owner_id)
        item = self.items.require(item_id)
        if item.owner_id != owner_id:
            raise NotFoundError(f"Item {item_id} does not belong to user {owner_id}")
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if changes.get("request_id") is not None:
            self.requests.require(changes["request_id"])
        for key, value in changes.items():
            setattr(item, key, value)
        item = self.items.save(item)
        logger.info("Item %s updated", item_id)
        return item

    def detail(self, item: Item, viewer_id: int | None = None) -> ItemDetail:
        """Item with its comments; the owner also sees the adjacent approved bookings."""
        result = ItemDetail(
            **item.model_dump(),
            comments=[comment_read(c) for c in self.comments.list_for_item(item.id)],
        )
        if viewer_id is not None and viewer_id == item.owner_id:
            now = self.clock()
            result.last_booking = _short(self.bookings.last_approved(item.id, now))
            result.next_booking = _short(self.bookings.next_approved(item.id, now))
        return result

    def get(self, item_id: int, viewer_id: int | None = None) -> ItemDetail:
        return self.detail(self.items.require(item_id), viewer_id)

    def list_for_owner(self, owner_id: int) -> list[ItemDetail]:
        self.users.require(owner_id)
        return [self.detail(item, owner_id) for item in self.items.list_for_owner(owner_id)]

    def search(self, text: str | None) -> Sequence[Item]:
        if not text or not text.strip():
            return []
        return self.items.search(text.strip())

    def add_comment(self, user_id: int, item_id: int, text: str) -> Comment:
        """Attach a comment from a renter who has finished an approved booking.

        Only the user's first booking of the item is considered.
        """
        user = self.users.require(user_id)
        item = self.items.require(item_id)
        now = self.clock()

        booking = self.bookings.first_for_item_and_booker(item.id, user.id)
        if booking is None:
            raise CommentNotAllowedError(
                f"User {user_id} has never rented item {item_id}"
            )
        if booking.status != BookingStatus.APPROVED:
            raise CommentNotAllowedError(
                f"User {user_id} has no approved booking of item {item_id}"
            )
        if not booking.end < now:
            raise CommentNotAllowedError(
                f"Booking of item {item_id} by user {user_id} has not finished yet"
            )

        comment = self.comments.create(
            Comment(text=text, item_id=item.id, author_id=user.id, created=now)
        )
        logger.info("Comment %s added to item %s by user %s", comment.id, item_id, user_id)
        return comment
