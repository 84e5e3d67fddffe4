"""
Data access for the ShareIt tables.

Each repository wraps the request's `Session`; services never touch the
session directly. Lookups return None when a row is absent, `require`
raises `NotFoundError` instead.
"""

import datetime
from typing import Optional, Sequence

from sqlalchemy import func, update
from sqlmodel import Session, select

from .classifier import ORDERING, Subject, state_filter
from .exceptions import NotFoundError
from .models import (
    Booking,
    BookingState,
    BookingStatus,
    Comment,
    Item,
    ItemRequest,
    User,
)


class UserRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: User) -> User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def require(self, user_id: int) -> User:
        user = self.get(user_id)
        if not user:
            raise NotFoundError(f"User with id {user_id} not found")
        return user

    save = create

    def list_all(self) -> Sequence[User]:
        return self.session.exec(select(User).order_by(User.id)).all()

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email)).first()

    def delete(self, user: User) -> None:
        self.session.delete(user)
        self.session.commit()


class ItemRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, item: Item) -> Item:
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    save = create

    def get(self, item_id: int) -> Optional[Item]:
        return self.session.get(Item, item_id)

    def require(self, item_id: int) -> Item:
        item = self.get(item_id)
        if not item:
            raise NotFoundError(f"Item with id {item_id} not found")
        return item

    def list_for_owner(self, owner_id: int) -> Sequence[Item]:
        return self.session.exec(
            select(Item).where(Item.owner_id == owner_id).order_by(Item.id)
        ).all()

    def owner_has_items(self, owner_id: int) -> bool:
        return (
            self.session.exec(select(Item.id).where(Item.owner_id == owner_id)).first()
            is not None
        )

    def search(self, text: str) -> Sequence[Item]:
        pattern = f"%{text.upper()}%"
        return self.session.exec(
            select(Item)
            .where(Item.available == True)  # noqa: E712
            .where(
                (func.upper(Item.name).like(pattern))
                | (func.upper(Item.description).like(pattern))
            )
            .order_by(Item.id)
        ).all()

    def list_for_requests(self, request_ids: list[int]) -> Sequence[Item]:
        if not request_ids:
            return []
        return self.session.exec(
            select(Item).where(Item.request_id.in_(request_ids)).order_by(Item.id.desc())
        ).all()


class BookingRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, booking: Booking) -> Booking:
        self.session.add(booking)
        self.session.commit()
        self.session.refresh(booking)
        return booking

    def get(self, booking_id: int) -> Optional[Booking]:
        return self.session.get(Booking, booking_id)

    def require(self, booking_id: int) -> Booking:
        booking = self.get(booking_id)
        if not booking:
            raise NotFoundError(f"Booking with id {booking_id} not found")
        return booking

    def compare_and_set_status(
        self, booking_id: int, expected: BookingStatus, new: BookingStatus
    ) -> bool:
        """Set the status only if it is still `expected`. Returns False if another
        writer got there first."""
        result = self.session.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .where(Booking.status == expected)
            .values(status=new)
        )
        self.session.commit()
        return result.rowcount == 1

    def find_for(
        self,
        subject: Subject,
        subject_id: int,
        state: BookingState,
        now: datetime.datetime,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Sequence[Booking]:
        query = select(Booking)
        if subject == Subject.BOOKER:
            query = query.where(Booking.booker_id == subject_id)
        else:
            query = query.join(Item, Item.id == Booking.item_id).where(
                Item.owner_id == subject_id
            )
        query = query.where(*state_filter(state, now, subject)).order_by(*ORDERING)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return self.session.exec(query).all()

    def first_for_item_and_booker(
        self, item_id: int, booker_id: int
    ) -> Optional[Booking]:
        return self.session.exec(
            select(Booking)
            .where(Booking.item_id == item_id)
            .where(Booking.booker_id == booker_id)
            .order_by(Booking.id)
        ).first()

    def last_approved(self, item_id: int, now: datetime.datetime) -> Optional[Booking]:
        return self.session.exec(
            select(Booking)
            .where(Booking.item_id == item_id)
            .where(Booking.status == BookingStatus.APPROVED)
            .where(Booking.start <= now)
            .order_by(Booking.start.desc())
        ).first()

    def next_approved(self, item_id: int, now: datetime.datetime) -> Optional[Booking]:
        return self.session.exec(
            select(Booking)
            .where(Booking.item_id == item_id)
            .where(Booking.status == BookingStatus.APPROVED)
            .where(Booking.start > now)
            .order_by(Booking.start)
        ).first()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(Booking)).one()


class CommentRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, comment: Comment) -> Comment:
        self.session.add(comment)
        self.session.commit()
        self.session.refresh(comment)
        return comment

    def list_for_item(self, item_id: int) -> Sequence[Comment]:
        return self.session.exec(
            select(Comment).where(Comment.item_id == item_id).order_by(Comment.id)
        ).all()


class ItemRequestRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, request: ItemRequest) -> ItemRequest:
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        return request

    def require(self, request_id: int) -> ItemRequest:
        request = self.session.get(ItemRequest, request_id)
        if not request:
            raise NotFoundError(f"Request with id {request_id} not found")
        return request

    def list_for_requester(self, requester_id: int) -> Sequence[ItemRequest]:
        return self.session.exec(
            select(ItemRequest)
            .where(ItemRequest.requester_id == requester_id)
            .order_by(ItemRequest.created.desc())
        ).all()

    def list_from_others(
        self, requester_id: int, offset: int, limit: int
    ) -> Sequence[ItemRequest]:
        return self.session.exec(
            select(ItemRequest)
            .where(ItemRequest.requester_id != requester_id)
            .order_by(ItemRequest.created.desc())
            .offset(offset)
            .limit(limit)
        ).all()
