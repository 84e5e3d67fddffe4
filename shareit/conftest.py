import datetime
import os

import pytest
from sqlmodel import SQLModel, Session

os.environ["POSTGRES_URI"] = "sqlite://"

from .database import engine
from .models import Booking, BookingStatus, Item, User

NOW = datetime.datetime(2025, 6, 1, 12, 0, 0)
DAY = datetime.timedelta(days=1)


@pytest.fixture(autouse=True)
def reset_database():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session


def add(session: Session, obj):
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return obj


@pytest.fixture
def owner(session):
    return add(session, User(name="Olga", email="olga@example.com"))


@pytest.fixture
def booker(session):
    return add(session, User(name="Boris", email="boris@example.com"))


@pytest.fixture
def stranger(session):
    return add(session, User(name="Vera", email="vera@example.com"))


@pytest.fixture
def item(session, owner):
    return add(
        session,
        Item(name="Drill", description="Cordless drill", available=True, owner_id=owner.id),
    )


@pytest.fixture
def make_booking(session, item, booker):
    def _make(start, end, status=BookingStatus.WAITING, item_id=None, booker_id=None):
        return add(
            session,
            Booking(
                start=start,
                end=end,
                status=status,
                item_id=item_id or item.id,
                booker_id=booker_id or booker.id,
            ),
        )

    return _make
