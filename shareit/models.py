from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime
from pydantic import AfterValidator, StringConstraints, field_validator, model_validator
import datetime
import enum
from typing import Annotated, Optional


def to_naive_local(value: datetime.datetime) -> datetime.datetime:
    """Drop tzinfo after converting to local time; bookings are stored naive."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class BookingStatus(str, enum.Enum):
    WAITING = "WAITING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"


class BookingState(str, enum.Enum):
    ALL = "ALL"
    CURRENT = "CURRENT"
    FUTURE = "FUTURE"
    PAST = "PAST"
    WAITING = "WAITING"
    REJECTED = "REJECTED"

    @classmethod
    def parse(cls, value: str) -> Optional["BookingState"]:
        for state in cls:
            if state.value == value.upper():
                return state
        return None


############
# USER MODEL
############


def check_email(value: str) -> str:
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValueError("invalid email address")
    return value


EmailAddress = Annotated[str, StringConstraints(max_length=512), AfterValidator(check_email)]


class UserBase(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(index=True, unique=True, max_length=512)


class User(UserBase, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)


class UserCreate(UserBase):
    email: EmailAddress


class UserUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailAddress] = None


class UserRead(UserBase):
    id: int


class UserShort(SQLModel):
    id: int
    name: str


###################
# ITEM REQUEST MODEL
###################


class ItemRequestBase(SQLModel):
    description: str = Field(min_length=1, max_length=1000)


class ItemRequest(ItemRequestBase, table=True):
    __tablename__ = "requests"

    id: Optional[int] = Field(default=None, primary_key=True)
    requester_id: int = Field(foreign_key="users.id", index=True)
    created: datetime.datetime = Field(sa_type=DateTime)


class ItemRequestCreate(ItemRequestBase):
    pass


############
# ITEM MODEL
############


class ItemBase(SQLModel):
    name: str = Field(min_length=1, max_length=50)
    description: str = Field(min_length=1, max_length=500)
    available: bool


class Item(ItemBase, table=True):
    __tablename__ = "items"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="users.id", index=True)
    request_id: Optional[int] = Field(default=None, foreign_key="requests.id")


class ItemCreate(ItemBase):
    request_id: Optional[int] = None


class ItemUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    available: Optional[bool] = None
    request_id: Optional[int] = None


class ItemRead(ItemBase):
    id: int
    owner_id: int
    request_id: Optional[int] = None


class ItemShort(SQLModel):
    id: int
    name: str


class ItemAnswer(SQLModel):
    id: int
    name: str
    owner_id: int


###############
# BOOKING MODEL
###############


class BookingBase(SQLModel):
    start: datetime.datetime = Field(sa_type=DateTime, sa_column_kwargs={"name": "start_date"})
    end: datetime.datetime = Field(sa_type=DateTime, sa_column_kwargs={"name": "end_date"})


class Booking(BookingBase, table=True):
    __tablename__ = "bookings"

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: int = Field(foreign_key="items.id", index=True)
    booker_id: int = Field(foreign_key="users.id", index=True)
    status: BookingStatus = Field(default=BookingStatus.WAITING)

    item: Optional[Item] = Relationship()
    booker: Optional[User] = Relationship()


class BookingCreate(BookingBase):
    item_id: int

    @field_validator("start", "end")
    @classmethod
    def normalise_timezone(cls, value: datetime.datetime) -> datetime.datetime:
        return to_naive_local(value)

    @model_validator(mode="after")
    def check_interval(self):
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class BookingRead(BookingBase):
    id: int
    status: BookingStatus
    item: ItemShort
    booker: UserShort


class BookingShort(SQLModel):
    id: int
    booker_id: int
    start: datetime.datetime
    end: datetime.datetime


###############
# COMMENT MODEL
###############


class CommentBase(SQLModel):
    text: str = Field(min_length=1, max_length=500)


class Comment(CommentBase, table=True):
    __tablename__ = "comments"

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: int = Field(foreign_key="items.id", index=True)
    author_id: int = Field(foreign_key="users.id")
    created: datetime.datetime = Field(sa_type=DateTime)

    author: Optional[User] = Relationship()


class CommentCreate(CommentBase):
    pass


class CommentRead(CommentBase):
    id: int
    item_id: int
    author_name: str
    created: datetime.datetime


###########################
# COMPOSITE RESPONSE MODELS
###########################


class ItemDetail(ItemRead):
    comments: list[CommentRead] = []
    last_booking: Optional[BookingShort] = None
    next_booking: Optional[BookingShort] = None


class ItemRequestRead(ItemRequestBase):
    id: int
    requester_id: int
    created: datetime.datetime
    items: list[ItemAnswer] = []
