from contextlib import asynccontextmanager
from typing import Annotated, Optional
from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlmodel import Session, SQLModel
import logging
import os

from .models import (
    BookingCreate,
    BookingRead,
    BookingState,
    CommentCreate,
    CommentRead,
    ItemCreate,
    ItemDetail,
    ItemRead,
    ItemRequestCreate,
    ItemRequestRead,
    ItemUpdate,
    UserCreate,
    UserRead,
    UserUpdate,
)
from .bookings import BookingService
from .clock import Clock, system_clock
from .database import engine, get_session
from .exceptions import BadRequestError, ShareItError
from .item_requests import ItemRequestService
from .items import ItemService, comment_read
from .users import UserService

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-Sharer-User-Id"


@asynccontextmanager
async def lifespan(app: FastAPI):
    SQLModel.metadata.create_all(engine)
    yield


app = FastAPI(
    lifespan=lifespan,
    title="ShareIt item rental API",
    description="API to list items, book them from other users, and review finished rentals.",
    version="0.1.0",
)


@app.exception_handler(ShareItError)
async def shareit_error_handler(request: Request, exc: ShareItError):
    logger.warning(
        "%s %s failed with %s: %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def get_clock() -> Clock:
    return system_clock


def get_current_user_id(
    user_id: Annotated[int, Header(alias=USER_ID_HEADER, gt=0)],
) -> int:
    """Caller identity, already resolved upstream and trusted as-is."""
    return user_id


def get_optional_user_id(
    user_id: Annotated[Optional[int], Header(alias=USER_ID_HEADER, gt=0)] = None,
) -> Optional[int]:
    return user_id


def get_booking_service(
    session: Session = Depends(get_session), clock: Clock = Depends(get_clock)
) -> BookingService:
    return BookingService(session, clock)


def get_item_service(
    session: Session = Depends(get_session), clock: Clock = Depends(get_clock)
) -> ItemService:
    return ItemService(session, clock)


def get_user_service(session: Session = Depends(get_session)) -> UserService:
    return UserService(session)


def get_item_request_service(
    session: Session = Depends(get_session), clock: Clock = Depends(get_clock)
) -> ItemRequestService:
    return ItemRequestService(session, clock)


def parse_state(state: str = Query("ALL", description="Booking state filter")) -> BookingState:
    parsed = BookingState.parse(state)
    if parsed is None:
        raise BadRequestError(f"Unknown state: {state}")
    return parsed


# --- Users ---
@app.post(
    "/users",
    response_model=UserRead,
    summary="Register new user",
    response_description="User data",
    tags=["Users"],
)
def create_user(user: UserCreate, service: UserService = Depends(get_user_service)):
    """
    Register new user. Email addresses must be unique.
    """
    return service.create(user)


@app.get(
    "/users",
    response_model=list[UserRead],
    summary="List users",
    response_description="List of users",
    tags=["Users"],
)
def list_users(service: UserService = Depends(get_user_service)):
    return service.list()


@app.get(
    "/users/{id}",
    response_model=UserRead,
    summary="Get user",
    response_description="User data",
    tags=["Users"],
)
def get_user(id: int, service: UserService = Depends(get_user_service)):
    return service.get(id)


@app.patch(
    "/users/{id}",
    response_model=UserRead,
    summary="Update user",
    response_description="Updated user data",
    tags=["Users"],
)
def update_user(
    id: int, updated_user: UserUpdate, service: UserService = Depends(get_user_service)
):
    """
    Update name and/or email of a user; omitted fields are left unchanged.
    - **id**: User ID.
    """
    return service.update(id, updated_user)


@app.delete("/users/{id}", summary="Delete user", tags=["Users"])
def delete_user(id: int, service: UserService = Depends(get_user_service)):
    service.delete(id)
    return {"ok": True}


# --- Items ---
@app.post(
    "/items",
    response_model=ItemRead,
    summary="List new item for rent",
    response_description="Item data",
    tags=["Items"],
)
def create_item(
    item: ItemCreate,
    user_id: int = Depends(get_current_user_id),
    service: ItemService = Depends(get_item_service),
):
    """Add new item owned by the caller.
    - **request_id**: Optional item request this item answers
    """
    return service.create(user_id, item)


@app.patch(
    "/items/{id}",
    response_model=ItemRead,
    summary="Update item",
    response_description="Updated item data",
    tags=["Items"],
)
def update_item(
    id: int,
    updated_item: ItemUpdate,
    user_id: int = Depends(get_current_user_id),
    service: ItemService = Depends(get_item_service),
):
    """
    Update item by id. Only the owner may update an item.
    - **id**: Item ID.
    """
    return service.update(id, user_id, updated_item)


@app.get(
    "/items",
    response_model=list[ItemDetail],
    summary="List caller's items",
    response_description="Items with comments and adjacent bookings",
    tags=["Items"],
)
def list_items(
    user_id: int = Depends(get_current_user_id),
    service: ItemService = Depends(get_item_service),
):
    return service.list_for_owner(user_id)


@app.get(
    "/items/search",
    response_model=list[ItemRead],
    summary="Search available items",
    response_description="List of items",
    tags=["Items"],
)
def search_items(
    text: Optional[str] = Query(None, description="Text to look for in name or description"),
    service: ItemService = Depends(get_item_service),
):
    """
    Case-insensitive search over name and description of available items.
    - **text**: search text; blank text returns no items
    """
    return service.search(text)


@app.get(
    "/items/{id}",
    response_model=ItemDetail,
    summary="Get item",
    response_description="Item data with comments",
    tags=["Items"],
)
def get_item(
    id: int,
    user_id: Optional[int] = Depends(get_optional_user_id),
    service: ItemService = Depends(get_item_service),
):
    return service.get(id, user_id)


@app.post(
    "/items/{id}/comment",
    response_model=CommentRead,
    summary="Comment on a rented item",
    response_description="Comment data",
    tags=["Items"],
)
def add_comment(
    id: int,
    comment: CommentCreate,
    user_id: int = Depends(get_current_user_id),
    service: ItemService = Depends(get_item_service),
):
    """
    Leave a comment on an item the caller has rented; the caller's booking
    must be approved and already over.
    - **id**: Item ID.
    """
    return comment_read(service.add_comment(user_id, id, comment.text))


# --- Bookings ---
@app.post(
    "/bookings",
    response_model=BookingRead,
    summary="Request a booking",
    response_description="Booking data",
    tags=["Bookings"],
)
def create_booking(
    booking: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
    clock: Clock = Depends(get_clock),
):
    """Create new booking request, waiting for the owner's approval.
    - **item_id**: Item requested
    - **start**: Start of booking (datetime, not in the past)
    - **end**: End of booking (datetime, after start)
    """
    if booking.start < clock():
        raise BadRequestError("start must not be in the past")
    return service.create(user_id, booking.item_id, booking.start, booking.end)


@app.patch(
    "/bookings/{id}",
    response_model=BookingRead,
    summary="Approve or reject a booking",
    response_description="Updated booking data",
    tags=["Bookings"],
)
def set_booking_approval(
    id: int,
    approved: bool = Query(..., description="Approve (true) or reject (false)"),
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """
    Decide a waiting booking. Only the item's owner may do this, and only once.
    - **id**: Booking ID
    """
    return service.set_approval(user_id, id, approved)


@app.get(
    "/bookings/owner",
    response_model=list[BookingRead],
    summary="List bookings of caller's items",
    response_description="List of bookings",
    tags=["Bookings"],
)
def list_owner_bookings(
    state: BookingState = Depends(parse_state),
    from_: int = Query(0, alias="from", ge=0),
    size: Optional[int] = Query(None, gt=0),
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """List bookings of all items the caller owns, newest start first.
    - **state**: ALL, CURRENT, PAST, FUTURE, WAITING or REJECTED
    - **from**: Offset of the first booking
    - **size**: Maximum number of bookings
    """
    return service.list_for_owner(user_id, state, from_, size)


@app.get(
    "/bookings/{id}",
    response_model=BookingRead,
    summary="Get booking",
    response_description="Booking data",
    tags=["Bookings"],
)
def get_booking(
    id: int,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """Visible to the booker and the item's owner only."""
    return service.get_by_id(user_id, id)


@app.get(
    "/bookings",
    response_model=list[BookingRead],
    summary="List caller's bookings",
    response_description="List of bookings",
    tags=["Bookings"],
)
def list_booker_bookings(
    state: BookingState = Depends(parse_state),
    from_: int = Query(0, alias="from", ge=0),
    size: Optional[int] = Query(None, gt=0),
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """List bookings made by the caller, newest start first.
    - **state**: ALL, CURRENT, PAST, FUTURE, WAITING or REJECTED
    - **from**: Offset of the first booking
    - **size**: Maximum number of bookings
    """
    return service.list_for_booker(user_id, state, from_, size)


# --- Item requests ---
@app.post(
    "/requests",
    response_model=ItemRequestRead,
    summary="Ask for an item",
    response_description="Request data",
    tags=["Requests"],
)
def create_item_request(
    request: ItemRequestCreate,
    user_id: int = Depends(get_current_user_id),
    service: ItemRequestService = Depends(get_item_request_service),
):
    return service.create(user_id, request)


@app.get(
    "/requests",
    response_model=list[ItemRequestRead],
    summary="List caller's requests",
    response_description="Requests with the items offered for them",
    tags=["Requests"],
)
def list_own_item_requests(
    user_id: int = Depends(get_current_user_id),
    service: ItemRequestService = Depends(get_item_request_service),
):
    return service.list_own(user_id)


@app.get(
    "/requests/all",
    response_model=list[ItemRequestRead],
    summary="List other users' requests",
    response_description="Requests, newest first",
    tags=["Requests"],
)
def list_other_item_requests(
    from_: int = Query(0, alias="from"),
    size: int = Query(10),
    user_id: int = Depends(get_current_user_id),
    service: ItemRequestService = Depends(get_item_request_service),
):
    """
    - **from**: Offset of the first request
    - **size**: Page size
    """
    return service.list_others(user_id, from_, size)


@app.get(
    "/requests/{id}",
    response_model=ItemRequestRead,
    summary="Get request",
    response_description="Request with the items offered for it",
    tags=["Requests"],
)
def get_item_request(
    id: int,
    user_id: int = Depends(get_current_user_id),
    service: ItemRequestService = Depends(get_item_request_service),
):
    return service.get(user_id, id)
