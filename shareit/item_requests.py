"""Requests for items nobody has listed yet, and the items offered in answer."""

import logging
from typing import Sequence

from sqlmodel import Session

from .clock import Clock, system_clock
from .exceptions import BadRequestError
from .models import ItemAnswer, ItemRequest, ItemRequestCreate, ItemRequestRead
from .repository import ItemRepository, ItemRequestRepository, UserRepository

logger = logging.getLogger(__name__)


class ItemRequestService:
    def __init__(self, session: Session, clock: Clock = system_clock):
        self.requests = ItemRequestRepository(session)
        self.items = ItemRepository(session)
        self.users = UserRepository(session)
        self.clock = clock

    def _with_answers(self, requests: Sequence[ItemRequest]) -> list[ItemRequestRead]:
        answers: dict[int, list[ItemAnswer]] = {r.id: [] for r in requests}
        for item in self.items.list_for_requests(list(answers)):
            answers[item.request_id].append(
                ItemAnswer(id=item.id, name=item.name, owner_id=item.owner_id)
            )
        return [
            ItemRequestRead(**r.model_dump(), items=answers[r.id]) for r in requests
        ]

    def create(self, requester_id: int, data: ItemRequestCreate) -> ItemRequestRead:
        self.users.require(requester_id)
        request = self.requests.create(
            ItemRequest(
                description=data.description,
                requester_id=requester_id,
                created=self.clock(),
            )
        )
        logger.info("Item request %s created by user %s", request.id, requester_id)
        return ItemRequestRead(**request.model_dump())

    def list_own(self, requester_id: int) -> list[ItemRequestRead]:
        self.users.require(requester_id)
        return self._with_answers(self.requests.list_for_requester(requester_id))

    def list_others(self, user_id: int, offset: int = 0, size: int = 10) -> list[ItemRequestRead]:
        self.users.require(user_id)
        if offset < 0 or size <= 0:
            raise BadRequestError("from must be non-negative and size positive")
        return self._with_answers(self.requests.list_from_others(user_id, offset, size))

    def get(self, user_id: int, request_id: int) -> ItemRequestRead:
        self.users.require(user_id)
        return self._with_answers([self.requests.require(request_id)])[0]
