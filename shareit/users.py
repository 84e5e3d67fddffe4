import logging
from typing import Sequence

from sqlmodel import Session

from .exceptions import DuplicateFieldError
from .models import User, UserCreate, UserUpdate
from .repository import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session: Session):
        self.users = UserRepository(session)

    def _check_email_free(self, email: str, user_id: int | None = None):
        existing = self.users.find_by_email(email)
        if existing and existing.id != user_id:
            raise DuplicateFieldError(f"Email {email} is already in use")

    def create(self, data: UserCreate) -> User:
        self._check_email_free(data.email)
        user = self.users.create(User(**data.model_dump()))
        logger.info("User %s created", user.id)
        return user

    def get(self, user_id: int) -> User:
        return self.users.require(user_id)

    def list(self) -> Sequence[User]:
        return self.users.list_all()

    def update(self, user_id: int, data: UserUpdate) -> User:
        user = self.users.require(user_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in changes:
            self._check_email_free(changes["email"], user_id)
        for key, value in changes.items():
            setattr(user, key, value)
        user = self.users.save(user)
        logger.info("User %s updated", user_id)
        return user

    def delete(self, user_id: int):
        user = self.users.require(user_id)
        self.users.delete(user)
        logger.info("User %s deleted", user_id)
