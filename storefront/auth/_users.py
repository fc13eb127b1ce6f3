"""
User store — register / authenticate.

Passwords are stored as bcrypt hashes; the cost factor comes from settings.
"""

from __future__ import annotations

import logging

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from kungfu import Result, Ok, Error

from storefront.auth._types import Role, User
from storefront.db import Database, UserTable
from storefront.errors import PersistenceError, ShopError, Unauthorized, ValidationError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, *, rounds: int) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("ascii")


def verify_password(password: str, encoded: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), encoded.encode("ascii"))
    except ValueError:
        # not a bcrypt hash
        return False


def _to_user(row: UserTable) -> User:
    return User(id=row.id, username=row.username, email=row.email, role=Role(row.role))


class UserStore:
    def __init__(self, database: Database, *, rounds: int = 12) -> None:
        self._db = database
        self._rounds = rounds

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        role: Role = Role.CUSTOMER,
    ) -> Result[User, ShopError]:
        username = username.strip()
        email = email.strip().lower()
        if not username:
            return Error(ValidationError("Username is required."))
        if "@" not in email:
            return Error(ValidationError("A valid email is required."))
        if not password:
            return Error(ValidationError("Password is required."))
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            return Error(ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes."))

        row = UserTable(
            username=username,
            email=email,
            password_hash=hash_password(password, rounds=self._rounds),
            role=role.value,
        )
        try:
            async with self._db.transaction() as session:
                session.add(row)
                await session.flush()
        except IntegrityError:
            return Error(ValidationError("Email is already registered."))
        except SQLAlchemyError as e:
            logger.exception("Error registering %s", email)
            return Error(PersistenceError(f"Registration failed: {e}"))

        logger.info("Registered user %s (%s)", row.id, role.value)
        return Ok(_to_user(row))

    async def authenticate(self, email: str, password: str) -> Result[User, ShopError]:
        try:
            async with self._db.session_factory() as session:
                row = await session.scalar(
                    select(UserTable).where(UserTable.email == email.strip().lower())
                )
        except SQLAlchemyError as e:
            logger.exception("Error authenticating %s", email)
            return Error(PersistenceError(f"Login failed: {e}"))

        if row is None or not verify_password(password, row.password_hash):
            return Error(Unauthorized("Invalid email or password"))
        return Ok(_to_user(row))


__all__ = ("UserStore", "hash_password", "verify_password")
