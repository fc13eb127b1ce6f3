"""
Identity types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from storefront._types import UserId


class Role(StrEnum):
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass(frozen=True, slots=True)
class AuthContext:
    """Who is asking. Built once per request and passed explicitly."""

    user_id: UserId
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True, slots=True)
class User:
    id: UserId
    username: str
    email: str
    role: Role

    def context(self) -> AuthContext:
        return AuthContext(user_id=self.id, role=self.role)


__all__ = ("Role", "AuthContext", "User")
