"""
Capability check — the one place that turns a session identity into an
``AuthContext``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kungfu import Result, Ok, Error

from storefront.auth._types import AuthContext, Role
from storefront.errors import Forbidden, Unauthorized

IDENTITY_KEY = "identity"


def identity_of(ctx: AuthContext) -> dict[str, Any]:
    """Session-storable form of ``ctx``."""
    return {"user_id": ctx.user_id, "role": ctx.role.value}


def authorize(
    identity: Mapping[str, Any] | None,
    require: Role | None = None,
) -> Result[AuthContext, Unauthorized]:
    """
    ``identity`` is whatever the session holds (``None`` when logged out).

    ``require=Role.ADMIN`` additionally rejects customers with ``Forbidden``.
    """
    if not identity or "user_id" not in identity:
        return Error(Unauthorized())

    try:
        ctx = AuthContext(user_id=int(identity["user_id"]), role=Role(identity.get("role")))
    except (TypeError, ValueError):
        return Error(Unauthorized("Your session is invalid, please log in again"))

    if require is not None and ctx.role is not require:
        return Error(Forbidden())
    return Ok(ctx)


__all__ = ("IDENTITY_KEY", "identity_of", "authorize")
