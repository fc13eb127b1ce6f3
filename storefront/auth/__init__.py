"""
Auth — roles, request context, users.

    from storefront import auth

    match auth.authorize(request.session.get(auth.IDENTITY_KEY), require=auth.Role.ADMIN):
        case Ok(ctx):
            ...
        case Error(e):
            ...
"""

from storefront.auth._types import Role, AuthContext, User
from storefront.auth._authorize import IDENTITY_KEY, identity_of, authorize
from storefront.auth._users import UserStore, hash_password, verify_password

__all__ = (
    "Role",
    "AuthContext",
    "User",
    "IDENTITY_KEY",
    "identity_of",
    "authorize",
    "UserStore",
    "hash_password",
    "verify_password",
)
