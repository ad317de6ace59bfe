"""Authentication / authorization helpers.

Auth is deliberately small:

- Users table (email/password hash + subscription tier)
- JWT access tokens sent as `Authorization: Bearer <token>`

The browser keeps the token in local storage and forwards it on every call;
the API never sets cookies. Administrative endpoints use a shared key
(`X-Admin-Key`) instead of a user role.
"""

from .deps import get_config, get_current_user, get_token_subject, require_admin_key
from .crud import bootstrap_demo_user_if_enabled, create_user

__all__ = [
    "get_config",
    "get_current_user",
    "get_token_subject",
    "require_admin_key",
    "bootstrap_demo_user_if_enabled",
    "create_user",
]
