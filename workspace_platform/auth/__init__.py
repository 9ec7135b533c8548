"""Authentication helpers.

This project intentionally keeps auth lightweight:

- Users table (email/password hash)
- Stateless signed session tokens (HS256, JWT-compatible)

The API supports both:

- `Authorization: Bearer <token>` (useful for scripts / API clients)
- A secure httpOnly cookie (set by `/auth/login` and `/auth/register`)

Verification never touches the DB, so it is safe to run on every request.
"""

from .deps import get_current_principal, get_optional_principal
from .crud import create_user, verify_user_credentials
from .session import (
    SessionKeys,
    VerificationFailure,
    create_session_token,
    session_keys_from_config,
    verify_session_token,
)

__all__ = [
    "get_current_principal",
    "get_optional_principal",
    "create_user",
    "verify_user_credentials",
    "SessionKeys",
    "VerificationFailure",
    "create_session_token",
    "session_keys_from_config",
    "verify_session_token",
]
