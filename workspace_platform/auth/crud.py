from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from workspace_platform.db import is_unique_violation
from workspace_platform.models import Principal
from workspace_platform.util.time import utcnow_iso

from .security import check_password, hash_password


MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d.pop("password_hash", None)
    return d


def principal_from_user(row: Any | Dict[str, Any]) -> Principal:
    return Principal(
        id=str(row["user_id"]),
        email=str(row["email"]) if row["email"] else None,
        name=(str(row["display_name"]) if row["display_name"] else None),
    )


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_user_by_id(conn: Any, user_id: str) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (str(user_id),),
    ).fetchone()


def verify_user_credentials(conn: Any, email: str, password: str) -> Optional[Any]:
    row = get_user_by_email(conn, email)
    if row is None:
        return None
    if int(row["is_active"] or 0) != 1:
        return None
    ok, new_hash = check_password(password, str(row["password_hash"]))
    if not ok:
        return None
    if new_hash:
        conn.execute(
            "UPDATE users SET password_hash=?, updated_at=? WHERE user_id=?",
            (new_hash, utcnow_iso(), str(row["user_id"])),
        )
    return row


def create_user(
    conn: Any,
    *,
    email: str,
    password: str,
    display_name: str | None = None,
    is_active: bool = True,
) -> Dict[str, Any]:
    """Insert a user row. This is the "principal created" moment.

    Provisioning is NOT run here: callers fire it off the request path
    (see `workspace_platform.provisioning.provision_in_background`).
    """
    e = normalize_email(email)
    if not e:
        raise ValueError("email_blank")
    if "@" not in e:
        raise ValueError("email_invalid")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValueError("password_too_short")

    existing = conn.execute("SELECT 1 FROM users WHERE email=?", (e,)).fetchone()
    if existing is not None:
        raise ValueError("email_exists")

    name = (display_name or "").strip() or None
    user_id = str(uuid.uuid4())
    now = utcnow_iso()
    try:
        conn.execute(
            """
            INSERT INTO users (user_id, email, display_name, password_hash, is_active, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?)
            """,
            (user_id, e, name, hash_password(password), 1 if is_active else 0, now, now),
        )
    except Exception as exc:
        # A concurrent registration took the email between the check and the insert.
        if is_unique_violation(exc):
            raise ValueError("email_exists") from exc
        raise
    row = get_user_by_id(conn, user_id)
    if row is None:
        raise RuntimeError(f"user {user_id} not readable after insert")
    return public_user(row)


def touch_last_login(conn: Any, user_id: str) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=?, updated_at=? WHERE user_id=?",
        (now, now, str(user_id)),
    )


def list_users_without_membership(conn: Any) -> List[Any]:
    """Users with no workspace membership at all (provisioning never landed)."""
    return conn.execute(
        """
        SELECT u.user_id, u.email, u.display_name
        FROM users u
        WHERE NOT EXISTS (
            SELECT 1 FROM workspace_members m WHERE m.user_id = u.user_id
        )
        ORDER BY u.created_at ASC
        """
    ).fetchall()
