from __future__ import annotations

import re
import secrets
import sqlite3
import string
import time
from typing import Any, Dict, Optional

from reiseveteran.config import Config
from reiseveteran.db import connect
from reiseveteran.subscription.policy import SubscriptionStatus, is_valid_status
from reiseveteran.util.time import utcnow_iso

from .security import hash_password, verify_password


_ID_ALPHABET = string.ascii_lowercase + string.digits

USERNAME_MIN_LENGTH = 3
_USERNAME_RE = re.compile(r"[a-zA-Z0-9_-]+")

# Column -> profile key. Only these leave the server.
_PROFILE_FIELDS = (
    ("id", "id"),
    ("email", "email"),
    ("username", "username"),
    ("first_name", "firstName"),
    ("last_name", "lastName"),
    ("profile_image_url", "profileImageUrl"),
    ("subscription_status", "subscriptionStatus"),
)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def generate_user_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"user_{int(time.time() * 1000)}_{suffix}"


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    """UserProfile as the client sees it (camelCase, no secrets, no empty fields)."""
    d = dict(row)
    out: Dict[str, Any] = {}
    for col, key in _PROFILE_FIELDS:
        v = d.get(col)
        if v is not None and v != "":
            out[key] = v
    out.setdefault("subscriptionStatus", SubscriptionStatus.FREE.value)
    return out


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
        "SELECT * FROM users WHERE id=?",
        (str(user_id),),
    ).fetchone()


def verify_user_credentials(conn: Any, email: str, password: str) -> Optional[Any]:
    row = get_user_by_email(conn, email)
    if row is None:
        return None
    if not verify_password(password, row["password_hash"]):
        return None
    return row


def create_user(
    conn: Any,
    *,
    email: str,
    password: str | None,
    user_id: str | None = None,
    username: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    subscription_status: str = SubscriptionStatus.FREE.value,
) -> Dict[str, Any]:
    e = normalize_email(email)
    if not e:
        raise ValueError("email_blank")
    if not is_valid_status(subscription_status):
        raise ValueError("invalid_subscription_status")

    if get_user_by_email(conn, e) is not None:
        raise ValueError("user_exists")

    uid = user_id or generate_user_id()
    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO users (
            id, email, password_hash, username, first_name, last_name,
            subscription_status, created_at, updated_at
        )
        VALUES (?,?,?,?,?,?,?,?,?)
        """,
        (
            uid,
            e,
            hash_password(password) if password else None,
            username,
            first_name,
            last_name,
            subscription_status.strip().lower(),
            now,
            now,
        ),
    )
    row = get_user_by_id(conn, uid)
    if row is None:
        raise ValueError("user_create_failed")
    return public_user(row)


def upsert_demo_user(conn: Any, cfg: Config) -> Dict[str, Any]:
    """Return the shared demo account, creating it on first use.

    The demo account has no password and gets pro features.
    """
    row = get_user_by_email(conn, cfg.DEMO_USER_EMAIL)
    if row is not None:
        return public_user(row)
    return create_user(
        conn,
        email=cfg.DEMO_USER_EMAIL,
        password=None,
        user_id="demo-user-1",
        username="demo_user",
        first_name="Demo",
        last_name="User",
        subscription_status=SubscriptionStatus.PRO.value,
    )


def validate_username(username: str) -> Optional[str]:
    """Return the user-facing reason a username is unusable, or None."""
    u = username or ""
    if len(u) < USERNAME_MIN_LENGTH:
        return f"Username muss mindestens {USERNAME_MIN_LENGTH} Zeichen lang sein"
    if not _USERNAME_RE.fullmatch(u):
        return "Username darf nur Buchstaben, Zahlen, _ und - enthalten"
    return None


def is_username_available(conn: Any, username: str, *, exclude_user_id: str | None = None) -> bool:
    # Case-insensitive so "Alice" and "alice" cannot both exist.
    row = conn.execute(
        "SELECT id FROM users WHERE lower(username)=lower(?)",
        (username,),
    ).fetchone()
    if row is None:
        return True
    return exclude_user_id is not None and str(row["id"]) == str(exclude_user_id)


def set_username(conn: Any, *, user_id: str, username: str) -> Optional[Dict[str, Any]]:
    """Assign a username. Returns the updated profile, or None if the user is gone."""
    if validate_username(username) is not None:
        raise ValueError("username_invalid")
    if not is_username_available(conn, username, exclude_user_id=user_id):
        raise ValueError("username_taken")

    try:
        cur = conn.execute(
            "UPDATE users SET username=?, updated_at=? WHERE id=?",
            (username, utcnow_iso(), str(user_id)),
        )
    except sqlite3.IntegrityError:
        raise ValueError("username_taken")
    if cur.rowcount == 0:
        return None

    row = get_user_by_id(conn, user_id)
    return public_user(row) if row is not None else None


def update_user_subscription(
    conn: Any,
    *,
    user_id: str,
    subscription_status: str,
    billing_interval: str | None = None,
    subscription_expires_at: str | None = None,
) -> None:
    """Persist a tier change onto the user row."""
    if not is_valid_status(subscription_status):
        raise ValueError("invalid_subscription_status")

    now = utcnow_iso()
    fields: list[tuple[str, Any]] = [("subscription_status", subscription_status.strip().lower())]
    if billing_interval is not None:
        fields.append(("billing_interval", billing_interval))
    if subscription_expires_at is not None:
        fields.append(("subscription_expires_at", subscription_expires_at))
    fields.append(("updated_at", now))

    sets = ", ".join([f"{k}=?" for k, _ in fields])
    params = [v for _, v in fields] + [str(user_id)]
    conn.execute(
        f"UPDATE users SET {sets} WHERE id=?",
        params,
    )


def count_user_trips(conn: Any, user_id: str) -> int:
    row = conn.execute(
        "SELECT COUNT(*) AS n FROM trips WHERE user_id=?",
        (str(user_id),),
    ).fetchone()
    return int(row["n"] if row is not None else 0)


def bootstrap_demo_user_if_enabled(cfg: Config) -> Optional[Dict[str, Any]]:
    if not cfg.DEMO_LOGIN_ENABLED:
        return None
    with connect(cfg.DB_PATH) as conn:
        return upsert_demo_user(conn, cfg)
