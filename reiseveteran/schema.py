"""Database schema for the Reiseveteran API.

Timestamps are ISO-8601 TEXT (UTC, with 'Z'). User ids are opaque strings
(`user_<ms>_<random>`) so that accounts created by older clients keep their ids.
"""

from __future__ import annotations


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Users / Auth
-- Local email/password accounts. Only password hashes are stored.
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY NOT NULL,
    email TEXT UNIQUE,
    password_hash TEXT,
    username TEXT UNIQUE,
    first_name TEXT,
    last_name TEXT,
    profile_image_url TEXT,

    -- Subscription tier: free|pro|veteran
    subscription_status TEXT NOT NULL DEFAULT 'free',
    billing_interval TEXT NOT NULL DEFAULT 'monthly', -- monthly|yearly
    subscription_expires_at TEXT,
    stripe_customer_id TEXT,
    stripe_subscription_id TEXT,

    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_users_subscription_status ON users (subscription_status);

-- Trips (only what plan gating needs; planning detail lives elsewhere)
CREATE TABLE IF NOT EXISTS trips (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    destination TEXT,
    start_date TEXT,
    end_date TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id)
);
CREATE INDEX IF NOT EXISTS idx_trips_user ON trips (user_id);
"""


def get_schema_sql() -> str:
    return SCHEMA_SQLITE
