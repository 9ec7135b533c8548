"""Database schema for the Workspace Platform.

Runs on SQLite by default and on Postgres when the DSN says so.

Timestamps are ISO-8601 TEXT in UTC with a trailing Z on both engines. They sort
lexicographically in time order, so `next_fire_at <= now_iso` works as a due-check.

Ids are TEXT (uuid4) because they are minted by the application, not the engine:
the provisioning saga needs the workspace id before the first insert lands so that
retries re-send the exact same row.

The Postgres DDL is the SQLite DDL minus its PRAGMA lines.
"""

from __future__ import annotations


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Users / Auth
-- Email + password hash only. Sessions are stateless signed tokens; nothing is stored per session.
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    display_name TEXT,
    password_hash TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_login_at TEXT
);

-- Workspaces (one personal workspace is provisioned per new user)
CREATE TABLE IF NOT EXISTS workspaces (
    workspace_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- NOTE: user_id is not a foreign key: principals come from the identity subsystem,
-- which may live in another store.
CREATE TABLE IF NOT EXISTS workspace_members (
    member_id TEXT PRIMARY KEY,
    workspace_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('owner','admin','member')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (workspace_id, user_id),
    FOREIGN KEY (workspace_id) REFERENCES workspaces(workspace_id)
);
CREATE INDEX IF NOT EXISTS idx_members_user ON workspace_members (user_id);
-- At most one owner membership (personal workspace) per user, however many runs race.
CREATE UNIQUE INDEX IF NOT EXISTS uq_members_one_owner ON workspace_members (user_id) WHERE role = 'owner';

-- Trial entitlements. billing_reference is a placeholder (trial_<uuid>) until real billing
-- supersedes the row.
CREATE TABLE IF NOT EXISTS trial_entitlements (
    entitlement_id TEXT PRIMARY KEY,
    workspace_id TEXT NOT NULL UNIQUE,
    billing_reference TEXT NOT NULL UNIQUE,
    price_reference TEXT NOT NULL,
    plan_tier TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('trialing','active','canceled','expired')),
    period_start TEXT NOT NULL,
    period_end TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (workspace_id) REFERENCES workspaces(workspace_id)
);

-- Onboarding (lifecycle email sequences)
CREATE TABLE IF NOT EXISTS onboarding_campaigns (
    campaign_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    trigger_event TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS onboarding_steps (
    step_id TEXT PRIMARY KEY,
    campaign_id TEXT NOT NULL,
    sequence INTEGER NOT NULL,
    delay_minutes INTEGER NOT NULL DEFAULT 0,
    template_name TEXT NOT NULL,
    subject TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    UNIQUE (campaign_id, sequence),
    FOREIGN KEY (campaign_id) REFERENCES onboarding_campaigns(campaign_id)
);

CREATE TABLE IF NOT EXISTS onboarding_enrollments (
    enrollment_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    campaign_id TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('active','completed','paused','cancelled')),
    current_step_id TEXT,
    next_fire_at TEXT,
    steps_sent INTEGER NOT NULL DEFAULT 0,
    started_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (user_id, campaign_id),
    FOREIGN KEY (campaign_id) REFERENCES onboarding_campaigns(campaign_id)
);
CREATE INDEX IF NOT EXISTS idx_enrollments_due ON onboarding_enrollments (status, next_fire_at);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Column types above are portable as written; only the PRAGMA lines are SQLite-only.
    return "\n".join(line for line in ddl.splitlines() if not line.lstrip().upper().startswith("PRAGMA "))


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    return SCHEMA_POSTGRES if (dialect or "").lower() == "postgres" else SCHEMA_SQLITE
