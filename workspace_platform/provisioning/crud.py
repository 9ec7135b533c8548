from __future__ import annotations

from typing import Any, Optional

from workspace_platform.models import (
    Membership,
    OnboardingEnrollment,
    OnboardingStep,
    TrialEntitlement,
    Workspace,
)
from workspace_platform.util.time import utcnow_iso


def insert_workspace(conn: Any, ws: Workspace) -> None:
    conn.execute(
        """
        INSERT INTO workspaces (workspace_id, name, slug, created_at, updated_at)
        VALUES (?,?,?,?,?)
        """,
        (ws.workspace_id, ws.name, ws.slug, ws.created_at, ws.updated_at),
    )


def delete_workspace(conn: Any, workspace_id: str) -> None:
    conn.execute("DELETE FROM workspaces WHERE workspace_id=?", (str(workspace_id),))


def insert_membership(conn: Any, m: Membership) -> None:
    conn.execute(
        """
        INSERT INTO workspace_members (member_id, workspace_id, user_id, role, created_at, updated_at)
        VALUES (?,?,?,?,?,?)
        """,
        (m.member_id, m.workspace_id, m.user_id, m.role, m.created_at, m.updated_at),
    )


def insert_trial_entitlement(conn: Any, t: TrialEntitlement) -> None:
    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO trial_entitlements (
            entitlement_id, workspace_id, billing_reference, price_reference, plan_tier, status,
            period_start, period_end, created_at, updated_at
        )
        VALUES (?,?,?,?,?,?,?,?,?,?)
        """,
        (
            t.entitlement_id,
            t.workspace_id,
            t.billing_reference,
            t.price_reference,
            t.plan_tier,
            t.status,
            t.period_start,
            t.period_end,
            now,
            now,
        ),
    )


def insert_enrollment(conn: Any, e: OnboardingEnrollment) -> None:
    conn.execute(
        """
        INSERT INTO onboarding_enrollments (
            enrollment_id, user_id, campaign_id, status, current_step_id, next_fire_at,
            steps_sent, started_at, created_at, updated_at
        )
        VALUES (?,?,?,?,?,?,?,?,?,?)
        """,
        (
            e.enrollment_id,
            e.user_id,
            e.campaign_id,
            e.status,
            e.current_step_id,
            e.next_fire_at,
            int(e.steps_sent),
            e.started_at,
            e.started_at,
            e.started_at,
        ),
    )


def _membership_from_row(row: Any) -> Membership:
    return Membership(
        member_id=str(row["member_id"]),
        workspace_id=str(row["workspace_id"]),
        user_id=str(row["user_id"]),
        role=str(row["role"]),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


def get_membership_for_user(conn: Any, user_id: str) -> Optional[Membership]:
    """The user's owner membership (their personal workspace), else their oldest one."""
    row = conn.execute(
        """
        SELECT * FROM workspace_members
        WHERE user_id=?
        ORDER BY CASE WHEN role='owner' THEN 0 ELSE 1 END, created_at ASC, member_id ASC
        LIMIT 1
        """,
        (str(user_id),),
    ).fetchone()
    if row is None:
        return None
    return _membership_from_row(row)


def get_workspace(conn: Any, workspace_id: str) -> Optional[Workspace]:
    row = conn.execute("SELECT * FROM workspaces WHERE workspace_id=?", (str(workspace_id),)).fetchone()
    if row is None:
        return None
    return Workspace(
        workspace_id=str(row["workspace_id"]),
        name=str(row["name"]),
        slug=str(row["slug"]),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


def get_trial_entitlement(conn: Any, workspace_id: str) -> Optional[TrialEntitlement]:
    row = conn.execute(
        "SELECT * FROM trial_entitlements WHERE workspace_id=?",
        (str(workspace_id),),
    ).fetchone()
    if row is None:
        return None
    return TrialEntitlement(
        entitlement_id=str(row["entitlement_id"]),
        workspace_id=str(row["workspace_id"]),
        billing_reference=str(row["billing_reference"]),
        price_reference=str(row["price_reference"]),
        plan_tier=str(row["plan_tier"]),
        status=str(row["status"]),
        period_start=str(row["period_start"]),
        period_end=str(row["period_end"]),
    )


def is_campaign_active(conn: Any, campaign_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM onboarding_campaigns WHERE campaign_id=? AND is_active=1",
        (str(campaign_id),),
    ).fetchone()
    return row is not None


def get_first_campaign_step(conn: Any, campaign_id: str) -> Optional[OnboardingStep]:
    row = conn.execute(
        """
        SELECT step_id, campaign_id, sequence, delay_minutes
        FROM onboarding_steps
        WHERE campaign_id=? AND is_active=1
        ORDER BY sequence ASC
        LIMIT 1
        """,
        (str(campaign_id),),
    ).fetchone()
    if row is None:
        return None
    return OnboardingStep(
        step_id=str(row["step_id"]),
        campaign_id=str(row["campaign_id"]),
        sequence=int(row["sequence"]),
        delay_minutes=int(row["delay_minutes"] or 0),
    )


def get_enrollment(conn: Any, user_id: str, campaign_id: str) -> Optional[OnboardingEnrollment]:
    row = conn.execute(
        "SELECT * FROM onboarding_enrollments WHERE user_id=? AND campaign_id=?",
        (str(user_id), str(campaign_id)),
    ).fetchone()
    if row is None:
        return None
    return OnboardingEnrollment(
        enrollment_id=str(row["enrollment_id"]),
        user_id=str(row["user_id"]),
        campaign_id=str(row["campaign_id"]),
        status=str(row["status"]),
        current_step_id=row["current_step_id"],
        next_fire_at=row["next_fire_at"],
        steps_sent=int(row["steps_sent"] or 0),
        started_at=str(row["started_at"]),
    )
