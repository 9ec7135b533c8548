"""Default onboarding campaign definitions + idempotent seeding.

Provisioning only *enrolls* a new user (first step + when it fires). Sending
the emails is someone else's job; this module just makes sure the campaign
rows exist so enrollment has something to point at.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Optional, Tuple

from workspace_platform.models import OnboardingEnrollment, OnboardingStep
from workspace_platform.util.time import to_iso, utcnow, utcnow_iso

from . import crud


def _debug(msg: str) -> None:
    print(f"[onboarding] {msg}")


@dataclass(frozen=True)
class CampaignStepDef:
    sequence: int
    delay_minutes: int
    template_name: str
    subject: str


@dataclass(frozen=True)
class CampaignDef:
    campaign_id: str
    name: str
    trigger_event: str
    steps: Tuple[CampaignStepDef, ...]


DEFAULT_CAMPAIGNS: List[CampaignDef] = [
    CampaignDef(
        campaign_id="onboarding",
        name="New User Onboarding",
        trigger_event="signup",
        steps=(
            CampaignStepDef(1, 0, "drip-welcome", "Welcome aboard - let's get started!"),
            CampaignStepDef(2, 24 * 60, "drip-first-link", "Ready to create your first link?"),
            CampaignStepDef(3, 3 * 24 * 60, "drip-features", "3 features you might not know about"),
            CampaignStepDef(4, 7 * 24 * 60, "drip-custom-domain", "Why branded links get more clicks"),
        ),
    ),
]


def initialize_campaigns(conn: Any, campaigns: List[CampaignDef] | None = None) -> int:
    """Insert any missing campaigns (and their steps). Returns how many were created."""
    created = 0
    now = utcnow_iso()
    for campaign in campaigns if campaigns is not None else DEFAULT_CAMPAIGNS:
        existing = conn.execute(
            "SELECT 1 FROM onboarding_campaigns WHERE campaign_id=?",
            (campaign.campaign_id,),
        ).fetchone()
        if existing is not None:
            continue

        conn.execute(
            """
            INSERT INTO onboarding_campaigns (campaign_id, name, trigger_event, is_active, created_at)
            VALUES (?,?,?,1,?)
            """,
            (campaign.campaign_id, campaign.name, campaign.trigger_event, now),
        )
        for step in campaign.steps:
            conn.execute(
                """
                INSERT INTO onboarding_steps (step_id, campaign_id, sequence, delay_minutes, template_name, subject, is_active)
                VALUES (?,?,?,?,?,?,1)
                """,
                (
                    f"{campaign.campaign_id}:{step.sequence}",
                    campaign.campaign_id,
                    int(step.sequence),
                    int(step.delay_minutes),
                    step.template_name,
                    step.subject,
                ),
            )
        created += 1
        _debug(f"Initialized campaign: {campaign.name}")
    return created


def build_enrollment(user_id: str, step: OnboardingStep, *, now: datetime) -> OnboardingEnrollment:
    """An active enrollment parked on `step`, due `step.delay_minutes` after `now`."""
    return OnboardingEnrollment(
        enrollment_id=str(uuid.uuid4()),
        user_id=str(user_id),
        campaign_id=step.campaign_id,
        status="active",
        current_step_id=step.step_id,
        next_fire_at=to_iso(now + timedelta(minutes=int(step.delay_minutes))),
        steps_sent=0,
        started_at=to_iso(now),
    )


def enroll_user_in_campaign(
    conn: Any,
    user_id: str,
    campaign_id: str,
    *,
    now: datetime | None = None,
) -> Optional[OnboardingEnrollment]:
    """Enroll a user outside the signup flow (backfills, re-enrollment).

    Returns None when the user is already enrolled, or the campaign is
    inactive or has no active steps.
    """
    if crud.get_enrollment(conn, user_id, campaign_id) is not None:
        _debug(f"User {user_id} already enrolled in {campaign_id}")
        return None
    if not crud.is_campaign_active(conn, campaign_id):
        _debug(f"Campaign {campaign_id} not found or inactive")
        return None
    step = crud.get_first_campaign_step(conn, campaign_id)
    if step is None:
        _debug(f"Campaign {campaign_id} has no active steps")
        return None

    enrollment = build_enrollment(user_id, step, now=now or utcnow())
    crud.insert_enrollment(conn, enrollment)
    _debug(f"Enrolled user {user_id} in {campaign_id}")
    return enrollment
