from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Principal:
    """An authenticated identity: a verified token's subject + claims.

    Also the shape of the "user created" event that triggers provisioning.
    """

    id: str
    email: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class SessionPayload:
    """Signed claims inside a session token (JWT claim names on the wire)."""

    subject_id: str
    email: str
    issued_at: int
    expires_at: int
    display_name: str | None = None

    def to_claims(self) -> Dict[str, Any]:
        claims: Dict[str, Any] = {"sub": self.subject_id, "email": self.email}
        if self.display_name:
            claims["name"] = self.display_name
        claims["iat"] = int(self.issued_at)
        claims["exp"] = int(self.expires_at)
        return claims


@dataclass(frozen=True)
class Workspace:
    workspace_id: str
    name: str
    slug: str
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class Membership:
    member_id: str
    workspace_id: str
    user_id: str
    role: str
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class TrialEntitlement:
    entitlement_id: str
    workspace_id: str
    billing_reference: str
    price_reference: str
    plan_tier: str
    status: str
    period_start: str
    period_end: str


@dataclass(frozen=True)
class OnboardingStep:
    step_id: str
    campaign_id: str
    sequence: int
    delay_minutes: int


@dataclass(frozen=True)
class OnboardingEnrollment:
    enrollment_id: str
    user_id: str
    campaign_id: str
    status: str
    current_step_id: Optional[str]
    next_fire_at: Optional[str]
    steps_sent: int
    started_at: str
