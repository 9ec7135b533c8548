"""Shared fixtures for the workspace-platform test suite."""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Dict, List, Optional

import pytest

from workspace_platform.auth.session import SessionKeys
from workspace_platform.config import Config
from workspace_platform.db import connect, init_db
from workspace_platform.models import (
    Membership,
    OnboardingEnrollment,
    OnboardingStep,
    TrialEntitlement,
    Workspace,
)
from workspace_platform.provisioning.errors import RowConflict
from workspace_platform.provisioning.onboarding import initialize_campaigns


TEST_SECRET = b"test-secret-that-is-at-least-32-bytes-long"


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@pytest.fixture
def keys() -> SessionKeys:
    return SessionKeys(secret=TEST_SECRET, ttl_seconds=3600)


# ---------------------------------------------------------------------------
# Database / config
# ---------------------------------------------------------------------------

@pytest.fixture
def db_dsn(tmp_path) -> str:
    """A fresh SQLite DB with schema + default onboarding campaign."""
    dsn = str(tmp_path / "test.sqlite")
    init_db(dsn)
    with connect(dsn) as conn:
        initialize_campaigns(conn)
    return dsn


@pytest.fixture
def cfg(db_dsn) -> Config:
    return replace(
        Config(),
        DB_DSN=db_dsn,
        AUTH_SESSION_SECRET=TEST_SECRET.decode("ascii"),
        AUTH_TOKEN_TTL_SECONDS=3600,
        AUTH_COOKIE_SECURE=False,
        AUTH_COOKIE_SAMESITE="lax",
        AUTH_COOKIE_DOMAIN=None,
        PROVISION_RETRY_BASE_DELAY_MS=1,
    )


# ---------------------------------------------------------------------------
# In-memory provisioning store with failure injection
# ---------------------------------------------------------------------------

class FakeStore:
    """ProvisioningStore double with the schema's unique keys (one owner membership per user).

    failures[method] = n  -> the next n calls raise RuntimeError (-1: every call)
    lost_acks[method] = n -> the next n calls write the row, then raise TimeoutError
    """

    def __init__(
        self,
        *,
        campaign_active: bool = True,
        first_step: Optional[OnboardingStep] = OnboardingStep("onboarding:1", "onboarding", 1, 0),
    ):
        self.workspaces: Dict[str, Workspace] = {}
        self.memberships: Dict[str, Membership] = {}
        self.entitlements: Dict[str, TrialEntitlement] = {}
        self.enrollments: Dict[str, OnboardingEnrollment] = {}
        self.campaign_active = campaign_active
        self.first_step = first_step
        self.calls: Counter = Counter()
        self.failures: Dict[str, int] = {}
        self.lost_acks: Dict[str, int] = {}

    def _enter(self, method: str) -> None:
        self.calls[method] += 1
        n = self.failures.get(method, 0)
        if n:
            if n > 0:
                self.failures[method] = n - 1
            raise RuntimeError(f"{method}: injected failure")

    def _leave(self, method: str) -> None:
        n = self.lost_acks.get(method, 0)
        if n:
            self.lost_acks[method] = n - 1
            raise TimeoutError(f"{method}: write landed but the ack was lost")

    def find_membership(self, user_id: str) -> Optional[Membership]:
        self._enter("find_membership")
        for m in self.memberships.values():
            if m.user_id == user_id:
                return m
        return None

    def insert_workspace(self, ws: Workspace) -> None:
        self._enter("insert_workspace")
        if ws.workspace_id in self.workspaces or any(w.slug == ws.slug for w in self.workspaces.values()):
            raise RowConflict("workspaces")
        self.workspaces[ws.workspace_id] = ws
        self._leave("insert_workspace")

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        self._enter("get_workspace")
        return self.workspaces.get(workspace_id)

    def delete_workspace(self, workspace_id: str) -> None:
        self._enter("delete_workspace")
        self.workspaces.pop(workspace_id, None)

    def insert_membership(self, m: Membership) -> None:
        self._enter("insert_membership")
        if m.member_id in self.memberships or any(
            x.user_id == m.user_id and (x.workspace_id == m.workspace_id or x.role == m.role == "owner")
            for x in self.memberships.values()
        ):
            raise RowConflict("workspace_members")
        self.memberships[m.member_id] = m
        self._leave("insert_membership")

    def insert_trial_entitlement(self, t: TrialEntitlement) -> None:
        self._enter("insert_trial_entitlement")
        if any(x.workspace_id == t.workspace_id for x in self.entitlements.values()):
            raise RowConflict("trial_entitlements")
        self.entitlements[t.entitlement_id] = t
        self._leave("insert_trial_entitlement")

    def find_trial_entitlement(self, workspace_id: str) -> Optional[TrialEntitlement]:
        self._enter("find_trial_entitlement")
        for t in self.entitlements.values():
            if t.workspace_id == workspace_id:
                return t
        return None

    def is_campaign_active(self, campaign_id: str) -> bool:
        self._enter("is_campaign_active")
        return self.campaign_active and campaign_id == "onboarding"

    def first_campaign_step(self, campaign_id: str) -> Optional[OnboardingStep]:
        self._enter("first_campaign_step")
        return self.first_step

    def insert_enrollment(self, e: OnboardingEnrollment) -> None:
        self._enter("insert_enrollment")
        self.enrollments[e.enrollment_id] = e


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_store():
    """Factory for stores with non-default campaign state."""
    return FakeStore
