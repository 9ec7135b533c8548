"""First-login provisioning saga.

Runs once per new principal, off the request path:

  1. workspace          (mandatory, retried)
  2. owner membership   (mandatory, retried)
  3. 14-day trial       (mandatory, retried)
  4. onboarding enroll  (best-effort, never fatal)

There is no transaction across the steps and no rollback: if step 3 gives up,
the workspace and membership stay. A failed run is logged and left for the
lazy repair path (see `reconcile.ensure_user_has_workspace`). Account creation
has already succeeded by the time this runs and must not be affected.

Two runs for the same principal may overlap (signup plus a lazy repair). The
schema allows one owner membership per user, so the run that loses that insert
deletes its own workspace and reports the winner's as already provisioned.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional

from workspace_platform.models import (
    Membership,
    OnboardingEnrollment,
    Principal,
    TrialEntitlement,
    Workspace,
)
from workspace_platform.util.slug import generate_workspace_slug
from workspace_platform.util.time import to_iso, utcnow

from .errors import (
    OnboardingUnavailable,
    ProvisioningStepError,
    RowConflict,
    StepConflict,
    StepRetriesExhausted,
)
from .onboarding import build_enrollment
from .retry import run_with_retry
from .store import ProvisioningStore, SqlProvisioningStore


def _debug(msg: str) -> None:
    print(f"[provision] {msg}")


class ProvisioningState(str, Enum):
    NOT_STARTED = "not_started"
    WORKSPACE_CREATED = "workspace_created"
    MEMBERSHIP_CREATED = "membership_created"
    ENTITLEMENT_CREATED = "entitlement_created"
    ONBOARDING_ENROLLED = "onboarding_enrolled"
    ONBOARDING_SKIPPED = "onboarding_skipped"
    DONE = "done"


@dataclass(frozen=True)
class ProvisioningPolicy:
    attempts: int = 3
    base_delay: float = 0.1  # seconds
    trial_days: int = 14
    plan_tier: str = "pro"
    price_reference: str = "trial_pro"
    campaign_id: str = "onboarding"


def policy_from_config(cfg: Any) -> ProvisioningPolicy:
    return ProvisioningPolicy(
        attempts=max(1, int(cfg.PROVISION_RETRY_ATTEMPTS)),
        base_delay=max(0, int(cfg.PROVISION_RETRY_BASE_DELAY_MS)) / 1000.0,
        trial_days=int(cfg.TRIAL_DAYS),
        plan_tier=str(cfg.TRIAL_PLAN_TIER),
        price_reference=str(cfg.TRIAL_PRICE_REFERENCE),
        campaign_id=str(cfg.ONBOARDING_CAMPAIGN_ID),
    )


@dataclass
class ProvisioningResult:
    principal_id: str
    state: ProvisioningState = ProvisioningState.NOT_STARTED
    already_provisioned: bool = False
    workspace: Optional[Workspace] = None
    membership: Optional[Membership] = None
    entitlement: Optional[TrialEntitlement] = None
    enrollment: Optional[OnboardingEnrollment] = None
    error: Optional[ProvisioningStepError] = None
    onboarding_error: Optional[OnboardingUnavailable] = None

    @property
    def ok(self) -> bool:
        return self.state == ProvisioningState.DONE and self.error is None


def workspace_name(principal: Principal) -> str:
    label = (principal.name or "").strip()
    if not label and principal.email:
        label = principal.email.split("@", 1)[0].strip()
    return f"{label or 'User'}'s Workspace"


def build_trial_entitlement(workspace_id: str, *, policy: ProvisioningPolicy, now: datetime) -> TrialEntitlement:
    return TrialEntitlement(
        entitlement_id=str(uuid.uuid4()),
        workspace_id=workspace_id,
        # No payment has happened; real billing replaces this row later.
        billing_reference=f"trial_{uuid.uuid4()}",
        price_reference=policy.price_reference,
        plan_tier=policy.plan_tier,
        status="trialing",
        period_start=to_iso(now),
        period_end=to_iso(now + timedelta(days=int(policy.trial_days))),
    )


def mandatory_write(
    step: str,
    write: Callable[[], None],
    *,
    landed: Callable[[], bool],
    policy: ProvisioningPolicy,
    sleep: Callable[[float], None],
) -> bool:
    """Run one insert under the retry policy. True if this call wrote the row.

    On a RowConflict, `landed()` looks the row up by its own key. If it is
    there (an earlier attempt that reported failure, or a concurrent run that
    wrote the same row) the step counts as done. Otherwise something else
    holds the unique value and the conflict is raised as StepConflict, never
    retried.
    """
    calls = {"n": 0}

    def attempt() -> bool:
        calls["n"] += 1
        try:
            write()
            return True
        except RowConflict as e:
            if landed():
                _debug(f"{step}: conflict on attempt {calls['n']}; row is already there")
                return False
            raise StepConflict(step, e) from e

    try:
        return run_with_retry(
            attempt,
            attempts=policy.attempts,
            base_delay=policy.base_delay,
            name=step,
            sleep=sleep,
            fatal=(StepConflict,),
        )
    except StepConflict:
        raise
    except Exception as e:
        raise StepRetriesExhausted(step, calls["n"], e) from e


def _enroll_onboarding(
    principal: Principal,
    *,
    store: ProvisioningStore,
    policy: ProvisioningPolicy,
    now: datetime,
) -> OnboardingEnrollment:
    if not store.is_campaign_active(policy.campaign_id):
        raise OnboardingUnavailable(f"campaign {policy.campaign_id!r} missing or inactive")

    step = store.first_campaign_step(policy.campaign_id)
    if step is None:
        raise OnboardingUnavailable(f"campaign {policy.campaign_id!r} has no active steps")

    enrollment = build_enrollment(principal.id, step, now=now)
    store.insert_enrollment(enrollment)
    return enrollment


def _is_same_member(found: Optional[Membership], member: Membership) -> bool:
    return found is not None and found.member_id == member.member_id


def _yield_to_winner(
    result: ProvisioningResult,
    winner: Membership,
    *,
    store: ProvisioningStore,
    orphan: Workspace,
) -> ProvisioningResult:
    """Report the concurrent run's membership as ours and drop the workspace we made for nothing."""
    _debug(
        f"user={result.principal_id} provisioned concurrently (workspace={winner.workspace_id}); "
        f"removing duplicate workspace={orphan.workspace_id}"
    )
    try:
        store.delete_workspace(orphan.workspace_id)
    except Exception as e:
        # Nothing references it; a leftover row only costs its slug.
        _debug(f"could not remove duplicate workspace={orphan.workspace_id}: {e!r}")
    result.already_provisioned = True
    result.workspace = None
    result.membership = winner
    result.state = ProvisioningState.DONE
    return result


def provision_principal(
    principal: Principal,
    *,
    store: ProvisioningStore,
    policy: ProvisioningPolicy | None = None,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[Any] = None,
) -> ProvisioningResult:
    """Create workspace, owner membership, trial and onboarding enrollment for a new principal.

    Never raises. Inspect `result.ok` / `result.error` for the outcome.
    """
    policy = policy or ProvisioningPolicy()
    now = now or utcnow()
    now_iso = to_iso(now)
    result = ProvisioningResult(principal_id=principal.id)

    # Duplicate trigger (e.g. webhook redelivery): the first run already owns this.
    try:
        existing = store.find_membership(principal.id)
    except Exception as e:
        _debug(f"membership pre-check failed for user={principal.id}; continuing: {e!r}")
        existing = None
    if existing is not None:
        _debug(f"user={principal.id} already provisioned (workspace={existing.workspace_id})")
        result.already_provisioned = True
        result.membership = existing
        result.state = ProvisioningState.DONE
        return result

    _debug(f"Creating personal workspace for new user: {principal.id}")
    step = "create-workspace"
    try:
        ws = Workspace(
            workspace_id=str(uuid.uuid4()),
            name=workspace_name(principal),
            slug=generate_workspace_slug(principal.email or principal.id, rng=rng),
            created_at=now_iso,
            updated_at=now_iso,
        )
        mandatory_write(
            step,
            lambda: store.insert_workspace(ws),
            landed=lambda: store.get_workspace(ws.workspace_id) is not None,
            policy=policy,
            sleep=sleep,
        )
        result.workspace = ws
        result.state = ProvisioningState.WORKSPACE_CREATED

        step = "create-membership"
        member = Membership(
            member_id=str(uuid.uuid4()),
            workspace_id=ws.workspace_id,
            user_id=principal.id,
            role="owner",
            created_at=now_iso,
            updated_at=now_iso,
        )
        try:
            mandatory_write(
                step,
                lambda: store.insert_membership(member),
                landed=lambda: _is_same_member(store.find_membership(principal.id), member),
                policy=policy,
                sleep=sleep,
            )
        except StepConflict:
            # Another run for this principal got its owner membership in first.
            winner = store.find_membership(principal.id)
            if winner is None or winner.role != "owner":
                raise
            return _yield_to_winner(result, winner, store=store, orphan=ws)
        result.membership = member
        result.state = ProvisioningState.MEMBERSHIP_CREATED

        step = "create-trial"
        trial = build_trial_entitlement(ws.workspace_id, policy=policy, now=now)
        wrote = mandatory_write(
            step,
            lambda: store.insert_trial_entitlement(trial),
            landed=lambda: store.find_trial_entitlement(ws.workspace_id) is not None,
            policy=policy,
            sleep=sleep,
        )
        # A concurrent repair may have added the trial for this workspace first.
        result.entitlement = trial if wrote else (store.find_trial_entitlement(ws.workspace_id) or trial)
        result.state = ProvisioningState.ENTITLEMENT_CREATED
    except ProvisioningStepError as e:
        result.error = e
    except Exception as e:
        result.error = ProvisioningStepError(step, repr(e))

    if result.error is not None:
        _debug(
            "ERROR Failed to create personal workspace after retries: "
            f"user={principal.id} email={principal.email} step={result.error.step} "
            f"state={result.state.value} error={result.error}"
        )
        return result

    _debug(
        f"Personal workspace created: user={principal.id} workspace={ws.workspace_id} "
        f"slug={ws.slug} trial_end={trial.period_end}"
    )

    # Onboarding is strictly lower priority than the workspace: log and move on.
    try:
        result.enrollment = _enroll_onboarding(principal, store=store, policy=policy, now=now)
        result.state = ProvisioningState.ONBOARDING_ENROLLED
        _debug(f"user={principal.id} enrolled in campaign {policy.campaign_id}")
    except OnboardingUnavailable as e:
        result.onboarding_error = e
        result.state = ProvisioningState.ONBOARDING_SKIPPED
        _debug(f"user={principal.id} not enrolled: {e.reason}")
    except Exception as e:
        result.onboarding_error = OnboardingUnavailable(repr(e))
        result.state = ProvisioningState.ONBOARDING_SKIPPED
        _debug(f"Failed to enroll user={principal.id} in onboarding: {e!r}")

    result.state = ProvisioningState.DONE
    return result


def provision_from_config(cfg: Any, principal: Principal) -> ProvisioningResult:
    """Entry point for the "principal created" trigger."""
    return provision_principal(
        principal,
        store=SqlProvisioningStore(cfg.DB_DSN),
        policy=policy_from_config(cfg),
    )


def provision_in_background(cfg: Any, principal: Principal) -> threading.Thread:
    """Fire-and-forget provisioning on its own thread. The caller never waits on it."""
    t = threading.Thread(
        target=provision_from_config,
        args=(cfg, principal),
        name=f"provision-{principal.id}",
        daemon=False,
    )
    t.start()
    return t
