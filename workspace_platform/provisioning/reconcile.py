"""Lazy repair for users whose signup provisioning never finished.

The signup saga swallows its failures, so something has to notice users
left without a workspace (or with a workspace but no trial). This module
is that something: it is called lazily from the API when a user asks for
their workspace, and in bulk from `scripts/fix_orphaned_users.py`.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from workspace_platform.auth.crud import list_users_without_membership, principal_from_user
from workspace_platform.db import connect
from workspace_platform.models import Principal
from workspace_platform.util.time import utcnow

from .errors import ProvisioningStepError
from .orchestrator import (
    ProvisioningPolicy,
    build_trial_entitlement,
    mandatory_write,
    policy_from_config,
    provision_principal,
)
from .store import ProvisioningStore, SqlProvisioningStore


def _debug(msg: str) -> None:
    print(f"[reconcile] {msg}")


@dataclass(frozen=True)
class EnsureResult:
    workspace_id: str
    was_created: bool
    plan: str
    status: str


def ensure_user_has_workspace(
    principal: Principal,
    *,
    store: ProvisioningStore,
    policy: ProvisioningPolicy | None = None,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[Any] = None,
) -> EnsureResult:
    """Make sure `principal` has a personal workspace with a trial.

    - Has a membership + trial: returns it untouched.
    - Has a membership but no trial: adds the 14-day trial (best-effort).
    - Has nothing: runs the full provisioning saga; raises its error if a
      mandatory step fails (unlike signup, the caller here wants to know).
    """
    policy = policy or ProvisioningPolicy()
    now = now or utcnow()

    membership = store.find_membership(principal.id)
    if membership is not None:
        trial = store.find_trial_entitlement(membership.workspace_id)
        if trial is not None:
            return EnsureResult(membership.workspace_id, False, trial.plan_tier, trial.status)

        _debug(f"Workspace exists but no trial, creating one: {membership.workspace_id}")
        trial = build_trial_entitlement(membership.workspace_id, policy=policy, now=now)
        try:
            mandatory_write(
                "create-trial",
                lambda: store.insert_trial_entitlement(trial),
                landed=lambda: store.find_trial_entitlement(membership.workspace_id) is not None,
                policy=policy,
                sleep=sleep,
            )
        except ProvisioningStepError as e:
            _debug(f"Failed to create trial for workspace={membership.workspace_id}: {e}")
            return EnsureResult(membership.workspace_id, False, "free", "active")
        return EnsureResult(membership.workspace_id, False, trial.plan_tier, trial.status)

    _debug(f"Creating personal workspace for orphaned user: {principal.id}")
    result = provision_principal(principal, store=store, policy=policy, now=now, sleep=sleep, rng=rng)
    if result.error is not None:
        raise result.error
    if result.already_provisioned and result.membership is not None:
        # Lost a race with the signup run; report what it made.
        return ensure_user_has_workspace(principal, store=store, policy=policy, now=now, sleep=sleep, rng=rng)

    if result.workspace is None or result.entitlement is None:
        raise RuntimeError(f"provisioning for user={principal.id} finished without a workspace")
    return EnsureResult(result.workspace.workspace_id, True, result.entitlement.plan_tier, result.entitlement.status)


def find_orphaned_users(db_dsn: str) -> List[Principal]:
    with connect(db_dsn) as conn:
        rows = list_users_without_membership(conn)
    return [principal_from_user(r) for r in rows]


def fix_orphaned_users(cfg: Any) -> Dict[str, int]:
    """Provision every user that has no workspace. Returns {"fixed": n, "errors": m}."""
    orphans = find_orphaned_users(cfg.DB_DSN)
    if not orphans:
        _debug("No orphaned users found")
        return {"fixed": 0, "errors": 0}

    _debug(f"Found {len(orphans)} orphaned users")
    store = SqlProvisioningStore(cfg.DB_DSN)
    policy = policy_from_config(cfg)

    fixed = 0
    errors = 0
    for p in orphans:
        try:
            ensure_user_has_workspace(p, store=store, policy=policy)
            fixed += 1
        except Exception as e:
            # One bad user must not stop the sweep.
            _debug(f"Failed to fix user {p.id}: {e}")
            errors += 1

    _debug(f"Fixed {fixed} users, {errors} errors")
    return {"fixed": fixed, "errors": errors}
