from __future__ import annotations

from typing import Callable, Optional, Protocol, TypeVar

from workspace_platform.db import connect, is_unique_violation
from workspace_platform.models import (
    Membership,
    OnboardingEnrollment,
    OnboardingStep,
    TrialEntitlement,
    Workspace,
)

from . import crud
from .errors import RowConflict


T = TypeVar("T")


class ProvisioningStore(Protocol):
    """The reads/writes the provisioning saga needs. Each call stands alone (no shared transaction)."""

    def find_membership(self, user_id: str) -> Optional[Membership]: ...

    def insert_workspace(self, ws: Workspace) -> None: ...

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]: ...

    def delete_workspace(self, workspace_id: str) -> None: ...

    def insert_membership(self, m: Membership) -> None: ...

    def insert_trial_entitlement(self, t: TrialEntitlement) -> None: ...

    def find_trial_entitlement(self, workspace_id: str) -> Optional[TrialEntitlement]: ...

    def is_campaign_active(self, campaign_id: str) -> bool: ...

    def first_campaign_step(self, campaign_id: str) -> Optional[OnboardingStep]: ...

    def insert_enrollment(self, e: OnboardingEnrollment) -> None: ...


class SqlProvisioningStore:
    """ProvisioningStore over `connect()`: one short connection per call.

    Uniqueness violations surface as RowConflict so the saga can tell
    "already written" apart from a transient failure.
    """

    def __init__(self, db_dsn: str):
        self.db_dsn = db_dsn

    def _run(self, fn: Callable[..., T], *args: object) -> T:
        try:
            with connect(self.db_dsn) as conn:
                return fn(conn, *args)
        except Exception as e:
            if is_unique_violation(e):
                raise RowConflict(str(e)) from e
            raise

    def find_membership(self, user_id: str) -> Optional[Membership]:
        return self._run(crud.get_membership_for_user, user_id)

    def insert_workspace(self, ws: Workspace) -> None:
        self._run(crud.insert_workspace, ws)

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        return self._run(crud.get_workspace, workspace_id)

    def delete_workspace(self, workspace_id: str) -> None:
        self._run(crud.delete_workspace, workspace_id)

    def insert_membership(self, m: Membership) -> None:
        self._run(crud.insert_membership, m)

    def insert_trial_entitlement(self, t: TrialEntitlement) -> None:
        self._run(crud.insert_trial_entitlement, t)

    def find_trial_entitlement(self, workspace_id: str) -> Optional[TrialEntitlement]:
        return self._run(crud.get_trial_entitlement, workspace_id)

    def is_campaign_active(self, campaign_id: str) -> bool:
        return self._run(crud.is_campaign_active, campaign_id)

    def first_campaign_step(self, campaign_id: str) -> Optional[OnboardingStep]:
        return self._run(crud.get_first_campaign_step, campaign_id)

    def insert_enrollment(self, e: OnboardingEnrollment) -> None:
        self._run(crud.insert_enrollment, e)
