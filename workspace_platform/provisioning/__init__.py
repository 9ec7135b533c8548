"""Post-signup provisioning: personal workspace, owner membership, trial, onboarding.

Entry points:

- `provision_principal` - the saga itself (never raises; returns a result)
- `provision_in_background` - fire-and-forget trigger for "user created"
- `ensure_user_has_workspace` / `fix_orphaned_users` - lazy repair of failed runs
"""

from .errors import (
    OnboardingUnavailable,
    ProvisioningStepError,
    RowConflict,
    StepConflict,
    StepRetriesExhausted,
)
from .orchestrator import (
    ProvisioningPolicy,
    ProvisioningResult,
    ProvisioningState,
    policy_from_config,
    provision_from_config,
    provision_in_background,
    provision_principal,
)
from .onboarding import enroll_user_in_campaign, initialize_campaigns
from .reconcile import EnsureResult, ensure_user_has_workspace, fix_orphaned_users
from .retry import run_with_retry
from .store import ProvisioningStore, SqlProvisioningStore

__all__ = [
    "OnboardingUnavailable",
    "ProvisioningStepError",
    "RowConflict",
    "StepConflict",
    "StepRetriesExhausted",
    "ProvisioningPolicy",
    "ProvisioningResult",
    "ProvisioningState",
    "policy_from_config",
    "provision_from_config",
    "provision_in_background",
    "provision_principal",
    "enroll_user_in_campaign",
    "initialize_campaigns",
    "EnsureResult",
    "ensure_user_has_workspace",
    "fix_orphaned_users",
    "run_with_retry",
    "ProvisioningStore",
    "SqlProvisioningStore",
]
