from __future__ import annotations


class RowConflict(Exception):
    """A store write hit a uniqueness constraint (the row, or a twin of it, exists)."""


class ProvisioningStepError(Exception):
    """Base for everything that can stop (or skip) a provisioning step."""

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = str(step)


class StepRetriesExhausted(ProvisioningStepError):
    """A mandatory write failed on every attempt."""

    def __init__(self, step: str, attempts: int, cause: BaseException):
        super().__init__(step, f"failed after {attempts} attempt(s): {cause!r}")
        self.attempts = int(attempts)
        self.cause = cause


class StepConflict(ProvisioningStepError):
    """A mandatory write collided with a row that is not the one it was writing."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(step, f"conflicts with an existing row: {cause}")
        self.cause = cause


class OnboardingUnavailable(ProvisioningStepError):
    """Onboarding enrollment was skipped (no campaign, no step, or the write failed)."""

    def __init__(self, reason: str):
        super().__init__("onboarding", reason)
        self.reason = str(reason)
