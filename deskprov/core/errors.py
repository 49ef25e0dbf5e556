"""
Error taxonomy for a provisioning run.

Two kinds of problems stop a run and are raised as exceptions:

    FatalPrecondition    — detected before any mutation (preflight)
    RequiredStepFailure  — a required step failed mid-run

The other two never leave the executor as exceptions.  They are
recorded as result severities and surface in the final report:

    optional   — an optional step failed, the run continued
    advisory   — something looked wrong but nothing failed
"""

from __future__ import annotations

from typing import Literal

Severity = Literal["required", "optional", "advisory"]


class ProvisioningError(Exception):
    """Base class for errors that stop a provisioning run."""

    exit_code = 1


class FatalPrecondition(ProvisioningError):
    """The host or the configuration cannot be provisioned at all.

    Raised before the first step runs, so nothing has been changed.
    """

    exit_code = 2

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "precondition failed")


class RequiredStepFailure(ProvisioningError):
    """A required step failed.  Effects of earlier steps remain."""

    exit_code = 1

    def __init__(self, step_id: str, error: str):
        self.step_id = step_id
        self.error = error
        super().__init__(f"Required step '{step_id}' failed: {error}")
