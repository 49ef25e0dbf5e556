"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from deskprov.core.models import DesktopConfig, ProvisioningPlan, ExecutionResult
"""

from deskprov.core.models.config import (
    Autostart,
    Defaults,
    DesktopConfig,
    GpuSettings,
    InstallPolicy,
    PackageGroup,
    Paths,
    Services,
    SourceTool,
)
from deskprov.core.models.plan import (
    ExecutionResult,
    IdempotencyCheck,
    ProvisioningPlan,
    ProvisioningStep,
)
from deskprov.core.models.state import ProvisionState, RunRecord, ToolState

__all__ = [
    # config.py
    "Autostart",
    "Defaults",
    "DesktopConfig",
    # plan.py
    "ExecutionResult",
    "GpuSettings",
    "IdempotencyCheck",
    "InstallPolicy",
    "PackageGroup",
    "Paths",
    # state.py
    "ProvisionState",
    "ProvisioningPlan",
    "ProvisioningStep",
    "RunRecord",
    "Services",
    "SourceTool",
    "ToolState",
]
