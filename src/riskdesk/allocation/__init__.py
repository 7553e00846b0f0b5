"""Three-bucket allocation optimizer."""

from riskdesk.allocation.optimizer import (
    AllocationBucket,
    AllocationInputs,
    AllocationPlan,
    optimize_allocation,
)

__all__ = [
    "AllocationBucket",
    "AllocationInputs",
    "AllocationPlan",
    "optimize_allocation",
]
