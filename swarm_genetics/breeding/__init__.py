"""
swarm_genetics/breeding/

The multi-step breeding workflow.

A contract moves proposed -> accepted -> incubating -> completed, or
exits early as rejected/cancelled. The manager enforces parent
capacity and cooldown, calls the genetic engine at proposal (scoring)
and completion (breeding), and records lineage and mutations.
"""

from .errors import (
    BreedingError,
    CapacityExceeded,
    ConcurrentModification,
    CooldownActive,
    IncubationPending,
    InvalidState,
    NotFound,
    ValidationError,
)
from .contract import (
    TRANSITIONS,
    BloodlineTier,
    BreedingAchievement,
    BreedingContract,
    ContractStatus,
    IncubationRecord,
    LineageRecord,
    can_transition,
)
from .manager import BreedingContractManager, SwarmLocks

__all__ = [
    "BreedingError",
    "CapacityExceeded",
    "ConcurrentModification",
    "CooldownActive",
    "IncubationPending",
    "InvalidState",
    "NotFound",
    "ValidationError",
    "TRANSITIONS",
    "BloodlineTier",
    "BreedingAchievement",
    "BreedingContract",
    "ContractStatus",
    "IncubationRecord",
    "LineageRecord",
    "can_transition",
    "BreedingContractManager",
    "SwarmLocks",
]
