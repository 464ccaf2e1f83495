"""
swarm_genetics/breeding/contract.py

Breeding contracts and the records a completed breeding leaves behind.

Contract lifecycle:

    proposed -> accepted -> incubating -> completed
        |           |            |
        +-> rejected|            |
        +-----------+------------+-> cancelled

No stage is skipped and terminal states never change. Contracts are
frozen; every transition returns a new snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from .errors import InvalidState


class ContractStatus(Enum):
    """Status of a breeding contract."""
    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    INCUBATING = "incubating"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self]


TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.PROPOSED: frozenset({
        ContractStatus.ACCEPTED,
        ContractStatus.REJECTED,
        ContractStatus.CANCELLED,
    }),
    ContractStatus.ACCEPTED: frozenset({
        ContractStatus.INCUBATING,
        ContractStatus.CANCELLED,
    }),
    ContractStatus.INCUBATING: frozenset({
        ContractStatus.COMPLETED,
        ContractStatus.CANCELLED,
    }),
    ContractStatus.COMPLETED: frozenset(),
    ContractStatus.CANCELLED: frozenset(),
    ContractStatus.REJECTED: frozenset(),
}


def can_transition(current: ContractStatus, target: ContractStatus) -> bool:
    return target in TRANSITIONS[current]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class BreedingContract:
    """
    Terms and progress of one breeding between two swarms.

    Parents are referenced by swarm id only. compatibility_score and
    predicted_fitness are fixed at proposal time.
    """
    parent1_id: str
    parent2_id: str
    parent1_owner: str
    parent2_owner: str
    offspring_owner: str
    breeding_fee: float
    profit_share_percent: float
    profit_share_duration_days: int
    compatibility_score: float
    predicted_fitness: float
    contract_id: str = ""
    status: ContractStatus = ContractStatus.PROPOSED

    parent1_proof: str | None = None
    parent2_proof: str | None = None
    terms: dict[str, Any] = field(default_factory=dict)

    proposed_at: datetime | None = None
    accepted_at: datetime | None = None
    incubation_started_at: datetime | None = None
    incubation_hours: int | None = None
    estimated_completion: datetime | None = None
    completed_at: datetime | None = None
    closed_at: datetime | None = None          # rejected or cancelled

    offspring_id: str | None = None
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def parent_ids(self) -> tuple[str, str]:
        return (self.parent1_id, self.parent2_id)

    def involves(self, owner_id: str) -> bool:
        return owner_id in (self.parent1_owner, self.parent2_owner, self.offspring_owner)

    def transition(self, target: ContractStatus, **changes: Any) -> BreedingContract:
        """Return a copy in `target` status. Raises InvalidState if not allowed."""
        if not can_transition(self.status, target):
            raise InvalidState(
                f"Contract {self.contract_id} cannot move from "
                f"{self.status.value} to {target.value}"
            )
        frozen = {"compatibility_score", "predicted_fitness", "parent1_id", "parent2_id"}
        touched = frozen & set(changes)
        if touched:
            raise InvalidState(f"Contract fields are immutable after proposal: {sorted(touched)}")
        return replace(self, status=target, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "contract_id": self.contract_id,
            "parent1_id": self.parent1_id,
            "parent2_id": self.parent2_id,
            "parent1_owner": self.parent1_owner,
            "parent2_owner": self.parent2_owner,
            "offspring_owner": self.offspring_owner,
            "breeding_fee": self.breeding_fee,
            "profit_share_percent": self.profit_share_percent,
            "profit_share_duration_days": self.profit_share_duration_days,
            "status": self.status.value,
            "compatibility_score": self.compatibility_score,
            "predicted_fitness": self.predicted_fitness,
            "parent1_proof": self.parent1_proof,
            "parent2_proof": self.parent2_proof,
            "terms": dict(self.terms),
            "proposed_at": _iso(self.proposed_at),
            "accepted_at": _iso(self.accepted_at),
            "incubation_started_at": _iso(self.incubation_started_at),
            "incubation_hours": self.incubation_hours,
            "estimated_completion": _iso(self.estimated_completion),
            "completed_at": _iso(self.completed_at),
            "closed_at": _iso(self.closed_at),
            "offspring_id": self.offspring_id,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BreedingContract:
        return cls(
            contract_id=data.get("contract_id", ""),
            parent1_id=data["parent1_id"],
            parent2_id=data["parent2_id"],
            parent1_owner=data["parent1_owner"],
            parent2_owner=data["parent2_owner"],
            offspring_owner=data["offspring_owner"],
            breeding_fee=float(data["breeding_fee"]),
            profit_share_percent=float(data["profit_share_percent"]),
            profit_share_duration_days=int(data["profit_share_duration_days"]),
            status=ContractStatus(data.get("status", "proposed")),
            compatibility_score=float(data["compatibility_score"]),
            predicted_fitness=float(data["predicted_fitness"]),
            parent1_proof=data.get("parent1_proof"),
            parent2_proof=data.get("parent2_proof"),
            terms=dict(data.get("terms") or {}),
            proposed_at=_parse(data.get("proposed_at")),
            accepted_at=_parse(data.get("accepted_at")),
            incubation_started_at=_parse(data.get("incubation_started_at")),
            incubation_hours=data.get("incubation_hours"),
            estimated_completion=_parse(data.get("estimated_completion")),
            completed_at=_parse(data.get("completed_at")),
            closed_at=_parse(data.get("closed_at")),
            offspring_id=data.get("offspring_id"),
            version=int(data.get("version", 0)),
        )


class BloodlineTier(Enum):
    COMMON = "common"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"


@dataclass(frozen=True)
class LineageRecord:
    """Ancestry of one swarm. generation matches the swarm's profile."""
    swarm_id: str
    generation: int
    parent1_id: str | None = None
    parent2_id: str | None = None
    ancestor_ids: tuple[str, ...] = ()
    bloodline_tier: BloodlineTier = BloodlineTier.COMMON
    inbreeding_coefficient: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "swarm_id": self.swarm_id,
            "generation": self.generation,
            "parent1_id": self.parent1_id,
            "parent2_id": self.parent2_id,
            "ancestor_ids": list(self.ancestor_ids),
            "bloodline_tier": self.bloodline_tier.value,
            "inbreeding_coefficient": self.inbreeding_coefficient,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LineageRecord:
        return cls(
            swarm_id=data["swarm_id"],
            generation=int(data["generation"]),
            parent1_id=data.get("parent1_id"),
            parent2_id=data.get("parent2_id"),
            ancestor_ids=tuple(data.get("ancestor_ids") or ()),
            bloodline_tier=BloodlineTier(data.get("bloodline_tier", "common")),
            inbreeding_coefficient=float(data.get("inbreeding_coefficient", 0.0)),
        )


@dataclass(frozen=True)
class IncubationRecord:
    """Scheduled incubation for an accepted contract."""
    contract_id: str
    owner_id: str
    duration_hours: int
    started_at: datetime
    estimated_completion: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "contract_id": self.contract_id,
            "owner_id": self.owner_id,
            "duration_hours": self.duration_hours,
            "started_at": _iso(self.started_at),
            "estimated_completion": _iso(self.estimated_completion),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IncubationRecord:
        return cls(
            contract_id=data["contract_id"],
            owner_id=data["owner_id"],
            duration_hours=int(data["duration_hours"]),
            started_at=_parse(data["started_at"]),
            estimated_completion=_parse(data["estimated_completion"]),
        )


@dataclass(frozen=True)
class BreedingAchievement:
    """Awarded to an offspring owner, e.g. for a legendary birth."""
    owner_id: str
    swarm_id: str
    achievement_type: str
    name: str
    description: str
    rarity: str
    rewards: dict[str, Any] = field(default_factory=dict)
    earned_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "swarm_id": self.swarm_id,
            "achievement_type": self.achievement_type,
            "name": self.name,
            "description": self.description,
            "rarity": self.rarity,
            "rewards": dict(self.rewards),
            "earned_at": _iso(self.earned_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BreedingAchievement:
        return cls(
            owner_id=data["owner_id"],
            swarm_id=data["swarm_id"],
            achievement_type=data["achievement_type"],
            name=data["name"],
            description=data.get("description", ""),
            rarity=data.get("rarity", "common"),
            rewards=dict(data.get("rewards") or {}),
            earned_at=_parse(data.get("earned_at")),
        )
