"""
swarm_genetics/genetics/profile.py

A swarm's full genetic state.

The profile is the genotype record persisted per swarm. The engine
reads profiles as snapshots and returns new ones; only the breeding
workflow writes them back.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .legendary import LegendaryTrait
from .synergy import Synergy
from .traits import TraitVector, validate_subset


DEFAULT_MUTATION_RATE = 5.0
DEFAULT_MAX_BREEDING = 5


@dataclass
class GeneticProfile:
    """
    Genetic state of one swarm.

    dominant/recessive map trait name -> trait value at the time the
    subset was drawn. `version` is bumped by the repository on every
    save and used for compare-and-swap updates.
    """

    traits: TraitVector = field(default_factory=TraitVector)
    dominant: Dict[str, float] = field(default_factory=dict)
    recessive: Dict[str, float] = field(default_factory=dict)
    mutation_rate: float = DEFAULT_MUTATION_RATE    # percent
    generation: int = 1

    swarm_id: Optional[str] = None
    owner_id: Optional[str] = None
    parent_ids: List[str] = field(default_factory=list)
    legendary_traits: List[LegendaryTrait] = field(default_factory=list)
    synergies: List[Synergy] = field(default_factory=list)
    genetic_fitness: float = 0.0

    breeding_count: int = 0
    max_breeding: int = DEFAULT_MAX_BREEDING
    last_bred_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        self.dominant = validate_subset(self.dominant)
        self.recessive = validate_subset(self.recessive)
        if self.generation < 1:
            raise ValueError(f"generation must be >= 1, got {self.generation}")
        if self.mutation_rate < 0:
            raise ValueError(f"mutation_rate must be non-negative, got {self.mutation_rate}")
        if self.max_breeding < 0 or self.breeding_count < 0:
            raise ValueError("breeding counters must be non-negative")

    @property
    def remaining_breedings(self) -> int:
        return max(self.max_breeding - self.breeding_count, 0)

    @property
    def at_capacity(self) -> bool:
        return self.breeding_count >= self.max_breeding

    def is_dominant(self, trait: str) -> bool:
        return trait in self.dominant

    def to_dict(self) -> Dict[str, Any]:
        return {
            "swarm_id": self.swarm_id,
            "owner_id": self.owner_id,
            "traits": self.traits.to_dict(),
            "dominant": dict(self.dominant),
            "recessive": dict(self.recessive),
            "mutation_rate": self.mutation_rate,
            "generation": self.generation,
            "parent_ids": list(self.parent_ids),
            "legendary_traits": [t.to_dict() for t in self.legendary_traits],
            "synergies": [s.to_dict() for s in self.synergies],
            "genetic_fitness": self.genetic_fitness,
            "breeding_count": self.breeding_count,
            "max_breeding": self.max_breeding,
            "last_bred_at": self.last_bred_at.isoformat() if self.last_bred_at else None,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneticProfile":
        last_bred_at = data.get("last_bred_at")
        if isinstance(last_bred_at, str):
            last_bred_at = datetime.fromisoformat(last_bred_at)
        return cls(
            traits=TraitVector.from_dict(data.get("traits", {})),
            dominant=data.get("dominant", {}),
            recessive=data.get("recessive", {}),
            mutation_rate=float(data.get("mutation_rate", DEFAULT_MUTATION_RATE)),
            generation=int(data.get("generation", 1)),
            swarm_id=data.get("swarm_id"),
            owner_id=data.get("owner_id"),
            parent_ids=list(data.get("parent_ids", [])),
            legendary_traits=[
                LegendaryTrait.from_dict(t) for t in data.get("legendary_traits", [])
            ],
            synergies=[Synergy.from_dict(s) for s in data.get("synergies", [])],
            genetic_fitness=float(data.get("genetic_fitness", 0.0)),
            breeding_count=int(data.get("breeding_count", 0)),
            max_breeding=int(data.get("max_breeding", DEFAULT_MAX_BREEDING)),
            last_bred_at=last_bred_at,
            version=int(data.get("version", 0)),
        )
