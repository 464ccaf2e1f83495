"""
swarm_genetics/genetics/legendary.py

Catalog of legendary and mythic bonus traits.

A legendary-type mutation awards one entry from this catalog,
drawn uniformly. The catalog is a tuple of frozen records and
never changes at runtime.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple


class LegendaryRarity(Enum):
    LEGENDARY = "legendary"
    MYTHIC = "mythic"


@dataclass(frozen=True)
class LegendaryTrait:
    """A named bonus ability with a fixed effect."""

    id: str
    name: str
    description: str
    effect: str
    rarity: LegendaryRarity
    bonus_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "effect": self.effect,
            "rarity": self.rarity.value,
            "bonus_value": self.bonus_value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LegendaryTrait":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            effect=data.get("effect", ""),
            rarity=LegendaryRarity(data.get("rarity", "legendary")),
            bonus_value=float(data.get("bonus_value", 0.0)),
        )


LEGENDARY_TRAITS: Tuple[LegendaryTrait, ...] = (
    LegendaryTrait(
        id="swarm_mind",
        name="Swarm Mind",
        description="Enhanced coordination with other swarms",
        effect="+20% performance when coordinating with other swarms",
        rarity=LegendaryRarity.LEGENDARY,
        bonus_value=20,
    ),
    LegendaryTrait(
        id="alpha_instinct",
        name="Alpha Instinct",
        description="First to detect market opportunities",
        effect="Detects opportunities 10 seconds earlier",
        rarity=LegendaryRarity.LEGENDARY,
        bonus_value=15,
    ),
    LegendaryTrait(
        id="phoenix_protocol",
        name="Phoenix Protocol",
        description="Rapid recovery from losses",
        effect="50% faster recovery from losing trades",
        rarity=LegendaryRarity.LEGENDARY,
        bonus_value=50,
    ),
    LegendaryTrait(
        id="quantum_leap",
        name="Quantum Leap",
        description="Advanced pattern prediction",
        effect="Can predict 2 steps ahead in market patterns",
        rarity=LegendaryRarity.MYTHIC,
        bonus_value=25,
    ),
    LegendaryTrait(
        id="diamond_hands",
        name="Diamond Hands",
        description="Unshakeable confidence",
        effect="Reduced panic-selling by 70% in downturns",
        rarity=LegendaryRarity.LEGENDARY,
        bonus_value=70,
    ),
    LegendaryTrait(
        id="whale_whisperer",
        name="Whale Whisperer",
        description="Superior whale detection",
        effect="Detects whale movements 30 seconds earlier",
        rarity=LegendaryRarity.LEGENDARY,
        bonus_value=30,
    ),
    LegendaryTrait(
        id="perfect_balance",
        name="Perfect Balance",
        description="Optimal risk/reward ratios",
        effect="Maintains exact risk/reward targets automatically",
        rarity=LegendaryRarity.MYTHIC,
        bonus_value=35,
    ),
    LegendaryTrait(
        id="time_traveler",
        name="Time Traveler",
        description="Enhanced historical analysis",
        effect="Historical pattern recognition +40%",
        rarity=LegendaryRarity.LEGENDARY,
        bonus_value=40,
    ),
)

_BY_ID = {trait.id: trait for trait in LEGENDARY_TRAITS}


def draw_legendary_trait(rng) -> LegendaryTrait:
    """Draw one catalog entry uniformly."""
    index = min(int(rng.random() * len(LEGENDARY_TRAITS)), len(LEGENDARY_TRAITS) - 1)
    return LEGENDARY_TRAITS[index]


def get_legendary_trait(trait_id: str) -> LegendaryTrait:
    """Look up a catalog entry by id. Raises KeyError if unknown."""
    return _BY_ID[trait_id]
