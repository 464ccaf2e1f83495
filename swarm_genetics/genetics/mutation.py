"""
swarm_genetics/genetics/mutation.py

Mutation classification.

Once a trait has been selected for mutation, a single roll in [0, 100)
decides the mutation type. Beneficial mutations take a second roll in
[0, 1) to pick a rarity tier. All boundaries live in MutationTable so
they can be tuned from configuration; the defaults are the canonical
values and every comparison is strict (<).
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .traits import format_trait_name


class MutationType(Enum):
    BENEFICIAL = "beneficial"
    NEUTRAL = "neutral"
    DETRIMENTAL = "detrimental"
    LEGENDARY = "legendary"


class RarityTier(Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"


@dataclass(frozen=True)
class RarityBand:
    """Beneficial rarity tier selected when the rarity roll is below `below`."""
    below: float
    tier: RarityTier
    effect: float


DEFAULT_RARITY_BANDS: Tuple[RarityBand, ...] = (
    RarityBand(0.01, RarityTier.MYTHIC, 25.0),
    RarityBand(0.05, RarityTier.LEGENDARY, 20.0),
    RarityBand(0.15, RarityTier.EPIC, 15.0),
    RarityBand(0.35, RarityTier.RARE, 12.0),
    RarityBand(0.60, RarityTier.UNCOMMON, 10.0),
)


@dataclass(frozen=True)
class MutationTable:
    """
    Thresholds and effects for mutation classification.

    Type roll (0-100):  [0, legendary_below)          -> legendary
                        [legendary_below, detrimental_below) -> detrimental
                        [detrimental_below, neutral_below)   -> neutral
                        [neutral_below, 100)           -> beneficial
    """

    legendary_below: float = 5.0
    detrimental_below: float = 25.0
    neutral_below: float = 60.0

    legendary_effect: float = 25.0
    detrimental_effect: float = -15.0
    neutral_spread: float = 5.0           # neutral effect ~ U(-spread, +spread)

    rarity_bands: Tuple[RarityBand, ...] = DEFAULT_RARITY_BANDS
    common_effect: float = 8.0            # beneficial fallthrough tier

    def __post_init__(self):
        if not (0 <= self.legendary_below <= self.detrimental_below
                <= self.neutral_below <= 100):
            raise ValueError("Mutation type thresholds must be ascending within [0, 100]")
        if self.legendary_effect < 0 or self.common_effect < 0:
            raise ValueError("Legendary and beneficial effects must be non-negative")
        if self.detrimental_effect > 0:
            raise ValueError("Detrimental effect must be non-positive")
        if self.neutral_spread < 0:
            raise ValueError("Neutral spread must be non-negative")
        previous = 0.0
        for band in self.rarity_bands:
            if band.below < previous or band.below > 1.0:
                raise ValueError("Rarity bands must be ascending within [0, 1]")
            if band.effect < 0:
                raise ValueError("Rarity band effects must be non-negative")
            previous = band.below

    def to_dict(self) -> Dict[str, Any]:
        return {
            "legendary_below": self.legendary_below,
            "detrimental_below": self.detrimental_below,
            "neutral_below": self.neutral_below,
            "legendary_effect": self.legendary_effect,
            "detrimental_effect": self.detrimental_effect,
            "neutral_spread": self.neutral_spread,
            "rarity_bands": [
                {"below": b.below, "tier": b.tier.value, "effect": b.effect}
                for b in self.rarity_bands
            ],
            "common_effect": self.common_effect,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MutationTable":
        defaults = cls()
        bands = data.get("rarity_bands")
        return cls(
            legendary_below=float(data.get("legendary_below", defaults.legendary_below)),
            detrimental_below=float(data.get("detrimental_below", defaults.detrimental_below)),
            neutral_below=float(data.get("neutral_below", defaults.neutral_below)),
            legendary_effect=float(data.get("legendary_effect", defaults.legendary_effect)),
            detrimental_effect=float(data.get("detrimental_effect", defaults.detrimental_effect)),
            neutral_spread=float(data.get("neutral_spread", defaults.neutral_spread)),
            rarity_bands=tuple(
                RarityBand(float(b["below"]), RarityTier(b["tier"]), float(b["effect"]))
                for b in bands
            ) if bands is not None else defaults.rarity_bands,
            common_effect=float(data.get("common_effect", defaults.common_effect)),
        )


@dataclass(frozen=True)
class MutationRecord:
    """
    One mutation applied to one trait of an offspring.

    effect_value sign follows the type: detrimental is negative,
    beneficial and legendary are positive, neutral is either.
    """

    trait_affected: str
    mutation_type: MutationType
    rarity_tier: RarityTier
    effect_value: float
    is_hereditary: bool
    mutation_name: str = ""
    mutation_description: str = ""
    swarm_id: Optional[str] = None
    trigger_source: str = "natural"

    def for_swarm(self, swarm_id: str) -> "MutationRecord":
        return replace(self, swarm_id=swarm_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trait_affected": self.trait_affected,
            "mutation_type": self.mutation_type.value,
            "rarity_tier": self.rarity_tier.value,
            "effect_value": self.effect_value,
            "is_hereditary": self.is_hereditary,
            "mutation_name": self.mutation_name,
            "mutation_description": self.mutation_description,
            "swarm_id": self.swarm_id,
            "trigger_source": self.trigger_source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MutationRecord":
        return cls(
            trait_affected=data["trait_affected"],
            mutation_type=MutationType(data["mutation_type"]),
            rarity_tier=RarityTier(data["rarity_tier"]),
            effect_value=float(data["effect_value"]),
            is_hereditary=bool(data["is_hereditary"]),
            mutation_name=data.get("mutation_name", ""),
            mutation_description=data.get("mutation_description", ""),
            swarm_id=data.get("swarm_id"),
            trigger_source=data.get("trigger_source", "natural"),
        )


def classify_mutation(
    trait: str,
    rng,
    table: Optional[MutationTable] = None,
) -> MutationRecord:
    """Roll and classify a mutation for a trait already selected to mutate."""
    table = table or MutationTable()
    label = format_trait_name(trait)
    roll = rng.random() * 100

    if roll < table.legendary_below:
        return MutationRecord(
            trait_affected=trait,
            mutation_type=MutationType.LEGENDARY,
            rarity_tier=RarityTier.LEGENDARY,
            effect_value=table.legendary_effect,
            is_hereditary=True,
            mutation_name=f"Legendary {label}",
            mutation_description=f"Exceptional enhancement to {trait}",
        )

    if roll < table.detrimental_below:
        return MutationRecord(
            trait_affected=trait,
            mutation_type=MutationType.DETRIMENTAL,
            rarity_tier=RarityTier.COMMON,
            effect_value=table.detrimental_effect,
            is_hereditary=True,
            mutation_name=f"Weakened {label}",
            mutation_description=f"Reduced {trait} capability",
        )

    if roll < table.neutral_below:
        spread = table.neutral_spread
        return MutationRecord(
            trait_affected=trait,
            mutation_type=MutationType.NEUTRAL,
            rarity_tier=RarityTier.COMMON,
            effect_value=-spread + 2 * spread * rng.random(),
            is_hereditary=False,
            mutation_name=f"Shifted {label}",
            mutation_description=f"Minor adjustment to {trait}",
        )

    rarity_roll = rng.random()
    tier, effect = RarityTier.COMMON, table.common_effect
    for band in table.rarity_bands:
        if rarity_roll < band.below:
            tier, effect = band.tier, band.effect
            break

    return MutationRecord(
        trait_affected=trait,
        mutation_type=MutationType.BENEFICIAL,
        rarity_tier=tier,
        effect_value=effect,
        is_hereditary=True,
        mutation_name=f"Enhanced {label}",
        mutation_description=f"Improved {trait} through mutation",
    )
