"""
swarm_genetics/genetics/traits.py

The twelve behavioral traits that make up a swarm's genotype.

Every trait lives on the same [0, 100] scale. Values are clamped
after every arithmetic step that could push them out of range.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from typing import Dict, Iterator, List, Mapping, Optional, Tuple
import numpy as np


TRAIT_MIN = 0.0
TRAIT_MAX = 100.0

TRAIT_NAMES: Tuple[str, ...] = (
    "aggression",
    "patience",
    "risk_tolerance",
    "pattern_recognition",
    "speed",
    "adaptability",
    "precision",
    "endurance",
    "learning_rate",
    "intuition",
    "discipline",
    "creativity",
)


def clamp_trait(value: float) -> float:
    """Clamp a trait value into [0, 100]."""
    return float(np.clip(value, TRAIT_MIN, TRAIT_MAX))


def format_trait_name(trait: str) -> str:
    """risk_tolerance -> Risk Tolerance"""
    return " ".join(word.capitalize() for word in trait.split("_"))


@dataclass
class TraitVector:
    """
    A swarm's full set of trait scores.

    Field order matches TRAIT_NAMES. Construction clamps every field,
    so a TraitVector is always in range.
    """

    aggression: float = 50.0
    patience: float = 50.0
    risk_tolerance: float = 50.0
    pattern_recognition: float = 50.0
    speed: float = 50.0
    adaptability: float = 50.0
    precision: float = 50.0
    endurance: float = 50.0
    learning_rate: float = 50.0
    intuition: float = 50.0
    discipline: float = 50.0
    creativity: float = 50.0

    def __post_init__(self):
        for f in fields(self):
            setattr(self, f.name, clamp_trait(getattr(self, f.name)))

    def __getitem__(self, trait: str) -> float:
        if trait not in TRAIT_NAMES:
            raise KeyError(trait)
        return getattr(self, trait)

    def __iter__(self) -> Iterator[Tuple[str, float]]:
        for name in TRAIT_NAMES:
            yield name, getattr(self, name)

    def with_value(self, trait: str, value: float) -> "TraitVector":
        """Return a copy with one trait replaced (and clamped)."""
        data = self.to_dict()
        if trait not in data:
            raise KeyError(trait)
        data[trait] = value
        return TraitVector.from_dict(data)

    def values(self) -> List[float]:
        return [getattr(self, name) for name in TRAIT_NAMES]

    def as_array(self) -> np.ndarray:
        return np.array(self.values(), dtype=np.float64)

    def mean(self) -> float:
        return float(self.as_array().mean())

    def std(self) -> float:
        """Population standard deviation across the twelve traits."""
        return float(self.as_array().std())

    def to_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in TRAIT_NAMES}

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "TraitVector":
        unknown = set(data) - set(TRAIT_NAMES)
        if unknown:
            raise ValueError(f"Unknown traits: {sorted(unknown)}")
        return cls(**{name: float(data.get(name, 50.0)) for name in TRAIT_NAMES})

    @classmethod
    def uniform(cls, value: float) -> "TraitVector":
        """Every trait set to the same value."""
        return cls(**{name: value for name in TRAIT_NAMES})


def subset_of(traits: TraitVector, names: List[str]) -> Dict[str, float]:
    """Project a trait vector onto a list of trait names (dominant/recessive maps)."""
    return {name: traits[name] for name in names}


def validate_subset(subset: Optional[Mapping[str, float]]) -> Dict[str, float]:
    """Copy a dominant/recessive map, rejecting unknown trait names."""
    if not subset:
        return {}
    unknown = set(subset) - set(TRAIT_NAMES)
    if unknown:
        raise ValueError(f"Unknown traits in subset: {sorted(unknown)}")
    return {name: clamp_trait(value) for name, value in subset.items()}
