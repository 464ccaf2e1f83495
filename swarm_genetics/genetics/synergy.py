"""
swarm_genetics/genetics/synergy.py

Trait synergies: named bonuses unlocked when two traits jointly
exceed fixed thresholds. Detection is a pure function of the trait
vector. Rules are checked independently, so a profile may carry
several synergies at once.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from .traits import TraitVector


@dataclass(frozen=True)
class Synergy:
    name: str
    description: str
    bonus: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "bonus": self.bonus}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Synergy":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            bonus=float(data["bonus"]),
        )


@dataclass(frozen=True)
class SynergyRule:
    """Both traits must be strictly above the threshold."""
    first: str
    second: str
    threshold: float
    synergy: Synergy

    def matches(self, traits: TraitVector) -> bool:
        return traits[self.first] > self.threshold and traits[self.second] > self.threshold


SYNERGY_RULES: Tuple[SynergyRule, ...] = (
    SynergyRule("risk_tolerance", "pattern_recognition", 70, Synergy(
        "Bold Predictor",
        "High risk tolerance combined with strong pattern recognition",
        15,
    )),
    SynergyRule("speed", "adaptability", 75, Synergy(
        "Flash Trader",
        "Extreme speed with high adaptability",
        20,
    )),
    SynergyRule("patience", "aggression", 70, Synergy(
        "Strategic Hunter",
        "Patient waiting combined with aggressive execution",
        18,
    )),
    SynergyRule("precision", "discipline", 80, Synergy(
        "Perfect Execution",
        "Maximum precision with unwavering discipline",
        25,
    )),
    SynergyRule("intuition", "creativity", 75, Synergy(
        "Visionary",
        "Strong intuition paired with creative problem-solving",
        20,
    )),
    SynergyRule("learning_rate", "endurance", 70, Synergy(
        "Eternal Student",
        "Fast learning with tireless endurance",
        15,
    )),
)


def detect_synergies(traits: TraitVector) -> List[Synergy]:
    """Return every synergy whose rule the trait vector satisfies, in table order."""
    return [rule.synergy for rule in SYNERGY_RULES if rule.matches(traits)]
