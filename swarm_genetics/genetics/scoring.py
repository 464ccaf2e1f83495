"""
swarm_genetics/genetics/scoring.py

Fitness and compatibility scores.

Fitness is how good a swarm is. Compatibility is how well two
swarms combine. Both live on [0, 100].
"""

from __future__ import annotations
from typing import TYPE_CHECKING
import numpy as np

from .traits import TraitVector

if TYPE_CHECKING:
    from .profile import GeneticProfile


def _clamp_score(value: float) -> float:
    return float(np.clip(value, 0.0, 100.0))


def genetic_fitness(traits: TraitVector, win_rate: float, total_profit: float) -> float:
    """
    Score a swarm from its traits and trading record.

    performance = (win_rate / 100) * 40 + min(total_profit / 100, 20)
    trait_score = (trait_avg / 100) * 30
    diversity   = std(traits) / 30
    """
    trait_avg = traits.mean()
    diversity = traits.std() / 30
    performance = (win_rate / 100) * 40 + min(total_profit / 100, 20)
    trait_score = (trait_avg / 100) * 30
    return _clamp_score(performance + trait_score + diversity)


def mean_trait_difference(a: TraitVector, b: TraitVector) -> float:
    return float(np.abs(a.as_array() - b.as_array()).mean())


def compatibility(parent1: GeneticProfile, parent2: GeneticProfile) -> float:
    """
    Score how favorably two profiles combine.

    Starts at 50, then:
    - generation gap <= 1: +20, <= 3: +10, > 5: -10
    - mean per-trait difference in (15, 40): +15, >= 40: +5
    - mean trait value across both parents > 60: +15, < 40: -10
    """
    score = 50.0

    gap = abs(parent1.generation - parent2.generation)
    if gap <= 1:
        score += 20
    elif gap <= 3:
        score += 10
    elif gap > 5:
        score -= 10

    diversity = mean_trait_difference(parent1.traits, parent2.traits)
    if 15 < diversity < 40:
        score += 15
    elif diversity >= 40:
        score += 5

    avg_fitness = (parent1.traits.mean() + parent2.traits.mean()) / 2
    if avg_fitness > 60:
        score += 15
    elif avg_fitness < 40:
        score -= 10

    return _clamp_score(score)


def predict_offspring_fitness(
    parent1_fitness: float,
    parent2_fitness: float,
    compatibility_score: float,
    rng,
) -> float:
    """Expected offspring fitness with +/-7.5 noise and a hybrid vigor bonus above 75."""
    avg_parent_fitness = (parent1_fitness + parent2_fitness) / 2
    compatibility_bonus = (compatibility_score / 100) * 10
    variance = (rng.random() - 0.5) * 15
    hybrid_vigor = 5.0 if compatibility_score > 75 else 0.0
    return _clamp_score(avg_parent_fitness + compatibility_bonus + variance + hybrid_vigor)
