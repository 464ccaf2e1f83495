"""
swarm_genetics/genetics/engine.py

The genetic engine: initialization, breeding, scoring.

Every function here is pure apart from the injected randomness
source `rng`. Only `rng.random()` is ever called, so a seeded
np.random.Generator or any object with a compatible `random()`
method can drive the engine.

Breeding, per trait:
1. Inherit a weighted blend of both parents (dominance biases 70/30).
2. Add +/-5 jitter, clamp.
3. Roll for mutation against the offspring mutation rate; on success
   classify it, apply its effect, clamp, and award a legendary trait
   for legendary-type mutations.
Then draw the offspring's dominant and recessive subsets and detect
synergies on the final trait vector.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
from typing import Dict, List, Mapping, Optional, Sequence

from .legendary import LegendaryTrait, draw_legendary_trait
from .mutation import MutationRecord, MutationTable, MutationType, classify_mutation
from .profile import DEFAULT_MAX_BREEDING, DEFAULT_MUTATION_RATE, GeneticProfile
from .scoring import compatibility, genetic_fitness, predict_offspring_fitness
from .synergy import Synergy, detect_synergies
from .traits import TRAIT_NAMES, TraitVector, clamp_trait

logger = logging.getLogger(__name__)

DOMINANT_WEIGHT = 0.7
INHERITANCE_JITTER = 5.0
INITIAL_JITTER = 10.0


@dataclass
class BreedingResult:
    """Everything breed() produces: the offspring plus its mutation side effects."""
    profile: GeneticProfile
    mutations: List[MutationRecord] = field(default_factory=list)
    legendary_traits: List[LegendaryTrait] = field(default_factory=list)


def _uniform(rng, low: float, high: float) -> float:
    return low + (high - low) * rng.random()


def _randint(rng, low: int, count: int) -> int:
    """Integer in [low, low + count)."""
    return low + min(int(rng.random() * count), count - 1)


def _shuffled(rng, items: Sequence[str]) -> List[str]:
    keys = {item: rng.random() for item in items}
    return sorted(items, key=keys.__getitem__)


def _random_subset(traits: TraitVector, rng) -> Dict[str, float]:
    """4-7 traits, order-randomized, projected onto their current values."""
    size = _randint(rng, 4, 4)
    chosen = _shuffled(rng, TRAIT_NAMES)[:size]
    return {name: traits[name] for name in chosen}


def initialize_genes(
    rng,
    baseline: Optional[Mapping[str, float]] = None,
) -> GeneticProfile:
    """
    Create a generation-1 profile.

    Traits come from `baseline` where given, otherwise 50 +/- 10.
    Dominant and recessive subsets are independent draws and may overlap.
    """
    baseline = baseline or {}
    unknown = set(baseline) - set(TRAIT_NAMES)
    if unknown:
        raise ValueError(f"Unknown traits in baseline: {sorted(unknown)}")

    values = {}
    for name in TRAIT_NAMES:
        if name in baseline:
            values[name] = clamp_trait(baseline[name])
        else:
            values[name] = clamp_trait(50.0 + _uniform(rng, -INITIAL_JITTER, INITIAL_JITTER))
    traits = TraitVector.from_dict(values)

    return GeneticProfile(
        traits=traits,
        dominant=_random_subset(traits, rng),
        recessive=_random_subset(traits, rng),
        mutation_rate=DEFAULT_MUTATION_RATE,
        generation=1,
        synergies=detect_synergies(traits),
    )


def offspring_mutation_rate(generation1: int, generation2: int) -> float:
    """5 + 0.5 * new_generation + 3 * generation_gap"""
    new_generation = max(generation1, generation2) + 1
    return 5 + 0.5 * new_generation + 3 * abs(generation1 - generation2)


def inherit_value(parent1: GeneticProfile, parent2: GeneticProfile, trait: str) -> float:
    """Dominance-weighted blend of the parents' values, before jitter."""
    v1 = parent1.traits[trait]
    v2 = parent2.traits[trait]
    d1 = parent1.is_dominant(trait)
    d2 = parent2.is_dominant(trait)

    if d1 and not d2:
        return DOMINANT_WEIGHT * v1 + (1 - DOMINANT_WEIGHT) * v2
    if d2 and not d1:
        return DOMINANT_WEIGHT * v2 + (1 - DOMINANT_WEIGHT) * v1
    return 0.5 * (v1 + v2)


def _inherit_dominance(
    parent1: GeneticProfile,
    parent2: GeneticProfile,
    traits: TraitVector,
    rng,
) -> Dict[str, float]:
    dominant = {}
    for name in TRAIT_NAMES:
        d1 = parent1.is_dominant(name)
        d2 = parent2.is_dominant(name)
        if d1 and d2:
            cutoff = 0.5
        elif d1 or d2:
            cutoff = 0.25
        else:
            cutoff = 0.7
        if rng.random() > cutoff:
            dominant[name] = traits[name]
    return dominant


def _inherit_recessive(
    parent1: GeneticProfile,
    parent2: GeneticProfile,
    rng,
) -> Dict[str, float]:
    pool = dict(parent1.recessive)
    pool.update(parent2.recessive)
    keep = _randint(rng, 2, 4)
    chosen = _shuffled(rng, list(pool))[:keep]
    return {name: pool[name] for name in chosen}


def breed(
    parent1: GeneticProfile,
    parent2: GeneticProfile,
    rng,
    table: Optional[MutationTable] = None,
) -> BreedingResult:
    """Produce an offspring profile from two parent snapshots. Parents are not modified."""
    table = table or MutationTable()
    new_generation = max(parent1.generation, parent2.generation) + 1
    mutation_rate = offspring_mutation_rate(parent1.generation, parent2.generation)

    mutations: List[MutationRecord] = []
    legendary: List[LegendaryTrait] = []
    values: Dict[str, float] = {}

    for name in TRAIT_NAMES:
        value = inherit_value(parent1, parent2, name)
        value = clamp_trait(value + _uniform(rng, -INHERITANCE_JITTER, INHERITANCE_JITTER))

        if rng.random() * 100 < mutation_rate:
            mutation = classify_mutation(name, rng, table)
            mutations.append(mutation)
            value = clamp_trait(value + mutation.effect_value)
            logger.debug(
                f"Mutation on {name}: {mutation.mutation_type.value} "
                f"({mutation.rarity_tier.value}, {mutation.effect_value:+.2f})"
            )
            if mutation.mutation_type is MutationType.LEGENDARY:
                legendary.append(draw_legendary_trait(rng))

        values[name] = value

    traits = TraitVector.from_dict(values)
    parent_ids = [pid for pid in (parent1.swarm_id, parent2.swarm_id) if pid is not None]

    offspring = GeneticProfile(
        traits=traits,
        dominant=_inherit_dominance(parent1, parent2, traits, rng),
        recessive=_inherit_recessive(parent1, parent2, rng),
        mutation_rate=mutation_rate,
        generation=new_generation,
        parent_ids=parent_ids,
        legendary_traits=list(legendary),
        synergies=detect_synergies(traits),
        genetic_fitness=genetic_fitness(traits, 0.0, 0.0),
        breeding_count=0,
        max_breeding=DEFAULT_MAX_BREEDING,
    )
    return BreedingResult(profile=offspring, mutations=mutations, legendary_traits=legendary)


class GeneticEngine:
    """
    Binds a randomness source and mutation table to the engine functions.

    Holds no mutable state beyond the rng itself; use one engine per
    thread or a thread-safe rng when sharing.
    """

    def __init__(self, rng, table: Optional[MutationTable] = None):
        self.rng = rng
        self.table = table or MutationTable()

    def initialize_genes(self, baseline: Optional[Mapping[str, float]] = None) -> GeneticProfile:
        return initialize_genes(self.rng, baseline)

    def breed(self, parent1: GeneticProfile, parent2: GeneticProfile) -> BreedingResult:
        return breed(parent1, parent2, self.rng, self.table)

    def fitness(self, traits: TraitVector, win_rate: float, total_profit: float) -> float:
        return genetic_fitness(traits, win_rate, total_profit)

    def compatibility(self, parent1: GeneticProfile, parent2: GeneticProfile) -> float:
        return compatibility(parent1, parent2)

    def predict_offspring_fitness(self, fitness1: float, fitness2: float, compat: float) -> float:
        return predict_offspring_fitness(fitness1, fitness2, compat, self.rng)

    def detect_synergies(self, traits: TraitVector) -> List[Synergy]:
        return detect_synergies(traits)
