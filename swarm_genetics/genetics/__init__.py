"""
swarm_genetics/genetics/

Pure computational core for swarm genetics.

No I/O lives here. Every operation is a function of its inputs plus
an injected randomness source, so calls on unrelated profiles can run
in parallel and seeded runs are reproducible.

Pieces:
- TraitVector: twelve traits on [0, 100]
- GeneticProfile: a swarm's genotype record
- Legendary catalog, mutation classification, synergy detection
- Scoring: fitness, compatibility, predicted offspring fitness
- Engine: initialize_genes, breed
"""

from .traits import TRAIT_NAMES, TraitVector, clamp_trait, format_trait_name
from .legendary import (
    LEGENDARY_TRAITS,
    LegendaryRarity,
    LegendaryTrait,
    draw_legendary_trait,
    get_legendary_trait,
)
from .mutation import (
    MutationRecord,
    MutationTable,
    MutationType,
    RarityBand,
    RarityTier,
    classify_mutation,
)
from .synergy import SYNERGY_RULES, Synergy, SynergyRule, detect_synergies
from .profile import GeneticProfile
from .scoring import compatibility, genetic_fitness, predict_offspring_fitness
from .engine import BreedingResult, GeneticEngine, breed, initialize_genes

__all__ = [
    "TRAIT_NAMES",
    "TraitVector",
    "clamp_trait",
    "format_trait_name",
    "LEGENDARY_TRAITS",
    "LegendaryRarity",
    "LegendaryTrait",
    "draw_legendary_trait",
    "get_legendary_trait",
    "MutationRecord",
    "MutationTable",
    "MutationType",
    "RarityBand",
    "RarityTier",
    "classify_mutation",
    "SYNERGY_RULES",
    "Synergy",
    "SynergyRule",
    "detect_synergies",
    "GeneticProfile",
    "compatibility",
    "genetic_fitness",
    "predict_offspring_fitness",
    "BreedingResult",
    "GeneticEngine",
    "breed",
    "initialize_genes",
]
