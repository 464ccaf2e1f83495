"""
swarm_genetics/config.py

Runtime configuration for the breeding workflow.

Loaded from keyword arguments, environment variables
(SWARM_GENETICS_*), or a YAML file:

    cooldown_days: 7
    max_breeding: 5
    incubation_min_hours: 24
    incubation_max_hours: 48
    enforce_incubation: true
    mutation_table:
      legendary_below: 5
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from swarm_genetics.genetics.mutation import MutationTable

ENV_PREFIX = "SWARM_GENETICS_"
REPOSITORY_BACKENDS = ("memory", "postgres")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BreedingConfig:
    """Configuration for BreedingContractManager."""

    # Parent constraints
    cooldown_days: float = 7.0
    max_breeding: int = 5

    # Incubation window, hours drawn from [min, max)
    incubation_min_hours: int = 24
    incubation_max_hours: int = 48
    enforce_incubation: bool = True

    # Recorded in contract terms
    min_compatibility: float = 50.0

    # Random seed (None = nondeterministic)
    seed: int | None = None

    repository_backend: str = "memory"  # "memory" or "postgres"

    mutation_table: MutationTable = field(default_factory=MutationTable)

    def __post_init__(self):
        if self.cooldown_days < 0:
            raise ValueError("cooldown_days must be non-negative")
        if self.max_breeding < 0:
            raise ValueError("max_breeding must be non-negative")
        if not 0 < self.incubation_min_hours < self.incubation_max_hours:
            raise ValueError("incubation window must satisfy 0 < min < max")
        if self.repository_backend not in REPOSITORY_BACKENDS:
            raise ValueError(
                f"repository_backend must be one of {REPOSITORY_BACKENDS}, "
                f"got {self.repository_backend!r}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BreedingConfig:
        data = dict(data or {})
        table = data.pop("mutation_table", None)
        known = set(cls.__dataclass_fields__) - {"mutation_table"}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        config = cls(**data)
        if table is not None:
            config.mutation_table = MutationTable.from_dict(table)
        return config

    @classmethod
    def from_yaml(cls, path: str | Path) -> BreedingConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> BreedingConfig:
        """Create config from environment variables."""
        env = os.environ
        defaults = cls()
        seed = env.get(f"{ENV_PREFIX}SEED")
        return cls(
            cooldown_days=float(env.get(f"{ENV_PREFIX}COOLDOWN_DAYS", defaults.cooldown_days)),
            max_breeding=int(env.get(f"{ENV_PREFIX}MAX_BREEDING", defaults.max_breeding)),
            incubation_min_hours=int(
                env.get(f"{ENV_PREFIX}INCUBATION_MIN_HOURS", defaults.incubation_min_hours)
            ),
            incubation_max_hours=int(
                env.get(f"{ENV_PREFIX}INCUBATION_MAX_HOURS", defaults.incubation_max_hours)
            ),
            enforce_incubation=_env_bool(
                env.get(f"{ENV_PREFIX}ENFORCE_INCUBATION", str(defaults.enforce_incubation))
            ),
            min_compatibility=float(
                env.get(f"{ENV_PREFIX}MIN_COMPATIBILITY", defaults.min_compatibility)
            ),
            seed=int(seed) if seed else None,
            repository_backend=env.get(f"{ENV_PREFIX}REPOSITORY", defaults.repository_backend),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "cooldown_days": self.cooldown_days,
            "max_breeding": self.max_breeding,
            "incubation_min_hours": self.incubation_min_hours,
            "incubation_max_hours": self.incubation_max_hours,
            "enforce_incubation": self.enforce_incubation,
            "min_compatibility": self.min_compatibility,
            "seed": self.seed,
            "repository_backend": self.repository_backend,
            "mutation_table": self.mutation_table.to_dict(),
        }
