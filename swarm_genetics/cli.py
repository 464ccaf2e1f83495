"""
swarm_genetics/cli.py

Command-line runner.

    swarm-genetics simulate --seed 7 --generations 5

Breeds a chain of swarms through the full contract workflow against an
in-memory repository and prints one JSON line per generation.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Any

import numpy as np

from swarm_genetics.breeding.manager import BreedingContractManager
from swarm_genetics.config import BreedingConfig
from swarm_genetics.services.proof import HashProofService
from swarm_genetics.services.repository import Repository, create_repository

logger = logging.getLogger(__name__)


class SimulatedClock:
    """Clock that only moves when advanced."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def simulate(config: BreedingConfig, generations: int) -> list[dict[str, Any]]:
    """
    Breed `generations` offspring, each from the two most recent swarms.

    Storage comes from `config.repository_backend`. The clock jumps past
    the cooldown before every proposal and past the incubation window
    before every completion.
    """
    repository = create_repository(config.repository_backend)
    try:
        return _run_chain(repository, config, generations)
    finally:
        repository.close()


def _run_chain(
    repository: Repository, config: BreedingConfig, generations: int
) -> list[dict[str, Any]]:
    clock = SimulatedClock()
    manager = BreedingContractManager(
        repository=repository,
        proof_service=HashProofService(),
        config=config,
        rng=np.random.default_rng(config.seed),
        clock=clock,
    )

    owner = "simulator"
    lineage = [
        manager.initialize_profile("founder-a", owner).swarm_id,
        manager.initialize_profile("founder-b", owner).swarm_id,
    ]

    summaries = []
    for _ in range(generations):
        parent1_id, parent2_id = lineage[-2], lineage[-1]
        clock.advance(days=config.cooldown_days + 1)

        contract = manager.propose(
            parent1_id, parent2_id, owner, owner, owner,
            breeding_fee=0.0, profit_share_percent=0.0, profit_share_duration_days=0,
        )
        manager.accept(contract.contract_id)
        manager.start_incubation(contract.contract_id)
        clock.advance(hours=config.incubation_max_hours)
        contract, result = manager.complete(contract.contract_id)

        offspring = result.profile
        lineage_record = manager.get_lineage(offspring.swarm_id)
        summaries.append({
            "generation": offspring.generation,
            "offspring_id": offspring.swarm_id,
            "parents": [parent1_id, parent2_id],
            "compatibility": round(contract.compatibility_score, 2),
            "predicted_fitness": round(contract.predicted_fitness, 2),
            "fitness": round(offspring.genetic_fitness, 2),
            "mutation_rate": offspring.mutation_rate,
            "mutations": [
                f"{m.mutation_type.value}:{m.trait_affected}" for m in result.mutations
            ],
            "legendary_traits": [t.name for t in result.legendary_traits],
            "synergies": [s.name for s in offspring.synergies],
            "bloodline_tier": lineage_record.bloodline_tier.value,
            "inbreeding_coefficient": round(lineage_record.inbreeding_coefficient, 3),
        })
        lineage.append(offspring.swarm_id)

    return summaries


def build_config(path: str | None = None, seed: int | None = None) -> BreedingConfig:
    """YAML config (or defaults), with `seed` overriding the file's seed when given."""
    config = BreedingConfig.from_yaml(path) if path else BreedingConfig()
    if seed is not None:
        config.seed = seed
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swarm-genetics",
        description="Swarm genetics and breeding contracts",
    )
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Breed a chain of swarms and print a summary")
    sim.add_argument("--seed", type=int, default=None,
                     help="Random seed (overrides the config file)")
    sim.add_argument("--generations", type=int, default=5)
    sim.add_argument("--config", default=None, help="YAML config file")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.command == "simulate":
        if args.generations < 1:
            parser.error("--generations must be at least 1")
        config = build_config(args.config, args.seed)
        for summary in simulate(config, args.generations):
            print(json.dumps(summary))
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
