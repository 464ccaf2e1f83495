"""
swarm_genetics/services/repository.py

Storage port for the breeding workflow.

The repository provides:
- Profile and contract storage with optimistic compare-and-swap saves
- Append-only mutation, lineage, incubation and achievement records
- Simple owner/swarm lookups

Each call is atomic for a single entity. Coordinating several entities
(both parents of a breeding) is the caller's job.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Iterable

from swarm_genetics.breeding.contract import (
    BreedingAchievement,
    BreedingContract,
    IncubationRecord,
    LineageRecord,
)
from swarm_genetics.breeding.errors import ConcurrentModification
from swarm_genetics.genetics.mutation import MutationRecord
from swarm_genetics.genetics.profile import GeneticProfile

logger = logging.getLogger(__name__)


class Repository(ABC):
    """
    Abstract base for repository implementations.

    save_profile/save_contract bump `version` by one. When
    `expected_version` is given and the stored version differs, the save
    fails with ConcurrentModification and nothing is written.
    """

    @abstractmethod
    def get_profile(self, swarm_id: str) -> GeneticProfile | None:
        """Load a profile snapshot. Returns None if absent."""
        pass

    @abstractmethod
    def save_profile(
        self, profile: GeneticProfile, expected_version: int | None = None
    ) -> GeneticProfile:
        """Insert or update a profile. Returns the stored snapshot."""
        pass

    @abstractmethod
    def get_contract(self, contract_id: str) -> BreedingContract | None:
        """Load a contract snapshot. Returns None if absent."""
        pass

    @abstractmethod
    def save_contract(
        self, contract: BreedingContract, expected_version: int | None = None
    ) -> BreedingContract:
        """Insert or update a contract. Returns the stored snapshot."""
        pass

    @abstractmethod
    def list_contracts(self, owner_id: str) -> list[BreedingContract]:
        """Contracts where owner_id holds any role, newest first."""
        pass

    @abstractmethod
    def append_mutation_records(self, records: Iterable[MutationRecord]) -> None:
        pass

    @abstractmethod
    def get_mutations(self, swarm_id: str) -> list[MutationRecord]:
        pass

    @abstractmethod
    def append_lineage(self, record: LineageRecord) -> None:
        pass

    @abstractmethod
    def get_lineage(self, swarm_id: str) -> LineageRecord | None:
        pass

    @abstractmethod
    def save_incubation(self, record: IncubationRecord) -> None:
        pass

    @abstractmethod
    def get_incubation(self, contract_id: str) -> IncubationRecord | None:
        pass

    @abstractmethod
    def append_achievement(self, achievement: BreedingAchievement) -> None:
        pass

    @abstractmethod
    def get_achievements(self, owner_id: str) -> list[BreedingAchievement]:
        pass

    def close(self) -> None:
        """Release any held resources."""
        pass


class InMemoryRepository(Repository):
    """
    In-memory repository for testing and single-process use.

    Thread-safe. Entities are stored as serialized dicts so callers
    only ever see independent snapshots.
    """

    def __init__(self):
        self._profiles: dict[str, dict] = {}
        self._contracts: dict[str, dict] = {}
        self._mutations: list[dict] = []
        self._lineage: dict[str, dict] = {}
        self._incubations: dict[str, dict] = {}
        self._achievements: list[dict] = []
        self._lock = threading.Lock()

    @staticmethod
    def _check_version(kind: str, key: str, stored: dict | None, expected: int | None) -> int:
        current = stored["version"] if stored is not None else 0
        if expected is not None and current != expected:
            raise ConcurrentModification(
                f"{kind} {key} is at version {current}, expected {expected}"
            )
        return current

    def get_profile(self, swarm_id: str) -> GeneticProfile | None:
        with self._lock:
            data = self._profiles.get(swarm_id)
        return GeneticProfile.from_dict(data) if data is not None else None

    def save_profile(
        self, profile: GeneticProfile, expected_version: int | None = None
    ) -> GeneticProfile:
        if not profile.swarm_id:
            raise ValueError("Cannot save a profile without a swarm_id")
        with self._lock:
            current = self._check_version(
                "Profile", profile.swarm_id, self._profiles.get(profile.swarm_id),
                expected_version,
            )
            data = profile.to_dict()
            data["version"] = current + 1
            self._profiles[profile.swarm_id] = data
        return GeneticProfile.from_dict(data)

    def get_contract(self, contract_id: str) -> BreedingContract | None:
        with self._lock:
            data = self._contracts.get(contract_id)
        return BreedingContract.from_dict(data) if data is not None else None

    def save_contract(
        self, contract: BreedingContract, expected_version: int | None = None
    ) -> BreedingContract:
        if not contract.contract_id:
            raise ValueError("Cannot save a contract without a contract_id")
        with self._lock:
            current = self._check_version(
                "Contract", contract.contract_id, self._contracts.get(contract.contract_id),
                expected_version,
            )
            stored = replace(contract, version=current + 1)
            self._contracts[contract.contract_id] = stored.to_dict()
        return stored

    def list_contracts(self, owner_id: str) -> list[BreedingContract]:
        with self._lock:
            contracts = [BreedingContract.from_dict(d) for d in self._contracts.values()]
        matching = [c for c in contracts if c.involves(owner_id)]
        # stable sort: insertion order breaks ties
        return sorted(
            matching,
            key=lambda c: c.proposed_at.timestamp() if c.proposed_at else 0.0,
            reverse=True,
        )

    def append_mutation_records(self, records: Iterable[MutationRecord]) -> None:
        rows = [r.to_dict() for r in records]
        with self._lock:
            self._mutations.extend(rows)

    def get_mutations(self, swarm_id: str) -> list[MutationRecord]:
        with self._lock:
            rows = [r for r in self._mutations if r["swarm_id"] == swarm_id]
        return [MutationRecord.from_dict(r) for r in rows]

    def append_lineage(self, record: LineageRecord) -> None:
        with self._lock:
            self._lineage[record.swarm_id] = record.to_dict()

    def get_lineage(self, swarm_id: str) -> LineageRecord | None:
        with self._lock:
            data = self._lineage.get(swarm_id)
        return LineageRecord.from_dict(data) if data is not None else None

    def save_incubation(self, record: IncubationRecord) -> None:
        with self._lock:
            self._incubations[record.contract_id] = record.to_dict()

    def get_incubation(self, contract_id: str) -> IncubationRecord | None:
        with self._lock:
            data = self._incubations.get(contract_id)
        return IncubationRecord.from_dict(data) if data is not None else None

    def append_achievement(self, achievement: BreedingAchievement) -> None:
        with self._lock:
            self._achievements.append(achievement.to_dict())

    def get_achievements(self, owner_id: str) -> list[BreedingAchievement]:
        with self._lock:
            rows = [a for a in self._achievements if a["owner_id"] == owner_id]
        return [BreedingAchievement.from_dict(a) for a in reversed(rows)]

    def clear(self) -> None:
        with self._lock:
            self._profiles.clear()
            self._contracts.clear()
            self._mutations.clear()
            self._lineage.clear()
            self._incubations.clear()
            self._achievements.clear()


def create_repository(backend: str = "memory", **kwargs) -> Repository:
    """
    Factory function to create a repository.

    Args:
        backend: "memory" or "postgres"
        **kwargs: Backend-specific options (postgres: config=PersistenceConfig)

    Returns:
        Repository instance
    """
    if backend == "memory":
        return InMemoryRepository()
    elif backend == "postgres":
        from .persistence import PersistenceConfig, PostgresRepository
        config = kwargs.get("config") or PersistenceConfig.from_env()
        return PostgresRepository(config)
    else:
        raise ValueError(f"Unknown backend: {backend}")
