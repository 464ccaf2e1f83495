"""
swarm_genetics/breeding/manager.py

Breeding contract manager.

The manager walks a contract through its lifecycle:
1. propose   - check capacity/cooldown, score the pair, collect proofs
2. accept    - verify proofs
3. incubate  - schedule a 24-48h incubation
4. complete  - breed, bump parents and close the contract, then persist
               offspring + lineage + mutations
with reject/cancel as alternate exits.

Parents' breeding_count and last_bred_at are shared state. Every
check-then-write on a parent and every contract transition runs under
the parents' locks. Every save is a compare-and-swap against the
version that was read.
"""

from __future__ import annotations

import json
import logging
import math
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping

import numpy as np

from swarm_genetics.config import BreedingConfig
from swarm_genetics.genetics.engine import BreedingResult, GeneticEngine
from swarm_genetics.genetics.legendary import LegendaryRarity, LegendaryTrait
from swarm_genetics.genetics.mutation import MutationRecord
from swarm_genetics.genetics.profile import GeneticProfile

from .contract import (
    BloodlineTier,
    BreedingAchievement,
    BreedingContract,
    ContractStatus,
    IncubationRecord,
    LineageRecord,
)
from .errors import (
    CapacityExceeded,
    ConcurrentModification,
    CooldownActive,
    IncubationPending,
    InvalidState,
    NotFound,
    ValidationError,
)

if TYPE_CHECKING:
    from swarm_genetics.services.proof import ProofService
    from swarm_genetics.services.repository import Repository

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SwarmLocks:
    """
    Per-swarm lock registry.

    hold() acquires in sorted id order so two callers locking the same
    pair in opposite order cannot deadlock. A swarm's lock is dropped
    from the registry once nobody holds or waits on it.
    """

    def __init__(self):
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}
        self._guard = threading.Lock()

    def _checkout(self, swarm_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(swarm_id)
            if lock is None:
                lock = self._locks[swarm_id] = threading.Lock()
            self._holders[swarm_id] = self._holders.get(swarm_id, 0) + 1
            return lock

    def _checkin(self, swarm_id: str) -> None:
        with self._guard:
            self._holders[swarm_id] -= 1
            if not self._holders[swarm_id]:
                del self._holders[swarm_id]
                del self._locks[swarm_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, *swarm_ids: str) -> Iterator[None]:
        ids = sorted(set(swarm_ids))
        locks = [self._checkout(sid) for sid in ids]
        acquired = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for sid in ids:
                self._checkin(sid)


class BreedingContractManager:
    """
    Orchestrates the breeding workflow over a repository and proof service.

    Genetic computation is delegated to GeneticEngine. Time comes from
    `clock` and new ids from `id_factory`, both injectable for tests.
    """

    def __init__(
        self,
        repository: Repository,
        proof_service: ProofService,
        config: BreedingConfig | None = None,
        rng: Any = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.repository = repository
        self.proof_service = proof_service
        self.config = config or BreedingConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.engine = GeneticEngine(self.rng, self.config.mutation_table)
        self.clock = clock or utcnow
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self.locks = SwarmLocks()
        self._rng_lock = threading.Lock()

    # ==================== Profiles ====================

    def initialize_profile(
        self,
        swarm_id: str,
        owner_id: str,
        win_rate: float = 0.0,
        total_profit: float = 0.0,
        baseline: Mapping[str, float] | None = None,
    ) -> GeneticProfile:
        """
        Return the swarm's profile, creating a generation-1 profile on first call.

        A new profile also gets a generation-1 lineage record.
        """
        if not swarm_id:
            raise ValidationError("swarm_id is required")

        with self.locks.hold(swarm_id):
            existing = self.repository.get_profile(swarm_id)
            if existing is not None:
                return existing

            with self._rng_lock:
                profile = self.engine.initialize_genes(baseline)
            profile.swarm_id = swarm_id
            profile.owner_id = owner_id
            profile.max_breeding = self.config.max_breeding
            profile.genetic_fitness = self.engine.fitness(profile.traits, win_rate, total_profit)

            saved = self.repository.save_profile(profile, expected_version=0)
            self.repository.append_lineage(LineageRecord(swarm_id=swarm_id, generation=1))

        logger.info(
            f"Initialized genetics for swarm {swarm_id} "
            f"(fitness {saved.genetic_fitness:.1f}, {len(saved.synergies)} synergies)"
        )
        return saved

    def get_profile(self, swarm_id: str) -> GeneticProfile:
        profile = self.repository.get_profile(swarm_id)
        if profile is None:
            raise NotFound(f"Swarm {swarm_id} has no genetic profile")
        return profile

    # ==================== Contract lifecycle ====================

    def propose(
        self,
        parent1_id: str,
        parent2_id: str,
        parent1_owner: str,
        parent2_owner: str,
        offspring_owner: str,
        breeding_fee: float,
        profit_share_percent: float,
        profit_share_duration_days: int,
    ) -> BreedingContract:
        """Create a contract in `proposed` state."""
        self._validate_terms(
            parent1_id, parent2_id, breeding_fee,
            profit_share_percent, profit_share_duration_days,
        )

        with self.locks.hold(parent1_id, parent2_id):
            parent1 = self.get_profile(parent1_id)
            parent2 = self.get_profile(parent2_id)
            now = self.clock()

            self._check_capacity(parent1, "Parent 1")
            self._check_capacity(parent2, "Parent 2")
            self._check_cooldown(parent1, now)

            compat = self.engine.compatibility(parent1, parent2)
            with self._rng_lock:
                predicted = self.engine.predict_offspring_fitness(
                    parent1.genetic_fitness, parent2.genetic_fitness, compat
                )

            contract = BreedingContract(
                contract_id=self.id_factory(),
                parent1_id=parent1_id,
                parent2_id=parent2_id,
                parent1_owner=parent1_owner,
                parent2_owner=parent2_owner,
                offspring_owner=offspring_owner,
                breeding_fee=float(breeding_fee),
                profit_share_percent=float(profit_share_percent),
                profit_share_duration_days=int(profit_share_duration_days),
                compatibility_score=compat,
                predicted_fitness=predicted,
                parent1_proof=self._request_proof(parent1, now),
                parent2_proof=self._request_proof(parent2, now),
                terms={
                    "min_compatibility": self.config.min_compatibility,
                    "mutation_chance": parent1.mutation_rate,
                    "estimated_generation": max(parent1.generation, parent2.generation) + 1,
                },
                proposed_at=now,
            )
            saved = self.repository.save_contract(contract, expected_version=0)

        logger.info(
            f"Proposed contract {saved.contract_id}: {parent1_id} x {parent2_id} "
            f"(compatibility {compat:.1f}, predicted fitness {predicted:.1f})"
        )
        return saved

    def accept(self, contract_id: str) -> BreedingContract:
        """proposed -> accepted, after both performance proofs verify."""
        with self._locked_contract(contract_id) as contract:
            self._require_status(contract, ContractStatus.PROPOSED)

            for label, token in (("Parent 1", contract.parent1_proof),
                                 ("Parent 2", contract.parent2_proof)):
                if not token or not self.proof_service.verify_proof(token):
                    raise ValidationError(f"{label} performance proof failed verification")

            updated = contract.transition(ContractStatus.ACCEPTED, accepted_at=self.clock())
            saved = self.repository.save_contract(updated, expected_version=contract.version)

        logger.info(f"Contract {contract_id} accepted")
        return saved

    def start_incubation(self, contract_id: str) -> BreedingContract:
        """accepted -> incubating, scheduling an incubation window."""
        with self._locked_contract(contract_id) as contract:
            self._require_status(contract, ContractStatus.ACCEPTED)

            now = self.clock()
            span = self.config.incubation_max_hours - self.config.incubation_min_hours
            with self._rng_lock:
                hours = self.config.incubation_min_hours + min(int(self.rng.random() * span), span - 1)
            estimated = now + timedelta(hours=hours)

            updated = contract.transition(
                ContractStatus.INCUBATING,
                incubation_started_at=now,
                incubation_hours=hours,
                estimated_completion=estimated,
            )
            saved = self.repository.save_contract(updated, expected_version=contract.version)
            self.repository.save_incubation(IncubationRecord(
                contract_id=contract_id,
                owner_id=contract.offspring_owner,
                duration_hours=hours,
                started_at=now,
                estimated_completion=estimated,
            ))

        logger.info(f"Contract {contract_id} incubating for {hours}h (until {estimated.isoformat()})")
        return saved

    def complete(self, contract_id: str) -> tuple[BreedingContract, BreedingResult]:
        """
        incubating -> completed.

        Breeds the parents, bumps both parents' breeding_count/last_bred_at
        and closes the contract. Only once those version-checked writes
        have all succeeded are the offspring profile, its lineage, mutation
        records and any achievement stored.
        """
        with self._locked_contract(contract_id) as contract:
            self._require_status(contract, ContractStatus.INCUBATING)
            now = self.clock()
            if (self.config.enforce_incubation and contract.estimated_completion is not None
                    and now < contract.estimated_completion):
                raise IncubationPending(
                    f"Contract {contract_id} incubates until "
                    f"{contract.estimated_completion.isoformat()}"
                )

            parent1 = self.get_profile(contract.parent1_id)
            parent2 = self.get_profile(contract.parent2_id)
            self._check_capacity(parent1, "Parent 1")
            self._check_capacity(parent2, "Parent 2")

            with self._rng_lock:
                result = self.engine.breed(parent1, parent2)

            offspring_id = self.id_factory()
            offspring = replace(
                result.profile,
                swarm_id=offspring_id,
                owner_id=contract.offspring_owner,
                max_breeding=self.config.max_breeding,
            )
            lineage = self._build_lineage(offspring, parent1, parent2, result.legendary_traits)
            updated = contract.transition(
                ContractStatus.COMPLETED,
                completed_at=now,
                offspring_id=offspring_id,
            )
            saved = self._commit_completion(contract, updated, (parent1, parent2), now)

            offspring = self.repository.save_profile(offspring, expected_version=0)
            self.repository.append_lineage(lineage)
            self.repository.append_mutation_records(
                [m.for_swarm(offspring_id) for m in result.mutations]
            )
            if result.legendary_traits:
                self.repository.append_achievement(BreedingAchievement(
                    owner_id=contract.offspring_owner,
                    swarm_id=offspring_id,
                    achievement_type="legendary_offspring",
                    name="Legendary Birth",
                    description="Bred a swarm with legendary traits",
                    rarity="legendary",
                    rewards={"bonus_reputation": 500},
                    earned_at=now,
                ))

        result.profile = offspring
        logger.info(
            f"Contract {contract_id} completed: offspring {offspring_id} "
            f"(generation {offspring.generation}, {len(result.mutations)} mutations, "
            f"{len(result.legendary_traits)} legendary traits)"
        )
        return saved, result

    def reject(self, contract_id: str) -> BreedingContract:
        """proposed -> rejected."""
        return self._close(contract_id, ContractStatus.REJECTED)

    def cancel(self, contract_id: str) -> BreedingContract:
        """Any non-terminal state -> cancelled."""
        return self._close(contract_id, ContractStatus.CANCELLED)

    def _close(self, contract_id: str, target: ContractStatus) -> BreedingContract:
        with self._locked_contract(contract_id) as contract:
            updated = contract.transition(target, closed_at=self.clock())
            saved = self.repository.save_contract(updated, expected_version=contract.version)
        logger.info(f"Contract {contract_id} {target.value} (was {contract.status.value})")
        return saved

    @contextmanager
    def _locked_contract(self, contract_id: str) -> Iterator[BreedingContract]:
        """Hold both parents' locks and yield the contract as re-read under them."""
        contract = self.get_contract(contract_id)
        with self.locks.hold(contract.parent1_id, contract.parent2_id):
            yield self.get_contract(contract_id)

    def _commit_completion(
        self,
        contract: BreedingContract,
        completed: BreedingContract,
        parents: tuple[GeneticProfile, GeneticProfile],
        now: datetime,
    ) -> BreedingContract:
        """
        Bump both parents, then move the contract to completed, each as a
        compare-and-swap against the version read. On a conflict the parent
        writes already made are restored before the error propagates.
        """
        written: list[tuple[GeneticProfile, GeneticProfile]] = []
        try:
            for parent in parents:
                bumped = replace(
                    parent,
                    breeding_count=parent.breeding_count + 1,
                    last_bred_at=now,
                )
                stored = self.repository.save_profile(bumped, expected_version=parent.version)
                written.append((parent, stored))
            return self.repository.save_contract(completed, expected_version=contract.version)
        except ConcurrentModification:
            logger.warning(
                f"Contract {contract.contract_id} changed during completion; "
                f"restoring {len(written)} parent(s)"
            )
            for original, stored in reversed(written):
                self._restore_profile(original, stored)
            raise

    def _restore_profile(self, original: GeneticProfile, stored: GeneticProfile) -> None:
        try:
            self.repository.save_profile(original, expected_version=stored.version)
        except ConcurrentModification as e:
            logger.error(f"Could not restore swarm {original.swarm_id}: {e}")

    # ==================== Queries ====================

    def get_contract(self, contract_id: str) -> BreedingContract:
        contract = self.repository.get_contract(contract_id)
        if contract is None:
            raise NotFound(f"Contract {contract_id} not found")
        return contract

    def list_contracts(self, owner_id: str) -> list[BreedingContract]:
        return self.repository.list_contracts(owner_id)

    def get_lineage(self, swarm_id: str) -> LineageRecord:
        lineage = self.repository.get_lineage(swarm_id)
        if lineage is None:
            raise NotFound(f"Swarm {swarm_id} has no lineage record")
        return lineage

    def get_mutations(self, swarm_id: str) -> list[MutationRecord]:
        return self.repository.get_mutations(swarm_id)

    def get_incubation(self, contract_id: str) -> IncubationRecord | None:
        return self.repository.get_incubation(contract_id)

    def get_achievements(self, owner_id: str) -> list[BreedingAchievement]:
        return self.repository.get_achievements(owner_id)

    # ==================== Guards ====================

    @staticmethod
    def _validate_terms(
        parent1_id: str,
        parent2_id: str,
        breeding_fee: float,
        profit_share_percent: float,
        profit_share_duration_days: int,
    ) -> None:
        if not parent1_id or not parent2_id:
            raise ValidationError("Both parent swarm ids are required")
        if parent1_id == parent2_id:
            raise ValidationError("A swarm cannot breed with itself")
        if not _is_number(breeding_fee) or breeding_fee < 0:
            raise ValidationError(f"breeding_fee must be a non-negative number, got {breeding_fee!r}")
        if not _is_number(profit_share_percent) or not 0 <= profit_share_percent <= 100:
            raise ValidationError(
                f"profit_share_percent must be within [0, 100], got {profit_share_percent!r}"
            )
        if (isinstance(profit_share_duration_days, bool)
                or not isinstance(profit_share_duration_days, (int, np.integer))
                or profit_share_duration_days < 0):
            raise ValidationError(
                "profit_share_duration_days must be a non-negative integer, "
                f"got {profit_share_duration_days!r}"
            )

    @staticmethod
    def _require_status(contract: BreedingContract, expected: ContractStatus) -> None:
        if contract.status is not expected:
            raise InvalidState(
                f"Contract {contract.contract_id} is {contract.status.value}, "
                f"expected {expected.value}"
            )

    @staticmethod
    def _check_capacity(profile: GeneticProfile, label: str) -> None:
        if profile.at_capacity:
            logger.warning(
                f"{label} {profile.swarm_id} at breeding capacity "
                f"({profile.breeding_count}/{profile.max_breeding})"
            )
            raise CapacityExceeded(f"{label} has reached maximum breeding capacity")

    def _check_cooldown(self, profile: GeneticProfile, now: datetime) -> None:
        if profile.last_bred_at is None:
            return
        cooldown = timedelta(days=self.config.cooldown_days)
        elapsed = now - profile.last_bred_at
        if elapsed < cooldown:
            logger.warning(
                f"Swarm {profile.swarm_id} in cooldown "
                f"({elapsed} elapsed of {cooldown})"
            )
            raise CooldownActive(
                f"Parent 1 is in cooldown until {(profile.last_bred_at + cooldown).isoformat()}"
            )

    # ==================== Helpers ====================

    def _request_proof(self, profile: GeneticProfile, now: datetime) -> str:
        payload = json.dumps({
            "swarm_id": profile.swarm_id,
            "fitness": profile.genetic_fitness,
            "win_rate": "verified",
            "timestamp": now.isoformat(),
        }, sort_keys=True).encode("utf-8")
        return self.proof_service.generate_proof(payload)

    def _ancestry(self, profile: GeneticProfile) -> set[str]:
        """The swarm itself plus every recorded ancestor."""
        lineage = self.repository.get_lineage(profile.swarm_id)
        ancestors = set(lineage.ancestor_ids) if lineage else set(profile.parent_ids)
        ancestors.add(profile.swarm_id)
        return ancestors

    def _build_lineage(
        self,
        offspring: GeneticProfile,
        parent1: GeneticProfile,
        parent2: GeneticProfile,
        legendary: list[LegendaryTrait],
    ) -> LineageRecord:
        ordered = parent1.parent_ids + parent2.parent_ids + [parent1.swarm_id, parent2.swarm_id]
        ancestor_ids = tuple(dict.fromkeys(ordered))

        line1 = self._ancestry(parent1)
        line2 = self._ancestry(parent2)
        union = line1 | line2
        coefficient = len(line1 & line2) / len(union) if union else 0.0

        if any(t.rarity is LegendaryRarity.MYTHIC for t in legendary):
            tier = BloodlineTier.MYTHIC
        elif legendary:
            tier = BloodlineTier.LEGENDARY
        else:
            tier = BloodlineTier.COMMON

        return LineageRecord(
            swarm_id=offspring.swarm_id,
            generation=offspring.generation,
            parent1_id=parent1.swarm_id,
            parent2_id=parent2.swarm_id,
            ancestor_ids=ancestor_ids,
            bloodline_tier=tier,
            inbreeding_coefficient=coefficient,
        )


def _is_number(value: Any) -> bool:
    return (isinstance(value, (int, float, np.number))
            and not isinstance(value, bool)
            and math.isfinite(value))
