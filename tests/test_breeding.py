"""
Tests for swarm_genetics/breeding/

Tests the contract state machine and the BreedingContractManager workflow.
"""

import itertools
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from swarm_genetics.breeding import (
    BloodlineTier,
    BreedingContract,
    BreedingContractManager,
    CapacityExceeded,
    ConcurrentModification,
    ContractStatus,
    CooldownActive,
    IncubationPending,
    InvalidState,
    NotFound,
    SwarmLocks,
    ValidationError,
)
from swarm_genetics.breeding.contract import TRANSITIONS, can_transition
from swarm_genetics.config import BreedingConfig
from swarm_genetics.genetics.legendary import get_legendary_trait
from swarm_genetics.genetics.mutation import MutationType
from swarm_genetics.genetics.profile import GeneticProfile
from swarm_genetics.services.proof import HashProofService
from swarm_genetics.services.repository import InMemoryRepository


START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class ConstantRandom:
    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


class RejectingProofService(HashProofService):
    """Issues tokens but never verifies them."""

    def verify_proof(self, token):
        return False


class HookedRepository(InMemoryRepository):
    """Runs a one-shot callback just before a given swarm's profile is saved."""

    def __init__(self):
        super().__init__()
        self.before_save = {}

    def save_profile(self, profile, expected_version=None):
        hook = self.before_save.pop(profile.swarm_id, None)
        if hook is not None:
            hook()
        return super().save_profile(profile, expected_version)


def make_manager(config=None, rng=None, proof_service=None, clock=None, repository=None):
    counter = itertools.count(1)
    return BreedingContractManager(
        repository=repository if repository is not None else InMemoryRepository(),
        proof_service=proof_service or HashProofService(),
        config=config or BreedingConfig(),
        rng=rng if rng is not None else np.random.default_rng(42),
        clock=clock or FakeClock(),
        id_factory=lambda: f"id-{next(counter)}",
    )


def update_profile(manager, swarm_id, **changes):
    profile = manager.repository.get_profile(swarm_id)
    return manager.repository.save_profile(replace(profile, **changes))


def propose(manager, parent1="alpha", parent2="beta", **terms):
    kwargs = dict(breeding_fee=100.0, profit_share_percent=20.0, profit_share_duration_days=30)
    kwargs.update(terms)
    return manager.propose(parent1, parent2, "alice", "bob", "carol", **kwargs)


def run_to_completion(manager, parent1="alpha", parent2="beta"):
    contract = propose(manager, parent1, parent2)
    manager.accept(contract.contract_id)
    manager.start_incubation(contract.contract_id)
    manager.clock.advance(hours=manager.config.incubation_max_hours)
    return manager.complete(contract.contract_id)


@pytest.fixture
def manager():
    m = make_manager()
    m.initialize_profile("alpha", "alice")
    m.initialize_profile("beta", "bob")
    return m


# ==================== State Machine Tests ====================

class TestContractStatus:
    """Tests for the contract transition table."""

    def test_terminal_states(self):
        terminal = {s for s in ContractStatus if s.is_terminal}
        assert terminal == {
            ContractStatus.COMPLETED, ContractStatus.CANCELLED, ContractStatus.REJECTED
        }

    def test_no_skipping(self):
        assert not can_transition(ContractStatus.PROPOSED, ContractStatus.INCUBATING)
        assert not can_transition(ContractStatus.PROPOSED, ContractStatus.COMPLETED)
        assert not can_transition(ContractStatus.ACCEPTED, ContractStatus.COMPLETED)

    def test_reject_only_from_proposed(self):
        sources = {s for s, targets in TRANSITIONS.items() if ContractStatus.REJECTED in targets}
        assert sources == {ContractStatus.PROPOSED}

    def test_transition_keeps_scores_fixed(self):
        contract = BreedingContract(
            parent1_id="a", parent2_id="b",
            parent1_owner="o", parent2_owner="o", offspring_owner="o",
            breeding_fee=0.0, profit_share_percent=0.0, profit_share_duration_days=0,
            compatibility_score=70.0, predicted_fitness=40.0, contract_id="c-1",
        )
        with pytest.raises(InvalidState):
            contract.transition(ContractStatus.ACCEPTED, compatibility_score=90.0)
        accepted = contract.transition(ContractStatus.ACCEPTED)
        assert accepted.status is ContractStatus.ACCEPTED
        assert contract.status is ContractStatus.PROPOSED

    def test_serialization(self):
        contract = BreedingContract(
            parent1_id="a", parent2_id="b",
            parent1_owner="o1", parent2_owner="o2", offspring_owner="o3",
            breeding_fee=10.0, profit_share_percent=5.0, profit_share_duration_days=7,
            compatibility_score=70.0, predicted_fitness=40.0, contract_id="c-1",
            terms={"min_compatibility": 50.0}, proposed_at=START,
        )
        assert BreedingContract.from_dict(contract.to_dict()) == contract


# ==================== Profile Tests ====================

class TestInitializeProfile:
    """Tests for lazy profile creation."""

    def test_creates_generation_one(self):
        m = make_manager()
        profile = m.initialize_profile("alpha", "alice", win_rate=60, total_profit=500)

        assert profile.generation == 1
        assert profile.owner_id == "alice"
        assert profile.version == 1
        assert profile.genetic_fitness > 0
        assert m.get_lineage("alpha").generation == 1

    def test_second_call_returns_existing(self):
        m = make_manager()
        first = m.initialize_profile("alpha", "alice")
        second = m.initialize_profile("alpha", "someone-else")
        assert second.to_dict() == first.to_dict()

    def test_uses_config_capacity(self):
        m = make_manager(config=BreedingConfig(max_breeding=2))
        assert m.initialize_profile("alpha", "alice").max_breeding == 2

    def test_missing_profile(self, manager):
        with pytest.raises(NotFound):
            manager.get_profile("ghost")


# ==================== Propose Tests ====================

class TestPropose:
    """Tests for contract proposal."""

    def test_creates_proposed_contract(self, manager):
        contract = propose(manager)

        assert contract.status is ContractStatus.PROPOSED
        assert contract.contract_id == "id-1"
        assert 0 <= contract.compatibility_score <= 100
        assert 0 <= contract.predicted_fitness <= 100
        assert contract.proposed_at == START
        assert contract.terms["estimated_generation"] == 2
        assert manager.proof_service.verify_proof(contract.parent1_proof)
        assert manager.proof_service.verify_proof(contract.parent2_proof)

    def test_compatibility_matches_engine(self, manager):
        contract = propose(manager)
        expected = manager.engine.compatibility(
            manager.get_profile("alpha"), manager.get_profile("beta")
        )
        assert contract.compatibility_score == pytest.approx(expected)

    def test_unknown_parent(self, manager):
        with pytest.raises(NotFound):
            propose(manager, "alpha", "ghost")

    @pytest.mark.parametrize("terms", [
        {"profit_share_percent": 101},
        {"profit_share_percent": -1},
        {"profit_share_percent": float("nan")},
        {"breeding_fee": -5},
        {"breeding_fee": float("inf")},
        {"breeding_fee": True},
        {"profit_share_duration_days": -1},
        {"profit_share_duration_days": 1.5},
    ])
    def test_invalid_terms(self, manager, terms):
        with pytest.raises(ValidationError):
            propose(manager, **terms)

    def test_boundary_terms_accepted(self, manager):
        contract = propose(manager, breeding_fee=0, profit_share_percent=100,
                           profit_share_duration_days=0)
        assert contract.profit_share_percent == 100.0

    def test_self_breeding_rejected(self, manager):
        with pytest.raises(ValidationError):
            propose(manager, "alpha", "alpha")

    def test_capacity_exceeded(self, manager):
        update_profile(manager, "beta", breeding_count=5)
        with pytest.raises(CapacityExceeded):
            propose(manager)
        assert manager.list_contracts("alice") == []

    def test_cooldown_active(self, manager):
        update_profile(manager, "alpha", last_bred_at=START - timedelta(days=3))
        with pytest.raises(CooldownActive):
            propose(manager)

    def test_cooldown_elapsed(self, manager):
        update_profile(manager, "alpha", last_bred_at=START - timedelta(days=8))
        assert propose(manager).status is ContractStatus.PROPOSED

    def test_cooldown_only_checks_first_parent(self, manager):
        update_profile(manager, "beta", last_bred_at=START - timedelta(days=1))
        assert propose(manager).status is ContractStatus.PROPOSED


# ==================== Lifecycle Tests ====================

class TestLifecycle:
    """Tests for accept, incubation, reject and cancel."""

    def test_accept(self, manager):
        contract = propose(manager)
        accepted = manager.accept(contract.contract_id)
        assert accepted.status is ContractStatus.ACCEPTED
        assert accepted.accepted_at == START
        assert accepted.compatibility_score == contract.compatibility_score

    def test_accept_fails_proof_check(self):
        m = make_manager(proof_service=RejectingProofService())
        m.initialize_profile("alpha", "alice")
        m.initialize_profile("beta", "bob")
        contract = propose(m)

        with pytest.raises(ValidationError):
            m.accept(contract.contract_id)
        assert m.get_contract(contract.contract_id).status is ContractStatus.PROPOSED

    def test_start_incubation(self, manager):
        contract = propose(manager)
        manager.accept(contract.contract_id)
        incubating = manager.start_incubation(contract.contract_id)

        assert incubating.status is ContractStatus.INCUBATING
        assert 24 <= incubating.incubation_hours < 48
        assert incubating.estimated_completion == START + timedelta(hours=incubating.incubation_hours)

        record = manager.get_incubation(contract.contract_id)
        assert record.owner_id == "carol"
        assert record.duration_hours == incubating.incubation_hours

    def test_incubation_requires_accepted(self, manager):
        contract = propose(manager)
        with pytest.raises(InvalidState):
            manager.start_incubation(contract.contract_id)

    def test_accept_while_incubating(self, manager):
        contract = propose(manager)
        manager.accept(contract.contract_id)
        manager.start_incubation(contract.contract_id)
        with pytest.raises(InvalidState):
            manager.accept(contract.contract_id)

    def test_complete_while_proposed(self, manager):
        contract = propose(manager)
        with pytest.raises(InvalidState):
            manager.complete(contract.contract_id)

    def test_reject(self, manager):
        contract = propose(manager)
        rejected = manager.reject(contract.contract_id)
        assert rejected.status is ContractStatus.REJECTED
        assert rejected.closed_at == START

    def test_reject_after_accept(self, manager):
        contract = propose(manager)
        manager.accept(contract.contract_id)
        with pytest.raises(InvalidState):
            manager.reject(contract.contract_id)

    def test_cancel_while_incubating(self, manager):
        contract = propose(manager)
        manager.accept(contract.contract_id)
        manager.start_incubation(contract.contract_id)
        assert manager.cancel(contract.contract_id).status is ContractStatus.CANCELLED

    def test_terminal_is_final(self, manager):
        contract = propose(manager)
        manager.cancel(contract.contract_id)
        with pytest.raises(InvalidState):
            manager.accept(contract.contract_id)
        with pytest.raises(InvalidState):
            manager.cancel(contract.contract_id)

    def test_unknown_contract(self, manager):
        with pytest.raises(NotFound):
            manager.accept("missing")


# ==================== Completion Tests ====================

class TestComplete:
    """Tests for contract completion."""

    def test_incubation_pending(self, manager):
        contract = propose(manager)
        manager.accept(contract.contract_id)
        manager.start_incubation(contract.contract_id)
        manager.clock.advance(hours=1)

        with pytest.raises(IncubationPending):
            manager.complete(contract.contract_id)
        assert manager.get_contract(contract.contract_id).status is ContractStatus.INCUBATING

    def test_incubation_not_enforced(self):
        m = make_manager(config=BreedingConfig(enforce_incubation=False))
        m.initialize_profile("alpha", "alice")
        m.initialize_profile("beta", "bob")
        contract = propose(m)
        m.accept(contract.contract_id)
        m.start_incubation(contract.contract_id)

        completed, _ = m.complete(contract.contract_id)
        assert completed.status is ContractStatus.COMPLETED

    def test_side_effects(self, manager):
        contract, result = run_to_completion(manager)
        now = manager.clock()

        assert contract.status is ContractStatus.COMPLETED
        assert contract.completed_at == now
        assert contract.offspring_id == result.profile.swarm_id

        offspring = manager.get_profile(contract.offspring_id)
        assert offspring.generation == 2
        assert offspring.owner_id == "carol"
        assert offspring.parent_ids == ["alpha", "beta"]
        assert offspring.breeding_count == 0

        for parent_id in ("alpha", "beta"):
            parent = manager.get_profile(parent_id)
            assert parent.breeding_count == 1
            assert parent.last_bred_at == now

        lineage = manager.get_lineage(contract.offspring_id)
        assert lineage.generation == 2
        assert (lineage.parent1_id, lineage.parent2_id) == ("alpha", "beta")
        assert lineage.ancestor_ids == ("alpha", "beta")
        assert lineage.inbreeding_coefficient == 0.0

        stored = manager.get_mutations(contract.offspring_id)
        assert len(stored) == len(result.mutations)
        assert all(m.swarm_id == contract.offspring_id for m in stored)

    def test_complete_twice(self, manager):
        contract, _ = run_to_completion(manager)
        with pytest.raises(InvalidState):
            manager.complete(contract.contract_id)

    def test_parent_cooldown_after_completion(self, manager):
        run_to_completion(manager)
        with pytest.raises(CooldownActive):
            propose(manager)
        manager.clock.advance(days=8)
        assert propose(manager).status is ContractStatus.PROPOSED

    def test_capacity_rechecked_at_completion(self, manager):
        contract = propose(manager)
        manager.accept(contract.contract_id)
        manager.start_incubation(contract.contract_id)
        manager.clock.advance(hours=48)
        update_profile(manager, "alpha", breeding_count=5)

        with pytest.raises(CapacityExceeded):
            manager.complete(contract.contract_id)
        assert manager.get_profile("beta").breeding_count == 0

    def test_legendary_birth(self):
        """With every draw at 0.0, every trait mutates legendary."""
        m = make_manager(rng=ConstantRandom(0.0))
        m.initialize_profile("alpha", "alice")
        m.initialize_profile("beta", "bob")

        contract, result = run_to_completion(m)

        assert len(result.mutations) == 12
        assert all(x.mutation_type is MutationType.LEGENDARY for x in result.mutations)
        assert len(result.legendary_traits) == 12
        assert m.get_lineage(contract.offspring_id).bloodline_tier is BloodlineTier.LEGENDARY

        achievements = m.get_achievements("carol")
        assert len(achievements) == 1
        assert achievements[0].name == "Legendary Birth"
        assert achievements[0].swarm_id == contract.offspring_id

    def test_mythic_bloodline(self, manager):
        parent1 = manager.get_profile("alpha")
        parent2 = manager.get_profile("beta")
        child = GeneticProfile(swarm_id="child", generation=2)
        lineage = manager._build_lineage(
            child, parent1, parent2,
            [get_legendary_trait("swarm_mind"), get_legendary_trait("quantum_leap")],
        )
        assert lineage.bloodline_tier is BloodlineTier.MYTHIC

    def test_sibling_inbreeding(self, manager):
        first, _ = run_to_completion(manager)
        manager.clock.advance(days=8)
        second, _ = run_to_completion(manager)
        manager.clock.advance(days=8)

        third, _ = run_to_completion(manager, first.offspring_id, second.offspring_id)
        lineage = manager.get_lineage(third.offspring_id)

        assert lineage.generation == 3
        assert lineage.inbreeding_coefficient == pytest.approx(0.5)
        assert lineage.ancestor_ids == (
            "alpha", "beta", first.offspring_id, second.offspring_id
        )


# ==================== Query Tests ====================

class TestQueries:
    """Tests for contract listing."""

    def test_list_contracts_by_role(self, manager):
        first = propose(manager)
        manager.reject(first.contract_id)
        manager.clock.advance(hours=1)
        second = propose(manager)

        for owner in ("alice", "bob", "carol"):
            ids = [c.contract_id for c in manager.list_contracts(owner)]
            assert ids == [second.contract_id, first.contract_id]
        assert manager.list_contracts("dave") == []


# ==================== Concurrency Tests ====================

class TestConcurrency:
    """Tests for concurrent access to shared parents."""

    def test_swarm_locks_serialize(self):
        locks = SwarmLocks()
        active = []
        overlaps = []

        def worker(ids):
            for _ in range(50):
                with locks.hold(*ids):
                    active.append(1)
                    if len(active) > 1:
                        overlaps.append(1)
                    active.pop()

        threads = [
            threading.Thread(target=worker, args=(("a", "b"),)),
            threading.Thread(target=worker, args=(("b", "a"),)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert not any(t.is_alive() for t in threads)
        assert overlaps == []

    def test_concurrent_completions_respect_capacity(self):
        """Two contracts sharing parents with capacity 1: exactly one completes."""
        m = make_manager(config=BreedingConfig(max_breeding=1, enforce_incubation=False))
        m.initialize_profile("alpha", "alice")
        m.initialize_profile("beta", "bob")

        contracts = []
        for _ in range(2):
            contract = propose(m)
            m.accept(contract.contract_id)
            m.start_incubation(contract.contract_id)
            contracts.append(contract.contract_id)

        outcomes = []
        barrier = threading.Barrier(2)

        def complete(contract_id):
            barrier.wait()
            try:
                m.complete(contract_id)
                outcomes.append("completed")
            except CapacityExceeded:
                outcomes.append("capacity")

        threads = [threading.Thread(target=complete, args=(cid,)) for cid in contracts]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert sorted(outcomes) == ["capacity", "completed"]
        assert m.get_profile("alpha").breeding_count == 1
        assert m.get_profile("beta").breeding_count == 1

    def test_stale_save_rejected(self, manager):
        profile = manager.get_profile("alpha")
        manager.repository.save_profile(replace(profile, breeding_count=1),
                                        expected_version=profile.version)
        with pytest.raises(ConcurrentModification):
            manager.repository.save_profile(replace(profile, breeding_count=2),
                                            expected_version=profile.version)
        assert manager.get_profile("alpha").breeding_count == 1

    def test_lock_registry_evicts_released_swarms(self):
        locks = SwarmLocks()
        with locks.hold("a", "b"):
            assert len(locks) == 2
            with locks.hold("c"):
                assert len(locks) == 3
        assert len(locks) == 0

    def test_manager_locks_released_after_workflow(self, manager):
        run_to_completion(manager)
        assert len(manager.locks) == 0


# ==================== Completion Consistency Tests ====================

def incubating_manager(repository, config=None):
    m = make_manager(config=config or BreedingConfig(enforce_incubation=False),
                     repository=repository)
    m.initialize_profile("alpha", "alice")
    m.initialize_profile("beta", "bob")
    contract = propose(m)
    m.accept(contract.contract_id)
    m.start_incubation(contract.contract_id)
    return m, contract.contract_id


class TestCompletionConsistency:
    """A completion either fully applies or leaves no trace."""

    def test_cancel_waits_for_running_completion(self):
        """A cancel issued mid-completion blocks, then finds the contract completed."""
        repo = HookedRepository()
        m, contract_id = incubating_manager(repo)
        inside = threading.Event()
        repo.before_save["alpha"] = inside.set

        outcome = {}

        def complete():
            outcome["contract"], _ = m.complete(contract_id)

        worker = threading.Thread(target=complete)
        worker.start()
        assert inside.wait(timeout=5)
        with pytest.raises(InvalidState):
            m.cancel(contract_id)
        worker.join(timeout=10)

        assert outcome["contract"].status is ContractStatus.COMPLETED
        assert m.get_contract(contract_id).status is ContractStatus.COMPLETED
        assert m.get_profile("alpha").breeding_count == 1
        assert m.get_profile(outcome["contract"].offspring_id).generation == 2

    def test_external_cancel_rolls_back_parents(self):
        """A cancel committed by another writer mid-completion leaves no breeding behind."""
        repo = HookedRepository()
        m, contract_id = incubating_manager(repo)

        def cancel_elsewhere():
            contract = repo.get_contract(contract_id)
            repo.save_contract(contract.transition(ContractStatus.CANCELLED, closed_at=START))

        repo.before_save["alpha"] = cancel_elsewhere

        with pytest.raises(ConcurrentModification):
            m.complete(contract_id)

        assert m.get_contract(contract_id).status is ContractStatus.CANCELLED
        for parent_id in ("alpha", "beta"):
            parent = m.get_profile(parent_id)
            assert parent.breeding_count == 0
            assert parent.last_bred_at is None
        assert repo.get_profile("id-2") is None
        assert repo.get_lineage("id-2") is None
        assert m.get_mutations("id-2") == []

    def test_external_parent_write_leaves_no_offspring(self):
        """A parent changed by another writer aborts completion before any offspring is stored."""
        repo = HookedRepository()
        m, contract_id = incubating_manager(repo)

        def touch_beta():
            repo.save_profile(repo.get_profile("beta"))

        repo.before_save["alpha"] = touch_beta

        with pytest.raises(ConcurrentModification):
            m.complete(contract_id)

        assert m.get_contract(contract_id).status is ContractStatus.INCUBATING
        assert m.get_profile("alpha").breeding_count == 0
        assert repo.get_profile("id-2") is None
        assert repo.get_lineage("id-2") is None

        completed, result = m.complete(contract_id)
        assert completed.offspring_id == "id-3"
        assert m.get_profile("alpha").breeding_count == 1
        assert m.get_profile("beta").breeding_count == 1
        assert result.profile.swarm_id == "id-3"
