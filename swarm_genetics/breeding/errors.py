"""
swarm_genetics/breeding/errors.py

Failures raised by the breeding workflow.

All are synchronous and raised before any write is attempted.
"""

from __future__ import annotations


class BreedingError(Exception):
    """Base class for breeding workflow failures."""


class NotFound(BreedingError, LookupError):
    """A referenced swarm profile or contract does not exist."""


class InvalidState(BreedingError):
    """The contract's current status does not permit the transition."""


class IncubationPending(InvalidState):
    """Incubation has not run for its scheduled duration yet."""


class CapacityExceeded(BreedingError):
    """A parent has already bred max_breeding times."""


class CooldownActive(BreedingError):
    """The first parent bred too recently."""


class ValidationError(BreedingError, ValueError):
    """Malformed contract terms (fees, percentages, durations, parents)."""


class ConcurrentModification(BreedingError):
    """A compare-and-swap save found a newer version than the one read."""
