"""
swarm_genetics/services/

Adapters for the collaborators the breeding workflow depends on.

- Repository: profile/contract storage (in-memory or PostgreSQL)
- ProofService: opaque performance proof tokens
"""

from .repository import Repository, InMemoryRepository, create_repository
from .proof import ProofService, HashProofService
from .persistence import PersistenceConfig, PostgresRepository

__all__ = [
    "Repository",
    "InMemoryRepository",
    "create_repository",
    "ProofService",
    "HashProofService",
    "PersistenceConfig",
    "PostgresRepository",
]
