"""
swarm_genetics/services/proof.py

Performance proof port.

The breeding workflow asks for an opaque token per parent at proposal
time and checks the tokens pass verification on acceptance. It never
parses a token.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import threading
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

PROOF_PREFIX = "zk_proof_0x"


class ProofService(ABC):
    """Abstract base for proof generation and verification."""

    @abstractmethod
    def generate_proof(self, payload: bytes) -> str:
        """Return an opaque token attesting to `payload`."""
        pass

    @abstractmethod
    def verify_proof(self, token: str) -> bool:
        """Return True if the token is valid."""
        pass


class HashProofService(ProofService):
    """
    Local stand-in for an attestation backend.

    Tokens are SHA-256 digests of the payload plus a random salt. Only
    tokens issued by this instance verify.
    """

    def __init__(self):
        self._issued: set[str] = set()
        self._lock = threading.Lock()

    def generate_proof(self, payload: bytes) -> str:
        digest = hashlib.sha256(secrets.token_bytes(16) + payload).hexdigest()
        token = f"{PROOF_PREFIX}{digest}"
        with self._lock:
            self._issued.add(token)
        logger.debug(f"Issued proof {token[:20]}...")
        return token

    def verify_proof(self, token: str) -> bool:
        if not token or not token.startswith(PROOF_PREFIX):
            return False
        with self._lock:
            return token in self._issued
