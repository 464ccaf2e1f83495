"""
swarm_genetics/services/persistence.py

PostgreSQL repository.

Stores profiles, contracts and breeding records as JSONB documents with
a few indexed columns. Profile and contract saves are compare-and-swap
on a `version` column, so two writers racing on the same swarm cannot
both succeed.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Iterable

from swarm_genetics.breeding.contract import (
    BreedingAchievement,
    BreedingContract,
    IncubationRecord,
    LineageRecord,
)
from swarm_genetics.breeding.errors import ConcurrentModification
from swarm_genetics.genetics.mutation import MutationRecord
from swarm_genetics.genetics.profile import GeneticProfile

from .repository import Repository

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS swarm_genetics (
    swarm_id TEXT PRIMARY KEY,
    data JSONB NOT NULL,
    version INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS breeding_contracts (
    contract_id TEXT PRIMARY KEY,
    parent1_owner TEXT NOT NULL,
    parent2_owner TEXT NOT NULL,
    offspring_owner TEXT NOT NULL,
    status TEXT NOT NULL,
    proposed_at TIMESTAMPTZ,
    data JSONB NOT NULL,
    version INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS trait_mutations (
    id BIGSERIAL PRIMARY KEY,
    swarm_id TEXT NOT NULL,
    data JSONB NOT NULL,
    occurred_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS swarm_lineage (
    swarm_id TEXT PRIMARY KEY,
    data JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS incubation_queue (
    contract_id TEXT PRIMARY KEY,
    data JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS breeding_achievements (
    id BIGSERIAL PRIMARY KEY,
    owner_id TEXT NOT NULL,
    data JSONB NOT NULL,
    earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


@dataclass
class PersistenceConfig:
    """Configuration for database persistence."""

    # Connection settings
    host: str = "localhost"
    port: int = 5432
    database: str = "swarm_genetics"
    user: str = "postgres"
    password: str = ""

    create_schema: bool = True  # Run SCHEMA on first connection

    @classmethod
    def from_env(cls) -> PersistenceConfig:
        """Create config from environment variables."""
        return cls(
            host=os.environ.get("POSTGRES_HOST", "localhost"),
            port=int(os.environ.get("POSTGRES_PORT", "5432")),
            database=os.environ.get("POSTGRES_DB", "swarm_genetics"),
            user=os.environ.get("POSTGRES_USER", "postgres"),
            password=os.environ.get("POSTGRES_PASSWORD", ""),
            create_schema=os.environ.get("DB_CREATE_SCHEMA", "true").lower() == "true",
        )

    @property
    def connection_string(self) -> str:
        """Get PostgreSQL connection string."""
        return (
            f"postgresql://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}"
        )


class PostgresRepository(Repository):
    """
    Repository backed by PostgreSQL via psycopg2.

    Connection is opened lazily. Driver errors are logged and re-raised.
    """

    def __init__(self, config: PersistenceConfig, connection: Any = None):
        self.config = config
        self._conn = connection
        self._schema_ready = not config.create_schema

    def _get_connection(self) -> Any:
        """Get or create database connection."""
        if self._conn is None:
            try:
                import psycopg2
            except ImportError:
                raise ImportError(
                    "psycopg2 package required for PostgresRepository. "
                    "Install with: pip install psycopg2-binary"
                )
            try:
                self._conn = psycopg2.connect(
                    host=self.config.host,
                    port=self.config.port,
                    database=self.config.database,
                    user=self.config.user,
                    password=self.config.password,
                )
                self._conn.autocommit = True
                logger.info(
                    f"Database connection established to {self.config.host}:{self.config.port}"
                )
            except Exception as e:
                logger.error(f"Failed to connect to database: {e}")
                raise

        if not self._schema_ready:
            if self.config.create_schema:
                with self._conn.cursor() as cur:
                    cur.execute(SCHEMA)
            self._schema_ready = True

        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Database connection closed")

    def _execute(self, sql: str, params: tuple, fetch: str | None = None) -> Any:
        """Run one statement. fetch is None, "one" or "all"."""
        conn = self._get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                if fetch == "one":
                    return cur.fetchone()
                if fetch == "all":
                    return cur.fetchall()
                return None
        except Exception as e:
            logger.error(f"Database statement failed: {e}")
            raise

    # ==================== Profiles ====================

    def get_profile(self, swarm_id: str) -> GeneticProfile | None:
        row = self._execute(
            "SELECT data, version FROM swarm_genetics WHERE swarm_id = %s",
            (swarm_id,),
            fetch="one",
        )
        if row is None:
            return None
        data = _load(row[0])
        data["version"] = row[1]
        return GeneticProfile.from_dict(data)

    def save_profile(
        self, profile: GeneticProfile, expected_version: int | None = None
    ) -> GeneticProfile:
        if not profile.swarm_id:
            raise ValueError("Cannot save a profile without a swarm_id")
        payload = json.dumps(profile.to_dict())
        row = self._compare_and_swap(
            table="swarm_genetics",
            key_column="swarm_id",
            key=profile.swarm_id,
            columns={"data": payload},
            expected_version=expected_version,
        )
        data = profile.to_dict()
        data["version"] = row[0]
        return GeneticProfile.from_dict(data)

    # ==================== Contracts ====================

    def get_contract(self, contract_id: str) -> BreedingContract | None:
        row = self._execute(
            "SELECT data, version FROM breeding_contracts WHERE contract_id = %s",
            (contract_id,),
            fetch="one",
        )
        if row is None:
            return None
        data = _load(row[0])
        data["version"] = row[1]
        return BreedingContract.from_dict(data)

    def save_contract(
        self, contract: BreedingContract, expected_version: int | None = None
    ) -> BreedingContract:
        if not contract.contract_id:
            raise ValueError("Cannot save a contract without a contract_id")
        row = self._compare_and_swap(
            table="breeding_contracts",
            key_column="contract_id",
            key=contract.contract_id,
            columns={
                "parent1_owner": contract.parent1_owner,
                "parent2_owner": contract.parent2_owner,
                "offspring_owner": contract.offspring_owner,
                "status": contract.status.value,
                "proposed_at": contract.proposed_at,
                "data": json.dumps(contract.to_dict()),
            },
            expected_version=expected_version,
        )
        return replace(contract, version=row[0])

    def list_contracts(self, owner_id: str) -> list[BreedingContract]:
        rows = self._execute(
            """
            SELECT data, version FROM breeding_contracts
            WHERE parent1_owner = %s OR parent2_owner = %s OR offspring_owner = %s
            ORDER BY proposed_at DESC
            """,
            (owner_id, owner_id, owner_id),
            fetch="all",
        )
        contracts = []
        for data, version in rows or []:
            data = _load(data)
            data["version"] = version
            contracts.append(BreedingContract.from_dict(data))
        return contracts

    def _compare_and_swap(
        self,
        table: str,
        key_column: str,
        key: str,
        columns: dict[str, Any],
        expected_version: int | None,
    ) -> tuple:
        names = list(columns)
        values = tuple(columns[n] for n in names)

        if expected_version is None:
            assignments = ", ".join(f"{n} = EXCLUDED.{n}" for n in names)
            sql = (
                f"INSERT INTO {table} ({key_column}, {', '.join(names)}, version) "
                f"VALUES (%s, {', '.join(['%s'] * len(names))}, 1) "
                f"ON CONFLICT ({key_column}) DO UPDATE SET {assignments}, "
                f"version = {table}.version + 1 RETURNING version"
            )
            row = self._execute(sql, (key,) + values, fetch="one")
        elif expected_version == 0:
            sql = (
                f"INSERT INTO {table} ({key_column}, {', '.join(names)}, version) "
                f"VALUES (%s, {', '.join(['%s'] * len(names))}, 1) "
                f"ON CONFLICT ({key_column}) DO NOTHING RETURNING version"
            )
            row = self._execute(sql, (key,) + values, fetch="one")
        else:
            assignments = ", ".join(f"{n} = %s" for n in names)
            sql = (
                f"UPDATE {table} SET {assignments}, version = version + 1 "
                f"WHERE {key_column} = %s AND version = %s RETURNING version"
            )
            row = self._execute(sql, values + (key, expected_version), fetch="one")

        if row is None:
            raise ConcurrentModification(
                f"{table} {key} changed since version {expected_version}"
            )
        return row

    # ==================== Records ====================

    def append_mutation_records(self, records: Iterable[MutationRecord]) -> None:
        for record in records:
            self._execute(
                "INSERT INTO trait_mutations (swarm_id, data) VALUES (%s, %s)",
                (record.swarm_id, json.dumps(record.to_dict())),
            )

    def get_mutations(self, swarm_id: str) -> list[MutationRecord]:
        rows = self._execute(
            "SELECT data FROM trait_mutations WHERE swarm_id = %s ORDER BY id",
            (swarm_id,),
            fetch="all",
        )
        return [MutationRecord.from_dict(_load(row[0])) for row in rows or []]

    def append_lineage(self, record: LineageRecord) -> None:
        self._execute(
            """
            INSERT INTO swarm_lineage (swarm_id, data) VALUES (%s, %s)
            ON CONFLICT (swarm_id) DO UPDATE SET data = EXCLUDED.data
            """,
            (record.swarm_id, json.dumps(record.to_dict())),
        )

    def get_lineage(self, swarm_id: str) -> LineageRecord | None:
        row = self._execute(
            "SELECT data FROM swarm_lineage WHERE swarm_id = %s",
            (swarm_id,),
            fetch="one",
        )
        return LineageRecord.from_dict(_load(row[0])) if row else None

    def save_incubation(self, record: IncubationRecord) -> None:
        self._execute(
            """
            INSERT INTO incubation_queue (contract_id, data) VALUES (%s, %s)
            ON CONFLICT (contract_id) DO UPDATE SET data = EXCLUDED.data
            """,
            (record.contract_id, json.dumps(record.to_dict())),
        )

    def get_incubation(self, contract_id: str) -> IncubationRecord | None:
        row = self._execute(
            "SELECT data FROM incubation_queue WHERE contract_id = %s",
            (contract_id,),
            fetch="one",
        )
        return IncubationRecord.from_dict(_load(row[0])) if row else None

    def append_achievement(self, achievement: BreedingAchievement) -> None:
        self._execute(
            "INSERT INTO breeding_achievements (owner_id, data) VALUES (%s, %s)",
            (achievement.owner_id, json.dumps(achievement.to_dict())),
        )

    def get_achievements(self, owner_id: str) -> list[BreedingAchievement]:
        rows = self._execute(
            "SELECT data FROM breeding_achievements WHERE owner_id = %s ORDER BY id DESC",
            (owner_id,),
            fetch="all",
        )
        return [BreedingAchievement.from_dict(_load(row[0])) for row in rows or []]


def _load(value: Any) -> dict[str, Any]:
    """psycopg2 decodes JSONB to dict; plain JSON text arrives as str."""
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return dict(value)
