"""SQLite-backed rubric store: drivers, behaviours, instances and policy."""

from __future__ import annotations

import json

import aiosqlite

from recall_engine.config.constants import DEFAULT_POLICY
from recall_engine.models.domain import (
    Driver,
    DriverBehavior,
    DriverInstance,
    EvaluationPolicy,
    Rubric,
)
from recall_engine.observability.logger import get_logger
from recall_engine.storage.migrations import initialize_rubric_db

logger = get_logger("rubric_store")


def default_policy() -> EvaluationPolicy:
    return EvaluationPolicy(**DEFAULT_POLICY)


class SQLiteRubricStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_rubric_db(self._db_path)

    async def save_driver(self, client_id: str, driver: Driver) -> int:
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                "INSERT OR REPLACE INTO drivers (client_id, key, name, description, weight, negative_indicators) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    client_id,
                    driver.key,
                    driver.name,
                    driver.description,
                    driver.weight,
                    json.dumps(driver.negative_indicators),
                ),
            )
            await db.commit()
            return cursor.lastrowid

    async def save_behavior(self, behavior: DriverBehavior) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT INTO driver_behaviors (driver_id, positive_examples, negative_examples) VALUES (?, ?, ?)",
                (
                    behavior.driver_id,
                    json.dumps(behavior.positive_examples),
                    json.dumps(behavior.negative_examples),
                ),
            )
            await db.commit()

    async def save_instance(self, instance: DriverInstance) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT INTO driver_instances (driver_id, title, takeaway) VALUES (?, ?, ?)",
                (instance.driver_id, instance.title, instance.takeaway),
            )
            await db.commit()

    async def save_policy(self, client_id: str, policy: EvaluationPolicy) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO evaluation_policies (client_id, name, guidance, min_evidence_items, "
                "require_citations, require_multi_room, scale_min, scale_max, red_lines) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    client_id,
                    policy.name,
                    policy.guidance,
                    policy.min_evidence_items,
                    int(policy.require_citations),
                    int(policy.require_multi_room),
                    policy.scale_min,
                    policy.scale_max,
                    json.dumps(policy.red_lines),
                ),
            )
            await db.commit()

    async def get_rubric(self, client_id: str) -> Rubric:
        """Drivers and policy for a client; the default policy when none is stored."""
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM drivers WHERE client_id = ? ORDER BY id", (client_id,)
            ) as cursor:
                driver_rows = await cursor.fetchall()

            drivers = [
                Driver(
                    id=row["id"],
                    key=row["key"],
                    name=row["name"],
                    description=row["description"],
                    weight=row["weight"],
                    negative_indicators=json.loads(row["negative_indicators"]),
                )
                for row in driver_rows
            ]
            driver_ids = [d.id for d in drivers]

            behaviors: list[DriverBehavior] = []
            instances: list[DriverInstance] = []
            if driver_ids:
                placeholders = ",".join("?" for _ in driver_ids)
                async with db.execute(
                    f"SELECT * FROM driver_behaviors WHERE driver_id IN ({placeholders})",
                    driver_ids,
                ) as cursor:
                    behaviors = [
                        DriverBehavior(
                            driver_id=row["driver_id"],
                            positive_examples=json.loads(row["positive_examples"]),
                            negative_examples=json.loads(row["negative_examples"]),
                        )
                        async for row in cursor
                    ]
                async with db.execute(
                    f"SELECT * FROM driver_instances WHERE driver_id IN ({placeholders})",
                    driver_ids,
                ) as cursor:
                    instances = [
                        DriverInstance(
                            driver_id=row["driver_id"],
                            title=row["title"],
                            takeaway=row["takeaway"],
                        )
                        async for row in cursor
                    ]

            async with db.execute(
                "SELECT * FROM evaluation_policies WHERE client_id = ?", (client_id,)
            ) as cursor:
                policy_row = await cursor.fetchone()

        if policy_row is None:
            policy = default_policy()
        else:
            policy = EvaluationPolicy(
                id=policy_row["id"],
                name=policy_row["name"],
                guidance=policy_row["guidance"],
                min_evidence_items=policy_row["min_evidence_items"],
                require_citations=bool(policy_row["require_citations"]),
                require_multi_room=bool(policy_row["require_multi_room"]),
                scale_min=policy_row["scale_min"],
                scale_max=policy_row["scale_max"],
                red_lines=json.loads(policy_row["red_lines"]),
            )

        logger.debug(
            "rubric_loaded",
            client_id=client_id,
            drivers=len(drivers),
            default_policy=policy_row is None,
        )
        return Rubric(drivers=drivers, behaviors=behaviors, instances=instances, policy=policy)
