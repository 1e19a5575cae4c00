"""Remote usage store on a relational database (Postgres via asyncpg)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    func,
    select,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from genquota.models import BillingStatus, UsageRecord, utc_now
from genquota.services.usage_store import Mutator, UsageStore

metadata = MetaData()

app_usage = Table(
    "app_usage",
    metadata,
    Column("user_id", Text, primary_key=True),
    Column("generated_count", Integer, nullable=False, server_default="0"),
    Column("billing_status", Text, nullable=False, server_default="free"),
    Column("provider_customer_id", Text, nullable=True),
    Column("provider_subscription_id", Text, nullable=True),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    CheckConstraint(
        "billing_status in ('free', 'active')", name="app_usage_billing_status_check"
    ),
)

Index("app_usage_updated_at_idx", app_usage.c.updated_at.desc())


def row_to_record(row: Any) -> UsageRecord:
    """Map an ``app_usage`` row mapping onto a UsageRecord."""
    return UsageRecord(
        user_id=row["user_id"],
        generated_count=row["generated_count"],
        billing_status=BillingStatus(row["billing_status"]),
        provider_customer_id=row["provider_customer_id"],
        provider_subscription_id=row["provider_subscription_id"],
        updated_at=row["updated_at"],
    )


def record_to_row(record: UsageRecord) -> dict[str, Any]:
    return {
        "user_id": record.user_id,
        "generated_count": record.generated_count,
        "billing_status": record.billing_status.value,
        "provider_customer_id": record.provider_customer_id,
        "provider_subscription_id": record.provider_subscription_id,
        "updated_at": record.updated_at,
    }


class SqlUsageStore(UsageStore):
    """
    ``app_usage`` table accessed through SQLAlchemy Core.

    Updates lock the row (``SELECT ... FOR UPDATE``) inside one transaction,
    so concurrent increments for the same user serialize in the database.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, url: str) -> "SqlUsageStore":
        engine = create_async_engine(url, pool_pre_ping=True)
        return cls(engine)

    async def create_schema(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def get(self, user_id: str) -> UsageRecord:
        async with self._engine.begin() as conn:
            row = await self._fetch_or_create(conn, user_id)
        return row_to_record(row)

    async def update(self, user_id: str, mutator: Mutator) -> UsageRecord:
        async with self._engine.begin() as conn:
            current = row_to_record(
                await self._fetch_or_create(conn, user_id, for_update=True)
            )
            updated = mutator(current).model_copy(update={"updated_at": utc_now()})

            values = record_to_row(updated)
            stmt = (
                pg_insert(app_usage)
                .values(**values)
                .on_conflict_do_update(
                    index_elements=[app_usage.c.user_id],
                    set_={k: v for k, v in values.items() if k != "user_id"},
                )
                .returning(*app_usage.c)
            )
            row = (await conn.execute(stmt)).mappings().one()
        return row_to_record(row)

    async def close(self) -> None:
        await self._engine.dispose()

    async def _fetch_or_create(
        self, conn: AsyncConnection, user_id: str, for_update: bool = False
    ) -> Any:
        query = select(app_usage).where(app_usage.c.user_id == user_id)
        if for_update:
            query = query.with_for_update()

        row = (await conn.execute(query)).mappings().one_or_none()
        if row is not None:
            return row

        default = record_to_row(UsageRecord.default(user_id))
        await conn.execute(
            pg_insert(app_usage)
            .values(**default)
            .on_conflict_do_nothing(index_elements=[app_usage.c.user_id])
        )
        return (await conn.execute(query)).mappings().one()
