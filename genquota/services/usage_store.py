"""Usage record persistence.

One record per user, created lazily and never deleted. ``FallbackUsageStore``
fronts a remote primary with the local JSON document so callers never see a
remote failure.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import ValidationError as SchemaError

from genquota.config import Settings
from genquota.models import UsageRecord, utc_now
from genquota.utils.logging import get_logger

logger = get_logger(__name__)

Mutator = Callable[[UsageRecord], UsageRecord]


class UsageStore(ABC):
    """Key-value persistence of one UsageRecord per user."""

    @abstractmethod
    async def get(self, user_id: str) -> UsageRecord:
        """Return the stored record, creating and persisting the default if absent."""

    @abstractmethod
    async def update(self, user_id: str, mutator: Mutator) -> UsageRecord:
        """Apply ``mutator`` to the current-or-default record and persist the result."""

    async def close(self) -> None:
        """Release any held resources."""
        return None


class LocalUsageStore(UsageStore):
    """
    Single JSON document on local disk: ``{"users": {userId: record}}``.

    Each mutation rewrites the whole document. Load, mutate and save happen
    without yielding to the event loop, so coroutines in one process never
    interleave a read-modify-write; separate processes sharing the file can
    still lose updates.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, user_id: str) -> UsageRecord:
        users = self._load()
        existing = self._parse(users, user_id)
        if existing is not None:
            return existing

        created = UsageRecord.default(user_id)
        users[user_id] = self._dump(created)
        self._save(users)
        return created

    async def update(self, user_id: str, mutator: Mutator) -> UsageRecord:
        users = self._load()
        current = self._parse(users, user_id) or UsageRecord.default(user_id)

        updated = mutator(current).model_copy(update={"updated_at": utc_now()})
        users[user_id] = self._dump(updated)
        self._save(users)
        return updated

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            self._save({})
            return {}

        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except ValueError as e:
            logger.warning("local_usage_store_corrupt", path=str(self._path), error=str(e))
            return {}

        users = document.get("users") if isinstance(document, dict) else None
        if not isinstance(users, dict):
            logger.warning("local_usage_store_invalid_layout", path=str(self._path))
            return {}
        return users

    def _save(self, users: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(json.dumps({"users": users}, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)

    @staticmethod
    def _parse(users: dict[str, Any], user_id: str) -> UsageRecord | None:
        raw = users.get(user_id)
        if raw is None:
            return None
        try:
            record = UsageRecord.model_validate(raw)
        except SchemaError as e:
            logger.warning("local_usage_record_invalid", user_id=user_id, error=str(e))
            return None
        # The map key is authoritative for the user id.
        if record.user_id != user_id:
            record = record.model_copy(update={"user_id": user_id})
        return record

    @staticmethod
    def _dump(record: UsageRecord) -> dict[str, Any]:
        return record.model_dump(by_alias=True, mode="json", exclude_none=True)


class FallbackUsageStore(UsageStore):
    """
    Try ``primary`` and serve the call from ``fallback`` on any error.

    Decided per call: a primary that recovers is used again on the next call.
    A ``None`` primary means the remote store is not configured.
    """

    def __init__(self, primary: UsageStore | None, fallback: UsageStore) -> None:
        self._primary = primary
        self._fallback = fallback

    @property
    def primary(self) -> UsageStore | None:
        return self._primary

    @property
    def fallback(self) -> UsageStore:
        return self._fallback

    async def get(self, user_id: str) -> UsageRecord:
        if self._primary is not None:
            try:
                return await self._primary.get(user_id)
            except Exception as e:
                logger.error(
                    "usage_store_primary_failed",
                    operation="get",
                    user_id=user_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return await self._fallback.get(user_id)

    async def update(self, user_id: str, mutator: Mutator) -> UsageRecord:
        if self._primary is not None:
            try:
                return await self._primary.update(user_id, mutator)
            except Exception as e:
                logger.error(
                    "usage_store_primary_failed",
                    operation="update",
                    user_id=user_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return await self._fallback.update(user_id, mutator)

    async def close(self) -> None:
        if self._primary is not None:
            await self._primary.close()
        await self._fallback.close()


def build_usage_store(settings: Settings) -> FallbackUsageStore:
    """Local store always; the SQL primary only when it can be configured."""
    local = LocalUsageStore(settings.usage_file_path)

    if not settings.database_url:
        logger.info("remote_usage_store_disabled", reason="DATABASE_URL not set")
        return FallbackUsageStore(None, local)

    from genquota.services.sql_store import SqlUsageStore

    try:
        primary = SqlUsageStore.from_url(settings.database_url)
    except Exception as e:
        logger.warning(
            "remote_usage_store_disabled",
            reason="engine creation failed, using local usage storage",
            error=str(e),
        )
        return FallbackUsageStore(None, local)

    return FallbackUsageStore(primary, local)
