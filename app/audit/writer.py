from datetime import timedelta
from typing import Iterable

from sqlmodel import col
from sqlmodel.ext.asyncio.session import AsyncSession

from app.audit.diff import ChangeRecord
from app.models import HistoryLogEntry, get_utc_now
from app.store import Collection

import logging

logger = logging.getLogger(__name__)


class AuditLogWriter:
    """Append-only persistence of task change records."""

    def __init__(self, db: AsyncSession):
        self.entries = Collection(db, HistoryLogEntry)

    async def record(self, entity_id: int, changes: list[ChangeRecord]):
        """
        Insert one history entry per change record as a single batch.

        Timestamps are assigned here and increase strictly through the batch
        so creation order survives even if the store reorders rows. Store
        errors propagate to the caller.
        """
        if not changes:
            return []
        base = get_utc_now()
        entries = [
            HistoryLogEntry(
                task_id=entity_id,
                field=change.field,
                old_value=change.old_value,
                new_value=change.new_value,
                changed_by_user_id=change.actor_id,
                created_at=base + timedelta(microseconds=offset),
            )
            for offset, change in enumerate(changes)
        ]
        saved = await self.entries.insert_many(entries)
        logger.debug("Recorded %d change(s) for task %s", len(saved), entity_id)
        return saved

    async def find_by_entity(self, entity_id: int) -> list[HistoryLogEntry]:
        return await self.entries.find(
            order_by=(col(HistoryLogEntry.created_at), col(HistoryLogEntry.id)),
            task_id=entity_id,
        )

    async def find_by_owner(self, entity_ids: Iterable[int]) -> list[HistoryLogEntry]:
        """History across a set of tasks, newest first."""
        entity_ids = set(entity_ids)
        if not entity_ids:
            return []
        return await self.entries.find(
            col(HistoryLogEntry.task_id).in_(entity_ids),
            order_by=(
                col(HistoryLogEntry.created_at).desc(),
                col(HistoryLogEntry.id).desc(),
            ),
        )

    async def delete_for_entity(self, entity_id: int) -> int:
        """Cascade path for task deletion; entries are never removed otherwise."""
        return await self.entries.delete_where(task_id=entity_id)
