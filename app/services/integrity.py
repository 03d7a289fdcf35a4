from dataclasses import dataclass
from enum import Enum

from sqlmodel.ext.asyncio.session import AsyncSession

from app.audit.writer import AuditLogWriter
from app.core.exceptions import ConflictError
from app.models import Board, Comment, Task
from app.store import Collection

import logging

logger = logging.getLogger(__name__)


class EntityType(str, Enum):
    USER = "user"
    BOARD = "board"
    TASK = "task"
    COMMENT = "comment"


@dataclass(frozen=True)
class DeleteCheck:
    allowed: bool
    dependent_count: int = 0
    dependent_type: str | None = None


class ReferentialIntegrityGuard:
    """
    Pre-delete checks and cascades.

    Checks are plain reads followed later by the caller's delete. A dependent
    inserted between the count and the delete is not seen; callers accept
    that window.
    """

    def __init__(self, db: AsyncSession, audit: AuditLogWriter):
        self.boards = Collection(db, Board)
        self.tasks = Collection(db, Task)
        self.comments = Collection(db, Comment)
        self.audit = audit

    async def can_delete(self, entity_type: EntityType, entity_id: int) -> DeleteCheck:
        if entity_type is EntityType.BOARD:
            count = await self.tasks.count_where(board_id=entity_id)
            if count > 0:
                return DeleteCheck(False, count, "task")

        elif entity_type is EntityType.USER:
            owned = await self.boards.count_where(owner_id=entity_id)
            if owned > 0:
                return DeleteCheck(False, owned, "board")
            assigned = await self.tasks.count_where(assignee_id=entity_id)
            if assigned > 0:
                return DeleteCheck(False, assigned, "assigned task")

        return DeleteCheck(True)

    async def ensure_can_delete(self, entity_type: EntityType, entity_id: int):
        check = await self.can_delete(entity_type, entity_id)
        if check.allowed:
            return check

        if entity_type is EntityType.USER and check.dependent_type == "board":
            message = f"Cannot delete user who owns {check.dependent_count} board(s)."
        else:
            message = (
                f"Cannot delete {entity_type.value} with "
                f"{check.dependent_count} {check.dependent_type}(s)."
            )
        logger.info(
            "Blocked delete of %s %s: %d %s(s) depend on it",
            entity_type.value,
            entity_id,
            check.dependent_count,
            check.dependent_type,
        )
        raise ConflictError(message, check.dependent_count, check.dependent_type)

    async def cascade_delete(self, entity_type: EntityType, entity_id: int):
        """Remove dependents of a leaf entity ahead of deleting the entity itself."""
        if entity_type is not EntityType.TASK:
            return

        comments = await self.comments.delete_where(task_id=entity_id)
        history = await self.audit.delete_for_entity(entity_id)
        logger.info(
            "Cascade for task %s removed %d comment(s), %d history entr(ies)",
            entity_id,
            comments,
            history,
        )
