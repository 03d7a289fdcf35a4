from sqlmodel import col
from sqlmodel.ext.asyncio.session import AsyncSession

from app.audit.writer import AuditLogWriter
from app.core.exceptions import NotFoundError
from app.models import Board, HistoryLogEntryResponse, Task, User
from app.store import Collection


class HistoryService:
    """Audit read paths. These never touch the cache."""

    def __init__(self, db: AsyncSession):
        self.audit = AuditLogWriter(db)
        self.users = Collection(db, User)
        self.boards = Collection(db, Board)
        self.tasks = Collection(db, Task)

    async def list_history_by_task(self, task_id: int) -> list[HistoryLogEntryResponse]:
        # No existence check: a deleted task simply has no history left.
        entries = await self.audit.find_by_entity(task_id)
        return [HistoryLogEntryResponse.model_validate(entry) for entry in entries]

    async def list_history_by_owner(self, user_id: int) -> list[HistoryLogEntryResponse]:
        """History of every task on every board the user owns, newest first."""
        if await self.users.find_by_id(user_id) is None:
            raise NotFoundError("User not found")

        board_ids = [board.id for board in await self.boards.find(owner_id=user_id)]
        if not board_ids:
            return []
        tasks = await self.tasks.find(col(Task.board_id).in_(board_ids))
        entries = await self.audit.find_by_owner(task.id for task in tasks)
        return [HistoryLogEntryResponse.model_validate(entry) for entry in entries]
