from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col
from sqlmodel.ext.asyncio.session import AsyncSession

from app.audit.diff import TASK_TRACKED_FIELDS, diff
from app.audit.writer import AuditLogWriter
from app.cache.decorators import async_cached
from app.cache.keys import board_tasks_key, task_mutation_keys
from app.cache.layer import CacheLayer
from app.core.exceptions import NotFoundError
from app.models import Board, Task, TaskCreate, TaskResponse, TaskStatus, TaskUpdate, User
from app.services.integrity import EntityType, ReferentialIntegrityGuard
from app.store import Collection

import logging

logger = logging.getLogger(__name__)


def _dump(task: Task) -> dict:
    return TaskResponse.model_validate(task).model_dump(mode="json")


class TaskService:
    def __init__(self, db: AsyncSession, cache: CacheLayer):
        self.cache = cache
        self.tasks = Collection(db, Task)
        self.boards = Collection(db, Board)
        self.users = Collection(db, User)
        self.audit = AuditLogWriter(db)
        self.guard = ReferentialIntegrityGuard(db, self.audit)

    async def _require_board(self, board_id: int):
        if await self.boards.find_by_id(board_id) is None:
            raise NotFoundError("Board not found")

    async def _require_assignee(self, user_id: int | None):
        if user_id is not None and await self.users.find_by_id(user_id) is None:
            raise NotFoundError("Assignee user not found")

    async def create_task(self, task_data: TaskCreate) -> TaskResponse:
        await self._require_board(task_data.board_id)
        await self._require_assignee(task_data.assignee_id)

        task = await self.tasks.insert(Task.model_validate(task_data))
        await self.cache.invalidate(*task_mutation_keys(task.id, task.board_id))
        return TaskResponse.model_validate(task)

    async def get_task(self, task_id: int) -> TaskResponse | None:
        task = await self.tasks.find_by_id(task_id)
        return TaskResponse.model_validate(task) if task else None

    @async_cached(lambda board_id: board_tasks_key(board_id))
    async def list_tasks_by_board(self, board_id: int) -> list[dict]:
        tasks = await self.tasks.find(
            order_by=(col(Task.created_at), col(Task.id)), board_id=board_id
        )
        return [_dump(task) for task in tasks]

    async def find_tasks(
        self,
        board_id: int | None = None,
        status: TaskStatus | None = None,
        assignee_id: int | None = None,
        title: str | None = None,
        description: str | None = None,
    ) -> list[TaskResponse]:
        """Uncached search; free-text filters match case-insensitive substrings."""
        clauses = []
        if title:
            clauses.append(self.tasks.contains("title", title))
        if description:
            clauses.append(self.tasks.contains("description", description))
        equals = {
            name: value
            for name, value in (
                ("board_id", board_id),
                ("status", status),
                ("assignee_id", assignee_id),
            )
            if value is not None
        }
        tasks = await self.tasks.find(
            *clauses, order_by=(col(Task.created_at).desc(),), **equals
        )
        return [TaskResponse.model_validate(task) for task in tasks]

    async def update_task(
        self, task_id: int, task_data: TaskUpdate | dict, actor_id: int
    ) -> TaskResponse:
        task = await self.tasks.find_by_id(task_id)
        if not task:
            raise NotFoundError("Task not found")

        if not isinstance(task_data, TaskUpdate):
            task_data = TaskUpdate.model_validate(
                {**task_data, "changed_by_user_id": actor_id}
            )
        patch = task_data.model_dump(exclude_unset=True)
        patch.pop("changed_by_user_id", None)

        # snapshot before the update mutates the session's instance
        previous = task.model_dump()
        old_board_id = task.board_id

        if "board_id" in patch and patch["board_id"] != old_board_id:
            await self._require_board(patch["board_id"])
        if "assignee_id" in patch and patch["assignee_id"] != previous["assignee_id"]:
            await self._require_assignee(patch["assignee_id"])

        changes = diff(TASK_TRACKED_FIELDS, previous, patch, actor_id)

        updated = await self.tasks.update_by_id(task_id, patch)
        if updated is None:
            raise NotFoundError("Task not found")

        # the row is committed; listings are dropped even if the history write fails
        try:
            if changes:
                await self.audit.record(task_id, changes)
        except SQLAlchemyError:
            logger.exception(
                "Task %s was updated but %d history entr(ies) were not recorded",
                task_id,
                len(changes),
            )
            raise
        finally:
            await self.cache.invalidate(
                *task_mutation_keys(task_id, old_board_id, updated.board_id)
            )
        return TaskResponse.model_validate(updated)

    async def delete_task(self, task_id: int) -> TaskResponse | None:
        task = await self.tasks.find_by_id(task_id)
        if not task:
            return None
        board_id = task.board_id

        await self.guard.ensure_can_delete(EntityType.TASK, task_id)

        # the cascade commits on its own, so invalidate whatever the row delete does
        try:
            await self.guard.cascade_delete(EntityType.TASK, task_id)
            removed = await self.tasks.delete_by_id(task_id)
        finally:
            await self.cache.invalidate(*task_mutation_keys(task_id, board_id))

        if removed is None:
            return None
        return TaskResponse.model_validate(removed)
