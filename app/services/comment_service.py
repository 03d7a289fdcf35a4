from sqlmodel import col
from sqlmodel.ext.asyncio.session import AsyncSession

from app.cache.decorators import async_cached
from app.cache.keys import task_comments_key
from app.cache.layer import CacheLayer
from app.core.exceptions import NotFoundError
from app.models import Comment, CommentCreate, CommentResponse, CommentUpdate, Task
from app.store import Collection


class CommentService:
    def __init__(self, db: AsyncSession, cache: CacheLayer):
        self.cache = cache
        self.comments = Collection(db, Comment)
        self.tasks = Collection(db, Task)

    async def create_comment(self, comment_data: CommentCreate) -> CommentResponse:
        if await self.tasks.find_by_id(comment_data.task_id) is None:
            raise NotFoundError("Task not found")

        comment = await self.comments.insert(Comment.model_validate(comment_data))
        await self.cache.invalidate(task_comments_key(comment.task_id))
        return CommentResponse.model_validate(comment)

    async def list_comments(self) -> list[CommentResponse]:
        comments = await self.comments.find(order_by=(col(Comment.created_at),))
        return [CommentResponse.model_validate(comment) for comment in comments]

    @async_cached(lambda task_id: task_comments_key(task_id))
    async def list_comments_by_task(self, task_id: int) -> list[dict]:
        comments = await self.comments.find(
            order_by=(col(Comment.created_at), col(Comment.id)), task_id=task_id
        )
        return [
            CommentResponse.model_validate(comment).model_dump(mode="json")
            for comment in comments
        ]

    async def get_comment(self, comment_id: int) -> CommentResponse | None:
        comment = await self.comments.find_by_id(comment_id)
        return CommentResponse.model_validate(comment) if comment else None

    async def update_comment(
        self, comment_id: int, comment_data: CommentUpdate
    ) -> CommentResponse:
        updated = await self.comments.update_by_id(
            comment_id, comment_data.model_dump(exclude_unset=True)
        )
        if updated is None:
            raise NotFoundError("Comment not found")
        await self.cache.invalidate(task_comments_key(updated.task_id))
        return CommentResponse.model_validate(updated)

    async def delete_comment(self, comment_id: int) -> CommentResponse | None:
        removed = await self.comments.delete_by_id(comment_id)
        if removed is None:
            return None
        await self.cache.invalidate(task_comments_key(removed.task_id))
        return CommentResponse.model_validate(removed)
