from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from app.cache.layer import CacheLayer
from app.database import get_db
from app.services.board_service import BoardService
from app.services.comment_service import CommentService
from app.services.history_service import HistoryService
from app.services.task_service import TaskService
from app.services.user_service import UserService


def get_cache(request: Request) -> CacheLayer:
    # constructed once in the application lifespan
    return request.app.state.cache


def get_task_service(
    db: AsyncSession = Depends(get_db), cache: CacheLayer = Depends(get_cache)
) -> TaskService:
    return TaskService(db, cache)


def get_board_service(
    db: AsyncSession = Depends(get_db), cache: CacheLayer = Depends(get_cache)
) -> BoardService:
    return BoardService(db, cache)


def get_comment_service(
    db: AsyncSession = Depends(get_db), cache: CacheLayer = Depends(get_cache)
) -> CommentService:
    return CommentService(db, cache)


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def get_history_service(db: AsyncSession = Depends(get_db)) -> HistoryService:
    return HistoryService(db)
