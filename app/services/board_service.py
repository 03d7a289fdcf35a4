from sqlmodel import col
from sqlmodel.ext.asyncio.session import AsyncSession

from app.audit.writer import AuditLogWriter
from app.cache.keys import board_tasks_key
from app.cache.layer import CacheLayer
from app.core.exceptions import NotFoundError
from app.models import Board, BoardCreate, BoardResponse, BoardUpdate, User
from app.services.integrity import EntityType, ReferentialIntegrityGuard
from app.store import Collection


class BoardService:
    def __init__(self, db: AsyncSession, cache: CacheLayer):
        self.cache = cache
        self.boards = Collection(db, Board)
        self.users = Collection(db, User)
        self.guard = ReferentialIntegrityGuard(db, AuditLogWriter(db))

    async def create_board(self, board_data: BoardCreate) -> BoardResponse:
        if await self.users.find_by_id(board_data.owner_id) is None:
            raise NotFoundError("Owner user not found")
        board = await self.boards.insert(Board.model_validate(board_data))
        return BoardResponse.model_validate(board)

    async def list_boards(self) -> list[BoardResponse]:
        boards = await self.boards.find(order_by=(col(Board.created_at),))
        return [BoardResponse.model_validate(board) for board in boards]

    async def list_boards_by_owner(self, user_id: int) -> list[BoardResponse]:
        if await self.users.find_by_id(user_id) is None:
            raise NotFoundError("User not found")
        boards = await self.boards.find(
            order_by=(col(Board.created_at),), owner_id=user_id
        )
        return [BoardResponse.model_validate(board) for board in boards]

    async def get_board(self, board_id: int) -> BoardResponse | None:
        board = await self.boards.find_by_id(board_id)
        return BoardResponse.model_validate(board) if board else None

    async def update_board(self, board_id: int, board_data: BoardUpdate) -> BoardResponse:
        board = await self.boards.find_by_id(board_id)
        if not board:
            raise NotFoundError("Board not found")

        patch = board_data.model_dump(exclude_unset=True)
        if "owner_id" in patch and patch["owner_id"] != board.owner_id:
            if await self.users.find_by_id(patch["owner_id"]) is None:
                raise NotFoundError("New owner user not found")

        updated = await self.boards.update_by_id(board_id, patch)
        if updated is None:
            raise NotFoundError("Board not found")
        return BoardResponse.model_validate(updated)

    async def delete_board(self, board_id: int) -> BoardResponse | None:
        board = await self.boards.find_by_id(board_id)
        if not board:
            return None

        await self.guard.ensure_can_delete(EntityType.BOARD, board_id)

        removed = await self.boards.delete_by_id(board_id)
        if removed is None:
            return None
        await self.cache.invalidate(board_tasks_key(board_id))
        return BoardResponse.model_validate(removed)
