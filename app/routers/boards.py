from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_board_service, get_task_service
from app.models import BoardCreate, BoardResponse, BoardUpdate, TaskResponse
from app.services.board_service import BoardService
from app.services.task_service import TaskService

router = APIRouter(prefix="/boards", tags=["boards"])


def _not_found(board_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Board with id {board_id} not found",
    )


@router.post("/", response_model=BoardResponse, status_code=status.HTTP_201_CREATED)
async def create_board(
    board_data: BoardCreate, service: BoardService = Depends(get_board_service)
):
    return await service.create_board(board_data)


@router.get("/", response_model=list[BoardResponse])
async def get_boards(service: BoardService = Depends(get_board_service)):
    return await service.list_boards()


@router.get("/user/{user_id}", response_model=list[BoardResponse])
async def get_boards_by_owner(
    user_id: int, service: BoardService = Depends(get_board_service)
):
    """Boards owned by a user"""
    return await service.list_boards_by_owner(user_id)


@router.get("/{board_id}", response_model=BoardResponse)
async def get_board(board_id: int, service: BoardService = Depends(get_board_service)):
    board = await service.get_board(board_id)
    if not board:
        raise _not_found(board_id)
    return board


@router.get("/{board_id}/tasks", response_model=list[TaskResponse])
async def get_board_tasks(
    board_id: int, service: TaskService = Depends(get_task_service)
):
    """Tasks on a board (cached)"""
    return await service.list_tasks_by_board(board_id)


@router.patch("/{board_id}", response_model=BoardResponse)
async def update_board(
    board_id: int,
    board_data: BoardUpdate,
    service: BoardService = Depends(get_board_service),
):
    return await service.update_board(board_id, board_data)


@router.delete("/{board_id}", response_model=BoardResponse)
async def delete_board(
    board_id: int, service: BoardService = Depends(get_board_service)
):
    """Delete a board; refused while tasks still reference it"""
    board = await service.delete_board(board_id)
    if not board:
        raise _not_found(board_id)
    return board
