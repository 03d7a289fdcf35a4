from fastapi import APIRouter, Depends

from app.dependencies import get_history_service
from app.models import HistoryLogEntryResponse
from app.services.history_service import HistoryService

router = APIRouter(prefix="/history", tags=["history"])


@router.get("/", response_model=list[HistoryLogEntryResponse])
async def get_task_history(
    task_id: int, service: HistoryService = Depends(get_history_service)
):
    """Change history of one task, oldest first"""
    return await service.list_history_by_task(task_id)


@router.get("/user/{user_id}", response_model=list[HistoryLogEntryResponse])
async def get_owner_history(
    user_id: int, service: HistoryService = Depends(get_history_service)
):
    """Change history across all boards a user owns, newest first"""
    return await service.list_history_by_owner(user_id)
