from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.dependencies import get_task_service
from app.models import TaskCreate, TaskResponse, TaskStatus, TaskUpdate
from app.services.task_service import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate, service: TaskService = Depends(get_task_service)
):
    """Create a new task"""
    return await service.create_task(task_data)


@router.get("/", response_model=list[TaskResponse])
async def get_tasks(
    board_id: int | None = None,
    task_status: TaskStatus | None = Query(default=None, alias="status"),
    assignee_id: int | None = None,
    title: str | None = Query(default=None, min_length=1),
    description: str | None = Query(default=None, min_length=1),
    service: TaskService = Depends(get_task_service),
):
    return await service.find_tasks(board_id, task_status, assignee_id, title, description)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: int, service: TaskService = Depends(get_task_service)):
    """Get a specific task by ID"""

    task = await service.get_task(task_id)

    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task with id {task_id} not found",
        )
    return task


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    service: TaskService = Depends(get_task_service),
):
    """Update a task; changed tracked fields are written to its history"""
    return await service.update_task(task_id, task_data, task_data.changed_by_user_id)


@router.delete("/{task_id}", response_model=TaskResponse)
async def delete_task(task_id: int, service: TaskService = Depends(get_task_service)):
    """Delete a task together with its comments and history"""
    task = await service.delete_task(task_id)

    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task with id {task_id} not found",
        )
    return task
