from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_comment_service
from app.models import CommentCreate, CommentResponse, CommentUpdate
from app.services.comment_service import CommentService

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("/", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    comment_data: CommentCreate,
    service: CommentService = Depends(get_comment_service),
):
    """Create a new comment on a task"""
    return await service.create_comment(comment_data)


@router.get("/", response_model=list[CommentResponse])
async def get_comments(
    task_id: int | None = None,
    service: CommentService = Depends(get_comment_service),
):
    """All comments, or the comments of one task (cached)"""
    if task_id is not None:
        return await service.list_comments_by_task(task_id)
    return await service.list_comments()


@router.get("/{comment_id}", response_model=CommentResponse)
async def get_comment(
    comment_id: int, service: CommentService = Depends(get_comment_service)
):
    comment = await service.get_comment(comment_id)
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment with id {comment_id} not found",
        )
    return comment


@router.patch("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    comment_data: CommentUpdate,
    service: CommentService = Depends(get_comment_service),
):
    return await service.update_comment(comment_id, comment_data)


@router.delete("/{comment_id}", response_model=CommentResponse)
async def delete_comment(
    comment_id: int, service: CommentService = Depends(get_comment_service)
):
    comment = await service.delete_comment(comment_id)
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment with id {comment_id} not found",
        )
    return comment
