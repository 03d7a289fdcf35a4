from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_user_service
from app.models import UserCreate, UserResponse, UserUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate, service: UserService = Depends(get_user_service)
):
    return await service.create_user(user_data)


@router.get("/", response_model=list[UserResponse])
async def get_users(service: UserService = Depends(get_user_service)):
    return await service.list_users()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, service: UserService = Depends(get_user_service)):
    user = await service.get_user(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with id {user_id} not found",
        )
    return user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    service: UserService = Depends(get_user_service),
):
    return await service.update_user(user_id, user_data)


@router.delete("/{user_id}", response_model=UserResponse)
async def delete_user(user_id: int, service: UserService = Depends(get_user_service)):
    """Delete a user; refused while they own boards or have assigned tasks"""
    user = await service.delete_user(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with id {user_id} not found",
        )
    return user
