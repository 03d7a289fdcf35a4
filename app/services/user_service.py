from sqlmodel import col
from sqlmodel.ext.asyncio.session import AsyncSession

from app.audit.writer import AuditLogWriter
from app.core.exceptions import DuplicateEmailError, NotFoundError
from app.models import User, UserCreate, UserResponse, UserUpdate
from app.services.integrity import EntityType, ReferentialIntegrityGuard
from app.store import Collection


class UserService:
    def __init__(self, db: AsyncSession):
        self.users = Collection(db, User)
        self.guard = ReferentialIntegrityGuard(db, AuditLogWriter(db))

    async def _ensure_email_free(self, email: str, exclude_id: int | None = None):
        clauses = [col(User.id) != exclude_id] if exclude_id is not None else []
        if await self.users.count_where(*clauses, email=email) > 0:
            raise DuplicateEmailError("Email already in use")

    async def create_user(self, user_data: UserCreate) -> UserResponse:
        await self._ensure_email_free(user_data.email)
        user = await self.users.insert(User.model_validate(user_data))
        return UserResponse.model_validate(user)

    async def list_users(self) -> list[UserResponse]:
        users = await self.users.find(order_by=(col(User.created_at).desc(),))
        return [UserResponse.model_validate(user) for user in users]

    async def get_user(self, user_id: int) -> UserResponse | None:
        user = await self.users.find_by_id(user_id)
        return UserResponse.model_validate(user) if user else None

    async def update_user(self, user_id: int, user_data: UserUpdate) -> UserResponse:
        patch = user_data.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in patch:
            await self._ensure_email_free(patch["email"], exclude_id=user_id)

        updated = await self.users.update_by_id(user_id, patch)
        if updated is None:
            raise NotFoundError("User not found")
        return UserResponse.model_validate(updated)

    async def delete_user(self, user_id: int) -> UserResponse | None:
        user = await self.users.find_by_id(user_id)
        if not user:
            return None

        await self.guard.ensure_can_delete(EntityType.USER, user_id)

        removed = await self.users.delete_by_id(user_id)
        return UserResponse.model_validate(removed) if removed else None
