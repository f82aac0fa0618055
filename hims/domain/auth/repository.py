from typing import Optional, List, Tuple
from sqlalchemy import or_

from hims.domain.auth.models import User, UserRole
from hims.infrastructure.repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user data access operations"""

    model = User

    async def get_by_email(self, email: str) -> Optional[User]:
        return await self.get_by(email=email.lower())

    async def search(
        self,
        skip: int = 0,
        limit: int = 20,
        role: Optional[str] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> Tuple[List[User], int]:
        stmt = self.query()
        if role:
            stmt = stmt.where(User.role == role)
        if is_active is not None:
            stmt = stmt.where(User.is_active == is_active)
        if search:
            term = f"%{search}%"
            stmt = stmt.where(or_(
                User.first_name.ilike(term),
                User.last_name.ilike(term),
                User.email.ilike(term)
            ))
        return await self.paginate(stmt.order_by(User.last_name, User.first_name), skip, limit)

    async def list_staff(self, role: UserRole, specialization_like: Optional[str] = None) -> List[User]:
        stmt = self.query().where(User.role == role.value, User.is_active.is_(True))
        if specialization_like:
            stmt = stmt.where(User.specialization.ilike(f"%{specialization_like}%"))
        return await self.all(stmt.order_by(User.last_name, User.first_name))

    async def get_by_reset_token(self, token_hash: str) -> Optional[User]:
        return await self.get_by(reset_token_hash=token_hash)
