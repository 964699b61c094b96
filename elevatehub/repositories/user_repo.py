# elevatehub/repositories/user_repo.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_, func
from typing import List, Optional, Tuple

from elevatehub.models.user import User, UserRoleEnum
from elevatehub.repositories.pagination import paginate


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        stmt = select(User).where(User.user_id == user_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        """Look up a user by the identity provider's subject id."""
        stmt = select(User).where(User.external_id == external_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.lower())
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_users(
        self,
        page: int,
        limit: int,
        role: Optional[UserRoleEnum] = None,
        search: Optional[str] = None,
        is_suspended: Optional[bool] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[User], int]:
        stmt = select(User)
        if role is not None:
            stmt = stmt.where(User.role == role)
        if is_suspended is not None:
            stmt = stmt.where(User.is_suspended.is_(is_suspended))
        if is_active is not None:
            stmt = stmt.where(User.is_active.is_(is_active))
        if search:
            term = search.strip().lower()
            stmt = stmt.where(or_(
                func.lower(User.first_name).contains(term, autoescape=True),
                func.lower(User.last_name).contains(term, autoescape=True),
                func.lower(User.email).contains(term, autoescape=True),
            ))
        return await paginate(self.db, stmt, page, limit, order_by=(User.created_at.desc(),))

    async def create_user(self, user: User) -> User:
        self.db.add(user)
        await self.db.flush()
        return user

    async def record_completed_job(self, user_id: str, rating: Optional[int] = None) -> None:
        """
        completed_jobs += 1 and, when a rating is given, fold it into the
        running average: (avg * count + rating) / (count + 1).
        Done in SQL so concurrent reviews do not lose updates.
        """
        values = {"completed_jobs": User.completed_jobs + 1}
        if rating is not None:
            values["rating"] = (User.rating * User.rating_count + rating) / (User.rating_count + 1)
            values["rating_count"] = User.rating_count + 1
        stmt = (
            update(User)
            .where(User.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
