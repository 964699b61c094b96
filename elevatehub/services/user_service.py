# elevatehub/services/user_service.py

import logging
from typing import List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elevatehub.core.exceptions import (
    ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
)
from elevatehub.core.permissions import ensure_role
from elevatehub.models.user import User, UserRoleEnum
from elevatehub.repositories.user_repo import UserRepository
from elevatehub.schemas.user_schema import IdentityClaims, UserProfileUpdate
from elevatehub.utils.time import utcnow

logger = logging.getLogger(__name__)


def parse_role(value: Optional[str]) -> Optional[UserRoleEnum]:
    """Query-string role filter; "all" disables filtering."""
    if value is None or value == "all":
        return None
    try:
        return UserRoleEnum(value)
    except ValueError:
        raise ValidationError.for_field("role", f"Unknown role '{value}'")


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)

    async def get_or_provision(self, claims: IdentityClaims) -> User:
        """
        Return the local user for an identity-provider subject, creating it
        (as a freelancer) the first time the subject is seen.
        """
        user = await self.user_repo.get_user_by_external_id(claims.sub)
        if user:
            return user

        if not claims.email:
            raise ValidationError.for_field("email", "Identity token carries no email address")

        if await self.user_repo.get_user_by_email(claims.email):
            raise ConflictError("An account with this email already exists")

        new_user = User(
            external_id=claims.sub,
            email=claims.email.lower(),
            first_name=claims.first_name,
            last_name=claims.last_name,
            profile_image=claims.picture,
            role=UserRoleEnum.freelancer,
            skills=[],
        )
        try:
            await self.user_repo.create_user(new_user)
            await self.db.commit()
        except IntegrityError:
            # Another request for the same subject provisioned it first
            await self.db.rollback()
            user = await self.user_repo.get_user_by_external_id(claims.sub)
            if user is None:
                raise ConflictError("An account with this email already exists")
            return user

        logger.info(f"Provisioned user {new_user.user_id} for subject {claims.sub}")
        return new_user

    async def get_user(self, user_id: str) -> User:
        user = await self.user_repo.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def update_me(self, user: User, data: UserProfileUpdate) -> User:
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if changes.get("role") is None:
            changes.pop("role", None)
        if user.role == UserRoleEnum.admin and "role" in changes:
            raise ForbiddenError("Admins cannot change their own role")

        for field, value in changes.items():
            setattr(user, field, value)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def get_public_profile(self, user_id: str) -> User:
        user = await self.get_user(user_id)
        if user.is_suspended or not user.is_active:
            raise NotFoundError("User not found")
        return user

    # --- Admin ---

    async def suspend_user(self, admin: User, user_id: str, reason: str) -> User:
        ensure_role(admin, UserRoleEnum.admin)
        target = await self.get_user(user_id)
        if target.user_id == admin.user_id:
            raise ForbiddenError("You cannot suspend your own account")
        if target.role == UserRoleEnum.admin:
            raise ForbiddenError("Admin accounts cannot be suspended")
        if target.is_suspended:
            raise InvalidStateError("User is already suspended")

        target.is_suspended = True
        target.suspended_at = utcnow()
        target.suspension_reason = reason
        target.suspended_by = admin.user_id
        await self.db.commit()
        await self.db.refresh(target)
        logger.info(f"Admin {admin.user_id} suspended user {target.user_id}: {reason}")
        return target

    async def list_users(
        self,
        admin: User,
        page: int,
        limit: int,
        role: Optional[str] = None,
        search: Optional[str] = None,
        is_suspended: Optional[bool] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[User], int]:
        ensure_role(admin, UserRoleEnum.admin)
        return await self.user_repo.list_users(
            page, limit,
            role=parse_role(role),
            search=search,
            is_suspended=is_suspended,
            is_active=is_active,
        )

    async def get_user_for_admin(self, admin: User, user_id: str) -> User:
        """Full record, including suspended and deleted accounts."""
        ensure_role(admin, UserRoleEnum.admin)
        return await self.get_user(user_id)

    async def delete_user(self, admin: User, user_id: str) -> User:
        """
        Soft delete: the row stays for the jobs, messages and payments that
        reference it, but the account can no longer sign in.
        """
        ensure_role(admin, UserRoleEnum.admin)
        target = await self.get_user(user_id)
        if target.role == UserRoleEnum.admin:
            raise ForbiddenError("Admin accounts cannot be deleted")
        if not target.is_active:
            raise InvalidStateError("User is already deleted")

        target.is_active = False
        target.deleted_at = utcnow()
        await self.db.commit()
        await self.db.refresh(target)
        logger.info(f"Admin {admin.user_id} deleted user {target.user_id}")
        return target

    async def unsuspend_user(self, admin: User, user_id: str) -> User:
        ensure_role(admin, UserRoleEnum.admin)
        target = await self.get_user(user_id)
        if not target.is_suspended:
            raise InvalidStateError("User is not suspended")

        target.is_suspended = False
        target.suspended_at = None
        target.suspension_reason = None
        target.suspended_by = None
        await self.db.commit()
        await self.db.refresh(target)
        logger.info(f"Admin {admin.user_id} lifted the suspension of user {target.user_id}")
        return target

    async def promote_to_admin(self, email: str) -> User:
        user = await self.user_repo.get_user_by_email(email)
        if not user:
            raise NotFoundError(f"No user with email {email}")
        if user.role == UserRoleEnum.admin:
            return user
        user.role = UserRoleEnum.admin
        await self.db.commit()
        logger.info(f"User {user.user_id} ({email}) promoted to admin")
        return user
