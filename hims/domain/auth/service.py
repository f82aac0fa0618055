from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime, timedelta
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hims.core.config import settings
from hims.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BusinessLogicError,
    ConflictError,
    NotFoundError,
)
from hims.core.security import create_access_token, generate_reset_token, hash_reset_token
from hims.domain.auth.models import User, UserRole
from hims.domain.auth.repository import UserRepository
from hims.api.v1.auth.schemas import (
    LoginRequest,
    PasswordChangeRequest,
    ProfileUpdate,
    ResetPasswordRequest,
    UserCreate,
    UserUpdate,
)

logger = logging.getLogger(__name__)


class AuthenticationService:
    """Service layer for authentication operations"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)

    async def register_user(self, user_data: UserCreate) -> User:
        """Register a new staff account"""
        if await self.user_repo.get_by_email(user_data.email):
            raise ConflictError("Email already exists")

        data = user_data.model_dump(exclude={"password"})
        data["email"] = data["email"].lower()
        data["role"] = user_data.role.value
        user = User(**data)
        user.set_password(user_data.password)
        self.db.add(user)
        await self.db.commit()

        logger.info(f"Registered user {user.id} with role {user.role}")
        return await self.user_repo.get_by_id(user.id)

    async def authenticate_user(self, login_data: LoginRequest) -> Tuple[str, User]:
        """Check credentials, apply lockout and issue an access token"""
        user = await self.user_repo.get_by_email(login_data.email)
        if not user:
            raise AuthenticationError("Invalid email or password")

        now = datetime.utcnow()
        if user.locked_until and user.locked_until > now:
            raise AuthenticationError("Account locked", error_code="ACCOUNT_LOCKED")

        if not user.is_active:
            raise AuthorizationError("Account is not active")

        if not user.verify_password(login_data.password):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            locked = user.failed_login_attempts >= settings.MAX_LOGIN_ATTEMPTS
            if locked:
                user.locked_until = now + timedelta(minutes=settings.LOCKOUT_MINUTES)
                user.failed_login_attempts = 0
                logger.warning(f"User {user.id} locked after repeated failed logins")
            await self.db.commit()

            if locked:
                raise AuthenticationError("Account locked", error_code="ACCOUNT_LOCKED")
            raise AuthenticationError("Invalid email or password")

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = now
        await self.db.commit()

        return self._issue_token(user), user

    @staticmethod
    def _issue_token(user: User) -> str:
        return create_access_token(user.id, {
            "email": user.email,
            "role": user.role,
            "permissions": user.get_permissions(),
        })

    async def get_user(self, user_id: str) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def change_password(self, user_id: str, data: PasswordChangeRequest) -> None:
        user = await self.get_user(user_id)
        if not user.verify_password(data.current_password):
            raise BusinessLogicError("Current password is incorrect")
        user.set_password(data.new_password)
        await self.db.commit()

    async def request_password_reset(self, email: str) -> Optional[str]:
        """
        Issue a one-time reset token for an active account.

        Returns the token so it can be delivered out of band; unknown or
        inactive accounts get None and the caller sees the same response.
        """
        user = await self.user_repo.get_by_email(email)
        if not user or not user.is_active:
            logger.info("Password reset requested for an unknown or inactive account")
            return None

        token, token_hash = generate_reset_token()
        user.reset_token_hash = token_hash
        user.reset_token_expires_at = datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
        await self.db.commit()

        logger.info(f"Password reset token issued for user {user.id}")
        # No mailer yet; the link is only written at debug level
        logger.debug(f"Password reset link: /auth/resetpassword/{token}")
        return token

    async def reset_password(self, token: str, data: ResetPasswordRequest) -> Tuple[str, User]:
        """Consume a reset token, set the new password and sign the user in"""
        user = await self.user_repo.get_by_reset_token(hash_reset_token(token))
        if not user or not user.reset_token_expires_at or user.reset_token_expires_at <= datetime.utcnow():
            raise BusinessLogicError("Invalid or expired reset token", error_code="INVALID_RESET_TOKEN")
        if not user.is_active:
            raise AuthorizationError("Account is not active")

        user.set_password(data.password)
        user.reset_token_hash = None
        user.reset_token_expires_at = None
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = datetime.utcnow()
        await self.db.commit()

        logger.info(f"Password reset completed for user {user.id}")
        return self._issue_token(user), user


class UserService:
    """Staff account management"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)

    async def list_users(self, skip: int, limit: int, **filters: Any) -> Tuple[List[User], int]:
        return await self.user_repo.search(skip=skip, limit=limit, **filters)

    async def get_user(self, user_id: str) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def update_user(self, user_id: str, data: UserUpdate, acting_user_id: str) -> User:
        user = await self.get_user(user_id)
        update_dict: Dict[str, Any] = data.model_dump(exclude_unset=True)

        if update_dict.get("is_active") is False and user_id == acting_user_id:
            raise BusinessLogicError("You cannot deactivate your own account")
        if "email" in update_dict and update_dict["email"]:
            update_dict["email"] = update_dict["email"].lower()
            existing = await self.user_repo.get_by_email(update_dict["email"])
            if existing and existing.id != user_id:
                raise ConflictError("Email already exists")
        if update_dict.get("role") is not None:
            update_dict["role"] = UserRole(update_dict["role"]).value

        await self.user_repo.update(user, update_dict)
        await self.db.commit()
        return await self.user_repo.get_by_id(user_id)

    async def update_profile(self, user_id: str, data: ProfileUpdate) -> User:
        """Self-service update; role and account status stay with user admins"""
        user = await self.get_user(user_id)
        update_dict: Dict[str, Any] = data.model_dump(exclude_unset=True)
        if update_dict.get("email"):
            update_dict["email"] = update_dict["email"].lower()
            existing = await self.user_repo.get_by_email(update_dict["email"])
            if existing and existing.id != user_id:
                raise ConflictError("Email already exists")

        await self.user_repo.update(user, update_dict)
        await self.db.commit()
        logger.info(f"User {user_id} updated their profile")
        return await self.user_repo.get_by_id(user_id)

    async def toggle_status(self, user_id: str, acting_user_id: str) -> User:
        if user_id == acting_user_id:
            raise BusinessLogicError("You cannot deactivate your own account")
        user = await self.get_user(user_id)
        user.is_active = not user.is_active
        await self.db.commit()
        return await self.user_repo.get_by_id(user_id)

    async def delete_user(self, user_id: str, acting_user_id: str) -> None:
        if user_id == acting_user_id:
            raise BusinessLogicError("You cannot delete your own account")
        user = await self.get_user(user_id)
        try:
            await self.user_repo.delete(user)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("User is referenced by clinical records; deactivate the account instead")

    async def list_doctors(self) -> List[User]:
        return await self.user_repo.list_staff(UserRole.DOCTOR)

    async def list_nurses(self) -> List[User]:
        return await self.user_repo.list_staff(UserRole.NURSE)

    async def list_surgeons(self) -> List[User]:
        return await self.user_repo.list_staff(UserRole.DOCTOR, specialization_like="surg")
