from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any, Optional

from hims.api.deps import PaginationParams, pagination_params
from hims.api.v1.common import DataResponse, DeleteResponse, ListResponse, deleted, listing, ok, paginated
from hims.api.v1.auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageData,
    PasswordChangeRequest,
    ProfileUpdate,
    ResetPasswordRequest,
    StaffOption,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from hims.core.permissions import Permissions, get_current_user, require_permissions
from hims.domain.auth.service import AuthenticationService, UserService
from hims.infrastructure.database import get_db

router = APIRouter(prefix="/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/users", tags=["Users"])
staff_router = APIRouter(tags=["Staff"])


@router.post("/register", response_model=DataResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(require_permissions(Permissions.USERS_WRITE)),
):
    """Create a staff account"""
    user = await AuthenticationService(db).register_user(user_data)
    return ok(UserResponse.model_validate(user))


@router.post("/login", response_model=DataResponse[LoginResponse])
async def login(login_data: LoginRequest, db: AsyncSession = Depends(get_db)):
    token, user = await AuthenticationService(db).authenticate_user(login_data)
    return ok(LoginResponse(token=token, user=UserResponse.model_validate(user)))


@router.get("/me", response_model=DataResponse[UserResponse])
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    user = await AuthenticationService(db).get_user(current_user["sub"])
    return ok(UserResponse.model_validate(user))


@router.put("/change-password", response_model=DeleteResponse)
async def change_password(
    data: PasswordChangeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    await AuthenticationService(db).change_password(current_user["sub"], data)
    return deleted()


@router.post("/forgotpassword", response_model=DataResponse[MessageData])
async def forgot_password(data: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    """Issue a reset token; the reply does not reveal whether the account exists"""
    await AuthenticationService(db).request_password_reset(data.email)
    return ok(MessageData(message="If the account exists, a password reset link has been sent"))


@router.put("/resetpassword/{token}", response_model=DataResponse[LoginResponse])
async def reset_password(token: str, data: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    access_token, user = await AuthenticationService(db).reset_password(token, data)
    return ok(LoginResponse(token=access_token, user=UserResponse.model_validate(user)))


@users_router.get("", response_model=ListResponse[UserResponse])
async def list_users(
    role: Optional[str] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    paging: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(require_permissions(Permissions.USERS_READ)),
):
    users, total = await UserService(db).list_users(
        paging.skip, paging.limit, role=role, search=search, is_active=is_active
    )
    return paginated([UserResponse.model_validate(u) for u in users], total, paging)


# Declared before /{user_id} so "profile" is not read as an id
@users_router.get("/profile", response_model=DataResponse[UserResponse])
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    return ok(UserResponse.model_validate(await UserService(db).get_user(current_user["sub"])))


@users_router.put("/profile", response_model=DataResponse[UserResponse])
async def update_profile(
    data: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    return ok(UserResponse.model_validate(await UserService(db).update_profile(current_user["sub"], data)))


@users_router.get("/{user_id}", response_model=DataResponse[UserResponse])
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _: Dict[str, Any] = Depends(require_permissions(Permissions.USERS_READ)),
):
    return ok(UserResponse.model_validate(await UserService(db).get_user(user_id)))


@users_router.put("/{user_id}", response_model=DataResponse[UserResponse])
async def update_user(
    user_id: str,
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(require_permissions(Permissions.USERS_WRITE)),
):
    user = await UserService(db).update_user(user_id, data, current_user["sub"])
    return ok(UserResponse.model_validate(user))


@users_router.patch("/{user_id}/toggle-status", response_model=DataResponse[UserResponse])
async def toggle_user_status(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(require_permissions(Permissions.USERS_WRITE)),
):
    user = await UserService(db).toggle_status(user_id, current_user["sub"])
    return ok(UserResponse.model_validate(user))


@users_router.delete("/{user_id}", response_model=DeleteResponse)
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict[str, Any] = Depends(require_permissions(Permissions.USERS_WRITE)),
):
    await UserService(db).delete_user(user_id, current_user["sub"])
    return deleted()


# Staff pickers only need a valid session
@staff_router.get("/doctors", response_model=ListResponse[StaffOption])
async def list_doctors(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(get_current_user)):
    return listing([StaffOption.model_validate(u) for u in await UserService(db).list_doctors()])


@staff_router.get("/nurses", response_model=ListResponse[StaffOption])
async def list_nurses(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(get_current_user)):
    return listing([StaffOption.model_validate(u) for u in await UserService(db).list_nurses()])


@staff_router.get("/surgeons", response_model=ListResponse[StaffOption])
async def list_surgeons(db: AsyncSession = Depends(get_db), _: Dict[str, Any] = Depends(get_current_user)):
    return listing([StaffOption.model_validate(u) for u in await UserService(db).list_surgeons()])
