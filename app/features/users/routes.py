"""
User feature routes.

Role assignment and deactivation are gated by the "User Management"
feature permissions of the caller's role.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.access.catalog import Action, FeatureKey, RoleKey
from app.features.access.dependencies import create_audit_log, require_feature
from app.features.users.models import User
from app.features.users.schemas import UserResponse, UserPublic, UserRoleUpdate, UserUpdate
from app.features.users.dependencies import get_current_user


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    update_data: UserUpdate,
    user: Annotated[User, Depends(require_feature(FeatureKey.PROFILE, Action.EDIT))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update current user's profile (needs Profile edit)."""
    if update_data.name is not None:
        user.name = update_data.name
    if update_data.avatar_url is not None:
        user.avatar_url = update_data.avatar_url

    await db.commit()
    await db.refresh(user)
    return user


@router.get("/{user_id}", response_model=UserPublic)
async def get_user_by_id(
    user_id: str,
    viewer: Annotated[User, Depends(require_feature(FeatureKey.USER_MANAGEMENT))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get public user profile by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user


@router.get("/", response_model=list[UserPublic])
async def list_users(
    viewer: Annotated[User, Depends(require_feature(FeatureKey.USER_MANAGEMENT))],
    db: Annotated[AsyncSession, Depends(get_db)],
    role: RoleKey | None = None,
    skip: int = 0,
    limit: int = 50
):
    """List active users, optionally filtered by role."""
    stmt = select(User).where(User.is_active == True)  # noqa: E712
    if role is not None:
        stmt = stmt.where(User.role == role.value)
    result = await db.execute(stmt.offset(skip).limit(limit))
    return result.scalars().all()


@router.patch("/{user_id}/role", response_model=UserResponse)
async def assign_role(
    user_id: str,
    update: UserRoleUpdate,
    request: Request,
    editor: Annotated[User, Depends(require_feature(FeatureKey.USER_MANAGEMENT, Action.EDIT))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Assign a school role to a user."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    if user.id == editor.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change your own role"
        )

    # Only a Super Admin can hand out or take away Super Admin
    if RoleKey.SUPER_ADMIN in (update.role, user.role_key) and editor.role_key is not RoleKey.SUPER_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only a Super Admin can change Super Admin assignments"
        )

    previous = user.role
    user.role = update.role.value
    await db.commit()
    await db.refresh(user)

    await create_audit_log(
        db, editor, action="assign_role", resource_type="user", resource_id=user.id,
        details={"from": previous, "to": user.role}, request=request
    )
    return user


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    request: Request,
    editor: Annotated[User, Depends(require_feature(FeatureKey.USER_MANAGEMENT, Action.DELETE))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Deactivate a user account."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    if user.id == editor.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    user.is_active = False
    await db.commit()

    await create_audit_log(
        db, editor, action="deactivate", resource_type="user", resource_id=user.id, request=request
    )
    return {"message": "User deactivated successfully"}
