"""
Authentication utilities for Appwrite JWT verification.

Appwrite only tells us who the caller is. Their school role comes from the
Appwrite user labels the first time they are seen, and from the local users
table after that.
"""
import jwt
from typing import Iterable, Optional
from fastapi import HTTPException, status
from appwrite.client import Client
from appwrite.services.users import Users
from appwrite.exception import AppwriteException

from app.core import config
from app.features.access.catalog import RoleKey, parse_role
from app.utils import get_logger


log = get_logger(__name__)


class AppwriteClient:
    """Singleton Appwrite client for server-side operations."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        """Get or create Appwrite client instance."""
        if cls._instance is None:
            cls._instance = Client()
            cls._instance.set_endpoint(config.APPWRITE_ENDPOINT)
            cls._instance.set_project(config.APPWRITE_PROJECT_ID)
            cls._instance.set_key(config.APPWRITE_API_KEY)
        return cls._instance


def verify_jwt_token(token: str) -> dict:
    """
    Decode an Appwrite JWT and return its payload.

    Appwrite signs the token; we only check expiry here and confirm the
    user exists in Appwrite when they're first seen.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_appwrite_user(user_id: str) -> dict:
    """
    Get user information from Appwrite.

    Raises:
        HTTPException: If user not found or API error
    """
    try:
        client = AppwriteClient.get_client()
        users = Users(client)
        return users.get(user_id)
    except AppwriteException as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Failed to verify user: {str(e)}",
        )


def role_from_labels(labels: Optional[Iterable[str]]) -> RoleKey:
    """
    Pick a school role from Appwrite labels.

    Labels are compared case-insensitively with spaces removed, so both
    "superadmin" and "Super Admin" map to RoleKey.SUPER_ADMIN. The first label
    naming a role wins; without one, DEFAULT_USER_ROLE (or Parent) is used.
    """
    by_label = {role.value.replace(" ", "").lower(): role for role in RoleKey}
    for label in labels or ():
        role = by_label.get(str(label).replace(" ", "").lower())
        if role is not None:
            return role

    default = parse_role(config.DEFAULT_USER_ROLE)
    if default is None:
        log.warning(f"DEFAULT_USER_ROLE {config.DEFAULT_USER_ROLE!r} is not a role, using Parent")
        return RoleKey.PARENT
    return default
