"""
FastAPI dependencies for access decisions.

Implements:
- Access to the ConfigurationStore held on app.state
- Route gating by feature permission (require_feature)
- The caller's edit session
- Audit logging helpers
"""
from typing import Annotated, Any, Dict, Optional
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.access.catalog import Action, FeatureKey
from app.features.access.evaluator import AccessEvaluator
from app.features.access.models import AuditLog
from app.features.access.session import EditSession
from app.features.access.store import ConfigurationStore
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Store / evaluator
# ============================================================================

def get_configuration_store(request: Request) -> ConfigurationStore:
    store = getattr(request.app.state, "access_store", None)
    if store is None or not store.loaded:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Access configuration is not loaded"
        )
    return store


def get_access_evaluator(
    store: Annotated[ConfigurationStore, Depends(get_configuration_store)]
) -> AccessEvaluator:
    return AccessEvaluator(store)


def get_edit_session(
    store: Annotated[ConfigurationStore, Depends(get_configuration_store)],
    current_user: Annotated[User, Depends(get_current_user)]
) -> EditSession:
    """The calling user's edit session (open or closed)."""
    return store.session_for(current_user.id)


# ============================================================================
# Route gating
# ============================================================================

def require_feature(feature: FeatureKey, action: Action = Action.VIEW):
    """
    FastAPI dependency to require a feature permission for the caller's role.

    Usage:
        @router.patch("/{user_id}/role")
        async def assign_role(
            user: User = Depends(require_feature(FeatureKey.USER_MANAGEMENT, Action.EDIT))
        ):
            pass

    Returns:
        Dependency function that returns the current user if allowed

    Raises:
        HTTPException: 403 if the role isn't allowed
    """
    async def feature_dependency(
        current_user: Annotated[User, Depends(get_current_user)],
        evaluator: Annotated[AccessEvaluator, Depends(get_access_evaluator)]
    ) -> User:
        if not evaluator.is_allowed(current_user.role, feature, action):
            log.debug(f"User {current_user.id} ({current_user.role}) denied {action.value} on {feature.value}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action.value} on {feature.value}"
            )
        return current_user

    return feature_dependency


async def get_current_editor_user(
    current_user: Annotated[User, Depends(get_current_user)],
    evaluator: Annotated[AccessEvaluator, Depends(get_access_evaluator)]
) -> User:
    """Require a role that may edit the access configuration (Admin, Super Admin)."""
    if not evaluator.can_edit_configuration(current_user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Editing access configuration requires Admin or Super Admin"
        )
    return current_user


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    user: Optional[User],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        db: Database session
        user: User performing the action
        action: Action performed (e.g., "commit", "rollback", "restore_defaults")
        resource_type: Type of resource (e.g., "access_config", "user")
        resource_id: ID of the resource (a role name, a user id, ...)
        details: Additional details
        request: Request to take the client address and user agent from
    """
    audit_log = AuditLog(
        user_id=user.id if user else None,
        role=user.role if user else None,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None
    )

    db.add(audit_log)
    await db.commit()
    return audit_log
