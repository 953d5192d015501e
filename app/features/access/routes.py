"""
Access control API routes.

Read path for pages (catalog, effective access, checks) and the
administrative edit session over the access configuration.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.rate_limit import limiter
from app.features.access.catalog import (
    ACTIONS,
    EDITOR_ROLES,
    FEATURE_ORDER,
    REGISTRIES,
    REGISTRY_NAMES,
    ROLES,
    FeatureKey,
    RoleKey,
    normalize_feature_key,
    parse_role,
)
from app.features.access.dependencies import (
    create_audit_log,
    get_access_evaluator,
    get_current_editor_user,
    get_edit_session,
)
from app.features.access.errors import PartialCommitFailure
from app.features.access.evaluator import AccessEvaluator
from app.features.access.models import AuditLog
from app.features.access.schemas import (
    AuditLogListResponse,
    AuditLogResponse,
    BulkMode,
    CatalogResponse,
    ConfigurationResponse,
    EffectiveAccessResponse,
    EnabledCount,
    FeaturePermissionSchema,
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionStageRequest,
    RegistryCatalog,
    RegistryState,
    RoleBulkRequest,
    SectionCheckRequest,
    SectionCheckResponse,
    SectionSchema,
    SectionStageRequest,
    SessionResponse,
)
from app.features.access.session import EditSession
from app.features.access.store import ConfigurationSnapshot
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


def _configuration_response(snapshot: ConfigurationSnapshot) -> ConfigurationResponse:
    registries = []
    for name in REGISTRY_NAMES:
        registry = snapshot.registries[name]
        enabled = {}
        for role in ROLES:
            count, total = registry.enabled_count(role)
            enabled[role] = EnabledCount(enabled=count, total=total)
        registries.append(RegistryState(name=name, values=registry.to_snapshot(), enabled=enabled))
    return ConfigurationResponse(permissions=snapshot.matrix.to_snapshot(), registries=registries)


def _session_response(session: EditSession) -> SessionResponse:
    return SessionResponse(
        state=session.state.value,
        owner_id=session.owner_id,
        dirty=session.dirty,
        working=_configuration_response(session.working) if session.is_open else None,
    )


def _target_role(requested: Optional[RoleKey], current_user: User, evaluator: AccessEvaluator):
    """Callers may ask about their own role; editors may ask about any role."""
    if requested is None or requested.value == current_user.role:
        return parse_role(current_user.role)
    if not evaluator.can_edit_configuration(current_user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to check access for other roles"
        )
    return requested


# ============================================================================
# Read Path
# ============================================================================

@router.get("/catalog", response_model=CatalogResponse)
async def get_catalog(
    current_user: Annotated[User, Depends(get_current_user)]
):
    """Roles, features, actions and section registries known to the engine."""
    registries = [
        RegistryCatalog(
            name=definition.name,
            title=definition.title,
            sections={
                role: [SectionSchema(key=s.key, label=s.label) for s in definition.sections.get(role, ())]
                for role in ROLES
            },
        )
        for definition in REGISTRIES.values()
    ]
    return CatalogResponse(
        roles=list(ROLES),
        features=list(FEATURE_ORDER),
        actions=list(ACTIONS),
        editor_roles=[role for role in ROLES if role in EDITOR_ROLES],
        registries=registries,
    )


@router.get("/me", response_model=EffectiveAccessResponse)
async def get_my_access(
    current_user: Annotated[User, Depends(get_current_user)],
    evaluator: Annotated[AccessEvaluator, Depends(get_access_evaluator)]
):
    """Effective permissions and section visibility for the caller's role."""
    role = parse_role(current_user.role)
    return EffectiveAccessResponse(
        role=role,
        can_edit_configuration=evaluator.can_edit_configuration(role),
        visible_features=evaluator.visible_features(role),
        permissions={
            feature: FeaturePermissionSchema(**permission.as_dict())
            for feature, permission in evaluator.permissions_for(role).items()
        },
        sections={name: evaluator.visible_sections(name, role) for name in REGISTRY_NAMES},
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check: PermissionCheckRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    evaluator: Annotated[AccessEvaluator, Depends(get_access_evaluator)]
):
    """Check whether a role may perform an action on a feature."""
    role = _target_role(check.role, current_user, evaluator)
    return PermissionCheckResponse(
        allowed=evaluator.is_allowed(role, check.feature, check.action),
        role=role,
        feature=normalize_feature_key(check.feature),
        action=check.action,
    )


@router.post("/check/section", response_model=SectionCheckResponse)
async def check_section(
    check: SectionCheckRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    evaluator: Annotated[AccessEvaluator, Depends(get_access_evaluator)]
):
    """Check whether a page section is shown to a role."""
    role = _target_role(check.role, current_user, evaluator)
    return SectionCheckResponse(
        visible=evaluator.is_section_visible(check.registry, role, check.key),
        registry=check.registry,
        key=check.key,
        role=role,
    )


@router.get("/config", response_model=ConfigurationResponse)
async def get_configuration(
    current_user: Annotated[User, Depends(get_current_user)],
    evaluator: Annotated[AccessEvaluator, Depends(get_access_evaluator)]
):
    """Committed configuration (Control Limit viewers and editors)."""
    if not (
        evaluator.can_view(current_user.role, FeatureKey.CONTROL_LIMIT)
        or evaluator.can_edit_configuration(current_user.role)
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied: view on Control Limit"
        )
    return _configuration_response(evaluator.store.committed)


# ============================================================================
# Edit Session
# ============================================================================

@router.post("/session", response_model=SessionResponse)
async def enter_session(
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[EditSession, Depends(get_edit_session)]
):
    """Open (or resume) the caller's edit session."""
    if not session.enter(current_user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Editing access configuration requires Admin or Super Admin"
        )
    return _session_response(session)


@router.get("/session", response_model=SessionResponse)
async def get_session(
    session: Annotated[EditSession, Depends(get_edit_session)]
):
    return _session_response(session)


@router.put("/session/permissions", response_model=SessionResponse)
async def stage_permission(
    change: PermissionStageRequest,
    editor: Annotated[User, Depends(get_current_editor_user)],
    session: Annotated[EditSession, Depends(get_edit_session)]
):
    """Set one permission flag in the working copy, or toggle it when value is omitted."""
    if change.value is None:
        session.toggle_permission(change.role, change.feature, change.action)
    else:
        session.set_permission(change.role, change.feature, change.action, change.value)
    return _session_response(session)


@router.put("/session/roles/{role}/bulk", response_model=SessionResponse)
async def stage_role_bulk(
    role: RoleKey,
    change: RoleBulkRequest,
    editor: Annotated[User, Depends(get_current_editor_user)],
    session: Annotated[EditSession, Depends(get_edit_session)]
):
    """Allow all, deny all, or view-only for every feature of a role."""
    if change.mode is BulkMode.VIEW_ONLY:
        session.set_view_only_for_role(role)
    else:
        session.set_all_for_role(role, change.mode is BulkMode.ALLOW_ALL)
    return _session_response(session)


@router.put("/session/sections", response_model=SessionResponse)
async def stage_section(
    change: SectionStageRequest,
    editor: Annotated[User, Depends(get_current_editor_user)],
    session: Annotated[EditSession, Depends(get_edit_session)]
):
    """Show or hide one section in the working copy, or toggle it when value is omitted."""
    if change.value is None:
        session.toggle_section(change.registry, change.role, change.key)
    else:
        session.set_section(change.registry, change.role, change.key, change.value)
    return _session_response(session)


@router.post("/session/roles/{role}/restore-defaults", response_model=SessionResponse)
async def restore_role_defaults(
    role: RoleKey,
    request: Request,
    current_user: Annotated[User, Depends(get_current_editor_user)],
    session: Annotated[EditSession, Depends(get_edit_session)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Reset one role to the shipped defaults in the working copy."""
    session.restore_defaults_for_role(role)
    await create_audit_log(
        db, current_user, action="restore_defaults", resource_type="access_config",
        resource_id=role.value, request=request
    )
    return _session_response(session)


@router.post("/session/commit", response_model=SessionResponse)
@limiter.limit(config.ACCESS_COMMIT_RATE_LIMIT)
async def commit_session(
    request: Request,
    current_user: Annotated[User, Depends(get_current_editor_user)],
    session: Annotated[EditSession, Depends(get_edit_session)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Persist the working copy and close the session."""
    changed = session.dirty
    try:
        await session.commit()
    except PartialCommitFailure as e:
        await create_audit_log(
            db, current_user, action="commit_partial", resource_type="access_config",
            details={"saved": e.saved, "failed": list(e.failed)}, request=request
        )
        raise

    await create_audit_log(
        db, current_user, action="commit", resource_type="access_config",
        details={"changed": changed}, request=request
    )
    return _session_response(session)


@router.post("/session/rollback", response_model=SessionResponse)
async def rollback_session(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[EditSession, Depends(get_edit_session)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Discard staged edits and close the session."""
    discarded = session.dirty
    session.rollback()
    await create_audit_log(
        db, current_user, action="rollback", resource_type="access_config",
        details={"discarded": discarded}, request=request
    )
    return _session_response(session)


# ============================================================================
# Audit Log Routes
# ============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    current_user: Annotated[User, Depends(get_current_editor_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50,
    user_id: Optional[str] = None,
    action: Optional[str] = None
):
    """List access configuration audit logs (editors only)."""
    stmt = select(AuditLog)

    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    stmt = stmt.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    logs = result.scalars().all()

    pages = (total + limit - 1) // limit if limit > 0 else 0
    page = (skip // limit) + 1 if limit > 0 else 1

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in logs],
        total=total,
        page=page,
        page_size=limit,
        pages=pages
    )
