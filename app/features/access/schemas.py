"""
Pydantic schemas for access decisions and configuration editing.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.features.access.catalog import (
    Action,
    FeatureKey,
    RegistryName,
    RoleKey,
    normalize_feature_key,
)


# ============================================================================
# Catalog Schemas
# ============================================================================

class SectionSchema(BaseModel):
    key: str
    label: str


class RegistryCatalog(BaseModel):
    """Sections of one registry, per role (dashboard panels differ by role)."""
    name: RegistryName
    title: str
    sections: Dict[RoleKey, List[SectionSchema]]


class CatalogResponse(BaseModel):
    roles: List[RoleKey]
    features: List[FeatureKey]
    actions: List[Action]
    editor_roles: List[RoleKey]
    registries: List[RegistryCatalog]


# ============================================================================
# Decision Schemas
# ============================================================================

class FeaturePermissionSchema(BaseModel):
    view: bool = False
    create: bool = False
    edit: bool = False
    delete: bool = False


class EffectiveAccessResponse(BaseModel):
    """Everything a page needs to render for one role."""
    role: Optional[RoleKey]
    can_edit_configuration: bool
    visible_features: List[FeatureKey]
    permissions: Dict[FeatureKey, FeaturePermissionSchema]
    sections: Dict[RegistryName, Dict[str, bool]]


class PermissionCheckRequest(BaseModel):
    """Check one action; role defaults to the caller's."""
    feature: str = Field(..., min_length=1, description="Feature key or page key (e.g. '__Profile')")
    action: Action
    role: Optional[RoleKey] = Field(None, description="Role to check (uses the caller's if not provided)")


class PermissionCheckResponse(BaseModel):
    allowed: bool
    role: Optional[RoleKey]
    feature: Optional[FeatureKey] = Field(None, description="Normalized feature, null if unknown")
    action: Action


class SectionCheckRequest(BaseModel):
    registry: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    role: Optional[RoleKey] = None


class SectionCheckResponse(BaseModel):
    visible: bool
    registry: str
    key: str
    role: Optional[RoleKey]


# ============================================================================
# Configuration / Edit Session Schemas
# ============================================================================

class EnabledCount(BaseModel):
    enabled: int
    total: int


class RegistryState(BaseModel):
    name: RegistryName
    values: Dict[str, Dict[str, bool]]
    enabled: Dict[RoleKey, EnabledCount]


class ConfigurationResponse(BaseModel):
    permissions: Dict[str, Dict[str, Dict[str, bool]]]
    registries: List[RegistryState]


class SessionResponse(BaseModel):
    state: str
    owner_id: str
    dirty: bool
    working: Optional[ConfigurationResponse] = None


class PermissionStageRequest(BaseModel):
    """Set one flag; omit value to toggle it."""
    role: RoleKey
    feature: str
    action: Action
    value: Optional[bool] = None

    @field_validator("feature")
    @classmethod
    def feature_in_catalog(cls, v: str) -> str:
        feature = normalize_feature_key(v)
        if feature is None:
            raise ValueError(f"Unknown feature: {v}")
        return feature.value


class BulkMode(str, Enum):
    ALLOW_ALL = "allow_all"
    DENY_ALL = "deny_all"
    VIEW_ONLY = "view_only"


class RoleBulkRequest(BaseModel):
    mode: BulkMode


class SectionStageRequest(BaseModel):
    """Set one section's visibility; omit value to toggle it."""
    registry: RegistryName
    role: RoleKey
    key: str = Field(..., min_length=1, max_length=100)
    value: Optional[bool] = None


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    id: str
    user_id: Optional[str]
    role: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
