"""
Read-time access decisions.

Pages and routes ask the evaluator what a role may see and do. It reads the
store's committed snapshot on every call and never looks at edit sessions, so
staged edits stay invisible until committed. Results must not be cached past
a commit.
"""
from typing import Any, Dict, List

from app.features.access.catalog import (
    EDITOR_ROLES,
    FEATURE_ORDER,
    Action,
    FeatureKey,
    RoleKey,
    normalize_feature_key,
    parse_action,
    parse_registry,
    parse_role,
)
from app.features.access.matrix import FeaturePermission
from app.features.access.store import ConfigurationStore
from app.utils import get_logger


log = get_logger(__name__)

_FULL_ACCESS = FeaturePermission(view=True, create=True, edit=True, delete=True)


class AccessEvaluator:
    def __init__(self, store: ConfigurationStore):
        self.store = store

    # ------------------------------------------------------------------
    # Feature permissions
    # ------------------------------------------------------------------

    def is_allowed(self, role: Any, feature: Any, action: Any) -> bool:
        """
        Whether role may perform action on feature.

        Unknown roles, features and actions are denied. Super Admin is allowed
        everything in the catalog regardless of what is stored.
        """
        role_key = parse_role(role)
        feature_key = normalize_feature_key(feature)
        action_key = parse_action(action)
        if role_key is None or feature_key is None or action_key is None:
            log.debug(f"Denied {action!r} on {feature!r} for {role!r}: not in catalog")
            return False
        if role_key is RoleKey.SUPER_ADMIN:
            return True
        return self.store.committed.matrix.get(role_key, feature_key, action_key)

    def can_view(self, role: Any, feature: Any) -> bool:
        return self.is_allowed(role, feature, Action.VIEW)

    def can_create(self, role: Any, feature: Any) -> bool:
        return self.is_allowed(role, feature, Action.CREATE)

    def can_edit(self, role: Any, feature: Any) -> bool:
        return self.is_allowed(role, feature, Action.EDIT)

    def can_delete(self, role: Any, feature: Any) -> bool:
        return self.is_allowed(role, feature, Action.DELETE)

    def resolve(self, role: Any, feature: Any) -> FeaturePermission:
        role_key = parse_role(role)
        feature_key = normalize_feature_key(feature)
        if role_key is None or feature_key is None:
            return FeaturePermission()
        if role_key is RoleKey.SUPER_ADMIN:
            return _FULL_ACCESS
        return self.store.committed.matrix.resolve(role_key, feature_key)

    def permissions_for(self, role: Any) -> Dict[FeatureKey, FeaturePermission]:
        return {feature: self.resolve(role, feature) for feature in FEATURE_ORDER}

    def visible_features(self, role: Any) -> List[FeatureKey]:
        """Features role may view, in navigation order."""
        return [feature for feature in FEATURE_ORDER if self.can_view(role, feature)]

    # ------------------------------------------------------------------
    # Section visibility
    # ------------------------------------------------------------------

    def is_section_visible(self, registry: Any, role: Any, section_key: Any) -> bool:
        """Whether a page section is shown; anything not configured is shown."""
        registry_name = parse_registry(registry)
        if registry_name is None:
            return True
        return self.store.committed.registries[registry_name].is_visible(role, section_key)

    def visible_sections(self, registry: Any, role: Any) -> Dict[str, bool]:
        registry_name = parse_registry(registry)
        role_key = parse_role(role)
        if registry_name is None or role_key is None:
            return {}
        return self.store.committed.registries[registry_name].sections_for(role_key)

    # ------------------------------------------------------------------

    def can_edit_configuration(self, role: Any) -> bool:
        return parse_role(role) in EDITOR_ROLES
