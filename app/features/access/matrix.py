"""
Role x feature x action permission grid.

Entries are partial: a feature may store only some of its four flags. A flag
that isn't stored reads as False, except Profile.view which reads as True so
everyone can open their own profile unless explicitly denied.

The Super Admin bypass is not applied here; see AccessEvaluator.
"""
import copy
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from app.features.access.catalog import (
    ACTIONS,
    FEATURE_ORDER,
    Action,
    FeatureKey,
    RoleKey,
    default_permission_snapshot,
    normalize_feature_key,
    parse_action,
    parse_role,
)
from app.features.access.errors import MalformedConfiguration, UnknownKey


PermissionData = Dict[str, Dict[str, Dict[str, bool]]]


@dataclass(frozen=True)
class FeaturePermission:
    """Resolved flags for one role on one feature."""
    view: bool = False
    create: bool = False
    edit: bool = False
    delete: bool = False

    def allows(self, action: Action) -> bool:
        return getattr(self, action.value)

    def as_dict(self) -> Dict[str, bool]:
        return asdict(self)


def _require_role(raw: Any) -> RoleKey:
    role = parse_role(raw)
    if role is None:
        raise UnknownKey("role", raw)
    return role


def _require_feature(raw: Any) -> FeatureKey:
    feature = normalize_feature_key(raw)
    if feature is None:
        raise UnknownKey("feature", raw)
    return feature


def _require_action(raw: Any) -> Action:
    action = parse_action(raw)
    if action is None:
        raise UnknownKey("action", raw)
    return action


class PermissionMatrix:
    """Mutable permission grid keyed by role and feature display values."""

    def __init__(self, data: Optional[PermissionData] = None):
        self._data: PermissionData = copy.deepcopy(data) if data else {}

    @classmethod
    def defaults(cls) -> "PermissionMatrix":
        return cls(default_permission_snapshot())

    @classmethod
    def from_snapshot(cls, snapshot: Any) -> "PermissionMatrix":
        """
        Build a matrix from decoded stored JSON.

        Raises:
            MalformedConfiguration: If the document isn't role -> feature -> {action: bool}
        """
        if not isinstance(snapshot, dict):
            raise MalformedConfiguration(f"Permission matrix must be an object, got {type(snapshot).__name__}")
        for role, features in snapshot.items():
            if not isinstance(features, dict):
                raise MalformedConfiguration(f"Permissions for role {role!r} must be an object")
            for feature, flags in features.items():
                if not isinstance(flags, dict):
                    raise MalformedConfiguration(f"Permissions for {role!r}/{feature!r} must be an object")
                for action, value in flags.items():
                    if not isinstance(value, bool):
                        raise MalformedConfiguration(
                            f"Permission {role!r}/{feature!r}/{action!r} must be a boolean"
                        )
        return cls(snapshot)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def get(self, role: Any, feature: Any, action: Any) -> bool:
        """
        Stored flag for (role, feature, action), or its default when absent.

        Never raises; anything outside the catalog is denied.
        """
        role_key = parse_role(role)
        feature_key = normalize_feature_key(feature)
        action_key = parse_action(action)
        if role_key is None or feature_key is None or action_key is None:
            return False

        flags = self._data.get(role_key.value, {}).get(feature_key.value, {})
        value = flags.get(action_key.value)
        if value is None:
            return feature_key is FeatureKey.PROFILE and action_key is Action.VIEW
        return bool(value)

    def resolve(self, role: Any, feature: Any) -> FeaturePermission:
        return FeaturePermission(*(self.get(role, feature, action) for action in ACTIONS))

    def grid(self, role: Any) -> List[Tuple[FeatureKey, FeaturePermission]]:
        """Resolved rows for every catalog feature, in navigation order."""
        return [(feature, self.resolve(role, feature)) for feature in FEATURE_ORDER]

    def role_snapshot(self, role: Any) -> Dict[str, Dict[str, bool]]:
        role_key = _require_role(role)
        return copy.deepcopy(self._data.get(role_key.value, {}))

    def to_snapshot(self) -> PermissionData:
        return copy.deepcopy(self._data)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set(self, role: Any, feature: Any, action: Any, value: bool) -> None:
        role_key = _require_role(role)
        feature_key = _require_feature(feature)
        action_key = _require_action(action)
        role_map = self._data.setdefault(role_key.value, {})
        role_map.setdefault(feature_key.value, {})[action_key.value] = bool(value)

    def toggle(self, role: Any, feature: Any, action: Any) -> bool:
        """Flip the flag as currently reported by get(); returns the new value."""
        value = not self.get(role, feature, action)
        self.set(role, feature, action, value)
        return value

    def set_all_for_role(self, role: Any, value: bool) -> None:
        """Set every action of every catalog feature ("Allow all" / "Deny all")."""
        role_key = _require_role(role)
        role_map = self._data.setdefault(role_key.value, {})
        for feature in FEATURE_ORDER:
            role_map[feature.value] = {action.value: bool(value) for action in ACTIONS}

    def set_view_only_for_role(self, role: Any) -> None:
        """The role may look at every feature but not create, edit or delete."""
        role_key = _require_role(role)
        role_map = self._data.setdefault(role_key.value, {})
        for feature in FEATURE_ORDER:
            role_map[feature.value] = {
                action.value: action is Action.VIEW for action in ACTIONS
            }

    def replace_role(self, role: Any, entries: Mapping[str, Mapping[str, bool]]) -> None:
        role_key = _require_role(role)
        self._data[role_key.value] = {
            feature: dict(flags) for feature, flags in entries.items()
        }

    # ------------------------------------------------------------------

    def copy(self) -> "PermissionMatrix":
        return PermissionMatrix(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PermissionMatrix):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"<PermissionMatrix(roles={sorted(self._data)})>"
