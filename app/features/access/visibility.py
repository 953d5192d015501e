"""
Section visibility registries.

A registry maps role -> section key -> bool. Unlike the permission matrix, an
absent entry means *visible*: toggles exist to hide UI chrome that is shown by
default. That rule is applied in VisibilityRegistry.is_visible and nowhere else.
"""
import copy
import json
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from app.features.access.catalog import (
    REGISTRIES,
    ROLES,
    RegistryDefinition,
    RegistryName,
    RoleKey,
    parse_registry,
    parse_role,
)
from app.features.access.errors import MalformedConfiguration, UnknownKey
from app.utils import get_logger


log = get_logger(__name__)

VisibilityData = Dict[str, Dict[str, bool]]


class VisibilityRegistry:
    """One named role x section-key visibility map."""

    def __init__(self, definition: RegistryDefinition, data: Optional[VisibilityData] = None):
        self.definition = definition
        self._data: VisibilityData = copy.deepcopy(data) if data is not None else definition.default_snapshot()

    @property
    def name(self) -> RegistryName:
        return self.definition.name

    def _role(self, raw: Any) -> RoleKey:
        role = parse_role(raw)
        if role is None:
            raise UnknownKey("role", raw)
        return role

    def _key(self, role: RoleKey, key: Any) -> str:
        if not isinstance(key, str) or not self.definition.accepts_key(role, key.strip()):
            raise UnknownKey("section", key)
        return key.strip()

    def is_visible(self, role: Any, key: Any) -> bool:
        """
        Whether the section is shown to role.

        Stored value wins; then a stored legacy parent key; otherwise visible.
        """
        role_key = parse_role(role)
        if role_key is None or not isinstance(key, str):
            return True
        role_cfg = self._data.get(role_key.value, {})
        if key in role_cfg:
            return bool(role_cfg[key])
        parent = self.definition.parent_keys.get(key)
        if parent and parent in role_cfg:
            return bool(role_cfg[parent])
        return True

    def sections_for(self, role: Any) -> Dict[str, bool]:
        """Effective visibility for every catalog section of role."""
        role_key = self._role(role)
        return {key: self.is_visible(role_key, key) for key in self.definition.section_keys(role_key)}

    def enabled_count(self, role: Any) -> Tuple[int, int]:
        """(enabled, total) over the role's catalog sections."""
        sections = self.sections_for(role)
        return sum(1 for visible in sections.values() if visible), len(sections)

    def set(self, role: Any, key: Any, value: bool) -> None:
        role_key = self._role(role)
        self._data.setdefault(role_key.value, {})[self._key(role_key, key)] = bool(value)

    def toggle(self, role: Any, key: Any) -> bool:
        value = not self.is_visible(role, key)
        self.set(role, key, value)
        return value

    def reset_role(self, role: Any) -> None:
        """Put role back on the shipped defaults, dropping any stored entries."""
        role_key = self._role(role)
        self._data[role_key.value] = dict(self.definition.defaults.get(role_key, {}))

    def to_snapshot(self) -> VisibilityData:
        return copy.deepcopy(self._data)

    def copy(self) -> "VisibilityRegistry":
        return VisibilityRegistry(self.definition, self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VisibilityRegistry):
            return NotImplemented
        return self.name == other.name and self._data == other._data

    def __repr__(self) -> str:
        return f"<VisibilityRegistry(name={self.name.value})>"


def _decode(stored: Union[str, bytes, Mapping, None]) -> Optional[Mapping]:
    if stored is None:
        return None
    if isinstance(stored, (str, bytes, bytearray)):
        try:
            stored = json.loads(stored)
        except (TypeError, ValueError) as e:
            raise MalformedConfiguration(f"Unparsable registry blob: {e}")
    if not isinstance(stored, Mapping):
        raise MalformedConfiguration(f"Registry must be an object, got {type(stored).__name__}")
    for role, sections in stored.items():
        if not isinstance(sections, Mapping):
            raise MalformedConfiguration(f"Sections for role {role!r} must be an object")
        for key, value in sections.items():
            if not isinstance(value, bool):
                raise MalformedConfiguration(f"Visibility of {role!r}/{key!r} must be a boolean")
    return stored


def load_with_defaults(
    registry_name: Any,
    stored_snapshot: Union[str, bytes, Mapping, None],
    default_catalog: Optional[RegistryDefinition] = None,
) -> VisibilityRegistry:
    """
    Merge a stored registry over its shipped defaults.

    For every catalog role the result is defaults[role] overlaid with
    stored[role], so sections added after the snapshot was saved show up with
    their default value. A default is left out when the role has stored the
    section's grouped parent key instead, so the parent keeps deciding. Roles
    outside the catalog are dropped.

    Args:
        registry_name: Registry to load
        stored_snapshot: JSON blob, decoded mapping, or None when nothing is stored
        default_catalog: Definition to merge over (defaults to the shipped one)

    Returns:
        The merged registry; the shipped defaults if the snapshot is malformed
    """
    name = parse_registry(registry_name)
    if default_catalog is None:
        if name is None:
            raise UnknownKey("registry", registry_name)
        default_catalog = REGISTRIES[name]

    defaults = default_catalog.default_snapshot()
    try:
        stored = _decode(stored_snapshot)
    except MalformedConfiguration as e:
        log.warning(f"Ignoring stored {default_catalog.name.value}, using defaults: {e}")
        return VisibilityRegistry(default_catalog, defaults)

    if stored is None:
        return VisibilityRegistry(default_catalog, defaults)

    merged: VisibilityData = {}
    for role in ROLES:
        stored_role = stored.get(role.value, {})
        # A stored grouped key still governs children that were never stored
        role_defaults = {
            key: value
            for key, value in defaults.get(role.value, {}).items()
            if default_catalog.parent_keys.get(key) not in stored_role
        }
        merged[role.value] = {**role_defaults, **stored_role}
    return VisibilityRegistry(default_catalog, merged)
