"""
Static catalog of roles, features, actions and section registries.

Everything the access engine can be asked about is enumerated here. Lookups
with keys outside this catalog are not errors: the parse/normalize helpers
return None and callers apply the relevant default.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


# ============================================================================
# Enumerations
# ============================================================================

class RoleKey(str, Enum):
    SUPER_ADMIN = "Super Admin"
    ADMIN = "Admin"
    TEACHER = "Teacher"
    STUDENT = "Student"
    STAFF = "Staff"
    LIBRARIAN = "Librarian"
    PARENT = "Parent"


class FeatureKey(str, Enum):
    """Top-level features, declared in navigation order."""
    DASHBOARD = "Dashboard"
    USER_MANAGEMENT = "User Management"
    TEACHER = "Teacher"
    STUDENT = "Student"
    STAFF = "Staff"
    LIBRARIAN = "Librarian"
    CLASS = "Class"
    TIMETABLE = "Timetable"
    ATTENDANCE = "Attendance"
    ASSIGNMENT = "Assignment"
    LIBRARY = "Library"
    ID_CARD = "ID Card"
    NOTICES = "Notice / Announcements"
    FEES = "Fees"
    SETTINGS = "Settings"
    CONTROL_LIMIT = "Control Limit"
    PROFILE = "Profile"


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class RegistryName(str, Enum):
    """Section visibility registries. Values are also their storage keys."""
    DASHBOARD_CONTROLS = "dashboardControls"
    SETTINGS_CONTROLS = "settingsControls"
    STUDENTS_CONTROLS = "studentsControls"
    TEACHERS_CONTROLS = "teachersControls"
    ASSIGNMENTS_CONTROLS = "assignmentsControls"


ROLES: Tuple[RoleKey, ...] = tuple(RoleKey)
FEATURE_ORDER: Tuple[FeatureKey, ...] = tuple(FeatureKey)
ACTIONS: Tuple[Action, ...] = tuple(Action)
REGISTRY_NAMES: Tuple[RegistryName, ...] = tuple(RegistryName)

PERMISSIONS_STORAGE_KEY = "schoolPermissions"

# Only these roles may open an edit session on the configuration
EDITOR_ROLES = frozenset({RoleKey.SUPER_ADMIN, RoleKey.ADMIN})

# Routing key used by the profile page; always resolves to FeatureKey.PROFILE
PROFILE_ALIAS = "__Profile"


# ============================================================================
# Key parsing
# ============================================================================

def _parse(enum_cls, raw: Any):
    if isinstance(raw, enum_cls):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return enum_cls(raw.strip())
    except ValueError:
        return None


def parse_role(raw: Any) -> Optional[RoleKey]:
    """Return the RoleKey for raw, or None if it isn't one."""
    return _parse(RoleKey, raw)


def parse_action(raw: Any) -> Optional[Action]:
    if isinstance(raw, str):
        raw = raw.strip().lower()
    return _parse(Action, raw)


def parse_registry(raw: Any) -> Optional[RegistryName]:
    return _parse(RegistryName, raw)


def normalize_feature_key(raw: Any) -> Optional[FeatureKey]:
    """
    Resolve a raw feature or page key to a FeatureKey.

    The profile page is routed as "__Profile" but permissioned as "Profile";
    every lookup must pass through here so the alias can't be skipped.

    Returns:
        The FeatureKey, or None for keys outside the catalog
    """
    if isinstance(raw, str) and raw.strip() == PROFILE_ALIAS:
        return FeatureKey.PROFILE
    return _parse(FeatureKey, raw)


# ============================================================================
# Shipped default permission matrix
# ============================================================================

def _flags(*actions: str) -> Dict[str, bool]:
    return {action: True for action in actions}


_ALL = ("view", "create", "edit", "delete")

DEFAULT_PERMISSIONS: Dict[RoleKey, Dict[FeatureKey, Dict[str, bool]]] = {
    RoleKey.SUPER_ADMIN: {feature: _flags(*_ALL) for feature in FEATURE_ORDER},
    RoleKey.ADMIN: {
        FeatureKey.DASHBOARD: _flags("view"),
        FeatureKey.USER_MANAGEMENT: {"view": True, "create": True, "edit": True, "delete": False},
        FeatureKey.TEACHER: _flags(*_ALL),
        FeatureKey.STUDENT: _flags(*_ALL),
        FeatureKey.STAFF: _flags(*_ALL),
        FeatureKey.LIBRARIAN: _flags(*_ALL),
        FeatureKey.CLASS: _flags(*_ALL),
        FeatureKey.TIMETABLE: _flags(*_ALL),
        FeatureKey.ATTENDANCE: _flags(*_ALL),
        FeatureKey.ASSIGNMENT: _flags(*_ALL),
        FeatureKey.LIBRARY: _flags(*_ALL),
        FeatureKey.ID_CARD: _flags("view"),
        FeatureKey.NOTICES: _flags(*_ALL),
        FeatureKey.FEES: _flags(*_ALL),
        FeatureKey.SETTINGS: _flags("view"),
        FeatureKey.PROFILE: _flags("view", "edit"),
    },
    RoleKey.TEACHER: {
        FeatureKey.DASHBOARD: _flags("view"),
        FeatureKey.CLASS: _flags("view", "edit"),
        FeatureKey.TIMETABLE: _flags("view"),
        FeatureKey.ATTENDANCE: _flags("view", "create"),
        FeatureKey.ASSIGNMENT: _flags(*_ALL),
        FeatureKey.NOTICES: _flags("view"),
        FeatureKey.PROFILE: _flags("view"),
    },
    RoleKey.STUDENT: {
        FeatureKey.DASHBOARD: _flags("view"),
        FeatureKey.CLASS: _flags("view"),
        FeatureKey.TIMETABLE: _flags("view"),
        FeatureKey.ATTENDANCE: _flags("view"),
        FeatureKey.ASSIGNMENT: _flags("view"),
        FeatureKey.LIBRARY: _flags("view"),
        FeatureKey.NOTICES: _flags("view"),
        FeatureKey.PROFILE: _flags("view"),
    },
    RoleKey.STAFF: {
        FeatureKey.DASHBOARD: _flags("view"),
        FeatureKey.STUDENT: _flags("view", "create", "edit"),
        FeatureKey.FEES: _flags("view", "create", "edit"),
        FeatureKey.NOTICES: _flags("view"),
        FeatureKey.PROFILE: _flags("view"),
    },
    RoleKey.LIBRARIAN: {
        FeatureKey.DASHBOARD: _flags("view"),
        FeatureKey.LIBRARY: _flags(*_ALL),
        FeatureKey.NOTICES: _flags("view"),
        FeatureKey.PROFILE: _flags("view"),
    },
    RoleKey.PARENT: {
        FeatureKey.DASHBOARD: _flags("view"),
        FeatureKey.NOTICES: _flags("view"),
        FeatureKey.PROFILE: _flags("view"),
    },
}


def default_permission_snapshot(role: Optional[RoleKey] = None) -> Dict[str, Any]:
    """
    JSON-ready copy of the shipped permissions, for all roles or just one.

    With a role, returns that role's feature map; otherwise role -> feature map.
    """
    def role_map(r: RoleKey) -> Dict[str, Dict[str, bool]]:
        return {feature.value: dict(flags) for feature, flags in DEFAULT_PERMISSIONS.get(r, {}).items()}

    if role is not None:
        return role_map(role)
    return {r.value: role_map(r) for r in ROLES}


# ============================================================================
# Section registries
# ============================================================================

@dataclass(frozen=True)
class Section:
    key: str
    label: str


@dataclass(frozen=True)
class RegistryDefinition:
    """
    Catalog for one section visibility registry.

    sections and defaults are keyed by role; parent_keys maps a section key to
    an older grouped key that still decides visibility when the section itself
    was never stored.
    """
    name: RegistryName
    title: str
    sections: Mapping[RoleKey, Tuple[Section, ...]]
    defaults: Mapping[RoleKey, Mapping[str, bool]]
    parent_keys: Mapping[str, str] = field(default_factory=dict)

    def section_keys(self, role: RoleKey) -> List[str]:
        return [section.key for section in self.sections.get(role, ())]

    def accepts_key(self, role: RoleKey, key: str) -> bool:
        """Whether key is a section of role, or the grouped key of one of them."""
        keys = self.section_keys(role)
        return key in keys or any(self.parent_keys.get(k) == key for k in keys)

    def default_snapshot(self) -> Dict[str, Dict[str, bool]]:
        return {role.value: dict(self.defaults.get(role, {})) for role in ROLES}


def _sections(*pairs: Tuple[str, str]) -> Tuple[Section, ...]:
    return tuple(Section(key, label) for key, label in pairs)


def _same_for_every_role(sections: Tuple[Section, ...]) -> Dict[RoleKey, Tuple[Section, ...]]:
    return {role: sections for role in ROLES}


def _all_visible(sections_by_role: Mapping[RoleKey, Tuple[Section, ...]]) -> Dict[RoleKey, Dict[str, bool]]:
    return {role: {s.key: True for s in sections_by_role.get(role, ())} for role in ROLES}


_COMMON_PANELS = _sections(
    ("totalStudents", "Total Students"),
    ("totalTeachers", "Total Teachers"),
    ("totalStaff", "Total Staff"),
    ("feesCollected", "Fees Collected"),
    ("totalClasses", "Total Classes"),
    ("totalAssignments", "Total Assignments"),
    ("totalNotices", "Total Notices"),
    ("totalBooks", "Total Books"),
    ("recentNotices", "Recent Notices"),
    ("upcomingAssignments", "Upcoming Assignments"),
    ("feesTracking", "Fees Tracking Card"),
    ("assignmentsTracking", "Assignments Status Card"),
    ("noticesTracking", "Notices Published Card"),
)

DASHBOARD_PANELS: Dict[RoleKey, Tuple[Section, ...]] = {
    RoleKey.SUPER_ADMIN: _COMMON_PANELS,
    RoleKey.ADMIN: _COMMON_PANELS,
    RoleKey.TEACHER: _COMMON_PANELS + _sections(
        ("teacherMyClasses", "My Classes"),
        ("teacherMyAssignments", "My Assignments"),
        ("teacherStudentsTaught", "Students Taught"),
        ("teacherBooks", "Library Books"),
        ("teacherNotices", "Notices for Teachers"),
        ("teacherUpcoming", "Upcoming Class Assignments"),
    ),
    RoleKey.STUDENT: _COMMON_PANELS + _sections(
        ("studentMyClass", "My Class"),
        ("studentUpcomingCount", "Upcoming Assignments Count"),
        ("studentNoticesCount", "Notices Count"),
        ("studentBooks", "Library Books"),
        ("studentNotices", "Notices for Students"),
        ("studentUpcoming", "My Upcoming Assignments"),
    ),
    RoleKey.STAFF: _COMMON_PANELS + _sections(
        ("staffNotices", "Notices for Staff"),
    ),
    RoleKey.LIBRARIAN: _COMMON_PANELS + _sections(
        ("librarianBooksTotal", "Total Books (Librarian Section)"),
        ("librarianNotices", "Notices for Librarian"),
    ),
    RoleKey.PARENT: (),
}

# Grouped toggles from older dashboards; still honoured when a panel is unset
DASHBOARD_PARENT_KEYS: Dict[str, str] = {
    "totalStudents": "totals1",
    "totalTeachers": "totals1",
    "totalStaff": "totals1",
    "feesCollected": "totals1",
    "totalClasses": "totals2",
    "totalAssignments": "totals2",
    "totalNotices": "totals2",
    "totalBooks": "totals2",
    "teacherMyClasses": "teacherStats",
    "teacherMyAssignments": "teacherStats",
    "teacherStudentsTaught": "teacherStats",
    "teacherBooks": "teacherStats",
    "studentMyClass": "studentStats",
    "studentUpcomingCount": "studentStats",
    "studentNoticesCount": "studentStats",
    "studentBooks": "studentStats",
}

SETTINGS_SECTIONS = _sections(
    ("general", "General (Language, Date, Pagination)"),
    ("schoolInfo", "School Information (Name & Logo)"),
    ("storage", "Storage (Supabase/Firebase)"),
    ("utilities", "Utilities (Export/Import/Reset)"),
    ("appearance", "Appearance (Theme/Color/Font/Density)"),
)

_ADMIN_SETTINGS = {"general": True, "schoolInfo": True, "storage": True, "utilities": True, "appearance": True}
_MEMBER_SETTINGS = {"general": True, "schoolInfo": False, "storage": False, "utilities": False, "appearance": True}

DEFAULT_SETTINGS_CONTROLS: Dict[RoleKey, Dict[str, bool]] = {
    role: dict(_ADMIN_SETTINGS if role in EDITOR_ROLES else _MEMBER_SETTINGS) for role in ROLES
}

STUDENTS_SECTIONS = _sections(
    ("students.export", "Export Button"),
    ("students.add", "Add Student Button"),
    ("students.filters", "Filters"),
    ("students.list", "Students List/Table"),
    ("students.actions", "Row Action Buttons"),
    ("students.modal", "Create/Edit Modal"),
)

TEACHERS_SECTIONS = _sections(
    ("teachers.export", "Export Button"),
    ("teachers.add", "Add Teacher Button"),
    ("teachers.list", "Teachers List/Table"),
    ("teachers.actions", "Row Action Buttons"),
    ("teachers.modal", "Create/Edit Modal"),
)

ASSIGNMENTS_SECTIONS = _sections(
    ("assignments.create", "Add Assignment Button"),
    ("assignments.export", "Export Button"),
    ("assignments.filters", "Filters"),
    ("assignments.list", "Assignments List/Table"),
    ("assignments.actions", "Row Action Buttons"),
    ("assignments.modal.edit", "Edit Modal"),
    ("assignments.modal.detail", "Detail Modal"),
)


def _page_registry(name: RegistryName, title: str, sections: Tuple[Section, ...]) -> RegistryDefinition:
    by_role = _same_for_every_role(sections)
    return RegistryDefinition(name=name, title=title, sections=by_role, defaults=_all_visible(by_role))


REGISTRIES: Dict[RegistryName, RegistryDefinition] = {
    RegistryName.DASHBOARD_CONTROLS: RegistryDefinition(
        name=RegistryName.DASHBOARD_CONTROLS,
        title="Dashboard Panels",
        sections=DASHBOARD_PANELS,
        defaults=_all_visible(DASHBOARD_PANELS),
        parent_keys=DASHBOARD_PARENT_KEYS,
    ),
    RegistryName.SETTINGS_CONTROLS: RegistryDefinition(
        name=RegistryName.SETTINGS_CONTROLS,
        title="Settings Sections",
        sections=_same_for_every_role(SETTINGS_SECTIONS),
        defaults=DEFAULT_SETTINGS_CONTROLS,
    ),
    RegistryName.STUDENTS_CONTROLS: _page_registry(
        RegistryName.STUDENTS_CONTROLS, "Students Page Sections", STUDENTS_SECTIONS
    ),
    RegistryName.TEACHERS_CONTROLS: _page_registry(
        RegistryName.TEACHERS_CONTROLS, "Teachers Page Sections", TEACHERS_SECTIONS
    ),
    RegistryName.ASSIGNMENTS_CONTROLS: _page_registry(
        RegistryName.ASSIGNMENTS_CONTROLS, "Assignments Page Sections", ASSIGNMENTS_SECTIONS
    ),
}
