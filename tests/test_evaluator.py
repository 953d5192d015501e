import json

from app.features.access.catalog import (
    FEATURE_ORDER,
    PERMISSIONS_STORAGE_KEY,
    Action,
    FeatureKey,
    RoleKey,
)
from app.features.access.evaluator import AccessEvaluator
from app.features.access.matrix import FeaturePermission
from app.features.access.storage import MemoryKeyValueStore

from conftest import make_store, run


def test_teacher_granted_create_on_assignment(empty_matrix_store):
    session = empty_matrix_store.session_for("admin")
    session.enter(RoleKey.ADMIN)
    session.set_permission(RoleKey.TEACHER, "Assignment", Action.CREATE, True)
    run(session.commit())

    evaluator = AccessEvaluator(empty_matrix_store)
    assert evaluator.can_create(RoleKey.TEACHER, "Assignment") is True
    assert evaluator.can_delete(RoleKey.TEACHER, "Assignment") is False


def test_view_only_student(store):
    session = store.session_for("admin")
    session.enter(RoleKey.SUPER_ADMIN)
    session.set_view_only_for_role(RoleKey.STUDENT)
    run(session.commit())

    evaluator = AccessEvaluator(store)
    for feature in FEATURE_ORDER:
        assert evaluator.can_view(RoleKey.STUDENT, feature) is True
        assert evaluator.can_create(RoleKey.STUDENT, feature) is False
        assert evaluator.can_edit(RoleKey.STUDENT, feature) is False
        assert evaluator.can_delete(RoleKey.STUDENT, feature) is False


def test_section_missing_from_stored_registry_is_visible():
    backend = MemoryKeyValueStore({"dashboardControls": json.dumps({"Admin": {"recentNotices": False}})})
    evaluator = AccessEvaluator(make_store(backend))
    assert evaluator.is_section_visible("dashboardControls", RoleKey.ADMIN, "feesTracking") is True
    assert evaluator.is_section_visible("dashboardControls", RoleKey.ADMIN, "recentNotices") is False


def test_profile_alias_for_parent(empty_matrix_store):
    evaluator = AccessEvaluator(empty_matrix_store)
    assert evaluator.can_view(RoleKey.PARENT, "__Profile") is True
    assert evaluator.can_edit(RoleKey.PARENT, "__Profile") is False


def test_super_admin_bypasses_matrix(empty_matrix_store):
    evaluator = AccessEvaluator(empty_matrix_store)
    for feature in FEATURE_ORDER:
        for action in Action:
            assert evaluator.is_allowed(RoleKey.SUPER_ADMIN, feature, action) is True
    assert evaluator.resolve(RoleKey.SUPER_ADMIN, FeatureKey.FEES) == FeaturePermission(True, True, True, True)


def test_super_admin_denied_outside_catalog(evaluator):
    assert evaluator.is_allowed(RoleKey.SUPER_ADMIN, "Cafeteria", Action.VIEW) is False
    assert evaluator.is_allowed(RoleKey.SUPER_ADMIN, FeatureKey.FEES, "approve") is False


def test_unknown_role_is_denied(evaluator):
    assert evaluator.can_view("Janitor", FeatureKey.DASHBOARD) is False
    assert evaluator.visible_features("Janitor") == []
    assert evaluator.resolve("Janitor", FeatureKey.DASHBOARD) == FeaturePermission()


def test_stored_super_admin_denial_is_ignored():
    stored = {"Super Admin": {"Fees": {"view": False}}}
    evaluator = AccessEvaluator(make_store(MemoryKeyValueStore({PERMISSIONS_STORAGE_KEY: json.dumps(stored)})))
    assert evaluator.can_view(RoleKey.SUPER_ADMIN, FeatureKey.FEES) is True


def test_visible_features_follow_navigation_order(evaluator):
    assert evaluator.visible_features(RoleKey.PARENT) == [
        FeatureKey.DASHBOARD,
        FeatureKey.NOTICES,
        FeatureKey.PROFILE,
    ]
    assert evaluator.visible_features(RoleKey.SUPER_ADMIN) == list(FEATURE_ORDER)


def test_permissions_for_covers_every_feature(evaluator):
    permissions = evaluator.permissions_for(RoleKey.TEACHER)
    assert list(permissions) == list(FEATURE_ORDER)
    assert permissions[FeatureKey.ATTENDANCE] == FeaturePermission(view=True, create=True)


def test_section_lookups_never_fail(evaluator):
    assert evaluator.is_section_visible("sidebarControls", RoleKey.ADMIN, "x") is True
    assert evaluator.is_section_visible("settingsControls", "Janitor", "storage") is True
    assert evaluator.visible_sections("sidebarControls", RoleKey.ADMIN) == {}
    assert evaluator.visible_sections("settingsControls", RoleKey.STUDENT)["schoolInfo"] is False


def test_can_edit_configuration(evaluator):
    assert evaluator.can_edit_configuration(RoleKey.ADMIN) is True
    assert evaluator.can_edit_configuration("Super Admin") is True
    assert evaluator.can_edit_configuration(RoleKey.LIBRARIAN) is False
    assert evaluator.can_edit_configuration("Janitor") is False


def test_stored_grouped_dashboard_key_hides_its_panels():
    backend = MemoryKeyValueStore({"dashboardControls": json.dumps({"Admin": {"totals1": False}})})
    evaluator = AccessEvaluator(make_store(backend))
    assert evaluator.is_section_visible("dashboardControls", RoleKey.ADMIN, "totalStudents") is False
    assert evaluator.visible_sections("dashboardControls", RoleKey.ADMIN)["feesCollected"] is False
    assert evaluator.is_section_visible("dashboardControls", RoleKey.ADMIN, "totalBooks") is True
