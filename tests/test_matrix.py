import pytest

from app.features.access.catalog import FEATURE_ORDER, Action, FeatureKey, RoleKey
from app.features.access.errors import MalformedConfiguration, UnknownKey
from app.features.access.matrix import FeaturePermission, PermissionMatrix


def test_absent_entry_is_denied():
    matrix = PermissionMatrix()
    for action in Action:
        assert matrix.get(RoleKey.TEACHER, FeatureKey.FEES, action) is False


def test_profile_view_defaults_to_allowed():
    matrix = PermissionMatrix()
    assert matrix.get(RoleKey.PARENT, FeatureKey.PROFILE, Action.VIEW) is True
    assert matrix.get(RoleKey.PARENT, FeatureKey.PROFILE, Action.EDIT) is False
    assert matrix.get(RoleKey.PARENT, "__Profile", "view") is True


def test_profile_view_can_be_denied_explicitly():
    matrix = PermissionMatrix()
    matrix.set(RoleKey.PARENT, FeatureKey.PROFILE, Action.VIEW, False)
    assert matrix.get(RoleKey.PARENT, FeatureKey.PROFILE, Action.VIEW) is False


def test_partial_entry_missing_flags_read_false():
    matrix = PermissionMatrix({"Teacher": {"Class": {"view": True}}})
    assert matrix.resolve("Teacher", "Class") == FeaturePermission(view=True)


def test_get_never_raises_on_unknown_keys():
    matrix = PermissionMatrix.defaults()
    assert matrix.get("Janitor", "Dashboard", "view") is False
    assert matrix.get("Admin", "Cafeteria", "view") is False
    assert matrix.get("Admin", "Dashboard", "approve") is False
    assert matrix.get(None, None, None) is False


def test_action_keys_are_case_insensitive():
    matrix = PermissionMatrix.defaults()
    assert matrix.get("Teacher", "Assignment", "DELETE") is True


def test_shipped_defaults():
    matrix = PermissionMatrix.defaults()
    assert matrix.resolve(RoleKey.ADMIN, FeatureKey.USER_MANAGEMENT) == FeaturePermission(
        view=True, create=True, edit=True, delete=False
    )
    assert matrix.resolve(RoleKey.STAFF, FeatureKey.FEES).create is True
    assert matrix.get(RoleKey.PARENT, FeatureKey.FEES, Action.VIEW) is False
    assert matrix.get(RoleKey.ADMIN, FeatureKey.CONTROL_LIMIT, Action.VIEW) is False


def test_set_rejects_unknown_keys():
    matrix = PermissionMatrix()
    with pytest.raises(UnknownKey):
        matrix.set("Janitor", FeatureKey.DASHBOARD, Action.VIEW, True)
    with pytest.raises(UnknownKey):
        matrix.set(RoleKey.ADMIN, "Cafeteria", Action.VIEW, True)
    with pytest.raises(UnknownKey):
        matrix.set(RoleKey.ADMIN, FeatureKey.DASHBOARD, "approve", True)


def test_set_through_profile_alias_stores_profile():
    matrix = PermissionMatrix()
    matrix.set(RoleKey.STUDENT, "__Profile", Action.EDIT, True)
    assert matrix.to_snapshot() == {"Student": {"Profile": {"edit": True}}}


def test_toggle_flips_effective_value():
    matrix = PermissionMatrix()
    # Profile.view reads True when absent, so the first toggle stores False
    assert matrix.toggle(RoleKey.TEACHER, FeatureKey.PROFILE, Action.VIEW) is False
    assert matrix.toggle(RoleKey.TEACHER, FeatureKey.FEES, Action.VIEW) is True
    assert matrix.toggle(RoleKey.TEACHER, FeatureKey.FEES, Action.VIEW) is False


def test_set_all_and_view_only():
    matrix = PermissionMatrix()
    matrix.set_all_for_role(RoleKey.LIBRARIAN, True)
    for feature, permission in matrix.grid(RoleKey.LIBRARIAN):
        assert permission == FeaturePermission(True, True, True, True)

    matrix.set_view_only_for_role(RoleKey.LIBRARIAN)
    for feature, permission in matrix.grid(RoleKey.LIBRARIAN):
        assert permission == FeaturePermission(view=True)

    matrix.set_all_for_role(RoleKey.LIBRARIAN, False)
    assert matrix.get(RoleKey.LIBRARIAN, FeatureKey.PROFILE, Action.VIEW) is False


def test_grid_is_in_navigation_order():
    features = [feature for feature, _ in PermissionMatrix.defaults().grid(RoleKey.ADMIN)]
    assert features == list(FEATURE_ORDER)
    assert len(features) == 17


def test_copy_is_independent():
    matrix = PermissionMatrix.defaults()
    clone = matrix.copy()
    clone.set(RoleKey.PARENT, FeatureKey.FEES, Action.VIEW, True)
    assert matrix.get(RoleKey.PARENT, FeatureKey.FEES, Action.VIEW) is False
    assert matrix != clone


def test_snapshot_is_a_copy():
    matrix = PermissionMatrix.defaults()
    snapshot = matrix.to_snapshot()
    snapshot["Parent"]["Fees"] = {"view": True}
    assert matrix.get(RoleKey.PARENT, FeatureKey.FEES, Action.VIEW) is False


@pytest.mark.parametrize("stored", [
    [],
    {"Admin": []},
    {"Admin": {"Dashboard": True}},
    {"Admin": {"Dashboard": {"view": "yes"}}},
])
def test_from_snapshot_rejects_malformed(stored):
    with pytest.raises(MalformedConfiguration):
        PermissionMatrix.from_snapshot(stored)


def test_from_snapshot_keeps_stored_document():
    stored = {"Teacher": {"Class": {"view": True, "edit": False}}, "Retired Role": {}}
    assert PermissionMatrix.from_snapshot(stored).to_snapshot() == stored
