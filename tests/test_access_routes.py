def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "access_config_loaded": True}


def test_requires_authentication(client):
    response = client.get("/access/me")
    assert response.status_code in (401, 403)


def test_catalog(client, as_role):
    as_role("Teacher")
    response = client.get("/access/catalog")
    assert response.status_code == 200
    body = response.json()
    assert len(body["roles"]) == 7
    assert body["features"][0] == "Dashboard"
    assert body["features"][-1] == "Profile"
    assert len(body["features"]) == 17
    assert body["actions"] == ["view", "create", "edit", "delete"]
    assert body["editor_roles"] == ["Super Admin", "Admin"]
    dashboard = next(r for r in body["registries"] if r["name"] == "dashboardControls")
    assert dashboard["sections"]["Parent"] == []


def test_my_access_for_parent(client, as_role):
    as_role("Parent")
    response = client.get("/access/me")
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "Parent"
    assert body["can_edit_configuration"] is False
    assert body["visible_features"] == ["Dashboard", "Notice / Announcements", "Profile"]
    assert body["permissions"]["Profile"] == {"view": True, "create": False, "edit": False, "delete": False}
    assert body["sections"]["settingsControls"]["storage"] is False
    assert body["sections"]["settingsControls"]["general"] is True


def test_check_profile_alias(client, as_role):
    as_role("Parent")
    response = client.post("/access/check", json={"feature": "__Profile", "action": "view"})
    assert response.status_code == 200
    assert response.json() == {"allowed": True, "role": "Parent", "feature": "Profile", "action": "view"}


def test_check_unknown_feature_is_denied(client, as_role):
    as_role("Admin")
    response = client.post("/access/check", json={"feature": "Cafeteria", "action": "view"})
    assert response.status_code == 200
    assert response.json()["allowed"] is False
    assert response.json()["feature"] is None


def test_check_invalid_action_is_rejected(client, as_role):
    as_role("Admin")
    response = client.post("/access/check", json={"feature": "Fees", "action": "approve"})
    assert response.status_code == 400
    assert "action" in response.json()


def test_only_editors_check_other_roles(client, as_role):
    as_role("Teacher")
    response = client.post("/access/check", json={"feature": "Fees", "action": "view", "role": "Staff"})
    assert response.status_code == 403

    as_role("Admin")
    response = client.post("/access/check", json={"feature": "Fees", "action": "view", "role": "Staff"})
    assert response.status_code == 200
    assert response.json()["allowed"] is True


def test_check_section(client, as_role):
    as_role("Student")
    response = client.post("/access/check/section", json={"registry": "settingsControls", "key": "schoolInfo"})
    assert response.status_code == 200
    assert response.json()["visible"] is False

    response = client.post("/access/check/section", json={"registry": "sidebarControls", "key": "anything"})
    assert response.json()["visible"] is True


def test_configuration_requires_control_limit_or_editor(client, as_role):
    as_role("Teacher")
    assert client.get("/access/config").status_code == 403

    as_role("Admin")
    response = client.get("/access/config")
    assert response.status_code == 200
    body = response.json()
    assert [r["name"] for r in body["registries"]] == [
        "dashboardControls", "settingsControls", "studentsControls", "teachersControls", "assignmentsControls",
    ]
    settings = body["registries"][1]
    assert settings["enabled"]["Teacher"] == {"enabled": 2, "total": 5}
    assert body["permissions"]["Teacher"]["Assignment"]["delete"] is True


def test_non_editor_cannot_open_session(client, as_role):
    as_role("Librarian")
    assert client.post("/access/session").status_code == 403
    response = client.get("/access/session")
    assert response.json()["state"] == "closed"


def test_staging_without_session_conflicts(client, as_role):
    as_role("Admin")
    response = client.put(
        "/access/session/permissions",
        json={"role": "Parent", "feature": "Fees", "action": "view", "value": True},
    )
    assert response.status_code == 409


def test_edit_commit_flow(client, as_role):
    as_role("Admin", user_id="01HADMINADMINADMINADMIN000")
    response = client.post("/access/session")
    assert response.status_code == 200
    assert response.json()["state"] == "open"
    assert response.json()["dirty"] is False

    response = client.put(
        "/access/session/permissions",
        json={"role": "Parent", "feature": "Fees", "action": "view", "value": True},
    )
    assert response.status_code == 200
    assert response.json()["dirty"] is True
    assert response.json()["working"]["permissions"]["Parent"]["Fees"]["view"] is True

    response = client.put(
        "/access/session/sections",
        json={"registry": "studentsControls", "role": "Parent", "key": "students.export", "value": False},
    )
    assert response.status_code == 200

    # Not live until committed
    check = {"feature": "Fees", "action": "view", "role": "Parent"}
    assert client.post("/access/check", json=check).json()["allowed"] is False

    response = client.post("/access/session/commit")
    assert response.status_code == 200
    assert response.json()["state"] == "closed"
    assert client.post("/access/check", json=check).json()["allowed"] is True

    as_role("Parent")
    response = client.post("/access/check/section", json={"registry": "studentsControls", "key": "students.export"})
    assert response.json()["visible"] is False

    as_role("Admin", user_id="01HADMINADMINADMINADMIN000")
    logs = client.get("/access/audit-logs", params={"action": "commit", "user_id": "01HADMINADMINADMINADMIN000"})
    assert logs.status_code == 200
    assert logs.json()["total"] >= 1
    assert logs.json()["items"][0]["details"] == {"changed": True}


def test_toggle_when_value_omitted(client, as_role):
    as_role("Super Admin")
    client.post("/access/session")
    response = client.put("/access/session/permissions", json={"role": "Teacher", "feature": "Fees", "action": "view"})
    assert response.json()["working"]["permissions"]["Teacher"]["Fees"]["view"] is True


def test_bulk_modes(client, as_role):
    as_role("Admin")
    client.post("/access/session")

    response = client.put("/access/session/roles/Staff/bulk", json={"mode": "view_only"})
    assert response.status_code == 200
    staff = response.json()["working"]["permissions"]["Staff"]
    assert all(flags == {"view": True, "create": False, "edit": False, "delete": False} for flags in staff.values())

    response = client.put("/access/session/roles/Staff/bulk", json={"mode": "deny_all"})
    staff = response.json()["working"]["permissions"]["Staff"]
    assert not any(any(flags.values()) for flags in staff.values())

    assert client.put("/access/session/roles/Staff/bulk", json={"mode": "everything"}).status_code == 400


def test_staging_rejects_unknown_keys(client, as_role):
    as_role("Admin")
    client.post("/access/session")
    response = client.put(
        "/access/session/permissions",
        json={"role": "Parent", "feature": "Cafeteria", "action": "view", "value": True},
    )
    assert response.status_code == 400
    response = client.put(
        "/access/session/sections",
        json={"registry": "sidebarControls", "role": "Parent", "key": "x", "value": False},
    )
    assert response.status_code == 400
    assert client.get("/access/session").json()["dirty"] is False


def test_restore_defaults_and_rollback(client, as_role):
    as_role("Admin")
    client.post("/access/session")
    client.put("/access/session/roles/Teacher/bulk", json={"mode": "allow_all"})

    response = client.post("/access/session/roles/Teacher/restore-defaults")
    assert response.status_code == 200
    assert "Fees" not in response.json()["working"]["permissions"]["Teacher"]
    assert response.json()["dirty"] is False

    client.put("/access/session/roles/Parent/bulk", json={"mode": "allow_all"})
    response = client.post("/access/session/rollback")
    assert response.status_code == 200
    assert response.json()["state"] == "closed"

    check = {"feature": "Fees", "action": "delete", "role": "Parent"}
    assert client.post("/access/check", json=check).json()["allowed"] is False


def test_audit_logs_are_editor_only(client, as_role):
    as_role("Staff")
    assert client.get("/access/audit-logs").status_code == 403


def test_user_management_is_gated(client, as_role):
    as_role("Parent")
    assert client.get("/users/").status_code == 403

    as_role("Admin")
    response = client.get("/users/")
    assert response.status_code == 200
    assert isinstance(response.json(), list)


def test_session_changes_need_a_current_editor_role(client, as_role):
    user_id = "01HDEMOTEDDEMOTEDDEMOTED00"
    as_role("Admin", user_id=user_id)
    assert client.post("/access/session").status_code == 200

    # Same user, role lowered while the session is open
    as_role("Teacher", user_id=user_id)
    staged = {"role": "Parent", "feature": "Fees", "action": "view", "value": True}
    assert client.put("/access/session/permissions", json=staged).status_code == 403
    assert client.put("/access/session/roles/Parent/bulk", json={"mode": "allow_all"}).status_code == 403
    section = {"registry": "studentsControls", "role": "Parent", "key": "students.export", "value": False}
    assert client.put("/access/session/sections", json=section).status_code == 403
    assert client.post("/access/session/roles/Parent/restore-defaults").status_code == 403
    assert client.post("/access/session/commit").status_code == 403

    check = {"feature": "Fees", "action": "view", "role": "Parent"}
    as_role("Admin", user_id=user_id)
    assert client.get("/access/session").json()["dirty"] is False
    assert client.post("/access/check", json=check).json()["allowed"] is False

    # Discarding is still allowed after the demotion
    as_role("Teacher", user_id=user_id)
    assert client.post("/access/session/rollback").json()["state"] == "closed"


def test_unknown_section_key_is_rejected(client, as_role):
    as_role("Admin")
    client.post("/access/session")
    response = client.put(
        "/access/session/sections",
        json={"registry": "settingsControls", "role": "Parent", "key": "darkMode", "value": False},
    )
    assert response.status_code == 400
    assert "section" in response.json()
