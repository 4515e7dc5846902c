from hrportal.services.attendance_service import attendance_reconciler


def test_today_before_first_punch(client, make_user, auth_headers):
    user = make_user("employee")

    response = client.get("/attendance/today", headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["is_live"] is False
    assert body["total_hms"] == "00:00:00"
    assert body["button_text"] == "Punch In"


def test_toggle_twice_round_trips_the_session(client, make_user, auth_headers):
    user = make_user("employee")
    headers = auth_headers(user)

    punched_in = client.post("/attendance/toggle", headers=headers).json()
    assert punched_in["is_live"] is True
    assert punched_in["button_text"] == "Punch Out"

    today = client.get("/attendance/today", headers=headers).json()
    assert today["is_live"] is True
    assert today["record_id"] == punched_in["record_id"]

    punched_out = client.post("/attendance/toggle", headers=headers).json()
    assert punched_out["is_live"] is False
    assert punched_out["record_id"] == punched_in["record_id"]
    assert punched_out["accumulated_seconds"] >= 0


def test_toggle_rejected_while_another_is_in_flight(client, make_user, auth_headers):
    user = make_user("employee")
    headers = auth_headers(user)
    attendance_reconciler._begin(user.id)
    try:
        response = client.post("/attendance/toggle", headers=headers)
    finally:
        attendance_reconciler._finish(user.id)

    assert response.status_code == 409


def test_toggle_requires_login(client):
    assert client.post("/attendance/toggle").status_code == 401


def test_history_includes_today(client, make_user, auth_headers):
    user = make_user("employee")
    headers = auth_headers(user)
    client.post("/attendance/toggle", headers=headers)

    history = client.get("/attendance/history", headers=headers).json()

    assert history["records"][0]["status"] == "Present"
    assert history["stats"]["present_days"] == 1


def test_overview_scope_depends_on_role(client, make_user, auth_headers):
    hr = make_user("hr", name="Hema")
    employee = make_user("employee", name="Ravi")

    hr_rows = client.get("/attendance/overview", headers=auth_headers(hr)).json()
    employee_rows = client.get("/attendance/overview", headers=auth_headers(employee)).json()

    assert {row["name"] for row in hr_rows} == {"Hema", "Ravi"}
    assert [row["name"] for row in employee_rows] == ["Ravi"]


def test_presence_is_hr_only(client, make_user, auth_headers):
    hr = make_user("hr")
    employee = make_user("employee")

    assert client.get("/attendance/presence", headers=auth_headers(employee)).status_code == 403
    response = client.get("/attendance/presence", params={"period": "BiWeekly"}, headers=auth_headers(hr))
    assert response.status_code == 200
