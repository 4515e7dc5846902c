from datetime import datetime

from hrportal.models.user import User
from hrportal.utils.generator import generate_temp_password, next_employee_id


def test_next_employee_id_sequence():
    assert next_employee_id(None, 2024) == "EMP20240001"
    assert next_employee_id("EMP20240041", 2024) == "EMP20240042"
    assert next_employee_id("EMP20230099", 2024) == "EMP20240001"


def test_temp_password_length():
    assert len(generate_temp_password()) == 10
    assert len(generate_temp_password(16)) == 16


def test_hr_creates_employee_and_emails_credentials(client, make_user, auth_headers, sent_emails, db_session):
    hr = make_user("hr")

    response = client.post("/employees/", json={
        "name": "Ravi Kumar",
        "email": "Ravi@Example.com",
        "department": "Backend",
        "designation": "Developer",
    }, headers=auth_headers(hr))

    assert response.status_code == 201
    body = response.json()
    assert body["employee_id"] == f"EMP{datetime.now().year}0001"
    assert body["email"] == "ravi@example.com"

    assert sent_emails[0]["employee_id"] == body["employee_id"]
    temp_password = sent_emails[0]["temp_password"]

    login = client.post("/auth/login", json={"email": "ravi@example.com", "password": temp_password})
    assert login.status_code == 200
    assert login.json()["force_password_change"] is True


def test_duplicate_employee_email(client, make_user, auth_headers, sent_emails):
    hr = make_user("hr")
    make_user("employee", email="taken@example.com")

    response = client.post("/employees/", json={"name": "Dup", "email": "taken@example.com"}, headers=auth_headers(hr))

    assert response.status_code == 400
    assert sent_emails == []


def test_employee_list_search_and_department(client, make_user, auth_headers):
    hr = make_user("hr", department="People")
    make_user("employee", name="Ravi", department="Backend")
    make_user("employee", name="Meera", department="Design")
    make_user("employee", name="Old Timer", department="Design", is_active=False)
    headers = auth_headers(hr)

    design = client.get("/employees/", params={"department": "Design"}, headers=headers).json()
    assert [e["name"] for e in design] == ["Meera"]

    search = client.get("/employees/", params={"search": "rav"}, headers=headers).json()
    assert [e["name"] for e in search] == ["Ravi"]

    everyone = client.get("/employees/", params={"include_inactive": True}, headers=headers).json()
    assert len(everyone) == 4


def test_employee_list_is_staff_only(client, make_user, auth_headers):
    employee = make_user("employee")
    assert client.get("/employees/", headers=auth_headers(employee)).status_code == 403


def test_deactivate_employee(client, make_user, auth_headers, db_session):
    hr = make_user("hr")
    employee = make_user("employee")

    response = client.delete(f"/employees/{employee.id}", headers=auth_headers(hr))

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.get(User, employee.id).is_active is False


def test_employee_stats(client, make_user, auth_headers):
    employee = make_user("employee")

    stats = client.get("/employees/me/stats", headers=auth_headers(employee)).json()

    assert set(stats) == {"projects_assigned", "working_days", "leaves_taken", "absent_days"}
    assert stats["projects_assigned"] == 0
    assert stats["working_days"] == 0


def test_cannot_view_someone_elses_stats(client, make_user, auth_headers):
    employee = make_user("employee")
    other = make_user("employee")

    response = client.get(f"/employees/{other.id}/stats", headers=auth_headers(employee))

    assert response.status_code == 403


def test_update_profile(client, make_user, auth_headers):
    user = make_user("employee")

    response = client.put("/profile/", json={
        "phone": "+919876543210",
        "address": " 12 MG Road ",
        "gender": "",
    }, headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["phone"] == "+919876543210"
    assert body["address"] == "12 MG Road"
    assert body["gender"] is None


def test_profile_rejects_bad_phone(client, make_user, auth_headers):
    user = make_user("employee")

    response = client.put("/profile/", json={"phone": "12ab"}, headers=auth_headers(user))

    assert response.status_code == 422
    assert response.json()["detail"] == "Phone must contain 7 to 15 digits"


def test_create_ceo_script_is_idempotent(db_session):
    from hrportal.scripts.create_ceo import create_ceo

    assert create_ceo(db_session, "Boss@Example.com", "Ceo@12345") is True
    assert create_ceo(db_session, "other@example.com", "Ceo@12345") is False

    ceo = db_session.query(User).filter(User.role == "ceo").one()
    assert ceo.email == "boss@example.com"
    assert ceo.force_password_change is True
