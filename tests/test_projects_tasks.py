from datetime import date, timedelta

import pytest


@pytest.fixture
def team(make_user, auth_headers):
    ceo = make_user("ceo")
    leader = make_user("team_leader", name="Tara")
    employee = make_user("employee", name="Ravi")
    return {
        "ceo": ceo,
        "leader": leader,
        "employee": employee,
        "ceo_headers": auth_headers(ceo),
        "leader_headers": auth_headers(leader),
        "employee_headers": auth_headers(employee),
    }


def create_project(client, team, **overrides):
    payload = {
        "name": "Website revamp",
        "client_name": "Acme",
        "status": "Inprogress",
        "priority": "High",
        "start_date": "2024-01-01",
        "due_date": "2024-02-01",
        "manager_id": team["leader"].id,
        "team": "Web Designer",
    }
    payload.update(overrides)
    response = client.post("/projects/", json=payload, headers=team["ceo_headers"])
    assert response.status_code == 201
    return response.json()


def create_task(client, team, project_id):
    response = client.post("/tasks/", json={
        "title": "Landing page",
        "project_id": project_id,
        "assigned_to": team["employee"].id,
        "priority": "Medium",
        "assign_hours": 6,
    }, headers=team["leader_headers"])
    assert response.status_code == 201
    return response.json()


def test_ceo_creates_project_and_sees_stats(client, team):
    future = (date.today() + timedelta(days=30)).isoformat()
    project = create_project(client, team)
    create_project(client, team, name="Mobile app", status="On Hold", due_date=future)
    create_project(client, team, name="Old site", status="Completed")

    assert project["manager_name"] == "Tara"
    assert project["is_overdue"] is True

    stats = client.get("/projects/stats", headers=team["ceo_headers"]).json()
    assert stats == {"total": 3, "completed": 1, "in_progress": 1, "on_hold": 1, "overdue": 1}


def test_project_due_date_before_start_is_rejected(client, team):
    response = client.post("/projects/", json={
        "name": "Backwards",
        "start_date": "2024-02-01",
        "due_date": "2024-01-01",
    }, headers=team["ceo_headers"])

    assert response.status_code == 422


def test_only_ceo_creates_projects(client, team):
    response = client.post("/projects/", json={
        "name": "Side quest",
        "start_date": "2024-01-01",
        "due_date": "2024-01-02",
    }, headers=team["leader_headers"])

    assert response.status_code == 403


def test_team_leader_lists_managed_projects(client, team):
    create_project(client, team)
    create_project(client, team, name="Unmanaged", manager_id=None)

    managed = client.get("/projects/managed", headers=team["leader_headers"]).json()

    assert [p["name"] for p in managed] == ["Website revamp"]


def test_assign_and_progress_task(client, team):
    project = create_project(client, team)
    task = create_task(client, team, project["id"])
    assert task["status"] == "Pending"
    assert task["assignee_name"] == "Ravi"
    assert task["project_name"] == "Website revamp"

    url = f"/tasks/{task['id']}/status"
    headers = team["employee_headers"]
    assert client.patch(url, json={"status": "In Progress"}, headers=headers).status_code == 200
    assert client.patch(url, json={"status": "Completed"}, headers=headers).status_code == 400
    assert client.patch(url, json={"status": "In Review"}, headers=headers).status_code == 200

    done = client.patch(url, json={"status": "Completed"}, headers=team["leader_headers"])
    assert done.status_code == 200
    assert done.json()["completed_at"] is not None

    reopened = client.patch(url, json={"status": "In Progress"}, headers=team["leader_headers"]).json()
    assert reopened["completed_at"] is None


def test_employee_task_list_filters_and_paginates(client, team):
    project = create_project(client, team)
    for _ in range(3):
        create_task(client, team, project["id"])

    page = client.get("/tasks/my", params={"page_size": 2}, headers=team["employee_headers"]).json()
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert len(page["items"]) == 2

    pending = client.get("/tasks/my", params={"status": "Completed"}, headers=team["employee_headers"]).json()
    assert pending["total"] == 0


def test_only_creator_edits_task(client, team):
    project = create_project(client, team)
    task = create_task(client, team, project["id"])

    denied = client.put(f"/tasks/{task['id']}", json={"title": "Mine now"}, headers=team["employee_headers"])
    assert denied.status_code == 403

    edited = client.put(f"/tasks/{task['id']}", json={"title": "Hero section"}, headers=team["leader_headers"])
    assert edited.json()["title"] == "Hero section"

    created = client.get("/tasks/created", headers=team["leader_headers"]).json()
    assert [t["title"] for t in created] == ["Hero section"]


def test_task_for_unknown_project(client, team):
    response = client.post("/tasks/", json={
        "title": "Orphan",
        "project_id": 999,
        "assigned_to": team["employee"].id,
    }, headers=team["leader_headers"])

    assert response.status_code == 404
