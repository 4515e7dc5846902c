from datetime import date, timedelta

import pytest

from hrportal.routes.leaves import end_of_next_month
from hrportal.services.attendance_service import get_local_date


@pytest.fixture
def today():
    return get_local_date()


def leave_payload(start, end, **overrides):
    payload = {
        "leave_type": "Casual Leave",
        "from_date": start.isoformat(),
        "to_date": end.isoformat(),
        "reason": "Family function",
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize("today,expected", [
    (date(2024, 1, 15), date(2024, 2, 29)),
    (date(2024, 12, 3), date(2025, 1, 31)),
])
def test_end_of_next_month(today, expected):
    assert end_of_next_month(today) == expected


def test_apply_leave(client, make_user, auth_headers, today):
    user = make_user("employee")

    response = client.post("/leaves/", json=leave_payload(today, today + timedelta(days=1)), headers=auth_headers(user))

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "Pending"
    assert body["total_days"] == 2


def test_only_one_pending_leave(client, make_user, auth_headers, today):
    user = make_user("employee")
    headers = auth_headers(user)
    client.post("/leaves/", json=leave_payload(today, today), headers=headers)

    response = client.post("/leaves/", json=leave_payload(today, today), headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Pending leave exists. You cannot apply for a new one."
    assert client.get("/leaves/my/pending", headers=headers).json() == {"has_pending_leave": True}


@pytest.mark.parametrize("start_offset,end_offset", [
    (-1, 0),
    (2, 1),
])
def test_apply_leave_date_rules(client, make_user, auth_headers, today, start_offset, end_offset):
    user = make_user("employee")
    payload = leave_payload(today + timedelta(days=start_offset), today + timedelta(days=end_offset))

    response = client.post("/leaves/", json=payload, headers=auth_headers(user))

    assert response.status_code == 400


def test_leave_cannot_end_after_next_month(client, make_user, auth_headers, today):
    user = make_user("employee")
    too_late = end_of_next_month(today) + timedelta(days=1)

    response = client.post("/leaves/", json=leave_payload(today, too_late), headers=auth_headers(user))

    assert response.status_code == 400


def test_reason_is_required(client, make_user, auth_headers, today):
    user = make_user("employee")

    response = client.post("/leaves/", json=leave_payload(today, today, reason="   "), headers=auth_headers(user))

    assert response.status_code == 422
    assert response.json()["detail"] == "Reason is required"


def test_hr_reviews_and_lists_by_status(client, make_user, auth_headers, today):
    hr = make_user("hr")
    first = make_user("employee")
    second = make_user("employee")
    first_leave = client.post("/leaves/", json=leave_payload(today, today), headers=auth_headers(first)).json()
    client.post("/leaves/", json=leave_payload(today, today), headers=auth_headers(second))

    approved = client.put(
        f"/leaves/{first_leave['id']}/status",
        json={"status": "Approved"},
        headers=auth_headers(hr),
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "Approved"

    page = client.get("/leaves/", params={"page_size": 10}, headers=auth_headers(hr)).json()
    assert [item["status"] for item in page["items"]] == ["Pending", "Approved"]
    assert page["total"] == 2

    again = client.put(
        f"/leaves/{first_leave['id']}/status",
        json={"status": "Rejected"},
        headers=auth_headers(hr),
    )
    assert again.status_code == 400


def test_employee_cannot_review(client, make_user, auth_headers, today):
    employee = make_user("employee")
    leave = client.post("/leaves/", json=leave_payload(today, today), headers=auth_headers(employee)).json()

    response = client.put(f"/leaves/{leave['id']}/status", json={"status": "Approved"}, headers=auth_headers(employee))

    assert response.status_code == 403
