import pytest
from fastapi import HTTPException

from hrportal.config import settings
from hrportal.services.storage_service import get_public_url, remove_object, upload_object

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def test_upload_and_serve_profile_image(client, make_user, auth_headers, db_session):
    user = make_user("employee")

    response = client.post(
        "/profile/upload-image",
        files={"file": ("me.png", PNG, "image/png")},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["path"].startswith(f"{user.id}/")
    assert body["path"].endswith(".png")
    assert body["url"] == f"{settings.PUBLIC_BASE_URL}/storage/profile-images/{body['path']}"

    served = client.get(f"/storage/profile-images/{body['path']}")
    assert served.status_code == 200
    assert served.content == PNG

    profile = client.get("/profile/", headers=auth_headers(user)).json()
    assert profile["profile_image"] == body["url"]


def test_upload_to_helpdesk_bucket(client, make_user, auth_headers):
    user = make_user("employee")

    response = client.post(
        "/storage/helpdesk-images",
        files={"file": ("screen.png", PNG, "image/png")},
        headers=auth_headers(user),
    )

    assert response.status_code == 201
    assert response.json()["public_url"].endswith(response.json()["path"])


def test_unknown_bucket(client, make_user, auth_headers):
    user = make_user("employee")

    response = client.post(
        "/storage/secrets",
        files={"file": ("a.png", PNG, "image/png")},
        headers=auth_headers(user),
    )

    assert response.status_code == 404


def test_rejects_wrong_content_type():
    with pytest.raises(HTTPException) as exc:
        upload_object("profile-images", "1/notes.txt", b"hello", "text/plain")
    assert exc.value.status_code == 400


@pytest.mark.parametrize("path", ["../escape.png", "/etc/passwd"])
def test_rejects_path_traversal(path):
    with pytest.raises(HTTPException) as exc:
        upload_object("profile-images", path, PNG, "image/png")
    assert exc.value.status_code == 400


def test_existing_object_needs_upsert():
    upload_object("employee-docs", "7/contract.pdf", b"%PDF-1", "application/pdf")

    with pytest.raises(HTTPException) as exc:
        upload_object("employee-docs", "7/contract.pdf", b"%PDF-2", "application/pdf")
    assert exc.value.status_code == 409

    upload_object("employee-docs", "7/contract.pdf", b"%PDF-2", "application/pdf", upsert=True)
    assert get_public_url("employee-docs", "7/contract.pdf").endswith("/storage/employee-docs/7/contract.pdf")
    assert remove_object("employee-docs", "7/contract.pdf") is True
    assert remove_object("employee-docs", "7/contract.pdf") is False


def test_cannot_overwrite_another_users_object(client, make_user, auth_headers):
    owner = make_user("employee")
    intruder = make_user("employee")
    uploaded = client.post(
        "/profile/upload-image",
        files={"file": ("me.png", PNG, "image/png")},
        headers=auth_headers(owner),
    ).json()

    response = client.post(
        "/storage/profile-images",
        files={"file": ("swap.png", b"\x89PNG other", "image/png")},
        data={"path": uploaded["path"], "upsert": "true"},
        headers=auth_headers(intruder),
    )

    assert response.status_code == 403
    assert client.get(f"/storage/profile-images/{uploaded['path']}").content == PNG


def test_owner_may_upsert_own_path(client, make_user, auth_headers):
    user = make_user("employee")
    headers = auth_headers(user)
    path = f"{user.id}/avatar.png"

    first = client.post(
        "/storage/profile-images",
        files={"file": ("a.png", PNG, "image/png")},
        data={"path": path},
        headers=headers,
    )
    second = client.post(
        "/storage/profile-images",
        files={"file": ("a.png", b"\x89PNG new", "image/png")},
        data={"path": path, "upsert": "true"},
        headers=headers,
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert client.get(f"/storage/profile-images/{path}").content == b"\x89PNG new"


def test_oversized_upload_rejected(client, make_user, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 16)
    user = make_user("employee")

    response = client.post(
        "/storage/helpdesk-images",
        files={"file": ("big.png", PNG, "image/png")},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "File too large"
