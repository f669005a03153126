import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from fundflow.core.errors import OperationFailed
from fundflow.models.user import Identity, UserProfile
from fundflow.services.identity import IdentityService
from fundflow.services.users import create_user


def _create(client, headers, email, role="employee", password="secret1", name="Новый"):
    return client.post(
        "/admin/users",
        json={"email": email, "password": password, "display_name": name, "role": role},
        headers=headers,
    )


def test_admin_creates_user_with_role(client, admin_header, db):
    r = _create(client, admin_header, "kassir@example.com", role="employee")
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"] == "Пользователь успешно добавлен"
    assert body["user"]["role"] == "employee"

    uid = body["user"]["id"]
    assert db.get(Identity, uid) is not None
    assert db.get(UserProfile, uid).display_name == "Новый"

    # o novo usuário consegue logar
    r = client.post("/auth/login", json={"email": "kassir@example.com", "password": "secret1"})
    assert r.status_code == 200


def test_admin_create_duplicate_email(client, admin_header):
    assert _create(client, admin_header, "dup@example.com").status_code == 201
    r = _create(client, admin_header, "DUP@example.com")
    assert r.status_code == 409
    assert r.json()["detail"]["message"] == "Этот email уже используется"


def test_admin_create_rejects_weak_password(client, admin_header, db):
    r = _create(client, admin_header, "weak@example.com", password="123")
    assert r.status_code == 422
    assert r.json()["detail"]["message"] == "Слишком простой пароль"
    assert db.query(Identity).filter(Identity.email == "weak@example.com").first() is None


def test_list_users_newest_first(client, admin_header):
    _create(client, admin_header, "first@example.com")
    _create(client, admin_header, "second@example.com")

    r = client.get("/admin/users", headers=admin_header)
    assert r.status_code == 200
    emails = [u["email"] for u in r.json()]
    assert emails.index("second@example.com") < emails.index("first@example.com")
    assert "admin@example.com" in emails


def test_change_role(client, admin_header, db):
    uid = _create(client, admin_header, "role@example.com", role="user").json()["user"]["id"]

    r = client.patch(f"/admin/users/{uid}/role", json={"role": "admin"}, headers=admin_header)
    assert r.status_code == 200
    assert r.json()["message"] == "Роль пользователя успешно обновлена"
    db.expire_all()
    assert db.get(UserProfile, uid).role == "admin"

    r = client.patch(f"/admin/users/{uid}/role", json={"role": "boss"}, headers=admin_header)
    assert r.status_code == 422


def test_delete_user(client, admin_header, db):
    uid = _create(client, admin_header, "gone@example.com").json()["user"]["id"]

    r = client.delete(f"/admin/users/{uid}", headers=admin_header)
    assert r.status_code == 200
    assert r.json()["message"] == "Пользователь успешно удален"
    db.expire_all()
    assert db.get(Identity, uid) is None
    assert db.get(UserProfile, uid) is None


def test_delete_user_without_identity_still_succeeds(client, admin_header, db):
    uid = _create(client, admin_header, "orphan@example.com").json()["user"]["id"]
    IdentityService(db).delete(uid)

    r = client.delete(f"/admin/users/{uid}", headers=admin_header)
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.json()["message"] == "Пользователь успешно удален"
    db.expire_all()
    assert db.get(UserProfile, uid) is None


def test_non_admin_is_forbidden(client, auth_header):
    assert client.get("/admin/users", headers=auth_header).status_code == 403
    assert _create(client, auth_header, "x@example.com").status_code == 403
    assert client.post("/categories", json={"title": "Касса"}, headers=auth_header).status_code == 403


def test_admin_creates_category_with_formatted_balance(client, admin_header, auth_header):
    r = client.post(
        "/categories",
        json={"title": "Касса", "kind": "general", "initial_balance": "1 000 ₸"},
        headers=admin_header,
    )
    assert r.status_code == 201, r.text
    assert r.json()["balance_minor"] == 100000
    assert r.json()["balance"] == "1000 ₸"

    assert client.post("/categories", json={"title": "Касса"}, headers=admin_header).status_code == 409

    r = client.get("/categories", headers=auth_header)
    assert [c["title"] for c in r.json()] == ["Касса"]


def test_category_initial_balance_above_ceiling_rejected(client, admin_header):
    r = client.post(
        "/categories",
        json={"title": "Касса", "initial_balance": "1e20"},
        headers=admin_header,
    )
    assert r.status_code == 422
    assert r.json()["detail"]["error_code"] == "INVALID_AMOUNT"
    assert client.get("/categories", headers=admin_header).json() == []


def test_failed_profile_write_removes_identity(db, monkeypatch):
    real_commit = db.commit

    def commit():
        # só o commit do perfil falha
        if any(isinstance(o, UserProfile) for o in db.new):
            raise OperationalError("INSERT INTO users", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(db, "commit", commit)

    with pytest.raises(OperationFailed):
        create_user(db, "ghost@example.com", "secret1", "Призрак", role="employee")

    db.expire_all()
    assert db.scalars(select(Identity).where(Identity.email == "ghost@example.com")).first() is None
    assert db.scalars(select(UserProfile).where(UserProfile.email == "ghost@example.com")).first() is None
