from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from fundflow.core.errors import OperationFailed
from fundflow.models.category import Category
from fundflow.models.transaction import Transaction
from fundflow.models.user import RevokedToken
from fundflow.services.history import apply_filters, delete_transaction_with_reversal, history_snapshot, summarize
from fundflow.services.transfers import TransferFlags, transfer_funds

ADMIN_PASSWORD = "admin-pass"


def _tx(category_id, amount_minor, description="", salary=False, cashless=False, when=None, **kw):
    return Transaction(
        category_id=category_id,
        from_label=kw.pop("from_label", "Иван"),
        to_label=kw.pop("to_label", "Касса"),
        amount_minor=amount_minor,
        type="expense" if amount_minor < 0 else "income",
        description=description,
        date=when or datetime.utcnow(),
        is_salary=salary,
        is_cashless=cashless,
        **kw,
    )


def test_summarize_uses_absolute_amounts():
    items = [_tx(1, -50000, salary=True), _tx(1, 20000), _tx(1, -1000, salary=True)]
    assert summarize(items) == {"total_minor": 71000, "salary_total_minor": 51000}


def test_filters_and_search():
    items = [
        _tx(1, -50000, "зарплата март", salary=True),
        _tx(1, -150000, "премия", salary=True),
        _tx(1, -50000, "аренда", cashless=True),
        _tx(1, -7000, "ЗП аванс", salary=True),
    ]

    assert len(apply_filters(items, "all")) == 4
    assert [t.description for t in apply_filters(items, "cashless")] == ["аренда"]

    # "500" com filtro salary: só ЗП cujo valor absoluto contém "500"
    found = apply_filters(items, "salary", "500")
    assert [t.description for t in found] == ["зарплата март", "премия"]

    # busca textual é case-insensitive, inclusive nos rótulos
    assert [t.description for t in apply_filters(items, "all", "зп")] == ["ЗП аванс"]
    assert len(apply_filters(items, "all", "иван")) == 4
    assert apply_filters(items, "all", "касса") == items


def test_snapshot_is_ordered_by_date_desc(db, make_category):
    cid = make_category("Иван", 0, kind="employee")
    now = datetime.utcnow()
    db.add_all([
        _tx(cid, -100, "old", when=now - timedelta(days=2)),
        _tx(cid, -200, "new", when=now),
        _tx(cid, -300, "mid", when=now - timedelta(days=1), salary=True),
    ])
    db.commit()

    snap = history_snapshot(db, cid, "all", "")
    assert [t.description for t in snap["items"]] == ["new", "mid", "old"]
    assert snap["total_minor"] == 600
    assert snap["salary_total_minor"] == 300
    assert snap["category_title"] == "Иван"

    # totais continuam sendo da categoria inteira com filtro aplicado
    snap = history_snapshot(db, cid, "salary", "")
    assert [t.description for t in snap["items"]] == ["mid"]
    assert snap["total_minor"] == 600


def test_delete_expense_restores_balance_example(db, make_category, balance_of):
    cid = make_category("Касса", 100000)  # "1000 ₸"
    tx = _tx(cid, -20000, "расход")
    db.add(tx)
    db.commit()

    delete_transaction_with_reversal(db, tx.id)

    assert balance_of(cid) == 120000
    assert db.get(Category, cid) is not None


def test_delete_reverses_both_legs_atomically(db, make_category, balance_of):
    a = make_category("Касса", 100000)
    b = make_category("Склад", 0)
    expense, income = transfer_funds(db, a, b, 30000, "закуп")
    leg_ids = sorted([expense.id, income.id])
    income_id = income.id
    assert balance_of(a) == 70000 and balance_of(b) == 30000

    res = delete_transaction_with_reversal(db, income_id)

    assert sorted(res["deleted_ids"]) == leg_ids
    assert balance_of(a) == 100000
    assert balance_of(b) == 0
    assert list(db.scalars(select(Transaction))) == []


def test_delete_without_pair_only_touches_primary(db, make_category, balance_of):
    a = make_category("Касса", 100000)
    b = make_category("Склад", 50000)
    lone = _tx(a, 40000, "приход")
    other = _tx(b, -1000, "чужая")
    db.add_all([lone, other])
    db.commit()

    lone_id, other_id = lone.id, other.id
    delete_transaction_with_reversal(db, lone_id)

    assert balance_of(a) == 60000
    assert balance_of(b) == 50000
    assert db.get(Transaction, other_id) is not None


def test_history_endpoint(client, auth_header, make_category, db):
    a = make_category("Иван", 100000, kind="employee")
    b = make_category("Касса", 0)
    transfer_funds(db, a, b, 50000, "зарплата", flags=TransferFlags(is_salary=True))
    transfer_funds(db, a, b, 1000, "такси", flags=TransferFlags(is_cashless=True))

    r = client.get(f"/transactions?category_id={a}&filter=salary&q=500", headers=auth_header)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["category_title"] == "Иван"
    assert body["total"] == "510 ₸"
    assert body["salary_total"] == "500 ₸"
    assert [t["description"] for t in body["items"]] == ["зарплата"]

    r = client.get(f"/transactions?category_id={a}&filter=bogus", headers=auth_header)
    assert r.status_code == 422


def test_delete_endpoint_requires_reauth(client, admin_header, make_category, balance_of, db):
    a = make_category("Касса", 100000)
    b = make_category("Склад", 0)
    expense, _ = transfer_funds(db, a, b, 20000, "x")

    r = client.delete(f"/transactions/{expense.id}", headers=admin_header)
    assert r.status_code == 401
    assert balance_of(a) == 80000

    r = client.post("/auth/reauthenticate", json={"password": "wrong"}, headers=admin_header)
    assert r.status_code == 401
    assert r.json()["detail"]["message"] == "Неверный пароль"
    assert balance_of(a) == 80000


def test_delete_endpoint_with_reauth(client, admin_header, reauth, make_category, balance_of, db):
    a = make_category("Касса", 100000)
    b = make_category("Склад", 0)
    expense, income = transfer_funds(db, a, b, 20000, "x")
    leg_ids = sorted([expense.id, income.id])

    headers = reauth(admin_header, ADMIN_PASSWORD)
    r = client.delete(f"/transactions/{expense.id}", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Операция успешно удалена"
    assert sorted(r.json()["deleted_ids"]) == leg_ids
    assert balance_of(a) == 100000
    assert balance_of(b) == 0

    # o mesmo token de re-autenticação não serve duas vezes
    expense2, _ = transfer_funds(db, a, b, 100, "y")
    r = client.delete(f"/transactions/{expense2.id}", headers=headers)
    assert r.status_code == 401


def test_access_token_is_not_a_reauth_token(client, admin_header, make_category, db):
    a = make_category("Касса", 100000)
    b = make_category("Склад", 0)
    expense, _ = transfer_funds(db, a, b, 100, "x")

    token = admin_header["Authorization"].split(" ", 1)[1]
    r = client.delete(f"/transactions/{expense.id}", headers={**admin_header, "X-Reauth-Token": token})
    assert r.status_code == 401


def test_reauth_of_another_user_rejected(client, admin_header, auth_header, reauth, make_category, db):
    a = make_category("Касса", 100000)
    b = make_category("Склад", 0)
    expense, _ = transfer_funds(db, a, b, 100, "x")

    other = reauth(auth_header, "secret1")
    r = client.delete(
        f"/transactions/{expense.id}",
        headers={**admin_header, "X-Reauth-Token": other["X-Reauth-Token"]},
    )
    assert r.status_code == 403


def test_waybill_roundtrip(client, auth_header, make_category, db):
    a = make_category("Склад", 100000)
    b = make_category("Поставщик", 0)
    expense, _ = transfer_funds(db, a, b, 100, "товар")

    assert client.get(f"/transactions/{expense.id}/waybill", headers=auth_header).status_code == 404

    r = client.put(
        f"/transactions/{expense.id}/waybill",
        json={"waybill_number": "РН-17", "waybill_data": {"items": [{"name": "цемент", "qty": 3}]}},
        headers=auth_header,
    )
    assert r.status_code == 200, r.text

    r = client.get(f"/transactions/{expense.id}/waybill", headers=auth_header)
    assert r.json()["waybill_number"] == "РН-17"
    assert r.json()["waybill_data"]["items"][0]["qty"] == 3


def test_delete_commit_failure_keeps_legs_balances_and_reauth(db, make_category, balance_of, monkeypatch):
    a = make_category("Касса", 100000)
    b = make_category("Склад", 0)
    expense, income = transfer_funds(db, a, b, 30000, "закуп")
    leg_ids = [expense.id, income.id]

    def boom():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", boom)

    with pytest.raises(OperationFailed):
        delete_transaction_with_reversal(
            db, leg_ids[0], reauth_jti="jti-once", reauth_expires_at=datetime.utcnow() + timedelta(minutes=5)
        )

    db.expire_all()
    assert balance_of(a) == 70000
    assert balance_of(b) == 30000
    assert all(db.get(Transaction, i) is not None for i in leg_ids)
    assert db.get(RevokedToken, "jti-once") is None
