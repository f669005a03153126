"""Histórico de operações de uma categoria e exclusão com estorno de saldo."""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fundflow.core import messages as msg
from fundflow.core.errors import NotFoundError, OperationFailed, ValidationError
from fundflow.core.money import plain_digits
from fundflow.models.category import Category
from fundflow.models.transaction import Transaction
from fundflow.models.user import RevokedToken
from fundflow.realtime import CATEGORIES_TOPIC, SubscriptionHub, transactions_topic

logger = logging.getLogger(__name__)

FILTERS = ("all", "salary", "cashless")


def list_category_transactions(db: Session, category_id: int) -> list[Transaction]:
    q = (
        select(Transaction)
        .where(Transaction.category_id == category_id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
    )
    return list(db.scalars(q))


def summarize(items: Iterable[Transaction]) -> Dict[str, int]:
    total = 0
    salary = 0
    for t in items:
        a = abs(int(t.amount_minor))
        total += a
        if t.is_salary:
            salary += a
    return {"total_minor": total, "salary_total_minor": salary}


def matches_search(t: Transaction, query: str) -> bool:
    q = (query or "").lower()
    if not q:
        return True
    return (
        q in (t.description or "").lower()
        or q in (t.from_label or "").lower()
        or q in (t.to_label or "").lower()
        or q in plain_digits(t.amount_minor)
    )


def apply_filters(items: Iterable[Transaction], mode: str = "all", query: str = "") -> list[Transaction]:
    if mode not in FILTERS:
        raise ValidationError(f"filtro inválido: {mode}", error_code="INVALID_FILTER")

    out = list(items)
    if mode == "salary":
        out = [t for t in out if t.is_salary]
    elif mode == "cashless":
        out = [t for t in out if t.is_cashless]

    if query:
        out = [t for t in out if matches_search(t, query)]
    return out


def history_snapshot(db: Session, category_id: int, mode: str = "all", query: str = "") -> Dict[str, Any]:
    """Lista + agregados. Os totais são da categoria inteira, não do recorte filtrado."""
    items = list_category_transactions(db, category_id)
    cat = db.get(Category, category_id)
    if cat is not None:
        title = cat.title
    elif items:
        title = items[0].from_label
    else:
        title = ""

    return {
        "category_id": category_id,
        "category_title": title,
        "filter": mode,
        "query": query,
        **summarize(items),
        "items": apply_filters(items, mode, query),
    }


def delete_transaction_with_reversal(
    db: Session,
    tx_id: int,
    *,
    reauth_jti: Optional[str] = None,
    reauth_expires_at: Optional[datetime] = None,
    hub: Optional[SubscriptionHub] = None,
) -> Dict[str, Any]:
    """Apaga a operação e a perna par, estornando os saldos, num único commit.

    novo saldo = saldo + (-1 * valor) para cada perna apagada.
    Categoria inexistente: o estorno dela é ignorado.
    """
    tx = db.get(Transaction, tx_id)
    if not tx:
        raise NotFoundError(f"Операция {tx_id} не найдена", error_code="TRANSACTION_NOT_FOUND")

    deltas: Dict[int, int] = defaultdict(int)
    deleted_ids = [tx.id]
    deltas[tx.category_id] += -1 * int(tx.amount_minor)

    related = list(
        db.scalars(
            select(Transaction)
            .where(Transaction.related_transaction_id == tx.id)
            .where(Transaction.id != tx.id)
        )
    )

    now = datetime.utcnow()
    try:
        for r in related:
            deltas[r.category_id] += -1 * int(r.amount_minor)
            deleted_ids.append(r.id)
            db.delete(r)
        db.delete(tx)

        touched: list[int] = []
        for category_id, delta in deltas.items():
            if db.get(Category, category_id) is None:
                logger.warning("categoria %s ausente; estorno ignorado (tx=%s)", category_id, tx_id)
                continue
            db.execute(
                update(Category)
                .where(Category.id == category_id)
                .values(balance_minor=Category.balance_minor + delta, updated_at=now)
            )
            touched.append(category_id)

        if reauth_jti:
            # o token de re-autenticação vale para uma única exclusão
            db.add(RevokedToken(jti=reauth_jti, expires_at=reauth_expires_at or now))

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error deleting transaction id=%s", tx_id)
        raise OperationFailed(msg.TRANSACTION_DELETE_FAILED)

    logger.info("transaction removida id=%s pares=%s deltas=%s", tx_id, deleted_ids[1:], dict(deltas))

    if hub is not None:
        for category_id in deltas:
            hub.publish(transactions_topic(category_id), {"type": "changed"})
        hub.publish(CATEGORIES_TOPIC, {"type": "changed"})

    return {"deleted_ids": deleted_ids, "categories": touched}


def get_waybill(db: Session, tx_id: int) -> Dict[str, Any]:
    tx = db.get(Transaction, tx_id)
    if not tx:
        raise NotFoundError(f"Операция {tx_id} не найдена", error_code="TRANSACTION_NOT_FOUND")
    if not tx.waybill_number and not tx.waybill_data:
        raise NotFoundError("Накладная не найдена", error_code="WAYBILL_NOT_FOUND")
    return {"transaction_id": tx.id, "waybill_number": tx.waybill_number, "waybill_data": tx.waybill_data}


def attach_waybill(db: Session, tx_id: int, number: str, data: Optional[Dict[str, Any]] = None) -> Transaction:
    tx = db.get(Transaction, tx_id)
    if not tx:
        raise NotFoundError(f"Операция {tx_id} не найдена", error_code="TRANSACTION_NOT_FOUND")
    tx.waybill_number = number
    tx.waybill_data = data
    db.commit()
    db.refresh(tx)
    return tx
