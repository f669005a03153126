"""Transferência entre categorias: duas pernas ligadas + dois saldos, num único commit."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fundflow.core import messages as msg
from fundflow.core.errors import NotFoundError, OperationFailed, TransferValidationError
from fundflow.core.money import MAX_AMOUNT_MINOR
from fundflow.models.category import Category
from fundflow.models.transaction import Transaction
from fundflow.realtime import CATEGORIES_TOPIC, SubscriptionHub, transactions_topic

logger = logging.getLogger(__name__)


@dataclass
class TransferFlags:
    is_salary: bool = False
    is_cashless: bool = False


def validate_transfer(amount_minor: int, description: str | None, source_id: int | None = None, target_id: int | None = None) -> str:
    """Valida antes de qualquer escrita/upload; devolve a descrição normalizada."""
    if amount_minor is None or not 0 < int(amount_minor) <= MAX_AMOUNT_MINOR:
        raise TransferValidationError(msg.TRANSFER_AMOUNT_INVALID)
    desc = (description or "").strip()
    if not desc:
        raise TransferValidationError(msg.TRANSFER_DESCRIPTION_REQUIRED)
    if source_id is not None and source_id == target_id:
        raise TransferValidationError(msg.TRANSFER_SAME_CATEGORY)
    return desc


def _get_category(db: Session, category_id: int) -> Category:
    cat = db.get(Category, category_id)
    if not cat:
        raise NotFoundError(f"Категория {category_id} не найдена", error_code="CATEGORY_NOT_FOUND")
    return cat


def transfer_funds(
    db: Session,
    source_id: int,
    target_id: int,
    amount_minor: int,
    description: str,
    attachments: Optional[list[Dict[str, Any]]] = None,
    flags: Optional[TransferFlags] = None,
    created_by: Optional[str] = None,
    hub: Optional[SubscriptionHub] = None,
) -> tuple[Transaction, Transaction]:
    """Despesa na origem (-A), receita no destino (+A); cada perna aponta para a outra.

    Flags ЗП/безнал só valem quando a origem é categoria de funcionário.
    """
    desc = validate_transfer(amount_minor, description, source_id, target_id)
    amount = int(amount_minor)

    source = _get_category(db, source_id)
    target = _get_category(db, target_id)

    if flags is None or not source.is_employee:
        flags = TransferFlags()

    now = datetime.utcnow()
    files = list(attachments or [])

    common = dict(
        from_label=source.title,
        to_label=target.title,
        description=desc,
        date=now,
        is_salary=bool(flags.is_salary),
        is_cashless=bool(flags.is_cashless),
        attachments=files,
        created_by=created_by,
    )
    expense = Transaction(category_id=source.id, amount_minor=-amount, type="expense", **common)
    income = Transaction(category_id=target.id, amount_minor=amount, type="income", **common)

    try:
        db.add_all([expense, income])
        db.flush()
        expense.related_transaction_id = income.id
        income.related_transaction_id = expense.id

        db.execute(
            update(Category)
            .where(Category.id == source.id)
            .values(balance_minor=Category.balance_minor - amount, updated_at=now)
        )
        db.execute(
            update(Category)
            .where(Category.id == target.id)
            .values(balance_minor=Category.balance_minor + amount, updated_at=now)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("falha na transferência source=%s target=%s amount=%s", source_id, target_id, amount)
        raise OperationFailed(msg.TRANSFER_FAILED)

    db.refresh(expense)
    db.refresh(income)
    logger.info(
        "transfer ok source=%s target=%s amount_minor=%s legs=%s/%s",
        source_id, target_id, amount, expense.id, income.id,
    )

    if hub is not None:
        hub.publish(transactions_topic(source_id), {"type": "changed"})
        hub.publish(transactions_topic(target_id), {"type": "changed"})
        hub.publish(CATEGORIES_TOPIC, {"type": "changed"})

    return expense, income
