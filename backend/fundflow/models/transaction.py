from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, String, text
from sqlalchemy.orm import Mapped, mapped_column

from fundflow.db import Base


class Transaction(Base):
    """Uma perna de transferência (cada transferência gera duas)."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True)

    from_label: Mapped[str] = mapped_column(String(120))
    to_label: Mapped[str] = mapped_column(String(120))

    # com sinal: despesa < 0, receita > 0 (unidades mínimas)
    amount_minor: Mapped[int] = mapped_column(BigInteger)
    # "income" | "expense"
    type: Mapped[str] = mapped_column(String(7))

    description: Mapped[str] = mapped_column(String(500), default="")
    date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    is_salary: Mapped[bool] = mapped_column(Boolean, default=False)
    is_cashless: Mapped[bool] = mapped_column(Boolean, default=False)

    # perna par da mesma transferência
    related_transaction_id: Mapped[int | None] = mapped_column(nullable=True, index=True)

    attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, server_default=text("'[]'"))

    waybill_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    waybill_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
