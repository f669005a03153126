from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from fundflow.db import Base

# "employee": categorias de funcionários (aceitam flags ЗП/безнал nas transferências)
CATEGORY_KINDS = ("general", "employee")


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(120))
    kind: Mapped[str] = mapped_column(String(16), default="general")

    # saldo em unidades mínimas (tiyn); nunca string formatada
    balance_minor: Mapped[int] = mapped_column(BigInteger, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_employee(self) -> bool:
        return self.kind == "employee"
