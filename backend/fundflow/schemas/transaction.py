from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from fundflow.core.money import format_amount


class Attachment(BaseModel):
    name: str
    url: str
    type: str = ""
    size: int = 0
    uploaded_at: str | None = None
    path: str


class TransactionOut(BaseModel):
    id: int
    category_id: int
    from_label: str
    to_label: str
    amount_minor: int
    type: str
    description: str
    date: datetime
    is_salary: bool = False
    is_cashless: bool = False
    related_transaction_id: int | None = None
    attachments: list[Attachment] = Field(default_factory=list)
    waybill_number: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def amount(self) -> str:
        return format_amount(self.amount_minor)


class HistoryOut(BaseModel):
    category_id: int
    category_title: str
    filter: str
    query: str
    total_minor: int
    salary_total_minor: int
    items: list[TransactionOut]

    @computed_field
    @property
    def total(self) -> str:
        return format_amount(self.total_minor)

    @computed_field
    @property
    def salary_total(self) -> str:
        return format_amount(self.salary_total_minor)


class TransferResult(BaseModel):
    ok: bool = True
    message: str
    expense: TransactionOut
    income: TransactionOut
    rejected_files: list[str] = Field(default_factory=list)


class DeleteResult(BaseModel):
    ok: bool = True
    message: str
    deleted_ids: list[int]


class WaybillIn(BaseModel):
    waybill_number: str = Field(min_length=1, max_length=64)
    waybill_data: dict[str, Any] | None = None


class WaybillOut(BaseModel):
    transaction_id: int
    waybill_number: str | None = None
    waybill_data: dict[str, Any] | None = None
