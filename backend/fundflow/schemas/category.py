from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from fundflow.core.money import format_amount


class CategoryCreate(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    kind: Literal["general", "employee"] = "general"
    # aceita "1 000 ₸", "1,000.50" ou número
    initial_balance: str | int = 0


class CategoryOut(BaseModel):
    id: int
    title: str
    kind: str
    balance_minor: int

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def balance(self) -> str:
        return format_amount(self.balance_minor)
