from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["admin", "employee", "user"]


class UserOut(BaseModel):
    id: str
    email: str
    display_name: str
    role: str
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    email: str
    password: str
    display_name: str = Field(default="", max_length=120)
    role: Role = "user"


class RoleChange(BaseModel):
    role: Role


class UserResult(BaseModel):
    ok: bool = True
    message: str
    user: UserOut | None = None
