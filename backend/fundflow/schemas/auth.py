from pydantic import BaseModel, Field

from fundflow.schemas.user import UserOut


class RegisterIn(BaseModel):
    email: str
    password: str
    display_name: str = Field(default="", max_length=120)


class LoginIn(BaseModel):
    email: str
    password: str


class ReauthIn(BaseModel):
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class ReauthOut(BaseModel):
    reauth_token: str
    expires_in: int
