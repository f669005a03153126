from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fundflow.core.security import CurrentUser, create_access_token, require_auth
from fundflow.core.settings import settings
from fundflow.db import get_db
from fundflow.models.user import UserProfile
from fundflow.schemas.auth import LoginIn, ReauthIn, ReauthOut, RegisterIn, TokenOut
from fundflow.schemas.user import UserOut
from fundflow.services import auth_bridge
from fundflow.services.auth_bridge import get_user_role


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=TokenOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    profile = auth_bridge.register_user(db, payload.email, payload.password, payload.display_name)
    return TokenOut(access_token=create_access_token(sub=profile.id), user=UserOut.model_validate(profile))


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    res = auth_bridge.login_user(db, payload.email, payload.password)
    return TokenOut(access_token=res["access_token"], user=UserOut.model_validate(res["user"]))


@router.post("/logout")
def logout(user: CurrentUser = Depends(require_auth), db: Session = Depends(get_db)):
    auth_bridge.logout_user(db, user.claims)
    return {"ok": True}


@router.post("/reauthenticate", response_model=ReauthOut)
def reauthenticate(payload: ReauthIn, user: CurrentUser = Depends(require_auth), db: Session = Depends(get_db)):
    token = auth_bridge.reauthenticate(db, user.uid, payload.password)
    return ReauthOut(reauth_token=token, expires_in=settings.AUTH_REAUTH_TTL_S)


@router.get("/me")
def me(user: CurrentUser = Depends(require_auth), db: Session = Depends(get_db)):
    profile = db.get(UserProfile, user.uid)
    return {
        "user": UserOut.model_validate(profile),
        "role": get_user_role(db, user.uid),
        "iat": user.claims.get("iat"),
        "exp": user.claims.get("exp"),
    }
