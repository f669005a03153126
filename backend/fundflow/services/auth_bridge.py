"""Ponte entre a identidade (login) e o perfil em `users` (role, nome)."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fundflow.core import messages as msg
from fundflow.core.errors import AuthError, OperationFailed
from fundflow.core.security import create_access_token, create_reauth_token
from fundflow.models.user import Identity, RevokedToken, UserProfile
from fundflow.services.identity import IdentityService

logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    "auth/email-already-in-use": 409,
    "auth/invalid-email": 422,
    "auth/weak-password": 422,
    "auth/user-disabled": 403,
    "auth/user-not-found": 401,
    "auth/wrong-password": 401,
}


def translate(e: AuthError, default: str) -> AuthError:
    return AuthError(e.code, msg.auth_message(e.code, default), status_code=_STATUS_BY_CODE.get(e.code, 400))


def create_profile(db: Session, ident: Identity, role: str = "user") -> UserProfile:
    """Grava o perfil; se falhar, remove a identity recém-criada (compensação)."""
    now = datetime.utcnow()
    profile = UserProfile(
        id=ident.uid,
        email=ident.email,
        display_name=ident.display_name,
        role=role,
        created_at=now,
        updated_at=now,
    )
    db.add(profile)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("falha ao gravar perfil uid=%s; removendo identity", ident.uid)
        try:
            IdentityService(db).delete(ident.uid)
        except (AuthError, SQLAlchemyError):
            db.rollback()
            logger.exception("compensação falhou: identity órfã uid=%s", ident.uid)
        raise
    db.refresh(profile)
    return profile


def register_user(db: Session, email: str, password: str, display_name: str) -> UserProfile:
    identities = IdentityService(db)
    try:
        ident = identities.create(email, password, display_name)
    except AuthError as e:
        raise translate(e, msg.REGISTER_FAILED)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("erro no cadastro email=%s", email)
        raise OperationFailed(msg.REGISTER_FAILED)

    try:
        return create_profile(db, ident, role="user")
    except SQLAlchemyError:
        raise OperationFailed(msg.REGISTER_FAILED)


def login_user(db: Session, email: str, password: str) -> Dict[str, Any]:
    try:
        ident = IdentityService(db).authenticate(email, password)
    except AuthError as e:
        raise translate(e, msg.LOGIN_FAILED)
    except SQLAlchemyError:
        logger.exception("erro no login email=%s", email)
        raise OperationFailed(msg.LOGIN_FAILED)

    profile = db.get(UserProfile, ident.uid)
    if not profile:
        raise AuthError("auth/profile-not-found", msg.PROFILE_NOT_FOUND, status_code=404)

    return {"access_token": create_access_token(sub=ident.uid), "user": profile}


def logout_user(db: Session, claims: Dict[str, Any]) -> None:
    jti = claims.get("jti")
    if not jti:
        return
    try:
        if db.get(RevokedToken, jti) is None:
            db.add(RevokedToken(jti=jti, expires_at=datetime.utcfromtimestamp(int(claims.get("exp", 0)))))
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("erro no logout sub=%s", claims.get("sub"))
        raise OperationFailed(msg.LOGOUT_FAILED)


def reauthenticate(db: Session, uid: str, password: str) -> str:
    try:
        IdentityService(db).check_password(uid, password)
    except AuthError as e:
        raise translate(e, msg.REAUTH_REQUIRED)
    return create_reauth_token(uid)


def get_user_role(db: Session, uid: str) -> str:
    try:
        profile = db.get(UserProfile, uid)
    except SQLAlchemyError:
        logger.exception("Error getting user role uid=%s", uid)
        return "user"
    if not profile:
        return "user"
    return profile.role


def get_all_users(db: Session) -> list[UserProfile]:
    return list(db.scalars(select(UserProfile).order_by(UserProfile.created_at.desc(), UserProfile.email)))


def purge_expired_tokens(db: Session) -> int:
    rows = db.query(RevokedToken).filter(RevokedToken.expires_at < datetime.utcnow()).delete()
    db.commit()
    return rows
