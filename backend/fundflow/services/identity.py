"""Provedor de identidade (contas de login).

Erros saem como AuthError com códigos "auth/<motivo>"; a tradução para o
usuário fica no auth_bridge.
"""
from __future__ import annotations

import logging
import uuid

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fundflow.core.errors import AuthError
from fundflow.core.security import hash_password, verify_password
from fundflow.core.settings import settings
from fundflow.models.user import Identity

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    try:
        info = validate_email((email or "").strip(), check_deliverability=False)
    except EmailNotValidError:
        raise AuthError("auth/invalid-email")
    return info.normalized.lower()


class IdentityService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, uid: str) -> Identity | None:
        return self.db.get(Identity, uid)

    def get_by_email(self, email: str) -> Identity | None:
        return self.db.scalar(select(Identity).where(Identity.email == email))

    def create(self, email: str, password: str, display_name: str = "") -> Identity:
        email = normalize_email(email)
        if len(password or "") < settings.AUTH_MIN_PASSWORD_LEN:
            raise AuthError("auth/weak-password")
        if self.get_by_email(email):
            raise AuthError("auth/email-already-in-use")

        ident = Identity(
            uid=str(uuid.uuid4()),
            email=email,
            password_hash=hash_password(password),
            display_name=(display_name or "").strip(),
        )
        self.db.add(ident)
        try:
            self.db.commit()
        except IntegrityError:
            # corrida com outro cadastro do mesmo email
            self.db.rollback()
            raise AuthError("auth/email-already-in-use")
        self.db.refresh(ident)
        logger.info("identity criada uid=%s", ident.uid)
        return ident

    def authenticate(self, email: str, password: str) -> Identity:
        email = normalize_email(email)
        ident = self.get_by_email(email)
        if not ident:
            raise AuthError("auth/user-not-found")
        if ident.disabled:
            raise AuthError("auth/user-disabled")
        if not verify_password(password or "", ident.password_hash):
            raise AuthError("auth/wrong-password")
        return ident

    def check_password(self, uid: str, password: str) -> Identity:
        ident = self.get(uid)
        if not ident:
            raise AuthError("auth/user-not-found")
        if ident.disabled:
            raise AuthError("auth/user-disabled")
        if not verify_password(password or "", ident.password_hash):
            raise AuthError("auth/wrong-password")
        return ident

    def delete(self, uid: str) -> None:
        ident = self.get(uid)
        if not ident:
            raise AuthError("auth/user-not-found")
        self.db.delete(ident)
        self.db.commit()
        logger.info("identity removida uid=%s", uid)
