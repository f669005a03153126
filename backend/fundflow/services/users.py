"""Painel admin: criar, remover e trocar role de usuários."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fundflow.core import messages as msg
from fundflow.core.errors import AuthError, NotFoundError, OperationFailed, ValidationError
from fundflow.models.user import ROLES, UserProfile
from fundflow.realtime import USERS_TOPIC, SubscriptionHub
from fundflow.services.auth_bridge import create_profile, translate
from fundflow.services.identity import IdentityService

logger = logging.getLogger(__name__)


def _check_role(role: str) -> str:
    if role not in ROLES:
        raise ValidationError(f"role inválida: {role}", error_code="INVALID_ROLE")
    return role


def _changed(hub: Optional[SubscriptionHub]) -> None:
    if hub is not None:
        hub.publish(USERS_TOPIC, {"type": "changed"})


def create_user(
    db: Session,
    email: str,
    password: str,
    display_name: str,
    role: str = "user",
    hub: Optional[SubscriptionHub] = None,
) -> UserProfile:
    """Identity primeiro, perfil depois; perfil falhou -> identity é desfeita."""
    _check_role(role)
    try:
        ident = IdentityService(db).create(email, password, display_name)
    except AuthError as e:
        raise translate(e, msg.USER_CREATE_FAILED)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating identity email=%s", email)
        raise OperationFailed(msg.USER_CREATE_FAILED)

    try:
        profile = create_profile(db, ident, role=role)
    except SQLAlchemyError:
        raise OperationFailed(msg.USER_CREATE_FAILED)

    _changed(hub)
    return profile


def delete_user(db: Session, uid: str, hub: Optional[SubscriptionHub] = None) -> None:
    """Remove identity e perfil; identity inexistente conta como já removida."""
    identities = IdentityService(db)
    try:
        identities.delete(uid)
    except AuthError as e:
        if e.code != "auth/user-not-found":
            raise translate(e, msg.USER_DELETE_FAILED)
        logger.info("identity %s não existe; removendo só o perfil", uid)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error deleting user uid=%s", uid)
        raise OperationFailed(msg.USER_DELETE_FAILED)

    try:
        profile = db.get(UserProfile, uid)
        if profile is not None:
            db.delete(profile)
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error deleting user profile uid=%s", uid)
        raise OperationFailed(msg.USER_DELETE_FAILED)

    _changed(hub)


def change_role(db: Session, uid: str, role: str, hub: Optional[SubscriptionHub] = None) -> UserProfile:
    _check_role(role)
    profile = db.get(UserProfile, uid)
    if not profile:
        raise NotFoundError(msg.AUTH_ERRORS["auth/user-not-found"], error_code="USER_NOT_FOUND")
    try:
        profile.role = role
        profile.updated_at = datetime.utcnow()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating role uid=%s", uid)
        raise OperationFailed(msg.ROLE_UPDATE_FAILED)
    db.refresh(profile)
    _changed(hub)
    return profile


def ensure_bootstrap_admin(db: Session, email: str, password: str, display_name: str) -> Optional[UserProfile]:
    """Cria o primeiro admin quando ainda não há nenhum perfil."""
    if not email or db.query(UserProfile).first() is not None:
        return None
    profile = create_user(db, email, password, display_name, role="admin")
    logger.info("bootstrap admin criado uid=%s", profile.id)
    return profile
