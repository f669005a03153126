from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from passlib.hash import pbkdf2_sha256
import jwt

from fundflow.core.settings import settings
from fundflow.db import get_db
from fundflow.models.user import RevokedToken, UserProfile

bearer = HTTPBearer(auto_error=False)

_SECRET_CACHE: str | None = None

SCOPE_ACCESS = "access"
SCOPE_REAUTH = "reauth"


def hash_password(plain: str) -> str:
    return pbkdf2_sha256.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pbkdf2_sha256.verify(plain, hashed)


def _secret() -> str:
    global _SECRET_CACHE
    if _SECRET_CACHE:
        return _SECRET_CACHE

    sec = str(getattr(settings, "AUTH_JWT_SECRET", "") or "").strip()
    if not sec:
        if getattr(settings, "ENV", "lab") == "prod":
            raise RuntimeError("SECURITY: AUTH_JWT_SECRET obrigatório em ENV=prod")
        # lab: segredo efêmero (tokens morrem no restart)
        sec = secrets.token_urlsafe(48)

    _SECRET_CACHE = sec
    return sec


def create_access_token(sub: str, *, scope: str = SCOPE_ACCESS, ttl_s: int | None = None) -> str:
    if ttl_s is None:
        ttl_s = int(settings.AUTH_JWT_TTL_MIN) * 60
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": sub,
        "scope": scope,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=int(ttl_s))).timestamp()),
    }
    return jwt.encode(payload, _secret(), algorithm="HS256")


def create_reauth_token(sub: str) -> str:
    return create_access_token(sub, scope=SCOPE_REAUTH, ttl_s=settings.AUTH_REAUTH_TTL_S)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, _secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="token expirado",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="token inválido",
            headers={"WWW-Authenticate": "Bearer"},
        )


def is_revoked(db: Session, jti: str | None) -> bool:
    if not jti:
        return False
    return db.get(RevokedToken, jti) is not None


@dataclass
class CurrentUser:
    uid: str
    email: str
    role: str
    claims: Dict[str, Any]

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def resolve_user(db: Session, token: str) -> CurrentUser:
    """Valida um access token e carrega o perfil (usado também pelos websockets)."""
    claims = decode_token(token)
    if claims.get("scope", SCOPE_ACCESS) != SCOPE_ACCESS:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token inválido")

    if is_revoked(db, claims.get("jti")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="token revogado",
            headers={"WWW-Authenticate": "Bearer"},
        )

    profile = db.get(UserProfile, claims.get("sub"))
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="usuário não encontrado",
        )

    return CurrentUser(uid=profile.id, email=profile.email, role=profile.role, claims=claims)


def require_auth(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> CurrentUser:

    if not creds or (creds.scheme or "").lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="não autenticado",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return resolve_user(db, creds.credentials)


def require_admin(user: CurrentUser = Depends(require_auth)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="requer perfil admin")
    return user


@dataclass
class ReauthGrant:
    user: CurrentUser
    jti: str
    expires_at: datetime


def require_reauth(
    x_reauth_token: str | None = Header(default=None),
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
) -> ReauthGrant:
    """Exige token de re-autenticação (senha redigitada) do mesmo usuário."""
    if not x_reauth_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="re-autenticação necessária")

    claims = decode_token(x_reauth_token)
    if claims.get("scope") != SCOPE_REAUTH:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="re-autenticação necessária")
    if claims.get("sub") != user.uid:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="re-autenticação de outro usuário")
    # uso único: quem consome o grant grava o jti em revoked_tokens
    if is_revoked(db, claims.get("jti")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="re-autenticação já utilizada")

    expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc).replace(tzinfo=None)
    return ReauthGrant(user=user, jti=str(claims.get("jti")), expires_at=expires_at)
