from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fundflow.core import messages as msg
from fundflow.core.errors import AppError
from fundflow.core.security import CurrentUser, require_admin
from fundflow.db import get_db
from fundflow.notifications import Notifier, get_notifier
from fundflow.realtime import SubscriptionHub, get_hub
from fundflow.schemas.user import RoleChange, UserCreate, UserOut, UserResult
from fundflow.services import users
from fundflow.services.auth_bridge import get_all_users

router = APIRouter(prefix="/admin/users", tags=["admin"])


@router.get("", response_model=list[UserOut])
def list_users(admin: CurrentUser = Depends(require_admin), db: Session = Depends(get_db)):
    return get_all_users(db)


@router.post("", response_model=UserResult, status_code=201)
def add_user(
    payload: UserCreate,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    hub: SubscriptionHub = Depends(get_hub),
):
    try:
        profile = users.create_user(db, payload.email, payload.password, payload.display_name, payload.role, hub=hub)
    except AppError as e:
        notifier.error(admin.uid, e.message)
        raise
    notifier.success(admin.uid, msg.USER_CREATED)
    return UserResult(message=msg.USER_CREATED, user=UserOut.model_validate(profile))


@router.delete("/{uid}", response_model=UserResult)
def delete_user(
    uid: str,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    hub: SubscriptionHub = Depends(get_hub),
):
    try:
        users.delete_user(db, uid, hub=hub)
    except AppError:
        notifier.error(admin.uid, msg.USER_DELETE_FAILED)
        raise
    notifier.success(admin.uid, msg.USER_DELETED)
    return UserResult(message=msg.USER_DELETED)


@router.patch("/{uid}/role", response_model=UserResult)
def change_role(
    uid: str,
    payload: RoleChange,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    hub: SubscriptionHub = Depends(get_hub),
):
    try:
        profile = users.change_role(db, uid, payload.role, hub=hub)
    except AppError:
        notifier.error(admin.uid, msg.ROLE_UPDATE_FAILED)
        raise
    notifier.success(admin.uid, msg.ROLE_UPDATED)
    return UserResult(message=msg.ROLE_UPDATED, user=UserOut.model_validate(profile))
