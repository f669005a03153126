import logging
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from fundflow.core import messages as msg
from fundflow.core.errors import AppError, NotFoundError, TransferValidationError, ValidationError
from fundflow.core.money import parse_amount
from fundflow.core.security import CurrentUser, require_auth
from fundflow.core.settings import settings
from fundflow.db import get_db
from fundflow.models.category import Category
from fundflow.notifications import Notifier, get_notifier
from fundflow.realtime import SubscriptionHub, get_hub
from fundflow.schemas.transaction import TransactionOut, TransferResult
from fundflow.services.attachments import IncomingFile, screen_files, upload_attachments
from fundflow.services.transfers import TransferFlags, transfer_funds, validate_transfer
from fundflow.storage import BlobStorage, get_storage

router = APIRouter(prefix="/transfers", tags=["transfers"])

logger = logging.getLogger(__name__)


def _size_of(upload: UploadFile) -> int:
    if upload.size is not None:
        return int(upload.size)
    f = upload.file
    f.seek(0, os.SEEK_END)
    size = f.tell()
    f.seek(0)
    return size


def _incoming(files: Optional[List[UploadFile]]) -> list[IncomingFile]:
    out = []
    for up in files or []:
        if not up.filename:
            continue
        out.append(
            IncomingFile(
                name=up.filename,
                content_type=up.content_type or "application/octet-stream",
                size=_size_of(up),
                stream=up.file,
            )
        )
    return out


@router.post("", response_model=TransferResult, status_code=201)
def create_transfer(
    source_category_id: int = Form(...),
    target_category_id: int = Form(...),
    amount: str = Form(...),
    description: str = Form(""),
    is_salary: bool = Form(False),
    is_cashless: bool = Form(False),
    files: Optional[List[UploadFile]] = File(default=None),
    user: CurrentUser = Depends(require_auth),
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
    hub: SubscriptionHub = Depends(get_hub),
):
    # validação antes de qualquer upload/escrita
    try:
        amount_minor = parse_amount(amount)
    except ValueError:
        raise TransferValidationError(msg.TRANSFER_AMOUNT_INVALID)
    desc = validate_transfer(amount_minor, description, source_category_id, target_category_id)

    for cid in (source_category_id, target_category_id):
        if db.get(Category, cid) is None:
            raise NotFoundError(f"Категория {cid} не найдена", error_code="CATEGORY_NOT_FOUND")

    accepted, rejected = screen_files(_incoming(files), notifier, user.uid, settings.MAX_UPLOAD_BYTES)

    try:
        attachments = upload_attachments(storage, source_category_id, accepted, notifier, user.uid)
        expense, income = transfer_funds(
            db,
            source_category_id,
            target_category_id,
            amount_minor,
            desc,
            attachments=attachments,
            flags=TransferFlags(is_salary=is_salary, is_cashless=is_cashless),
            created_by=user.uid,
            hub=hub,
        )
    except ValidationError:
        raise
    except AppError as e:
        # upload já notificou o arquivo que falhou
        notifier.error(user.uid, e.message)
        raise

    notifier.success(user.uid, msg.TRANSFER_OK)
    return TransferResult(
        message=msg.TRANSFER_OK,
        expense=TransactionOut.model_validate(expense),
        income=TransactionOut.model_validate(income),
        rejected_files=rejected,
    )
