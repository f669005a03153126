from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from fundflow.core import messages as msg
from fundflow.core.errors import AppError
from fundflow.core.security import ReauthGrant, require_auth, require_reauth
from fundflow.db import get_db
from fundflow.models.transaction import Transaction
from fundflow.notifications import Notifier, get_notifier
from fundflow.realtime import SubscriptionHub, get_hub
from fundflow.schemas.transaction import DeleteResult, HistoryOut, TransactionOut, WaybillIn, WaybillOut
from fundflow.services import history

router = APIRouter(prefix="/transactions", tags=["transactions"], dependencies=[Depends(require_auth)])


@router.get("", response_model=HistoryOut)
def list_transactions(
    category_id: int = Query(..., ge=1),
    mode: str = Query("all", alias="filter", pattern="^(all|salary|cashless)$"),
    q: str = Query("", max_length=200),
    db: Session = Depends(get_db),
):
    """
    Histórico da categoria (data desc) com totais, filtro all|salary|cashless e busca
    por descrição, origem, destino ou valor.
    """
    snap = history.history_snapshot(db, category_id, mode, q)
    return HistoryOut.model_validate(snap, from_attributes=True)


@router.get("/{tx_id}", response_model=TransactionOut)
def get_transaction(tx_id: int, db: Session = Depends(get_db)):
    tx = db.get(Transaction, tx_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transacao nao existe")
    return tx


@router.delete("/{tx_id}", response_model=DeleteResult)
def delete_transaction(
    tx_id: int,
    grant: ReauthGrant = Depends(require_reauth),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    hub: SubscriptionHub = Depends(get_hub),
):
    try:
        res = history.delete_transaction_with_reversal(
            db,
            tx_id,
            reauth_jti=grant.jti,
            reauth_expires_at=grant.expires_at,
            hub=hub,
        )
    except AppError:
        notifier.error(grant.user.uid, msg.TRANSACTION_DELETE_FAILED)
        raise

    notifier.success(grant.user.uid, msg.TRANSACTION_DELETED)
    return DeleteResult(message=msg.TRANSACTION_DELETED, deleted_ids=res["deleted_ids"])


@router.get("/{tx_id}/waybill", response_model=WaybillOut)
def get_waybill(tx_id: int, db: Session = Depends(get_db)):
    return history.get_waybill(db, tx_id)


@router.put("/{tx_id}/waybill", response_model=WaybillOut)
def put_waybill(tx_id: int, payload: WaybillIn, db: Session = Depends(get_db)):
    tx = history.attach_waybill(db, tx_id, payload.waybill_number, payload.waybill_data)
    return WaybillOut(transaction_id=tx.id, waybill_number=tx.waybill_number, waybill_data=tx.waybill_data)
