from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select

from fundflow.core.errors import ValidationError
from fundflow.core.money import parse_amount
from fundflow.core.security import require_admin, require_auth
from fundflow.db import get_db
from fundflow.models.category import Category
from fundflow.realtime import CATEGORIES_TOPIC, SubscriptionHub, get_hub
from fundflow.schemas.category import CategoryCreate, CategoryOut

router = APIRouter(prefix="/categories", tags=["categories"])


@router.post("", response_model=CategoryOut, status_code=201, dependencies=[Depends(require_admin)])
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), hub: SubscriptionHub = Depends(get_hub)):
    exists = db.scalar(select(Category).where(Category.title == payload.title))
    if exists:
        raise HTTPException(status_code=409, detail="Categoria ja existe")
    try:
        balance = parse_amount(payload.initial_balance)
    except ValueError:
        raise ValidationError("saldo inicial inválido", error_code="INVALID_AMOUNT")

    c = Category(title=payload.title, kind=payload.kind, balance_minor=balance)
    db.add(c)
    db.commit()
    db.refresh(c)
    hub.publish(CATEGORIES_TOPIC, {"type": "changed"})
    return c


@router.get("", response_model=list[CategoryOut], dependencies=[Depends(require_auth)])
def list_categories(db: Session = Depends(get_db)):
    return list_all(db)


@router.get("/{category_id}", response_model=CategoryOut, dependencies=[Depends(require_auth)])
def get_category(category_id: int, db: Session = Depends(get_db)):
    c = db.get(Category, category_id)
    if not c:
        raise HTTPException(status_code=404, detail="Nao encontrado")
    return c


def list_all(db: Session) -> list[Category]:
    return list(db.scalars(select(Category).order_by(Category.id)))
