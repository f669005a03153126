"""WebSockets de tempo real.

Autenticação por `?token=<access token>`. Listas (transações, usuários, categorias)
recebem um snapshot completo ao conectar e a cada mudança; notificações são
repassadas como chegam.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from fundflow.api.category import list_all as list_all_categories
from fundflow.core.security import CurrentUser, resolve_user
from fundflow.db import SessionLocal
from fundflow.realtime import CATEGORIES_TOPIC, USERS_TOPIC, hub, notifications_topic, transactions_topic
from fundflow.schemas.category import CategoryOut
from fundflow.schemas.transaction import HistoryOut
from fundflow.schemas.user import UserOut
from fundflow.services.auth_bridge import get_all_users
from fundflow.services.history import history_snapshot

router = APIRouter(prefix="/ws", tags=["realtime"])

logger = logging.getLogger(__name__)

Snapshot = Callable[[], Awaitable[Dict[str, Any]]]


def _resolve(token: str) -> CurrentUser:
    db = SessionLocal()
    try:
        return resolve_user(db, token)
    finally:
        db.close()


async def _authenticate(websocket: WebSocket, admin_only: bool = False) -> Optional[CurrentUser]:
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=1008)
        return None
    try:
        user = await run_in_threadpool(_resolve, token)
    except HTTPException:
        await websocket.close(code=1008)
        return None
    if admin_only and not user.is_admin:
        await websocket.close(code=1008)
        return None
    return user


def _query(fn: Callable[..., Dict[str, Any]], *args) -> Snapshot:
    def run() -> Dict[str, Any]:
        db = SessionLocal()
        try:
            return fn(db, *args)
        finally:
            db.close()

    async def snapshot() -> Dict[str, Any]:
        return await run_in_threadpool(run)

    return snapshot


async def _stream(websocket: WebSocket, topic: str, snapshot: Optional[Snapshot]) -> None:
    # assina antes do primeiro snapshot para não perder mudanças no meio
    sub = hub.subscribe(topic)
    await websocket.accept()

    async def reader() -> None:
        # só para detectar o disconnect; mensagens do cliente são ignoradas
        while True:
            await websocket.receive_text()

    async def writer() -> None:
        if snapshot is not None:
            await websocket.send_json(await snapshot())
        async for event in sub:
            if snapshot is not None:
                await websocket.send_json(await snapshot())
            else:
                await websocket.send_json(event)

    tasks = [asyncio.create_task(reader()), asyncio.create_task(writer())]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for t in pending:
            t.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for t in done:
            exc = t.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error("websocket topic=%s terminou com erro", topic, exc_info=exc)
    finally:
        sub.cancel()


def _history(db, category_id: int) -> Dict[str, Any]:
    snap = history_snapshot(db, category_id)
    out = HistoryOut.model_validate(snap, from_attributes=True).model_dump(mode="json")
    out["type"] = "snapshot"
    return out


def _users(db) -> Dict[str, Any]:
    items = [UserOut.model_validate(u).model_dump(mode="json") for u in get_all_users(db)]
    return {"type": "snapshot", "items": items}


def _categories(db) -> Dict[str, Any]:
    items = [CategoryOut.model_validate(c).model_dump(mode="json") for c in list_all_categories(db)]
    return {"type": "snapshot", "items": items}


@router.websocket("/transactions/{category_id}")
async def transactions_ws(websocket: WebSocket, category_id: int):
    if await _authenticate(websocket) is None:
        return
    await _stream(websocket, transactions_topic(category_id), _query(_history, category_id))


@router.websocket("/users")
async def users_ws(websocket: WebSocket):
    if await _authenticate(websocket, admin_only=True) is None:
        return
    await _stream(websocket, USERS_TOPIC, _query(_users))


@router.websocket("/categories")
async def categories_ws(websocket: WebSocket):
    if await _authenticate(websocket) is None:
        return
    await _stream(websocket, CATEGORIES_TOPIC, _query(_categories))


@router.websocket("/notifications")
async def notifications_ws(websocket: WebSocket):
    user = await _authenticate(websocket)
    if user is None:
        return
    await _stream(websocket, notifications_topic(user.uid), None)
