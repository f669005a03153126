"""Assinaturas em tempo real (substitui as live queries do backend hospedado).

`hub.subscribe(topic)` devolve uma Subscription: iterador assíncrono de eventos
com `cancel()`. `hub.publish(topic, event)` pode ser chamado de handlers síncronos
(threadpool): a entrega é feita com `call_soon_threadsafe` no loop do assinante.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict

logger = logging.getLogger(__name__)

_CLOSED = object()

MAX_PENDING = 256


def _is_change(event: Any) -> bool:
    return isinstance(event, dict) and event.get("type") == "changed"


class Subscription:
    """Fila limitada por assinante.

    Eventos "changed" pendentes são fundidos num só (o consumidor refaz o snapshot
    inteiro); com a fila cheia o evento mais antigo é descartado.
    """

    def __init__(self, hub: "SubscriptionHub", topic: str, loop: asyncio.AbstractEventLoop, maxsize: int = MAX_PENDING):
        self.hub = hub
        self.topic = topic
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self._change_pending = False

    def _deliver(self, event: Any) -> None:
        if self.closed and event is not _CLOSED:
            return
        try:
            self.loop.call_soon_threadsafe(self._put, event)
        except RuntimeError:
            # loop já encerrado
            self.closed = True

    def _put(self, event: Any) -> None:
        # roda no loop do assinante
        if _is_change(event):
            if self._change_pending:
                return
            self._change_pending = True
        if self.queue.full():
            dropped = self.queue.get_nowait()
            if _is_change(dropped):
                self._change_pending = False
            logger.warning("fila cheia topic=%s; evento antigo descartado", self.topic)
        self.queue.put_nowait(event)

    async def get(self) -> Dict[str, Any]:
        event = await self.queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        if _is_change(event):
            self._change_pending = False
        return event

    def __aiter__(self):
        return self

    async def __anext__(self) -> Dict[str, Any]:
        return await self.get()

    def cancel(self) -> None:
        if self.closed:
            return
        self.hub._remove(self)
        self._deliver(_CLOSED)
        self.closed = True


class SubscriptionHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: Dict[str, set[Subscription]] = {}

    def subscribe(self, topic: str, maxsize: int = MAX_PENDING) -> Subscription:
        """Precisa ser chamado de dentro do event loop que vai consumir os eventos."""
        sub = Subscription(self, topic, asyncio.get_running_loop(), maxsize=maxsize)
        with self._lock:
            self._subs.setdefault(topic, set()).add(sub)
        logger.debug("subscribe topic=%s", topic)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.topic)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subs[sub.topic]
        logger.debug("unsubscribe topic=%s", sub.topic)

    def publish(self, topic: str, event: Dict[str, Any] | None = None) -> int:
        with self._lock:
            targets = list(self._subs.get(topic, ()))
        payload = dict(event or {})
        payload.setdefault("topic", topic)
        for sub in targets:
            sub._deliver(payload)
        return len(targets)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subs.get(topic, ()))


def transactions_topic(category_id: int) -> str:
    return f"transactions:{category_id}"


def notifications_topic(user_id: str) -> str:
    return f"notifications:{user_id}"


USERS_TOPIC = "users"
CATEGORIES_TOPIC = "categories"

hub = SubscriptionHub()


def get_hub() -> SubscriptionHub:
    return hub
