"""Outbound notifications to the GUI, fanned out to every subscriber"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

EV_ITERATION = "iteration"
EV_PULL_REQUESTS_UPDATE = "pull_requests_update"
EV_USER_UPDATE = "user_update"
EV_TOKEN_SET = "token_set"
EV_TOKEN_INVALID = "token_invalid"


@dataclass(frozen=True)
class Event:
    name: str
    payload: Any = None

    def to_sse(self) -> str:
        return f"event: {self.name}\ndata: {json.dumps(self.payload)}\n\n"


class EventBus:
    """
    Each subscriber owns a bounded queue. A subscriber that stops draining
    loses its oldest events rather than blocking publishers.
    """

    QUEUE_SIZE: int = 256

    def __init__(self):
        self._subscribers: set[asyncio.Queue[Event]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, name: str, payload: Any = None) -> None:
        event = Event(name=name, payload=payload)
        logger.debug(f"Emitting event {name}", extra={"event": name})
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[Event]]:
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self.QUEUE_SIZE)
        self._subscribers.add(queue)
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)

    async def emit_token_set(self) -> None:
        await self.publish(EV_TOKEN_SET, True)

    async def emit_token_invalid(self) -> None:
        await self.publish(EV_TOKEN_INVALID, True)

    async def emit_user_update(self, user: Any) -> None:
        await self.publish(EV_USER_UPDATE, user.to_dict())

    async def emit_pull_requests_update(self, login: str) -> None:
        await self.publish(EV_PULL_REQUESTS_UPDATE, {"login": login})

    async def emit_iteration(self, n: int) -> None:
        await self.publish(EV_ITERATION, n)
