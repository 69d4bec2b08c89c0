"""Transient, auto-dismissing user notices raised when a mutation is rolled back."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from moby_kanban.client.errors import ApiValidationError, BoardApiError

logger = logging.getLogger("moby_kanban.sync")

NOTICE_TTL_SECONDS = 3.0


@dataclass(frozen=True)
class Notice:
    message: str
    action: str
    entity_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def failure_message(action: str, subject: str, error: BoardApiError) -> str:
    """e.g. 'Couldn't move "Fix login": couldn't reach server'."""
    reason = error.message if isinstance(error, ApiValidationError) else error.reason
    return f'Couldn\'t {action} "{subject}": {reason}'


class NoticeCenter:
    """
    Holds at most one notice. A new notice replaces the current one (no queue)
    and each notice clears itself `ttl` seconds after it was shown.
    """

    def __init__(self, ttl: float = NOTICE_TTL_SECONDS):
        self.ttl = ttl
        self.current: Optional[Notice] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._listeners: List[Callable[[Optional[Notice]], None]] = []

    def subscribe(self, listener: Callable[[Optional[Notice]], None]) -> None:
        self._listeners.append(listener)

    def _set(self, notice: Optional[Notice]) -> None:
        self.current = notice
        for listener in list(self._listeners):
            listener(notice)

    def show(self, message: str, action: str, entity_id: Optional[str] = None) -> Notice:
        if self._timer is not None:
            self._timer.cancel()
        notice = Notice(message, action, entity_id)
        self._set(notice)
        self._timer = asyncio.get_running_loop().call_later(self.ttl, self._expire, notice)
        logger.info(
            "notice.show",
            extra={"category": "sync", "event": "notice.show", "action": action, "entity_id": entity_id,
                   "notice": message},
        )
        return notice

    def _expire(self, notice: Notice) -> None:
        if self.current is notice:
            self._timer = None
            self._set(None)

    def dismiss(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._set(None)
