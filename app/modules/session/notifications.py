from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Literal

NotificationLevel = Literal["info", "success", "error"]


@dataclass(frozen=True)
class Notification:
    id: int
    level: NotificationLevel
    message: str
    key: str | None = None


class NotificationCenter:
    """Transient, dismissable user notifications.

    A notification pushed with the same key as an existing one replaces it,
    so a "saving" notice can turn into "saved" or "failed" in place.
    """

    def __init__(self, *, limit: int = 20) -> None:
        self._limit = limit
        self._ids = itertools.count(1)
        self._items: list[Notification] = []

    def push(self, level: NotificationLevel, message: str, *, key: str | None = None) -> Notification:
        item = Notification(id=next(self._ids), level=level, message=message, key=key)
        if key is not None:
            self._items = [n for n in self._items if n.key != key]
        self._items.append(item)
        if len(self._items) > self._limit:
            self._items = self._items[-self._limit :]
        return item

    def dismiss(self, notification_id: int) -> bool:
        before = len(self._items)
        self._items = [n for n in self._items if n.id != notification_id]
        return len(self._items) != before

    def items(self) -> list[Notification]:
        return list(self._items)

    def clear(self) -> None:
        self._items = []

    def dismiss_key(self, key: str) -> bool:
        before = len(self._items)
        self._items = [n for n in self._items if n.key != key]
        return len(self._items) != before
