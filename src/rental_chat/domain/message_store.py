"""Ordered, deduplicated in-memory view of one conversation."""
from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Literal
from uuid import UUID

from rental_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)

ChangeKind = Literal["inserted", "read", "reset"]


@dataclass(frozen=True, slots=True)
class StoreChange:
    kind: ChangeKind
    messages: tuple[Message, ...]


StoreObserver = Callable[[StoreChange], None]


class MessageStore:
    """Messages kept sorted by ``(created_at, str(id))`` and unique by id.

    ``insert`` is idempotent and commutative: any permutation of the same
    messages, duplicates included, produces the same list. A duplicate may
    raise ``read`` on the stored copy but never lower it.
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._items: list[Message] = []
        self._ids: set[UUID] = set()
        self._observers: list[StoreObserver] = []
        for message in messages:
            self._insert(message)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def get(self, message_id: UUID) -> Message | None:
        if message_id not in self._ids:
            return None
        return next(m for m in self._items if m.id == message_id)

    def all(self) -> tuple[Message, ...]:
        return tuple(self._items)

    def insert(self, message: Message) -> bool:
        """Insert ``message``; return True when it was not present before."""
        if message.id in self._ids:
            if message.read:
                self.mark_read((message.id,))
            return False
        self._insert(message)
        self._notify("inserted", (message,))
        return True

    def mark_read(self, ids: Iterable[UUID]) -> tuple[Message, ...]:
        """Set ``read`` on known ids. Unknown ids are ignored."""
        changed = self._set_read(set(ids))
        if changed:
            self._notify("read", changed)
        return changed

    def reset(self) -> None:
        self._items.clear()
        self._ids.clear()
        self._notify("reset", ())

    def subscribe(self, observer: StoreObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _insert(self, message: Message) -> None:
        bisect.insort(self._items, message, key=lambda m: m.sort_key)
        self._ids.add(message.id)

    def _set_read(self, ids: set[UUID]) -> tuple[Message, ...]:
        changed: list[Message] = []
        for pos, message in enumerate(self._items):
            if message.id in ids and not message.read:
                updated = replace(message, read=True)
                self._items[pos] = updated
                changed.append(updated)
        return tuple(changed)

    def _notify(self, kind: ChangeKind, messages: tuple[Message, ...]) -> None:
        change = StoreChange(kind=kind, messages=messages)
        for observer in list(self._observers):
            try:
                observer(change)
            except Exception:
                logger.exception("Message store observer failed on %s", kind)
