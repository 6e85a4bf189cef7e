"""A user's notification list and unread badge, kept fresh by polling."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from types import TracebackType
from typing import Callable, Self
from uuid import UUID

from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import FetchFailedError
from rental_chat.application.uow import UnitOfWorkFactory
from rental_chat.config import settings
from rental_chat.domain.entities.notification import Notification
from rental_chat.services import notification_service

logger = logging.getLogger(__name__)

FeedObserver = Callable[["NotificationFeed"], None]


class NotificationFeed:
    """Polls notifications and applies optimistic read mutations.

    ``refresh`` replaces ``items`` and ``unread_count`` wholesale from two
    independent calls; the two may be briefly inconsistent. ``mark_read`` and
    ``mark_all_read`` apply locally before the remote call and are never
    rolled back, so a failed remote call leaves local state ahead of the
    server until the next refresh. Refresh and mutations interleave with
    last-write-wins.
    """

    def __init__(
        self,
        principal: Principal,
        uow_factory: UnitOfWorkFactory,
        *,
        poll_interval: float | None = None,
        list_limit: int | None = None,
    ) -> None:
        self._principal = principal
        self._uow_factory = uow_factory
        self._poll_interval = poll_interval or settings.NOTIFICATION_POLL_SECONDS
        self._list_limit = list_limit or settings.NOTIFICATION_LIST_LIMIT

        self._items: tuple[Notification, ...] = ()
        self._unread_count = 0
        self._observers: list[FeedObserver] = []
        self._poll_task: asyncio.Task[None] | None = None
        self._epoch = 0
        self._stopped = False

    @property
    def user_id(self) -> UUID:
        return self._principal.profile_id

    @property
    def items(self) -> tuple[Notification, ...]:
        return self._items

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def subscribe(self, observer: FeedObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    async def start(self) -> None:
        """Begin polling and refresh once right away."""
        if self.polling:
            return
        self._stopped = False
        self._epoch += 1
        self._poll_task = asyncio.create_task(
            self._poll(), name=f"notification-poll-{self.user_id}",
        )
        logger.debug("Notification polling started for %s every %.1fs", self.user_id, self._poll_interval)
        await self.refresh()

    def stop(self) -> None:
        """Cancel the timer now; results still in flight are discarded."""
        self._stopped = True
        self._epoch += 1
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
            logger.debug("Notification polling stopped for %s", self.user_id)

    async def aclose(self) -> None:
        task = self._poll_task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> Self:
        try:
            await self.start()
        except BaseException:
            await self.aclose()
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def refresh(self) -> bool:
        """Reload items and unread count. Returns False if the result was discarded."""
        epoch = self._epoch
        try:
            async with self._uow_factory() as uow:
                items = await notification_service.list_notifications(
                    self._principal, uow, limit=self._list_limit,
                )
            async with self._uow_factory() as uow:
                unread = await notification_service.count_unread(self._principal, uow)
        except Exception as exc:
            raise FetchFailedError("Could not load notifications") from exc

        if self._stopped or epoch != self._epoch:
            logger.debug("Discarded notification refresh for %s after stop", self.user_id)
            return False

        self._items = tuple(items)
        self._unread_count = unread
        self._notify()
        return True

    async def mark_read(self, notification_id: UUID) -> bool:
        """Optimistically mark one notification read. Returns remote success."""
        changed = False
        items = list(self._items)
        for pos, item in enumerate(items):
            if item.id == notification_id and not item.is_read:
                items[pos] = dataclasses.replace(item, is_read=True)
                changed = True
        if changed:
            self._items = tuple(items)
            self._unread_count = max(0, self._unread_count - 1)
            self._notify()

        try:
            async with self._uow_factory() as uow:
                await notification_service.mark_read(self._principal, notification_id, uow)
        except Exception:
            logger.warning(
                "Mark-read for notification %s failed; local state kept", notification_id,
                exc_info=True,
            )
            return False
        return True

    async def mark_all_read(self) -> bool:
        """Optimistically mark everything read and zero the badge. Returns remote success."""
        self._items = tuple(
            item if item.is_read else dataclasses.replace(item, is_read=True)
            for item in self._items
        )
        self._unread_count = 0
        self._notify()

        try:
            async with self._uow_factory() as uow:
                await notification_service.mark_all_read(self._principal, uow)
        except Exception:
            logger.warning("Mark-all-read for %s failed; local state kept", self.user_id, exc_info=True)
            return False
        return True

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.refresh()
            except FetchFailedError:
                logger.warning("Notification poll for %s failed", self.user_id, exc_info=True)

    def _notify(self) -> None:
        for observer in list(self._observers):
            try:
                observer(self)
            except Exception:
                logger.exception("Notification feed observer failed")
