from __future__ import annotations

import asyncio

import pytest

from rental_chat.application.exceptions import FetchFailedError
from rental_chat.services.notification_feed import NotificationFeed
from tests.conftest import factory_for, make_notification


def _feed(principal, uow, **kwargs) -> NotificationFeed:
    return NotificationFeed(principal, factory_for(uow), **kwargs)


@pytest.mark.asyncio
async def test_start_refreshes_immediately(tenant_principal, uow):
    n1 = make_notification(tenant_principal.profile_id)
    n2 = make_notification(tenant_principal.profile_id, is_read=True)
    uow.notifications.add(n1, n2)

    async with _feed(tenant_principal, uow) as feed:
        assert feed.polling is True
        assert [n.id for n in feed.items] == [n2.id, n1.id]
        assert feed.unread_count == 1

    assert feed.polling is False


@pytest.mark.asyncio
async def test_polling_picks_up_new_notifications(tenant_principal, uow):
    feed = _feed(tenant_principal, uow, poll_interval=0.01)
    await feed.start()
    assert feed.items == ()

    uow.notifications.add(make_notification(tenant_principal.profile_id))
    for _ in range(100):
        if feed.items:
            break
        await asyncio.sleep(0.01)

    assert len(feed.items) == 1
    assert feed.unread_count == 1
    await feed.aclose()


@pytest.mark.asyncio
async def test_poll_failure_keeps_polling(tenant_principal, uow):
    feed = _feed(tenant_principal, uow, poll_interval=0.01)
    await feed.start()
    uow.notifications.fail = ConnectionError("db down")
    await asyncio.sleep(0.05)

    assert feed.polling is True
    uow.notifications.fail = None
    uow.notifications.add(make_notification(tenant_principal.profile_id))
    for _ in range(100):
        if feed.items:
            break
        await asyncio.sleep(0.01)

    assert len(feed.items) == 1
    await feed.aclose()


@pytest.mark.asyncio
async def test_result_arriving_after_stop_is_discarded(tenant_principal, uow):
    uow.notifications.add(make_notification(tenant_principal.profile_id))
    uow.notifications.gate = asyncio.Event()
    feed = _feed(tenant_principal, uow)

    pending = asyncio.create_task(feed.refresh())
    await asyncio.sleep(0)
    feed.stop()
    uow.notifications.gate.set()

    assert await pending is False
    assert feed.items == ()
    assert feed.unread_count == 0


@pytest.mark.asyncio
async def test_refresh_failure_raises_and_keeps_state(tenant_principal, uow):
    uow.notifications.add(make_notification(tenant_principal.profile_id))
    feed = _feed(tenant_principal, uow)
    await feed.refresh()

    uow.notifications.count_fail = ConnectionError("db down")
    with pytest.raises(FetchFailedError):
        await feed.refresh()

    assert len(feed.items) == 1
    assert feed.unread_count == 1


@pytest.mark.asyncio
async def test_mark_read_is_optimistic(tenant_principal, uow):
    n1 = make_notification(tenant_principal.profile_id)
    n2 = make_notification(tenant_principal.profile_id)
    uow.notifications.add(n1, n2)
    feed = _feed(tenant_principal, uow)
    await feed.refresh()
    seen: list[int] = []
    feed.subscribe(lambda f: seen.append(f.unread_count))

    assert await feed.mark_read(n1.id) is True

    assert feed.unread_count == 1
    assert {n.id: n.is_read for n in feed.items} == {n1.id: True, n2.id: False}
    assert seen == [1]


@pytest.mark.asyncio
async def test_mark_read_failure_is_not_rolled_back(tenant_principal, uow):
    n = make_notification(tenant_principal.profile_id)
    uow.notifications.add(n)
    feed = _feed(tenant_principal, uow)
    await feed.refresh()
    uow.notifications_w.fail = ConnectionError("db down")

    assert await feed.mark_read(n.id) is False

    assert feed.items[0].is_read is True
    assert feed.unread_count == 0
    assert await uow.notifications.count_unread(tenant_principal.profile_id) == 1


@pytest.mark.asyncio
async def test_mark_all_read_failure_is_not_rolled_back(tenant_principal, uow):
    uow.notifications.add(
        make_notification(tenant_principal.profile_id),
        make_notification(tenant_principal.profile_id),
    )
    feed = _feed(tenant_principal, uow)
    await feed.refresh()
    uow.notifications_w.fail = ConnectionError("db down")

    assert await feed.mark_all_read() is False

    assert feed.unread_count == 0
    assert all(n.is_read for n in feed.items)
    assert await uow.notifications.count_unread(tenant_principal.profile_id) == 2


@pytest.mark.asyncio
async def test_mark_read_of_read_item_keeps_count(tenant_principal, uow):
    read = make_notification(tenant_principal.profile_id, is_read=True)
    unread = make_notification(tenant_principal.profile_id)
    uow.notifications.add(read, unread)
    feed = _feed(tenant_principal, uow)
    await feed.refresh()

    await feed.mark_read(read.id)

    assert feed.unread_count == 1


@pytest.mark.asyncio
async def test_mark_all_read_zeroes_badge(tenant_principal, uow):
    uow.notifications.add(
        make_notification(tenant_principal.profile_id),
        make_notification(tenant_principal.profile_id),
    )
    feed = _feed(tenant_principal, uow)
    await feed.refresh()

    assert await feed.mark_all_read() is True

    assert feed.unread_count == 0
    assert all(n.is_read for n in feed.items)
    assert await uow.notifications.count_unread(tenant_principal.profile_id) == 0
