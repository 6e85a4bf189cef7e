from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from rental_chat.api.deps import LiveDep, UoWFactoryDep, get_verifier
from rental_chat.api.v1.schemas.message import MessageResponse
from rental_chat.api.v1.schemas.notification import NotificationResponse
from rental_chat.api.v1.schemas.partner import PartnerResponse
from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import (
    AppError,
    ConflictError,
    FetchFailedError,
    ForbiddenError,
    NotFoundError,
    SendFailedError,
    SessionClosedError,
    ValidationError,
)
from rental_chat.config import settings
from rental_chat.domain.entities.message import Message
from rental_chat.domain.message_store import StoreChange
from rental_chat.domain.value_objects.enums import SessionState
from rental_chat.infrastructure.ws.protocol import WsInbound, encode, error
from rental_chat.services.conversation_session import ConversationSession
from rental_chat.services.notification_feed import NotificationFeed
from rental_chat.services.partner_directory import PartnerDirectory

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

# Most specific first; SessionClosedError is a ConflictError.
_ERROR_CODES: tuple[tuple[type[AppError], str], ...] = (
    (SessionClosedError, "session_closed"),
    (ConflictError, "conflict"),
    (ValidationError, "invalid_data"),
    (ForbiddenError, "forbidden"),
    (NotFoundError, "not_found"),
    (FetchFailedError, "fetch_failed"),
    (SendFailedError, "send_failed"),
)


def _error_code(exc: AppError) -> str:
    for exc_type, code in _ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    return "error"


class _SocketWriter:
    """Single queue in front of the socket; frames leave in the order queued."""

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    def start(self, name: str) -> None:
        self._task = asyncio.create_task(self._run(), name=name)

    def put(self, frame: str) -> None:
        self._queue.put_nowait(frame)

    async def aclose(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        try:
            while True:
                frame = await self._queue.get()
                await self._ws.send_text(frame)
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("WS writer stopped: socket closed")


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


async def _heartbeat(writer: _SocketWriter) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    while True:
        await asyncio.sleep(interval)
        writer.put(encode("pong"))


def _message_data(message: Message) -> dict[str, Any]:
    return MessageResponse.model_validate(message, from_attributes=True).model_dump(mode="json")


def _parse(raw: str, writer: _SocketWriter) -> WsInbound | None:
    try:
        return WsInbound.model_validate_json(raw)
    except Exception:
        writer.put(error("invalid_payload"))
        return None


# ---------------------------------------------------------------- chat


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    live: LiveDep,
    uow_factory: UoWFactoryDep,
    token: str = Query(...),
    partner_id: UUID | None = Query(None),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    pkey = principal.principal_key
    await websocket.accept()
    writer = _SocketWriter(websocket)
    writer.start(f"ws-writer-{pkey}")

    directory = PartnerDirectory(principal, uow_factory, live)
    session = ConversationSession(principal, [], uow_factory, live)
    session.store.subscribe(lambda change: _push_change(writer, session, change))

    heartbeat_task = asyncio.create_task(_heartbeat(writer), name=f"ws-heartbeat-{pkey}")
    try:
        await _start_chat(writer, directory, session, partner_id)
        await _chat_loop(websocket, writer, directory, session)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS chat error for %s", pkey)
    finally:
        heartbeat_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await heartbeat_task
        directory.close()
        await session.aclose()
        await writer.aclose()


async def _start_chat(
    writer: _SocketWriter,
    directory: PartnerDirectory,
    session: ConversationSession,
    preferred_id: UUID | None,
) -> None:
    try:
        default = await directory.load(preferred_id)
    except AppError as exc:
        writer.put(error(_error_code(exc), exc.detail))
        return
    session.update_partners(directory.partners)
    if default is not None:
        directory.set_active(default.id)
    await directory.watch()
    writer.put(
        encode(
            "partners",
            {
                "partners": [
                    PartnerResponse.model_validate(p, from_attributes=True).model_dump(mode="json")
                    for p in directory.partners
                ],
                "selected_id": str(default.id) if default else None,
            },
        )
    )
    # Badge changes before this point are already in the partners frame.
    directory.subscribe(
        lambda p: writer.put(
            encode("partner.unread", {"partner_id": str(p.id), "unread_count": p.unread_count})
        )
    )
    if default is not None:
        await _open(writer, directory, session, default.id)


async def _chat_loop(
    ws: WebSocket,
    writer: _SocketWriter,
    directory: PartnerDirectory,
    session: ConversationSession,
) -> None:
    while True:
        msg = _parse(await ws.receive_text(), writer)
        if msg is None:
            continue

        if msg.type == "ping":
            writer.put(encode("pong"))

        elif msg.type == "open":
            try:
                target = UUID(str(msg.data["partner_id"]))
            except (KeyError, ValueError):
                writer.put(error("invalid_data", "partner_id is required"))
                continue
            await _open(writer, directory, session, target)

        elif msg.type == "send":
            try:
                sent = await session.send(str(msg.data.get("content") or ""))
            except AppError as exc:
                writer.put(error(_error_code(exc), exc.detail))
                continue
            writer.put(encode("message.sent", {"message": _message_data(sent)}))

        elif msg.type == "close":
            session.close()
            directory.set_active(None)

        else:
            writer.put(error("unknown_type", msg.type))


async def _open(
    writer: _SocketWriter,
    directory: PartnerDirectory,
    session: ConversationSession,
    partner_id: UUID,
) -> None:
    if directory.get(partner_id) is not None:
        directory.set_active(partner_id)
    try:
        messages = await session.open(partner_id)
    except AppError as exc:
        writer.put(error(_error_code(exc), exc.detail))
        return
    writer.put(
        encode(
            "messages.snapshot",
            {
                "partner_id": str(partner_id),
                "live": session.live,
                "messages": [_message_data(m) for m in messages],
            },
        )
    )


def _push_change(writer: _SocketWriter, session: ConversationSession, change: StoreChange) -> None:
    # Changes made while opening are covered by the snapshot.
    if session.state != SessionState.OPEN:
        return
    if change.kind == "inserted":
        for message in change.messages:
            writer.put(encode("message.inserted", {"message": _message_data(message)}))
    elif change.kind == "read":
        writer.put(encode("messages.read", {"ids": [str(m.id) for m in change.messages]}))


# ------------------------------------------------------- notifications


@router.websocket("/ws/notifications")
async def ws_notifications(
    websocket: WebSocket,
    uow_factory: UoWFactoryDep,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    pkey = principal.principal_key
    await websocket.accept()
    writer = _SocketWriter(websocket)
    writer.start(f"ws-writer-{pkey}")

    feed = NotificationFeed(principal, uow_factory)
    feed.subscribe(lambda f: writer.put(_feed_snapshot(f)))

    heartbeat_task = asyncio.create_task(_heartbeat(writer), name=f"ws-heartbeat-{pkey}")
    try:
        try:
            await feed.start()
        except FetchFailedError as exc:
            writer.put(error("fetch_failed", exc.detail))
        await _notifications_loop(websocket, writer, feed)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS notifications error for %s", pkey)
    finally:
        heartbeat_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await heartbeat_task
        await feed.aclose()
        await writer.aclose()


async def _notifications_loop(ws: WebSocket, writer: _SocketWriter, feed: NotificationFeed) -> None:
    while True:
        msg = _parse(await ws.receive_text(), writer)
        if msg is None:
            continue

        if msg.type == "ping":
            writer.put(encode("pong"))

        elif msg.type == "refresh":
            try:
                await feed.refresh()
            except FetchFailedError as exc:
                writer.put(error("fetch_failed", exc.detail))

        elif msg.type == "mark_read":
            try:
                notification_id = UUID(str(msg.data["notification_id"]))
            except (KeyError, ValueError):
                writer.put(error("invalid_data", "notification_id is required"))
                continue
            # Failures are logged by the feed; the optimistic state stands.
            await feed.mark_read(notification_id)

        elif msg.type == "mark_all_read":
            await feed.mark_all_read()

        else:
            writer.put(error("unknown_type", msg.type))


def _feed_snapshot(feed: NotificationFeed) -> str:
    return encode(
        "notifications.snapshot",
        {
            "items": [
                NotificationResponse.model_validate(n, from_attributes=True).model_dump(mode="json")
                for n in feed.items
            ],
            "unread_count": feed.unread_count,
        },
    )
