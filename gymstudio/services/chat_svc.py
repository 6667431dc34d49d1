"""Professor/student chat rooms and messages."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from gymstudio.db.models import ChatMessage, ChatRoom, SenderType
from gymstudio.db.realtime import RealtimeChannel
from gymstudio.db.supabase import SupabaseClient, eq, in_, is_, neq

logger = logging.getLogger(__name__)


ROOM_COLUMNS = "*, lead:leads(id, full_name), professor:profiles!chat_rooms_professor_id_fkey(id, full_name)"

MessageListener = Callable[[ChatMessage], Union[Awaitable[None], None]]


async def unread_count(client: SupabaseClient, room_id: str, reader_id: str) -> int:
    return await client.count(
        "chat_messages",
        filters={"room_id": eq(room_id), "sender_id": neq(reader_id), "read_at": is_(None)},
    )


async def list_rooms(
    client: SupabaseClient,
    unit_id: str,
    profile_id: str,
    *,
    professor_only: bool = False,
) -> list[ChatRoom]:
    """Rooms ordered by last activity, each with its unread count for `profile_id`."""

    filters = {"unit_id": eq(unit_id)}
    if professor_only:
        filters["professor_id"] = eq(profile_id)
    rows = await client.select("chat_rooms", filters=filters, columns=ROOM_COLUMNS, order="updated_at.desc")

    rooms = []
    for row in rows:
        room = ChatRoom.model_validate(row)
        room.unread_count = await unread_count(client, room.id, profile_id)
        rooms.append(room)
    return rooms


async def get_or_create_room(client: SupabaseClient, unit_id: str, lead_id: str, professor_id: str) -> ChatRoom:
    existing = await client.select_one(
        "chat_rooms",
        filters={"lead_id": eq(lead_id), "professor_id": eq(professor_id)},
    )
    if existing:
        return ChatRoom.model_validate(existing)

    row = await client.insert_one(
        "chat_rooms",
        {"unit_id": unit_id, "lead_id": lead_id, "professor_id": professor_id},
    )
    return ChatRoom.model_validate(row)


async def list_messages(
    client: SupabaseClient,
    room_id: str,
    reader_id: str,
    now: datetime,
) -> list[ChatMessage]:
    """Messages oldest first; marks the other side's unread messages as read."""

    rows = await client.select("chat_messages", filters={"room_id": eq(room_id)}, order="created_at.asc")
    messages = [ChatMessage.model_validate(row) for row in rows]

    unread_ids = [m.id for m in messages if m.sender_id != reader_id and m.read_at is None]
    if unread_ids:
        await client.update("chat_messages", {"id": in_(unread_ids)}, {"read_at": now.isoformat()})
        for message in messages:
            if message.id in unread_ids:
                message.read_at = now
    return messages


async def send_message(
    client: SupabaseClient,
    room_id: str,
    sender_id: str,
    sender_type: SenderType,
    content: str,
    now: datetime,
) -> ChatMessage:
    content = content.strip()
    if not content:
        raise ValueError("Message content must not be empty")

    message = ChatMessage.model_validate(
        await client.insert_one(
            "chat_messages",
            {
                "room_id": room_id,
                "sender_id": sender_id,
                "sender_type": SenderType(sender_type).value,
                "content": content,
            },
        )
    )
    await client.update("chat_rooms", {"id": eq(room_id)}, {"updated_at": now.isoformat()})
    return message


class ChatFeed:
    """
    Local message list for one room.

    Messages arriving through realtime are appended once; duplicates are
    detected by id only.
    """

    def __init__(self, room_id: str, messages: Optional[list[ChatMessage]] = None) -> None:
        self.room_id = room_id
        self.messages: list[ChatMessage] = list(messages or [])
        self._channel: RealtimeChannel | None = None
        self._listeners: list[MessageListener] = []

    def apply(self, message: ChatMessage) -> bool:
        if any(existing.id == message.id for existing in self.messages):
            return False
        self.messages.append(message)
        return True

    def add_listener(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    async def _on_record(self, record: dict) -> None:
        if record.get("room_id") != self.room_id:
            return
        message = ChatMessage.model_validate(record)
        if not self.apply(message):
            return
        for listener in self._listeners:
            result = listener(message)
            if result is not None:
                await result

    async def subscribe(self, client: SupabaseClient) -> None:
        if self._channel is not None:
            return
        self._channel = RealtimeChannel(
            client.realtime_url,
            f"chat-{self.room_id}",
            "chat_messages",
            self._on_record,
            event="INSERT",
            filter=f"room_id=eq.{self.room_id}",
        )
        await self._channel.subscribe()

    async def unsubscribe(self) -> None:
        if self._channel is None:
            return
        await self._channel.unsubscribe()
        self._channel = None
