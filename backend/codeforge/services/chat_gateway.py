"""
Room chat event dispatcher.

Every chat event a user sends passes through the RateLimiter before it is
processed. Accepted messages and edits are fanned out to the connections
that joined the room. Transport-agnostic: each connection registers an
async `send` callable (the WebSocket route passes `websocket.send_json`).
"""

import html
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from codeforge.services.rate_limiting import RateLimiter

logger = logging.getLogger(__name__)

# Chat event -> rate limiter action. Events not listed here are not limited.
EVENT_ACTIONS = {
    "join_room": "roomJoins",
    "send_message": "messages",
    "edit_message": "messageEdits",
}

MAX_MESSAGE_LENGTH = 2000

# Recent messages kept per room so edits can be checked against the sender
ROOM_HISTORY_SIZE = 100

Send = Callable[[dict], Awaitable[Any]]


@dataclass
class ChatConnection:
    connection_id: str
    user_id: str
    send: Send
    rooms: set[str] = field(default_factory=set)


@dataclass
class ChatMessage:
    message_id: str
    room_id: str
    sender: str
    content: str
    created_at: datetime
    is_edited: bool = False
    edited_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "_id": self.message_id,
            "room": self.room_id,
            "sender": self.sender,
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "isEdited": self.is_edited,
            "editedAt": self.edited_at.isoformat() if self.edited_at else None,
        }


def sanitize_content(content: str) -> str:
    """Escape HTML so message text is rendered, never interpreted."""
    return html.escape(content.strip(), quote=True)


class ChatGateway:
    """Tracks room membership and dispatches chat events."""

    def __init__(self, rate_limiter: RateLimiter):
        self.rate_limiter = rate_limiter
        self._connections: dict[str, ChatConnection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._history: dict[str, deque[ChatMessage]] = {}
        self._handlers = {
            "join_room": self._join_room,
            "send_message": self._send_message,
            "edit_message": self._edit_message,
            "leave_room": self._leave_room,
        }

    def connect(self, user_id: str, send: Send) -> str:
        """Register a client connection and return its id."""
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = ChatConnection(connection_id, user_id, send)
        logger.debug("Chat connection %s opened for user %s", connection_id, user_id)
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return
        for room_id in conn.rooms:
            self._remove_member(room_id, connection_id)
        logger.debug("Chat connection %s closed for user %s", connection_id, conn.user_id)

    def room_members(self, room_id: str) -> set[str]:
        """User ids currently connected to a room."""
        return {
            self._connections[cid].user_id
            for cid in self._rooms.get(room_id, ())
            if cid in self._connections
        }

    def get_stats(self) -> dict:
        return {
            "connections": len(self._connections),
            "rooms": len(self._rooms),
        }

    async def handle(self, connection_id: str, event: Optional[str], data: Any) -> None:
        """Process one client event, replying on the same connection."""
        conn = self._connections.get(connection_id)
        if conn is None:
            logger.warning("Event %s for unknown connection %s", event, connection_id)
            return

        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            await conn.send({"event": "error", "error": f"Unknown event: {event}"})
            return

        action = EVENT_ACTIONS.get(event)
        if action:
            result = self.rate_limiter.check_rate_limit(conn.user_id, action)
            if not result.allowed:
                await conn.send(
                    {
                        "event": "rate_limit_exceeded",
                        "action": action,
                        "retryAfter": result.retry_after,
                        "message": result.reason,
                    }
                )
                return

        await handler(conn, data if isinstance(data, dict) else {})

    async def _join_room(self, conn: ChatConnection, data: dict) -> None:
        room_id = data.get("roomId")
        if not room_id or not isinstance(room_id, str):
            await conn.send({"event": "room_error", "error": "Invalid room data"})
            return

        if room_id not in conn.rooms:
            conn.rooms.add(room_id)
            self._rooms.setdefault(room_id, set()).add(conn.connection_id)
            logger.info("User %s joined room %s", conn.user_id, room_id)

        await conn.send({"event": "room_joined", "roomId": room_id})

    async def _send_message(self, conn: ChatConnection, data: dict) -> None:
        room_id = data.get("roomId")
        message = data.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        temp_id = message.get("tempId") if isinstance(message, dict) else None

        if (
            not isinstance(room_id, str)
            or not room_id
            or not isinstance(content, str)
            or not content.strip()
        ):
            await conn.send({"event": "message_error", "error": "Invalid message format"})
            return

        if room_id not in conn.rooms:
            await conn.send(
                {"event": "message_error", "error": "Not a member of this room", "tempId": temp_id}
            )
            return

        if len(content.strip()) > MAX_MESSAGE_LENGTH:
            await conn.send(
                {
                    "event": "message_error",
                    "error": f"Message exceeds {MAX_MESSAGE_LENGTH} characters",
                    "tempId": temp_id,
                }
            )
            return

        chat_message = ChatMessage(
            message_id=uuid.uuid4().hex,
            room_id=room_id,
            sender=conn.user_id,
            content=sanitize_content(content),
            created_at=datetime.now(timezone.utc),
        )
        history = self._history.setdefault(room_id, deque(maxlen=ROOM_HISTORY_SIZE))
        history.append(chat_message)

        await self._broadcast(room_id, {"event": "receive_message", "message": chat_message.to_dict()})
        await conn.send(
            {
                "event": "message_sent",
                "success": True,
                "messageId": chat_message.message_id,
                "tempId": temp_id,
            }
        )

    async def _edit_message(self, conn: ChatConnection, data: dict) -> None:
        room_id = data.get("roomId")
        message_id = data.get("messageId")
        new_content = data.get("newContent")

        if (
            not isinstance(room_id, str)
            or not room_id
            or not message_id
            or not isinstance(new_content, str)
            or not new_content.strip()
        ):
            await conn.send(
                {"event": "message_error", "error": "Missing or invalid fields", "messageId": message_id}
            )
            return

        if len(new_content.strip()) > MAX_MESSAGE_LENGTH:
            await conn.send(
                {
                    "event": "message_error",
                    "error": f"Message exceeds {MAX_MESSAGE_LENGTH} characters",
                    "messageId": message_id,
                }
            )
            return

        chat_message = self._find_message(room_id, message_id)
        if chat_message is None:
            await conn.send(
                {"event": "message_error", "error": "Message not found", "messageId": message_id}
            )
            return

        if chat_message.sender != conn.user_id:
            await conn.send(
                {
                    "event": "message_error",
                    "error": "Not authorized to edit this message",
                    "messageId": message_id,
                }
            )
            return

        chat_message.content = sanitize_content(new_content)
        chat_message.is_edited = True
        chat_message.edited_at = datetime.now(timezone.utc)

        await self._broadcast(room_id, {"event": "message_updated", "message": chat_message.to_dict()})
        await conn.send({"event": "edit_success", "messageId": message_id})

    async def _leave_room(self, conn: ChatConnection, data: dict) -> None:
        room_id = data.get("roomId")
        if not isinstance(room_id, str) or room_id not in conn.rooms:
            return

        conn.rooms.discard(room_id)
        self._remove_member(room_id, conn.connection_id)
        logger.info("User %s left room %s", conn.user_id, room_id)
        await conn.send({"event": "room_left", "roomId": room_id})

    def _find_message(self, room_id: str, message_id: str) -> Optional[ChatMessage]:
        for chat_message in self._history.get(room_id, ()):
            if chat_message.message_id == message_id:
                return chat_message
        return None

    def _remove_member(self, room_id: str, connection_id: str) -> None:
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[room_id]
            self._history.pop(room_id, None)

    async def _broadcast(self, room_id: str, payload: dict) -> None:
        for cid in list(self._rooms.get(room_id, ())):
            conn = self._connections.get(cid)
            if conn is None:
                continue
            try:
                await conn.send(payload)
            except Exception as e:
                logger.warning(
                    "Failed to deliver %s to connection %s: %s",
                    payload.get("event"),
                    cid,
                    e,
                )
