"""Conversations between a coach and a client, and their non-voice messages."""

from libs.common.datetime_utils import utc_now
from libs.common.errors import FieldValidationError, NotFoundError
from libs.common.logging import get_logger
from libs.remote.client import RemoteDataClient, eq
from services.coaching_service import tables
from services.coaching_service.schemas import (
    Conversation,
    Message,
    MessageCreate,
    MessageTypeEnum,
    SenderTypeEnum,
)

logger = get_logger(__name__)


async def get_conversations(
    remote: RemoteDataClient, *, user_id: str, role: SenderTypeEnum
) -> list[Conversation]:
    """Conversations of a coach or a client, most recently active first."""
    column = "coach_id" if SenderTypeEnum(role) == SenderTypeEnum.COACH else "client_id"
    rows = await remote.fetch_all(
        tables.CONVERSATIONS, eq(column, user_id), order_by="updated_at", descending=True
    )
    return [Conversation.model_validate(row) for row in rows]


async def create_conversation(
    remote: RemoteDataClient, *, client_id: str, coach_id: str
) -> Conversation:
    """Open the conversation for a pair, or return the one already open."""
    existing = await remote.fetch_maybe(
        tables.CONVERSATIONS, eq("coach_id", coach_id), eq("client_id", client_id)
    )
    if existing is not None:
        return Conversation.model_validate(existing)

    now = utc_now().isoformat()
    created = await remote.insert_one(
        tables.CONVERSATIONS,
        {
            "coach_id": coach_id,
            "client_id": client_id,
            "unread_count": 0,
            "is_priority": False,
            "updated_at": now,
        },
    )
    logger.info(
        "Opened conversation %s",
        created["id"],
        extra={"extra_fields": {"coach_id": coach_id, "client_id": client_id}},
    )
    return Conversation.model_validate(created)


async def get_messages(
    remote: RemoteDataClient, *, conversation_id: str
) -> list[Message]:
    rows = await remote.fetch_all(
        tables.MESSAGES, eq("conversation_id", conversation_id), order_by="created_at"
    )
    return [Message.model_validate(row) for row in rows]


async def send_message(remote: RemoteDataClient, *, data: MessageCreate) -> Message:
    """
    Record a message and bump the conversation preview.

    Voice recordings go through ``voice_message_service`` since they carry an
    upload.
    """
    if data.message_type == MessageTypeEnum.VOICE:
        raise FieldValidationError(
            "Les messages vocaux passent par l'envoi audio", field="message_type"
        )
    content = data.content.strip()
    if not content:
        raise FieldValidationError("Le message est vide", field="content")

    conversation = await remote.fetch_maybe(
        tables.CONVERSATIONS, eq("id", data.conversation_id)
    )
    if conversation is None:
        raise NotFoundError(f"Conversation {data.conversation_id} not found")

    now = utc_now().isoformat()
    row = data.model_dump(mode="json", exclude_none=True)
    row.update({"content": content, "is_read": False, "timestamp": now})
    created = await remote.insert_one(tables.MESSAGES, row)

    await remote.update(
        tables.CONVERSATIONS,
        {"last_message": content, "last_message_time": now, "updated_at": now},
        eq("id", data.conversation_id),
    )
    logger.info(
        "Message %s sent in conversation %s", created["id"], data.conversation_id
    )
    return Message.model_validate(created)


async def mark_as_read(remote: RemoteDataClient, *, message_id: str) -> None:
    updated = await remote.update(
        tables.MESSAGES, {"is_read": True}, eq("id", message_id)
    )
    if not updated:
        raise NotFoundError(f"Message {message_id} not found")
