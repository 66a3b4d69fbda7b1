"""Voice messages inside a coach/client conversation."""

import asyncio
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import CoachingError, FieldValidationError, NotFoundError
from libs.common.logging import get_logger
from libs.remote.client import RemoteDataClient, eq
from services.coaching_service import tables
from services.coaching_service.schemas import SenderTypeEnum, UploadFile, VoiceMessage
from services.coaching_service.services.storage import (
    AUDIO_MIME_TYPES,
    MAX_UPLOAD_BYTES,
    build_storage_key,
    file_extension,
    validate_upload,
)

logger = get_logger(__name__)

VOICE_PREVIEW_TEXT = "🎤 Message vocal"


async def _with_signed_url(
    remote: RemoteDataClient, message: VoiceMessage
) -> VoiceMessage:
    settings = get_settings()
    url = await remote.create_signed_url(
        settings.VOICE_MESSAGE_BUCKET, message.voice_url, settings.SIGNED_URL_TTL_SECONDS
    )
    return message.model_copy(update={"signed_url": url})


async def send_voice_message(
    remote: RemoteDataClient,
    *,
    conversation_id: str,
    sender_id: str,
    sender_type: SenderTypeEnum,
    upload: UploadFile,
    duration_seconds: float,
    content: Optional[str] = None,
) -> VoiceMessage:
    """
    Upload the recording, record the message, then touch the conversation.
    """
    validate_upload(upload, max_bytes=MAX_UPLOAD_BYTES, allowed_types=AUDIO_MIME_TYPES)
    if duration_seconds <= 0:
        raise FieldValidationError("Le message vocal est vide", field="duration")

    bucket = get_settings().VOICE_MESSAGE_BUCKET
    mime_type = upload.content_type.split(";")[0].strip().lower()
    key = build_storage_key(
        conversation_id,
        file_extension(upload.filename, mime_type),
        stem=f"{sender_id}-",
    )
    await remote.upload(bucket, key, upload.data, content_type=mime_type)

    now = utc_now().isoformat()
    row = {
        "conversation_id": conversation_id,
        "sender_id": sender_id,
        "sender_type": SenderTypeEnum(sender_type).value,
        "content": content or VOICE_PREVIEW_TEXT,
        "message_type": "voice",
        "timestamp": now,
        "voice_url": key,
        "voice_duration": round(duration_seconds, 1),
        "voice_file_size": upload.size,
        "voice_mime_type": mime_type,
    }
    try:
        created = await remote.insert_one(tables.MESSAGES, row)
    except CoachingError:
        logger.warning("Recording voice message %s failed, removing the upload", key)
        try:
            await remote.remove(bucket, [key])
        except CoachingError:
            logger.exception("Could not remove orphaned upload %s", key)
        raise

    await remote.update(
        tables.CONVERSATIONS,
        {"last_message": row["content"], "last_message_time": now, "updated_at": now},
        eq("id", conversation_id),
    )
    logger.info(
        "Voice message %s sent in conversation %s", created["id"], conversation_id
    )
    return await _with_signed_url(remote, VoiceMessage.model_validate(created))


async def list_voice_messages(
    remote: RemoteDataClient, *, conversation_id: str
) -> list[VoiceMessage]:
    rows = await remote.fetch_all(
        tables.MESSAGES,
        eq("conversation_id", conversation_id),
        eq("message_type", "voice"),
        order_by="created_at",
    )
    messages = [VoiceMessage.model_validate(row) for row in rows]
    return list(
        await asyncio.gather(*(_with_signed_url(remote, m) for m in messages))
    )


async def delete_voice_message(remote: RemoteDataClient, *, message_id: str) -> None:
    """Remove the recording, then the message row."""
    row = await remote.fetch_maybe(
        tables.MESSAGES, eq("id", message_id), eq("message_type", "voice")
    )
    if row is None:
        raise NotFoundError(f"Voice message {message_id} not found")

    await remote.remove(get_settings().VOICE_MESSAGE_BUCKET, [row["voice_url"]])
    await remote.delete(tables.MESSAGES, eq("id", message_id))
    logger.info("Deleted voice message %s", message_id)
