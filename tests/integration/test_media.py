"""Integration tests for progress photos and voice messages."""

from datetime import date
from io import BytesIO

import pytest
from PIL import Image

from libs.common.config import get_settings
from libs.common.errors import BackendError
from services.coaching_service import tables
from services.coaching_service.schemas import SenderTypeEnum, UploadFile
from services.coaching_service.services import (
    progress_photo_service,
    voice_message_service,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _png() -> UploadFile:
    buffer = BytesIO()
    Image.new("RGB", (4, 4), color=(249, 115, 22)).save(buffer, format="PNG")
    return UploadFile(filename="face.png", content_type="image/png", data=buffer.getvalue())


def _recording() -> UploadFile:
    return UploadFile(
        filename="note.webm", content_type="audio/webm;codecs=opus", data=b"\x1a\x45\xdf\xa3" * 64
    )


@pytest.fixture
def conversation(remote, coach, client_row) -> dict:
    (row,) = remote.seed(
        tables.CONVERSATIONS,
        {"coach_id": coach["id"], "client_id": client_row["id"], "last_message": None},
    )
    return row


# ---------------------------------------------------------------------------
# Progress photos
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_upload_photo_stores_object_and_row(remote, queries, client_row):
    bucket = get_settings().PROGRESS_PHOTO_BUCKET

    photo = await queries.upload_progress_photo(
        client_row["id"], _png(), description="Semaine 1", taken_on=date(2024, 3, 4)
    )

    assert photo.url_fichier.startswith(f"{client_row['id']}/progress-photos/")
    assert photo.url_fichier.endswith(".png")
    assert (bucket, photo.url_fichier) in remote.objects
    assert photo.signed_url.startswith(f"https://backend.test/storage/v1/object/sign/{bucket}/")
    assert photo.date_prise == date(2024, 3, 4)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_photos_newest_first_with_signed_urls(queries, client_row):
    await queries.upload_progress_photo(client_row["id"], _png(), taken_on=date(2024, 3, 4))
    await queries.upload_progress_photo(client_row["id"], _png(), taken_on=date(2024, 3, 11))

    photos = await queries.progress_photos(client_row["id"])

    assert [p.date_prise for p in photos] == [date(2024, 3, 11), date(2024, 3, 4)]
    assert all(p.signed_url for p in photos)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_failed_row_insert_removes_upload(remote, client_row):
    remote.fail("insert", tables.PROGRESS_PHOTOS, BackendError("insert rejected"))

    with pytest.raises(BackendError):
        await progress_photo_service.upload_progress_photo(
            remote, client_id=client_row["id"], upload=_png()
        )

    assert remote.objects == {}
    assert ("storage.remove", get_settings().PROGRESS_PHOTO_BUCKET) in remote.calls


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_photo_removes_object_and_row(remote, queries, client_row):
    photo = await queries.upload_progress_photo(client_row["id"], _png())

    await queries.delete_progress_photo(photo.id, client_row["id"])

    assert remote.objects == {}
    assert remote.rows(tables.PROGRESS_PHOTOS) == []
    assert await queries.progress_photos(client_row["id"]) == []


# ---------------------------------------------------------------------------
# Voice messages
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_voice_message_updates_conversation(remote, queries, coach, conversation):
    message = await queries.send_voice_message(
        conversation["id"], coach["id"], SenderTypeEnum.COACH, _recording(), 12.34
    )

    assert message.voice_mime_type == "audio/webm"
    assert message.voice_duration == 12.3
    assert message.content == voice_message_service.VOICE_PREVIEW_TEXT
    assert message.voice_url.startswith(f"{conversation['id']}/{coach['id']}-")
    assert message.signed_url

    (updated,) = remote.rows(tables.CONVERSATIONS, id=conversation["id"])
    assert updated["last_message"] == "🎤 Message vocal"

    listed = await queries.voice_messages(conversation["id"])
    assert [m.id for m in listed] == [message.id]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_voice_message(remote, coach, conversation):
    message = await voice_message_service.send_voice_message(
        remote,
        conversation_id=conversation["id"],
        sender_id=coach["id"],
        sender_type=SenderTypeEnum.COACH,
        upload=_recording(),
        duration_seconds=3,
    )

    await voice_message_service.delete_voice_message(remote, message_id=message.id)

    assert remote.objects == {}
    assert remote.rows(tables.MESSAGES) == []
