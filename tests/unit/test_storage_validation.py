"""Unit tests for upload validation and storage keys."""

import re

import pytest

from libs.common.errors import FieldValidationError
from services.coaching_service.schemas import SenderTypeEnum, UploadFile
from services.coaching_service.services import (
    progress_photo_service,
    voice_message_service,
)
from services.coaching_service.services.storage import (
    AUDIO_MIME_TYPES,
    build_storage_key,
    ensure_image,
    file_extension,
    validate_upload,
)

MB = 1024 * 1024


def _upload(size: int, content_type: str = "image/jpeg", filename: str = "front.jpg"):
    return UploadFile(filename=filename, content_type=content_type, data=b"\0" * size)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_oversized_photo_rejected_before_network(remote):
    with pytest.raises(FieldValidationError) as exc_info:
        await progress_photo_service.upload_progress_photo(
            remote, client_id="client-1", upload=_upload(15 * MB)
        )

    assert exc_info.value.field == "file"
    assert exc_info.value.message == (
        "Le fichier est trop volumineux (15 Mo). Taille maximale : 10 Mo"
    )
    assert remote.calls == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_non_image_bytes_rejected_before_network(remote):
    upload = UploadFile(filename="x.png", content_type="image/png", data=b"not an image")

    with pytest.raises(FieldValidationError):
        await progress_photo_service.upload_progress_photo(
            remote, client_id="client-1", upload=upload
        )
    assert remote.calls == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_empty_recording_rejected(remote):
    upload = _upload(2048, content_type="audio/webm", filename="note.webm")

    with pytest.raises(FieldValidationError) as exc_info:
        await voice_message_service.send_voice_message(
            remote,
            conversation_id="conv-1",
            sender_id="coach-1",
            sender_type=SenderTypeEnum.COACH,
            upload=upload,
            duration_seconds=0,
        )

    assert exc_info.value.field == "duration"
    assert remote.calls == []


@pytest.mark.unit
def test_empty_file_rejected():
    with pytest.raises(FieldValidationError, match="Le fichier est vide"):
        validate_upload(_upload(0))


@pytest.mark.unit
def test_limit_is_inclusive():
    validate_upload(_upload(10 * MB), mime_prefix="image/")


@pytest.mark.unit
def test_type_checks():
    with pytest.raises(FieldValidationError):
        validate_upload(_upload(10, content_type="application/pdf"), mime_prefix="image/")

    validate_upload(
        _upload(10, content_type="audio/webm;codecs=opus"), allowed_types=AUDIO_MIME_TYPES
    )
    with pytest.raises(FieldValidationError):
        validate_upload(_upload(10, content_type="video/mp4"), allowed_types=AUDIO_MIME_TYPES)


@pytest.mark.unit
def test_ensure_image_rejects_garbage():
    with pytest.raises(FieldValidationError):
        ensure_image(b"GIF89a-but-not-really")


@pytest.mark.unit
def test_file_extension():
    assert file_extension("Photo.JPG", "image/jpeg") == "jpg"
    assert file_extension("recording", "audio/mpeg") == "mp3"
    assert file_extension("blob", "image/webp") == "webp"


@pytest.mark.unit
def test_storage_keys_are_unique():
    first = build_storage_key("client-1/progress-photos/", "png")
    second = build_storage_key("client-1/progress-photos", "png")

    assert re.fullmatch(r"client-1/progress-photos/\d+-[0-9a-f]{8}\.png", first)
    assert first != second
