"""Client progress photos: private objects in storage, one row per photo."""

import asyncio
from datetime import date
from typing import Optional

from libs.common.config import get_settings
from libs.common.errors import CoachingError, FieldValidationError, NotFoundError
from libs.common.logging import get_logger
from libs.remote.client import RemoteDataClient, eq
from services.coaching_service import tables
from services.coaching_service.schemas import (
    ProgressPhoto,
    ProgressPhotoUpdate,
    UploadFile,
)
from services.coaching_service.services.storage import (
    MAX_UPLOAD_BYTES,
    build_storage_key,
    ensure_image,
    file_extension,
    validate_upload,
)

logger = get_logger(__name__)


async def _with_signed_url(
    remote: RemoteDataClient, photo: ProgressPhoto, bucket: str, ttl: int
) -> ProgressPhoto:
    url = await remote.create_signed_url(bucket, photo.url_fichier, ttl)
    return photo.model_copy(update={"signed_url": url})


async def list_progress_photos(
    remote: RemoteDataClient, *, client_id: str
) -> list[ProgressPhoto]:
    """Photos newest capture first, each with a freshly minted signed URL."""
    settings = get_settings()
    rows = await remote.fetch_all(
        tables.PROGRESS_PHOTOS,
        eq("client_id", client_id),
        order_by="date_prise",
        descending=True,
    )
    photos = [ProgressPhoto.model_validate(row) for row in rows]
    return list(
        await asyncio.gather(
            *(
                _with_signed_url(
                    remote,
                    photo,
                    settings.PROGRESS_PHOTO_BUCKET,
                    settings.SIGNED_URL_TTL_SECONDS,
                )
                for photo in photos
            )
        )
    )


async def upload_progress_photo(
    remote: RemoteDataClient,
    *,
    client_id: str,
    upload: UploadFile,
    description: Optional[str] = None,
    taken_on: Optional[date] = None,
) -> ProgressPhoto:
    """
    Validate, upload, then record the photo.

    Size and type are checked before any network call. If the row insert
    fails the uploaded object is removed again.
    """
    validate_upload(upload, max_bytes=MAX_UPLOAD_BYTES, mime_prefix="image/")
    ensure_image(upload.data)

    settings = get_settings()
    bucket = settings.PROGRESS_PHOTO_BUCKET
    key = build_storage_key(
        f"{client_id}/progress-photos",
        file_extension(upload.filename, upload.content_type),
    )
    await remote.upload(bucket, key, upload.data, content_type=upload.content_type)

    row = {
        "client_id": client_id,
        "nom_photo": upload.filename,
        "url_fichier": key,
        "description": description,
        "date_prise": (taken_on or date.today()).isoformat(),
    }
    try:
        created = await remote.insert_one(tables.PROGRESS_PHOTOS, row)
    except CoachingError:
        logger.warning("Recording photo %s failed, removing the upload", key)
        try:
            await remote.remove(bucket, [key])
        except CoachingError:
            logger.exception("Could not remove orphaned upload %s", key)
        raise

    logger.info("Uploaded progress photo %s for client %s", created["id"], client_id)
    photo = ProgressPhoto.model_validate(created)
    return await _with_signed_url(remote, photo, bucket, settings.SIGNED_URL_TTL_SECONDS)


async def update_progress_photo(
    remote: RemoteDataClient, *, photo_id: str, data: ProgressPhotoUpdate
) -> ProgressPhoto:
    values = data.model_dump(mode="json", exclude_unset=True)
    if not values:
        raise FieldValidationError("Aucune modification à enregistrer")
    rows = await remote.update(tables.PROGRESS_PHOTOS, values, eq("id", photo_id))
    if not rows:
        raise NotFoundError(f"Progress photo {photo_id} not found")
    return ProgressPhoto.model_validate(rows[0])


async def delete_progress_photo(remote: RemoteDataClient, *, photo_id: str) -> None:
    """Remove the stored object, then the row."""
    row = await remote.fetch_maybe(tables.PROGRESS_PHOTOS, eq("id", photo_id))
    if row is None:
        raise NotFoundError(f"Progress photo {photo_id} not found")

    await remote.remove(get_settings().PROGRESS_PHOTO_BUCKET, [row["url_fichier"]])
    await remote.delete(tables.PROGRESS_PHOTOS, eq("id", photo_id))
    logger.info("Deleted progress photo %s", photo_id)
