"""Upload validation and storage key helpers shared by file-bearing services."""

import secrets
from io import BytesIO
from typing import Iterable, Optional

from PIL import Image, UnidentifiedImageError

from libs.common.datetime_utils import utc_now_ms
from libs.common.errors import FieldValidationError
from services.coaching_service.schemas import UploadFile

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

AUDIO_MIME_TYPES = frozenset(
    {
        "audio/webm",
        "audio/ogg",
        "audio/mpeg",
        "audio/mp4",
        "audio/wav",
        "audio/x-m4a",
    }
)

_AUDIO_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/wav": "wav",
}


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):.1f}".rstrip("0").rstrip(".")


def validate_upload(
    upload: UploadFile,
    *,
    max_bytes: int = MAX_UPLOAD_BYTES,
    mime_prefix: Optional[str] = None,
    allowed_types: Optional[Iterable[str]] = None,
) -> None:
    """
    Reject an upload before any network call.

    Raises ``FieldValidationError`` on ``field="file"`` for an empty file, a
    file over ``max_bytes``, or a content type outside the accepted ones.
    """
    if upload.size == 0:
        raise FieldValidationError("Le fichier est vide", field="file")

    if upload.size > max_bytes:
        raise FieldValidationError(
            f"Le fichier est trop volumineux ({_megabytes(upload.size)} Mo). "
            f"Taille maximale : {_megabytes(max_bytes)} Mo",
            field="file",
        )

    content_type = upload.content_type.split(";")[0].strip().lower()
    if mime_prefix and not content_type.startswith(mime_prefix):
        raise FieldValidationError(
            f"Type de fichier non supporté : {upload.content_type}", field="file"
        )
    if allowed_types is not None and content_type not in set(allowed_types):
        raise FieldValidationError(
            f"Type de fichier non supporté : {upload.content_type}", field="file"
        )


def ensure_image(data: bytes) -> None:
    """Check the bytes decode as an image, not just the declared MIME type."""
    try:
        with Image.open(BytesIO(data)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise FieldValidationError(
            "Le fichier n'est pas une image valide", field="file"
        ) from exc


def file_extension(filename: str, content_type: str) -> str:
    if "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
        if ext:
            return ext
    base_type = content_type.split(";")[0].strip().lower()
    if base_type in _AUDIO_EXTENSIONS:
        return _AUDIO_EXTENSIONS[base_type]
    return base_type.split("/")[-1] or "bin"


def build_storage_key(prefix: str, extension: str, *, stem: str = "") -> str:
    """
    Collision-resistant key: ``{prefix}/{stem}{ms}-{random}.{ext}``.
    """
    random_part = secrets.token_hex(4)
    return f"{prefix.strip('/')}/{stem}{utc_now_ms()}-{random_part}.{extension}"
