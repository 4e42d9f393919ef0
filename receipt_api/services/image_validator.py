"""
Receipt image checks, run before any network call.

A file is accepted only when its name has a JPEG/PNG extension AND its bytes
start with a JPEG or PNG signature. The extension alone can be spoofed, so
the sniffed type (not the client-declared content type) is what gets stored.
"""

from dataclasses import dataclass
from pathlib import PurePath

from ..core.errors import ImageRejected, RejectionReason

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024

_SIGNATURES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
)


@dataclass(frozen=True)
class ImageCheck:
    ok: bool
    mime_type: str | None = None
    reason: RejectionReason | None = None


def sniff_image_type(content: bytes) -> str | None:
    for signature, mime_type in _SIGNATURES:
        if content.startswith(signature):
            return mime_type
    return None


def validate_image(
    filename: str | None,
    content: bytes | None,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> ImageCheck:
    if not filename or not content:
        return ImageCheck(ok=False, reason=RejectionReason.MISSING)

    if len(content) > max_bytes:
        return ImageCheck(ok=False, reason=RejectionReason.TOO_LARGE)

    if PurePath(filename).suffix.lower() not in ALLOWED_EXTENSIONS:
        return ImageCheck(ok=False, reason=RejectionReason.UNSUPPORTED_FORMAT)

    mime_type = sniff_image_type(content)
    if mime_type is None:
        return ImageCheck(ok=False, reason=RejectionReason.UNSUPPORTED_FORMAT)

    return ImageCheck(ok=True, mime_type=mime_type)


def reject_if_invalid(
    filename: str | None,
    content: bytes | None,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> str:
    """Return the sniffed MIME type or raise ImageRejected"""
    check = validate_image(filename, content, max_bytes)
    if not check.ok:
        raise ImageRejected(check.reason)
    return check.mime_type
