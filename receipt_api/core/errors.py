"""
Error taxonomy for the receipt service.

Every error carries the HTTP status it maps to and a fixed public message.
The `detail` attribute holds the diagnostic cause (provider text, parse
reason, ...) and is only ever logged, never returned to the caller.
"""

from enum import Enum


class ReceiptServiceError(Exception):
    """Base class for all errors rendered by the API exception handler"""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(
        self,
        detail: str | None = None,
        stage: str | None = None,
        public_message: str | None = None,
    ):
        super().__init__(detail or public_message or self.public_message)
        if public_message:
            self.public_message = public_message
        self.detail = detail or self.public_message
        self.stage = stage


class ValidationError(ReceiptServiceError):
    status_code = 400
    public_message = "Invalid request"


class RejectionReason(str, Enum):
    MISSING = "missing"
    TOO_LARGE = "too_large"
    UNSUPPORTED_FORMAT = "unsupported_format"


_REJECTION_MESSAGES = {
    RejectionReason.MISSING: "No file uploaded",
    RejectionReason.TOO_LARGE: "File size must be less than 5MB",
    RejectionReason.UNSUPPORTED_FORMAT: "We only accept .jpg, .jpeg and .png formats!",
}


class ImageRejected(ValidationError):
    """Uploaded file failed the image checks"""

    def __init__(self, reason: RejectionReason, stage: str | None = None):
        super().__init__(
            detail=f"Image rejected: {reason.value}",
            stage=stage,
            public_message=_REJECTION_MESSAGES[reason],
        )
        self.reason = reason


class AuthError(ReceiptServiceError):
    status_code = 401
    public_message = "Authentication required"


class NotFoundOrForbidden(ReceiptServiceError):
    # Same outcome for unknown ids and ids owned by someone else
    status_code = 404
    public_message = "Receipt not found"


class UpstreamError(ReceiptServiceError):
    status_code = 500
    public_message = "Failed to process receipt"


class StorageError(UpstreamError):
    pass


class ExtractionError(UpstreamError):
    pass


class StoreUnavailable(ReceiptServiceError):
    status_code = 500
    public_message = "Receipt store unavailable"
