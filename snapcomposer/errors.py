"""
Error taxonomy for the composer pipeline.

Every error carries two messages: ``str(exc)`` keeps the diagnostic
detail for logs, ``user_message`` is what the composer shows to a person.
"""
from typing import Optional


class ComposerError(Exception):
    """Base class for all composer failures."""

    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.default_user_message)
        self.user_message = user_message or self.default_user_message


class ValidationError(ComposerError):
    """Draft or action rejected before any network call."""

    def __init__(self, message: str):
        # validation messages are already written for the user
        super().__init__(message, user_message=message)


class CredentialMissing(ComposerError):
    """Required API credential is not configured."""

    default_user_message = "Video hosting is not configured. Please contact support."


class TransportError(ComposerError):
    """Network failure while talking to an external host."""

    default_user_message = "Network error. Please check your connection and try again."


class UploadRejected(ComposerError):
    """External host answered with a non-2xx status."""

    default_user_message = "The upload was rejected. Please try again."

    def __init__(self, status_code: int, detail: str = "", url: str = ""):
        self.status_code = status_code
        self.detail = detail
        self.url = url
        target = f" on {url}" if url else ""
        super().__init__(f"HTTP {status_code}{target}: {detail[:300]}")


class MissingEmbedReference(ComposerError):
    """Video transfer finished but the host never sent an embed reference."""

    default_user_message = "Failed to upload video. Please try again."


class ThumbnailExtractionError(ComposerError):
    """Still frame could not be captured from the video."""

    default_user_message = "Could not create a thumbnail for this video."

    def __init__(self, state: str, reason: str):
        self.state = state
        self.reason = reason
        super().__init__(f"thumbnail extraction failed while {state}: {reason}")


class PartialAttachmentFailure(ComposerError):
    """Best-effort part of an attachment failed; the attachment set shrinks."""

    default_user_message = "Some attachments could not be uploaded."


class ContainerLookupError(ComposerError):
    """Current container post could not be resolved."""

    default_user_message = "Could not find where to post. Please try again."


class PublishFailure(ComposerError):
    """Ledger rejected the submission."""

    default_user_message = "Failed to post. Please try again."


def describe_exception(exc: BaseException) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"
