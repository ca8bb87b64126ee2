"""
Client error taxonomy.

Every error carries a stable machine-readable ``kind`` and a ``message_key``
that the translations module turns into a localized message. Lower layers
raise the narrow errors (NetworkError, ApiError, UploadFailed); the case
submission pipeline wraps them into phase-level errors, keeping the original
as ``__cause__``.
"""

from typing import Any, Dict, List, Optional


class CorioClientError(Exception):
    """Base class for every error raised by the client."""

    kind = "client_error"
    message_key = "errors.generic"

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message or self.kind)
        self.details = details

    @property
    def retryable(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": str(self), **self.details}


class ValidationError(CorioClientError):
    """Missing or malformed input, detected before any network call."""

    kind = "validation_error"
    message_key = "errors.validation"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.field = field


# =============================================================================
# TRANSPORT / SERVER
# =============================================================================

class NetworkError(CorioClientError):
    """The request failed at the transport level (no HTTP response)."""

    kind = "network_error"
    message_key = "errors.network"

    @property
    def retryable(self) -> bool:
        return True


class RequestTimeout(NetworkError):
    """
    The request did not complete within its deadline.

    Not retryable: the request may already have reached the server, so a
    retry could create the resource twice.
    """

    kind = "request_timeout"
    message_key = "errors.timeout"

    @property
    def retryable(self) -> bool:
        return False


class ConnectionTimeout(RequestTimeout):
    """No connection could be opened in time; the request never left the client."""

    kind = "connection_timeout"

    @property
    def retryable(self) -> bool:
        return True


class ApiError(CorioClientError):
    """The server answered with a 4xx/5xx status."""

    kind = "api_error"
    message_key = "errors.server"

    def __init__(self, status_code: int, message: str, error_code: Optional[str] = None,
                 payload: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=status_code, error_code=error_code)
        self.status_code = status_code
        self.error_code = error_code
        self.payload = payload or {}

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


# =============================================================================
# CASE SUBMISSION PHASES
# =============================================================================

class SubmissionError(CorioClientError):
    """Base class for errors that identify the failed submission phase."""

    phase = "submission"


class PatientCreationFailed(SubmissionError):
    kind = "patient_creation_failed"
    message_key = "errors.patient_creation_failed"
    phase = "patient"


class UploadFailed(SubmissionError):
    """An image could not be uploaded; ``image_index`` is zero-based."""

    kind = "upload_failed"
    message_key = "errors.upload_failed"
    phase = "upload"

    def __init__(self, image_index: int, message: str = "", attempts: int = 0):
        super().__init__(
            message or f"Upload of image {image_index} failed",
            image_index=image_index,
            attempts=attempts,
        )
        self.image_index = image_index
        self.attempts = attempts


class NoImagesUploaded(SubmissionError):
    kind = "no_images_uploaded"
    message_key = "errors.no_images_uploaded"
    phase = "upload"


class AnalysisTimeout(SubmissionError):
    """An AI analysis or comparison exceeded the extended timeout. Never retried."""

    kind = "analysis_timeout"
    message_key = "errors.analysis_timeout"
    phase = "analysis"


class AnalysisFailed(SubmissionError):
    kind = "analysis_failed"
    message_key = "errors.analysis_failed"
    phase = "analysis"

    def __init__(self, message: str = "", provider_errors: Optional[List[Dict[str, Any]]] = None,
                 error_code: Optional[str] = None):
        super().__init__(message or "Analysis failed", provider_errors=provider_errors or [],
                         error_code=error_code)
        self.provider_errors = provider_errors or []
        self.error_code = error_code


# =============================================================================
# LESION TRACKING
# =============================================================================

class InvalidSnapshotOrder(CorioClientError):
    """The "previous" snapshot is not strictly older than the "current" one."""

    kind = "invalid_snapshot_order"
    message_key = "errors.invalid_snapshot_order"

    def __init__(self, previous_order: int, current_order: int):
        super().__init__(
            f"Previous snapshot #{previous_order} must come before current snapshot #{current_order}",
            previous_order=previous_order,
            current_order=current_order,
        )
        self.previous_order = previous_order
        self.current_order = current_order


class SnapshotNotInTracking(CorioClientError):
    kind = "snapshot_not_in_tracking"
    message_key = "errors.snapshot_not_in_tracking"

    def __init__(self, snapshot_id: str, tracking_id: str):
        super().__init__(
            f"Snapshot {snapshot_id} does not belong to tracking {tracking_id}",
            snapshot_id=snapshot_id,
            tracking_id=tracking_id,
        )
        self.snapshot_id = snapshot_id
        self.tracking_id = tracking_id
