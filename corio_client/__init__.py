"""
Async client for the Corio Scan skin lesion analysis backend.
"""

from .client import CorioClient, cleanup_corio_client, get_corio_client
from .errors import (
    AnalysisFailed,
    AnalysisTimeout,
    ApiError,
    CorioClientError,
    InvalidSnapshotOrder,
    NetworkError,
    NoImagesUploaded,
    PatientCreationFailed,
    ConnectionTimeout,
    RequestTimeout,
    SnapshotNotInTracking,
    UploadFailed,
    ValidationError,
)
from .models import (
    Case,
    LesionComparison,
    LesionSnapshot,
    LesionTracking,
    LesionTrackingDetail,
    PatientData,
    Progression,
    RiskLevel,
    TrackingStatus,
    needs_attention,
)
from .retry_policy import RetryPolicy, retry_async
from .structured_logging import configure_logging

__all__ = [
    "CorioClient",
    "get_corio_client",
    "cleanup_corio_client",
    "CorioClientError",
    "ValidationError",
    "NetworkError",
    "RequestTimeout",
    "ConnectionTimeout",
    "ApiError",
    "PatientCreationFailed",
    "UploadFailed",
    "NoImagesUploaded",
    "AnalysisTimeout",
    "AnalysisFailed",
    "InvalidSnapshotOrder",
    "SnapshotNotInTracking",
    "Case",
    "PatientData",
    "LesionTracking",
    "LesionTrackingDetail",
    "LesionSnapshot",
    "LesionComparison",
    "TrackingStatus",
    "RiskLevel",
    "Progression",
    "needs_attention",
    "RetryPolicy",
    "retry_async",
    "configure_logging",
]
