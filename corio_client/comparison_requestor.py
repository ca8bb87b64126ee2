"""
Comparison Requestor

Asks the backend for an AI comparison between two snapshots of one tracking.
Snapshot membership and ordering are checked against the tracking's history
before any comparison request is sent; a reversed pair is a caller error,
never silently swapped.
"""

from dataclasses import dataclass
from typing import Optional

from corio_client import config
from corio_client.api_client import ApiClient
from corio_client.errors import (
    AnalysisFailed,
    AnalysisTimeout,
    ApiError,
    CorioClientError,
    InvalidSnapshotOrder,
    RequestTimeout,
    SnapshotNotInTracking,
    ValidationError,
)
from corio_client.lesion_tracking_store import LesionTrackingStore, tracking_key
from corio_client.models import ComparisonDetail, LesionComparison, LesionTrackingDetail, needs_attention
from corio_client.query_cache import QueryCache
from corio_client.structured_logging import LogContext, get_logger

logger = get_logger(__name__)

COMPARISONS_KEY = ("lesion-comparisons",)


@dataclass
class ComparisonOutcome:
    """A comparison plus the attention signal the UI may act on.

    ``needs_attention`` never changes the tracking's status by itself; the
    user confirms with ``LesionTrackingStore.mark_urgent``.
    """
    comparison: LesionComparison
    needs_attention: bool
    created: bool = True


class ComparisonRequestor:
    def __init__(self, api: ApiClient, trackings: LesionTrackingStore, cache: QueryCache,
                 stale_seconds: float = config.TRACKING_DETAIL_STALE_SECONDS):
        self.api = api
        self.trackings = trackings
        self.cache = cache
        self.stale_seconds = stale_seconds

    async def request_comparison(
        self,
        tracking_id: str,
        previous_snapshot_id: str,
        current_snapshot_id: str,
        language: Optional[str] = None,
    ) -> ComparisonOutcome:
        """
        Compare two snapshots of the same tracking.

        Args:
            tracking_id: Owning tracking
            previous_snapshot_id: The older snapshot
            current_snapshot_id: The newer snapshot
            language: Language of the comparison text

        Returns:
            ComparisonOutcome; an already existing comparison for the same
            pair is returned as-is with ``created=False``

        Raises:
            SnapshotNotInTracking: a snapshot is not part of the tracking
            InvalidSnapshotOrder: previous is not strictly older than current
            AnalysisTimeout: the extended deadline passed
            AnalysisFailed: the server could not produce a comparison
        """
        if not tracking_id or not previous_snapshot_id or not current_snapshot_id:
            raise ValidationError("Tracking id and both snapshot ids are required")

        with LogContext(tracking_id=tracking_id):
            detail = await self._resolve_history(tracking_id, previous_snapshot_id, current_snapshot_id)
            previous = detail.get_snapshot(previous_snapshot_id)
            current = detail.get_snapshot(current_snapshot_id)

            if previous.snapshot_order >= current.snapshot_order:
                logger.warning(
                    "Rejected comparison with reversed snapshot order",
                    extra={"previous_order": previous.snapshot_order, "current_order": current.snapshot_order},
                )
                raise InvalidSnapshotOrder(previous.snapshot_order, current.snapshot_order)

            existing = detail.find_comparison(previous_snapshot_id, current_snapshot_id)
            if existing is not None:
                logger.info("Comparison already exists", extra={"comparison_id": existing.id})
                return ComparisonOutcome(existing, needs_attention(existing.analysis), created=False)

            comparison = await self._post_comparison(
                tracking_id, previous_snapshot_id, current_snapshot_id, language or config.DEFAULT_LANGUAGE
            )

            self.cache.invalidate(tracking_key(tracking_id))
            attention = needs_attention(comparison.analysis)
            logger.info(
                "Comparison created",
                extra={
                    "comparison_id": comparison.id,
                    "risk_level": comparison.analysis.risk_level_raw,
                    "progression": comparison.analysis.progression_raw,
                    "needs_attention": attention,
                },
            )
            return ComparisonOutcome(comparison, attention)

    async def _resolve_history(self, tracking_id: str, *snapshot_ids: str) -> LesionTrackingDetail:
        """Fresh tracking detail that contains every given snapshot.

        The cached detail is dropped first: it may predate a snapshot or a
        comparison added from another session, and the duplicate-pair check
        must see the server's current history.
        """
        self.cache.remove(tracking_key(tracking_id))
        detail = await self.trackings.get_tracking(tracking_id)
        for snapshot_id in snapshot_ids:
            if detail.get_snapshot(snapshot_id) is None:
                raise SnapshotNotInTracking(snapshot_id, tracking_id)
        return detail

    async def _post_comparison(self, tracking_id: str, previous_snapshot_id: str, current_snapshot_id: str,
                               language: str) -> LesionComparison:
        payload = {
            "previousSnapshotId": previous_snapshot_id,
            "currentSnapshotId": current_snapshot_id,
            "language": language,
        }
        try:
            data = await self.api.post(
                f"/api/lesion-trackings/{tracking_id}/compare", payload, extended_timeout=True
            )
        except RequestTimeout as e:
            logger.error("Comparison timed out")
            raise AnalysisTimeout(str(e)) from e
        except ApiError as e:
            logger.error("Comparison rejected", extra={"status_code": e.status_code, "error_code": e.error_code})
            raise AnalysisFailed(str(e), error_code=e.error_code) from e
        except CorioClientError as e:
            logger.error("Comparison failed", extra={"error_kind": e.kind})
            raise AnalysisFailed(str(e)) from e

        try:
            return LesionComparison.from_dict(data["comparison"])
        except (KeyError, TypeError, ValueError) as e:
            raise AnalysisFailed(f"Malformed comparison response: {e}") from e

    async def get_comparison_detail(self, comparison_id: str) -> ComparisonDetail:
        """A comparison with both snapshots and its tracking."""
        if not comparison_id:
            raise ValidationError("Comparison id is required", field="comparison_id")

        async def load():
            return ComparisonDetail.from_dict(await self.api.get(f"/api/lesion-comparisons/{comparison_id}"))

        return await self.cache.fetch(COMPARISONS_KEY + (comparison_id,), load, self.stale_seconds)
