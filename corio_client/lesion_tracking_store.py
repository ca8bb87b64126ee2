"""
Lesion Tracking Store

Longitudinal records of one physical lesion: create, list, fetch with full
history, append snapshots, edit and delete (the server cascades deletion to
snapshots and comparisons, never to cases).

``snapshotOrder`` is assigned by the server when a snapshot is created and
is only ever read back from responses.
"""

from typing import List, Optional, Sequence, Union

from corio_client import config
from corio_client.api_client import ApiClient
from corio_client.errors import AnalysisTimeout, RequestTimeout, ValidationError
from corio_client.models import AddSnapshotResult, LesionTracking, LesionTrackingDetail, TrackingStatus
from corio_client.query_cache import QueryCache
from corio_client.structured_logging import LogContext, get_logger
from corio_client.upload_client import ImageRef, UploadClient

logger = get_logger(__name__)

TRACKINGS_KEY = ("lesion-trackings",)


def tracking_key(tracking_id: str):
    return TRACKINGS_KEY + (tracking_id,)


def _require_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise ValidationError("Tracking name is required", field="name")
    return name.strip()


def _require_id(tracking_id: str):
    if not tracking_id:
        raise ValidationError("Tracking id is required", field="tracking_id")


class LesionTrackingStore:
    """Client-side read cache and write path for lesion trackings."""

    def __init__(
        self,
        api: ApiClient,
        cache: QueryCache,
        uploader: Optional[UploadClient] = None,
        list_stale_seconds: float = config.TRACKINGS_STALE_SECONDS,
        detail_stale_seconds: float = config.TRACKING_DETAIL_STALE_SECONDS,
        max_images: int = config.MAX_IMAGES,
    ):
        self.api = api
        self.cache = cache
        self.uploader = uploader or UploadClient(api)
        self.list_stale_seconds = list_stale_seconds
        self.detail_stale_seconds = detail_stale_seconds
        self.max_images = max_images

    async def create_tracking(
        self,
        name: str,
        body_location: Optional[str] = None,
        description: Optional[str] = None,
        initial_case_id: Optional[str] = None,
    ) -> LesionTracking:
        """
        Start tracking a lesion.

        When ``initial_case_id`` is given the server seeds snapshot #1 from
        that case's images.

        Raises:
            ValidationError: ``name`` is missing or blank (no request is sent)
        """
        payload = {
            "name": _require_name(name),
            "bodyLocation": body_location or None,
            "description": description or None,
            "initialCaseId": initial_case_id or None,
        }
        data = await self.api.post("/api/lesion-trackings", payload)
        tracking = LesionTracking.from_dict(data)

        self.cache.invalidate(TRACKINGS_KEY)
        logger.info("Lesion tracking created", extra={"tracking_id": tracking.id})
        return tracking

    async def list_trackings(self) -> List[LesionTracking]:
        async def load():
            data = await self.api.get("/api/lesion-trackings")
            return [LesionTracking.from_dict(item) for item in data or []]

        return await self.cache.fetch(TRACKINGS_KEY, load, self.list_stale_seconds)

    async def get_tracking(self, tracking_id: str) -> LesionTrackingDetail:
        """Tracking with snapshots ascending and comparisons most recent first."""
        _require_id(tracking_id)

        async def load():
            return LesionTrackingDetail.from_dict(await self.api.get(f"/api/lesion-trackings/{tracking_id}"))

        return await self.cache.fetch(tracking_key(tracking_id), load, self.detail_stale_seconds)

    async def update_tracking(
        self,
        tracking_id: str,
        name: Optional[str] = None,
        body_location: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[Union[TrackingStatus, str]] = None,
    ) -> LesionTracking:
        """Edit name, location, description or status. Only given fields are sent."""
        _require_id(tracking_id)
        updates = {}
        if name is not None:
            updates["name"] = _require_name(name)
        if body_location is not None:
            updates["bodyLocation"] = body_location
        if description is not None:
            updates["description"] = description
        if status is not None:
            try:
                updates["status"] = TrackingStatus(status).value
            except ValueError as e:
                raise ValidationError(f"Unknown tracking status: {status}", field="status") from e
        if not updates:
            raise ValidationError("Nothing to update")

        data = await self.api.patch(f"/api/lesion-trackings/{tracking_id}", updates)
        # Prefix invalidation drops the list and every cached detail
        self.cache.invalidate(TRACKINGS_KEY)
        return LesionTracking.from_dict(data)

    async def mark_urgent(self, tracking_id: str) -> LesionTracking:
        """Explicit user confirmation of an attention signal."""
        return await self.update_tracking(tracking_id, status=TrackingStatus.URGENT)

    async def delete_tracking(self, tracking_id: str):
        """Delete a tracking with all its snapshots and comparisons. Cases are kept."""
        _require_id(tracking_id)
        await self.api.delete(f"/api/lesion-trackings/{tracking_id}")
        self.cache.remove(tracking_key(tracking_id))
        self.cache.invalidate(TRACKINGS_KEY)
        logger.info("Lesion tracking deleted", extra={"tracking_id": tracking_id})

    async def add_snapshot(
        self,
        tracking_id: str,
        image_urls: Sequence[str],
        case_id: Optional[str] = None,
        notes: Optional[str] = None,
        run_comparison: bool = False,
        language: Optional[str] = None,
    ) -> AddSnapshotResult:
        """
        Append a snapshot of already-uploaded images.

        Args:
            tracking_id: Owning tracking
            image_urls: Durable URLs of the snapshot images
            case_id: Case that produced these images, if any
            notes: Free-text notes
            run_comparison: Ask the server to compare against the previous snapshot
            language: Language of the comparison text

        Returns:
            The created snapshot (with its server-assigned order) and the
            comparison when one was run
        """
        _require_id(tracking_id)
        if not image_urls:
            raise ValidationError("At least one image URL is required", field="image_urls")

        payload = {
            "caseId": case_id or None,
            "imageUrls": list(image_urls),
            "notes": notes or None,
            "runComparison": bool(run_comparison),
            "language": language or config.DEFAULT_LANGUAGE,
        }
        # A server-side comparison runs an AI call inside this request
        try:
            data = await self.api.post(
                f"/api/lesion-trackings/{tracking_id}/snapshots",
                payload,
                extended_timeout=run_comparison,
            )
        except RequestTimeout as e:
            if not run_comparison:
                raise
            logger.error("Snapshot comparison timed out", extra={"tracking_id": tracking_id})
            raise AnalysisTimeout(str(e)) from e
        result = AddSnapshotResult.from_dict(data)

        self.cache.invalidate(TRACKINGS_KEY)
        logger.info(
            "Snapshot added",
            extra={
                "tracking_id": tracking_id,
                "snapshot_order": result.snapshot.snapshot_order,
                "compared": result.comparison is not None,
            },
        )
        return result

    async def capture_snapshot(
        self,
        tracking_id: str,
        image_refs: Sequence[ImageRef],
        notes: Optional[str] = None,
        run_comparison: bool = False,
        language: Optional[str] = None,
    ) -> AddSnapshotResult:
        """
        Upload local images and append them as a new snapshot.

        The first upload failure aborts with UploadFailed and nothing is
        appended to the tracking.
        """
        _require_id(tracking_id)
        if not image_refs:
            raise ValidationError("At least one image is required", field="image_refs")
        if len(image_refs) > self.max_images:
            raise ValidationError(f"At most {self.max_images} images can be captured", field="image_refs")

        with LogContext(tracking_id=tracking_id):
            image_urls = await self.uploader.upload_images(image_refs, prefix="lesion-snapshot")
            return await self.add_snapshot(
                tracking_id,
                image_urls,
                notes=notes,
                run_comparison=run_comparison,
                language=language,
            )
