"""
Case Store

Reads and mutations of analyzed cases. The server is the only source of
truth: reads go through the query cache, every write is followed by an
invalidation so the next read refetches.
"""

from typing import List, Optional, Union

from corio_client import config
from corio_client.api_client import ApiClient
from corio_client.errors import ValidationError
from corio_client.models import AnalysisProvider, Case
from corio_client.query_cache import QueryCache
from corio_client.structured_logging import get_logger

logger = get_logger(__name__)

CASES_KEY = ("cases",)


def case_key(case_id: str):
    return CASES_KEY + (case_id,)


class CaseStore:
    """Case list/detail reads and clinician, notes and favorite mutations.

    ``case_id`` arguments accept either the internal id or the human
    ``DR-...`` case id; the server resolves both.
    """

    def __init__(self, api: ApiClient, cache: QueryCache, stale_seconds: float = config.CASES_STALE_SECONDS):
        self.api = api
        self.cache = cache
        self.stale_seconds = stale_seconds

    async def list_cases(self) -> List[Case]:
        async def load():
            data = await self.api.get("/api/cases")
            return [Case.from_dict(item) for item in data or []]

        return await self.cache.fetch(CASES_KEY, load, self.stale_seconds)

    async def get_case(self, case_id: str) -> Case:
        _require_id(case_id)

        async def load():
            return Case.from_dict(await self.api.get(f"/api/cases/{case_id}"))

        return await self.cache.fetch(case_key(case_id), load, self.stale_seconds)

    async def set_favorite(self, case_id: str, is_favorite: bool) -> Case:
        _require_id(case_id)
        data = await self.api.patch(f"/api/mobile/cases/{case_id}/favorite", {"isFavorite": bool(is_favorite)})
        self.cache.invalidate(CASES_KEY)
        return Case.from_dict(data)

    async def update_notes(self, case_id: str, notes: Optional[str]) -> Case:
        """Replace the user's free-text notes; ``None`` or blank clears them."""
        _require_id(case_id)
        notes = notes.strip() if notes else None
        data = await self.api.patch(f"/api/mobile/cases/{case_id}/notes", {"notes": notes or None})
        self.cache.invalidate(CASES_KEY)
        return Case.from_dict(data)

    async def set_dermatologist_diagnosis(self, case_id: str, diagnosis: str, notes: str = "") -> Case:
        _require_id(case_id)
        if not diagnosis or not diagnosis.strip():
            raise ValidationError("Dermatologist diagnosis is required", field="diagnosis")

        data = await self.api.post(
            f"/api/cases/{case_id}/dermatologist-diagnosis",
            {"dermatologistDiagnosis": diagnosis.strip(), "dermatologistNotes": notes},
        )
        self.cache.invalidate(CASES_KEY)
        return Case.from_dict(data)

    async def select_analysis_provider(self, case_id: str, provider: Union[AnalysisProvider, str]) -> Case:
        _require_id(case_id)
        try:
            provider = AnalysisProvider(provider)
        except ValueError as e:
            raise ValidationError(f"Unknown analysis provider: {provider}", field="provider") from e

        data = await self.api.patch(f"/api/mobile/cases/{case_id}/select-provider", {"provider": provider.value})
        self.cache.invalidate(CASES_KEY)
        return Case.from_dict(data)

    async def generate_report(self, case_id: str) -> bytes:
        """Render the case report server-side and return the PDF bytes."""
        _require_id(case_id)
        return await self.api.post_for_bytes(f"/api/cases/{case_id}/report")

    async def delete_case(self, case_id: str):
        """Delete a case. Irreversible; lesion snapshots referring to it are kept."""
        _require_id(case_id)
        await self.api.delete(f"/api/cases/{case_id}")
        self.cache.remove(case_key(case_id))
        self.cache.invalidate(CASES_KEY)
        logger.info("Case deleted", extra={"case_id": case_id})


def _require_id(case_id: str):
    if not case_id:
        raise ValidationError("Case id is required", field="case_id")
