"""
CorioClient facade

Wires one ApiClient, one QueryCache and every component on top of them.

Usage:
    async with CorioClient() as client:
        case = await client.submissions.submit(patient_data, ["lesion.jpg"], language="tr")
        tracking = await client.trackings.create_tracking("Left shoulder mole", initial_case_id=case.id)
"""

import asyncio
from typing import Awaitable, Callable, Optional

import httpx

from corio_client.api_client import ApiClient
from corio_client.case_store import CaseStore
from corio_client.case_submission import CaseSubmissionOrchestrator
from corio_client.comparison_requestor import ComparisonRequestor
from corio_client.lesion_tracking_store import LesionTrackingStore
from corio_client.query_cache import QueryCache
from corio_client.retry_policy import RetryPolicy
from corio_client.upload_client import UploadClient


class CorioClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        analysis_timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cache: Optional[QueryCache] = None,
    ):
        self.api = ApiClient(
            base_url=base_url,
            token=token,
            timeout=timeout,
            analysis_timeout=analysis_timeout,
            transport=transport,
        )
        self.cache = cache or QueryCache()
        self.uploader = UploadClient(self.api, retry_policy, sleep=sleep)
        self.cases = CaseStore(self.api, self.cache)
        self.submissions = CaseSubmissionOrchestrator(self.api, self.uploader, self.cache)
        self.trackings = LesionTrackingStore(self.api, self.cache, self.uploader)
        self.comparisons = ComparisonRequestor(self.api, self.trackings, self.cache)

    async def close(self):
        self.cache.clear()
        await self.api.close()

    async def __aenter__(self) -> "CorioClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


# Global client instance
_corio_client: Optional[CorioClient] = None


def get_corio_client() -> CorioClient:
    """Get or create the global client instance"""
    global _corio_client
    if _corio_client is None:
        _corio_client = CorioClient()
    return _corio_client


async def cleanup_corio_client():
    """Close the global client on shutdown"""
    global _corio_client
    if _corio_client:
        await _corio_client.close()
        _corio_client = None
