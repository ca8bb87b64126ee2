"""
Unit tests for the CorioClient facade and error serialization.
"""

import httpx
import pytest

from corio_client import client as client_module
from corio_client.client import CorioClient, cleanup_corio_client, get_corio_client
from corio_client.errors import AnalysisFailed, UploadFailed


class TestCorioClient:

    @pytest.mark.asyncio
    async def test_components_share_api_and_cache(self):
        async with CorioClient(base_url="http://testserver",
                               transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[]))) as client:
            assert client.cases.api is client.api
            assert client.trackings.cache is client.cache
            assert client.comparisons.trackings is client.trackings
            assert client.submissions.uploader is client.uploader
            assert await client.cases.list_cases() == []
            assert len(client.cache) == 1

        assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_global_instance(self):
        first = get_corio_client()
        assert get_corio_client() is first

        await cleanup_corio_client()

        assert client_module._corio_client is None
        assert get_corio_client() is not first
        await cleanup_corio_client()


class TestErrorSerialization:

    def test_upload_failed_to_dict(self):
        assert UploadFailed(1, attempts=3).to_dict() == {
            "kind": "upload_failed",
            "message": "Upload of image 1 failed",
            "image_index": 1,
            "attempts": 3,
        }

    def test_analysis_failed_to_dict(self):
        data = AnalysisFailed(error_code="subscription_limit_reached").to_dict()
        assert data["kind"] == "analysis_failed"
        assert data["error_code"] == "subscription_limit_reached"
        assert data["provider_errors"] == []
