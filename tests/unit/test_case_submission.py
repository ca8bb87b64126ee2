"""
Unit tests for the case submission orchestrator.

The backend is a MockTransport router so each phase can be failed on
purpose; the phase that failed must be identifiable from the error.
"""

import json

import httpx
import pytest

from corio_client.api_client import ApiClient
from corio_client.case_submission import CaseSubmissionOrchestrator
from corio_client.errors import (
    AnalysisFailed,
    AnalysisTimeout,
    NoImagesUploaded,
    PatientCreationFailed,
    UploadFailed,
    ValidationError,
)
from corio_client.models import AnalysisProvider, PatientData
from corio_client.query_cache import QueryCache
from corio_client.retry_policy import RetryPolicy
from corio_client.upload_client import UploadClient
from fixtures.mock_data import generate_case_data


class Backend:
    """Routes requests by (method, path); overrides replace a route's handler."""

    def __init__(self):
        self.log = []
        self.analyze_bodies = []
        self.routes = {
            ("POST", "/api/patients"): self.create_patient,
            ("POST", "/api/upload/base64"): self.upload,
            ("POST", "/api/cases/analyze"): self.analyze,
        }

    def __call__(self, request):
        self.log.append((request.method, request.url.path))
        return self.routes[(request.method, request.url.path)](request)

    def paths(self):
        return [path for _, path in self.log]

    def create_patient(self, request):
        body = json.loads(request.content)
        return httpx.Response(200, json={"id": "patient-uuid", "patientId": body["patientId"]})

    def upload(self, request):
        body = json.loads(request.content)
        return httpx.Response(200, json={"url": f"https://storage.test/{body['filename']}"})

    def analyze(self, request):
        body = json.loads(request.content)
        self.analyze_bodies.append(body)
        return httpx.Response(200, json=generate_case_data(image_urls=body["imageUrls"], analysis_errors=[]))


@pytest.fixture
def backend():
    return Backend()


@pytest.fixture
async def orchestrator(backend, recording_sleep):
    api = ApiClient(base_url="http://testserver", token="", transport=httpx.MockTransport(backend))
    uploader = UploadClient(api, RetryPolicy(max_attempts=3, base_delay=1.0), sleep=recording_sleep)
    yield CaseSubmissionOrchestrator(api, uploader, QueryCache(), max_images=3)
    await api.close()


@pytest.fixture
def patient_data():
    return PatientData(
        lesion_location=["back", "left shoulder"],
        symptoms=["itching", "bleeding"],
        additional_symptoms="Occasional pain",
        symptom_duration="1-3 months",
        medical_history=["family history of melanoma"],
        age=45,
    )


class TestValidation:

    @pytest.mark.asyncio
    async def test_missing_location_fails_before_network(self, orchestrator, backend, image_files):
        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.submit(PatientData(lesion_location=[" "]), image_files[:1])

        assert exc_info.value.field == "lesion_location"
        assert backend.log == []

    @pytest.mark.asyncio
    async def test_too_many_images(self, orchestrator, backend, patient_data, image_files):
        with pytest.raises(ValidationError):
            await orchestrator.submit(patient_data, image_files + image_files[:1])
        assert backend.log == []

    @pytest.mark.asyncio
    async def test_unsupported_language(self, orchestrator, backend, patient_data, image_files):
        with pytest.raises(ValidationError):
            await orchestrator.submit(patient_data, image_files[:1], language="de")
        assert backend.log == []

    @pytest.mark.asyncio
    async def test_empty_image_list(self, orchestrator, backend, patient_data):
        with pytest.raises(NoImagesUploaded):
            await orchestrator.submit(patient_data, [])
        assert backend.log == []


class TestSubmit:

    @pytest.mark.asyncio
    async def test_phases_run_in_order(self, orchestrator, backend, patient_data, image_files):
        case = await orchestrator.submit(patient_data, image_files[:2], language="tr")

        assert backend.paths() == [
            "/api/patients",
            "/api/upload/base64",
            "/api/upload/base64",
            "/api/cases/analyze",
        ]
        assert len(case.image_urls) == 2
        assert case.is_analyzed

    @pytest.mark.asyncio
    async def test_analysis_payload(self, orchestrator, backend, patient_data, image_files):
        await orchestrator.submit(patient_data, image_files[:1], language="tr")

        body = backend.analyze_bodies[0]
        assert body["patientId"] == "patient-uuid"
        assert body["lesionLocation"] == "back, left shoulder"
        assert body["symptoms"] == ["itching", "bleeding"]
        assert body["language"] == "tr"
        assert body["isMobileRequest"] is True
        assert body["imageUrls"][0].startswith("https://storage.test/lesion-")

    @pytest.mark.asyncio
    async def test_success_invalidates_case_list(self, orchestrator, patient_data, image_files):
        orchestrator.cache.set(("cases",), [])
        orchestrator.cache.set(("cases", "old"), {})

        await orchestrator.submit(patient_data, image_files[:1])

        assert len(orchestrator.cache) == 0

    @pytest.mark.asyncio
    async def test_partial_provider_failure_returns_case(self, orchestrator, backend, patient_data, image_files):
        errors = [{"provider": "openai", "code": "timeout", "message": "OpenAI timed out"}]
        backend.routes[("POST", "/api/cases/analyze")] = lambda request: httpx.Response(
            200, json=generate_case_data(providers=("gemini",), analysis_errors=errors)
        )

        case = await orchestrator.submit(patient_data, image_files[:1])

        assert list(case.analyses) == [AnalysisProvider.GEMINI]
        assert case.analysis_errors == errors


class TestPhaseErrors:

    @pytest.mark.asyncio
    async def test_patient_creation_failure(self, orchestrator, backend, patient_data, image_files):
        backend.routes[("POST", "/api/patients")] = lambda request: httpx.Response(400, json={"error": "Invalid data"})

        with pytest.raises(PatientCreationFailed):
            await orchestrator.submit(patient_data, image_files[:1])

        assert "/api/upload/base64" not in backend.paths()

    @pytest.mark.asyncio
    async def test_patient_creation_is_not_retried(self, orchestrator, backend, patient_data, image_files):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        backend.routes[("POST", "/api/patients")] = refuse

        with pytest.raises(PatientCreationFailed):
            await orchestrator.submit(patient_data, image_files[:1])

        assert backend.paths() == ["/api/patients"]

    @pytest.mark.asyncio
    async def test_upload_failure_creates_no_case(self, orchestrator, backend, patient_data, image_files):
        backend.routes[("POST", "/api/upload/base64")] = lambda request: httpx.Response(
            500, json={"error": "Failed to upload image"}
        )

        with pytest.raises(UploadFailed) as exc_info:
            await orchestrator.submit(patient_data, image_files)

        assert exc_info.value.image_index == 0
        assert exc_info.value.phase == "upload"
        assert "/api/cases/analyze" not in backend.paths()

    @pytest.mark.asyncio
    async def test_analysis_timeout(self, orchestrator, backend, patient_data, image_files):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        backend.routes[("POST", "/api/cases/analyze")] = slow

        with pytest.raises(AnalysisTimeout):
            await orchestrator.submit(patient_data, image_files[:1])

        # A long-running analysis is never resent
        assert backend.paths().count("/api/cases/analyze") == 1

    @pytest.mark.asyncio
    async def test_analysis_server_error(self, orchestrator, backend, patient_data, image_files):
        backend.routes[("POST", "/api/cases/analyze")] = lambda request: httpx.Response(
            500, json={"error": "Analysis failed"}
        )

        with pytest.raises(AnalysisFailed):
            await orchestrator.submit(patient_data, image_files[:1])

    @pytest.mark.asyncio
    async def test_subscription_limit_keeps_error_code(self, orchestrator, backend, patient_data, image_files):
        backend.routes[("POST", "/api/cases/analyze")] = lambda request: httpx.Response(403, json={
            "error": "subscription_limit_reached",
            "message": "Monthly analysis limit reached",
            "upgradeRequired": True,
        })

        with pytest.raises(AnalysisFailed) as exc_info:
            await orchestrator.submit(patient_data, image_files[:1])

        assert exc_info.value.error_code == "subscription_limit_reached"

    @pytest.mark.asyncio
    async def test_no_provider_analysis(self, orchestrator, backend, patient_data, image_files):
        errors = [
            {"provider": "gemini", "message": "quota"},
            {"provider": "openai", "message": "timeout"},
        ]
        backend.routes[("POST", "/api/cases/analyze")] = lambda request: httpx.Response(
            200, json=generate_case_data(providers=(), analysis_errors=errors)
        )

        with pytest.raises(AnalysisFailed) as exc_info:
            await orchestrator.submit(patient_data, image_files[:1])

        assert exc_info.value.provider_errors == errors

    @pytest.mark.asyncio
    async def test_malformed_case_timestamp_is_analysis_failure(self, orchestrator, backend, patient_data,
                                                                 image_files):
        backend.routes[("POST", "/api/cases/analyze")] = lambda request: httpx.Response(
            200, json=generate_case_data(analysis_errors=[], createdAt="not-a-date")
        )

        with pytest.raises(AnalysisFailed) as exc_info:
            await orchestrator.submit(patient_data, image_files[:1])

        assert exc_info.value.phase == "analysis"
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_malformed_patient_timestamp_is_patient_failure(self, orchestrator, backend, patient_data,
                                                                   image_files):
        backend.routes[("POST", "/api/patients")] = lambda request: httpx.Response(
            200, json={"id": "patient-uuid", "patientId": "P-1", "createdAt": "yesterday"}
        )

        with pytest.raises(PatientCreationFailed):
            await orchestrator.submit(patient_data, image_files)

        assert backend.paths() == ["/api/patients"]
