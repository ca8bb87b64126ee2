"""
Case Submission Orchestrator

One logical "submit a case" operation, in strict order:

1. create the patient record (single call, no retry)
2. upload every image sequentially, aborting on the first failure
3. submit the case for AI analysis with the extended timeout

No case exists server-side unless step 3 is reached, so a failure in steps
1-2 never leaves a partially visible case. Images uploaded before an aborted
upload are not deleted.
"""

import uuid
from typing import Optional, Sequence

from corio_client import config
from corio_client.api_client import ApiClient
from corio_client.case_store import CASES_KEY
from corio_client.errors import (
    AnalysisFailed,
    AnalysisTimeout,
    ApiError,
    CorioClientError,
    NoImagesUploaded,
    PatientCreationFailed,
    RequestTimeout,
    ValidationError,
)
from corio_client.models import Case, Patient, PatientData
from corio_client.query_cache import QueryCache
from corio_client.structured_logging import LogContext, get_logger
from corio_client.upload_client import ImageRef, UploadClient

logger = get_logger(__name__)


def validate_submission(patient_data: PatientData, image_refs: Sequence[ImageRef], language: str,
                        max_images: int = config.MAX_IMAGES):
    """Reject input that can never succeed, before anything touches the network."""
    if not [loc for loc in patient_data.lesion_location if loc and loc.strip()]:
        raise ValidationError("At least one lesion location is required", field="lesion_location")
    if len(image_refs) > max_images:
        raise ValidationError(f"At most {max_images} images can be submitted", field="image_refs")
    if language not in config.SUPPORTED_LANGUAGES:
        raise ValidationError(f"Unsupported language: {language}", field="language")
    if not image_refs:
        raise NoImagesUploaded("No images were provided")


class CaseSubmissionOrchestrator:
    """Composes patient creation, image upload and analysis into one submission."""

    def __init__(self, api: ApiClient, uploader: UploadClient, cache: QueryCache,
                 max_images: int = config.MAX_IMAGES):
        self.api = api
        self.uploader = uploader
        self.cache = cache
        self.max_images = max_images

    async def submit(
        self,
        patient_data: PatientData,
        image_refs: Sequence[ImageRef],
        language: Optional[str] = None,
    ) -> Case:
        """
        Submit a case and wait for its analysis.

        Args:
            patient_data: Patient form data
            image_refs: Local image paths, in display order
            language: "en" or "tr" (defaults to CORIO_DEFAULT_LANGUAGE)

        Returns:
            The analyzed Case, with ``analysis_errors`` set if one provider failed

        Raises:
            ValidationError, PatientCreationFailed, UploadFailed,
            NoImagesUploaded, AnalysisTimeout, AnalysisFailed
        """
        language = language or config.DEFAULT_LANGUAGE
        validate_submission(patient_data, image_refs, language, self.max_images)

        submission_id = uuid.uuid4().hex[:12]
        with LogContext(submission_id=submission_id):
            logger.info("Case submission started", extra={"image_count": len(image_refs)})

            patient = await self._create_patient(patient_data)
            image_urls = await self._upload_images(image_refs)
            case = await self._analyze(patient, patient_data, image_urls, language)

            self.cache.invalidate(CASES_KEY)
            logger.info("Case submission completed", extra={"case_id": case.case_id})
            return case

    async def _create_patient(self, patient_data: PatientData) -> Patient:
        try:
            result = await self.api.post("/api/patients", patient_data.to_payload())
            patient = Patient.from_dict(result)
        except CorioClientError as e:
            logger.error("Patient creation failed", extra={"error_kind": e.kind})
            raise PatientCreationFailed(str(e)) from e
        except (KeyError, TypeError, ValueError) as e:
            raise PatientCreationFailed(f"Malformed patient response: {e}") from e

        logger.info("Patient created", extra={"patient_id": patient.id})
        return patient

    async def _upload_images(self, image_refs: Sequence[ImageRef]):
        # UploadFailed propagates unchanged; it already names the image index
        image_urls = await self.uploader.upload_images(image_refs, prefix="lesion")
        if not image_urls:
            raise NoImagesUploaded("No images were uploaded")
        logger.info("Images uploaded", extra={"image_count": len(image_urls)})
        return image_urls

    async def _analyze(self, patient: Patient, patient_data: PatientData, image_urls, language: str) -> Case:
        payload = {
            "patientId": patient.id,
            "imageUrls": image_urls,
            "lesionLocation": ", ".join(patient_data.lesion_location),
            "symptoms": patient_data.symptoms,
            "additionalSymptoms": patient_data.additional_symptoms,
            "symptomDuration": patient_data.symptom_duration,
            "medicalHistory": patient_data.medical_history,
            "language": language,
            "isMobileRequest": True,
        }

        try:
            result = await self.api.post("/api/cases/analyze", payload, extended_timeout=True)
        except RequestTimeout as e:
            logger.error("Case analysis timed out")
            raise AnalysisTimeout(str(e)) from e
        except ApiError as e:
            logger.error("Case analysis rejected", extra={"status_code": e.status_code, "error_code": e.error_code})
            raise AnalysisFailed(str(e), error_code=e.error_code) from e
        except CorioClientError as e:
            logger.error("Case analysis failed", extra={"error_kind": e.kind})
            raise AnalysisFailed(str(e)) from e

        try:
            case = Case.from_dict(result)
        except (KeyError, TypeError, ValueError) as e:
            raise AnalysisFailed(f"Malformed analysis response: {e}") from e

        if not case.is_analyzed:
            logger.error("No provider produced an analysis", extra={"provider_errors": case.analysis_errors})
            raise AnalysisFailed("No AI provider produced an analysis", provider_errors=case.analysis_errors)

        if case.analysis_errors:
            logger.warning("Partial analysis", extra={"provider_errors": case.analysis_errors})
        return case
