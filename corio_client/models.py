"""
Domain models for cases and longitudinal lesion tracking.

The backend speaks JSON with camelCase keys; every model parses itself with
``from_dict`` and request bodies are built with ``to_payload``. Values the
server owns (ids, caseId, snapshotOrder, snapshotCount, timestamps) are only
ever read from responses, never computed locally.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# --- Enums ---

class TrackingStatus(Enum):
    MONITORING = "monitoring"
    RESOLVED = "resolved"
    URGENT = "urgent"


class RiskLevel(Enum):
    LOW = "low"
    MODERATE = "moderate"
    ELEVATED = "elevated"
    HIGH = "high"


class Progression(Enum):
    STABLE = "stable"
    IMPROVED = "improved"
    WORSENED = "worsened"
    SIGNIFICANT_CHANGE = "significant_change"


class AnalysisProvider(Enum):
    GEMINI = "gemini"
    OPENAI = "openai"


# --- Parsing helpers ---

def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, accepting a trailing 'Z'."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _parse_enum(enum_cls, value, default=None):
    """Map a server string onto ``enum_cls`` ignoring case and surrounding space."""
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        pass
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        return default


# =============================================================================
# PATIENT
# =============================================================================

@dataclass
class PatientData:
    """Patient form data collected for one submission."""
    lesion_location: List[str]
    symptoms: List[str] = field(default_factory=list)
    additional_symptoms: str = ""
    symptom_duration: str = ""
    medical_history: List[str] = field(default_factory=list)
    patient_id: str = ""
    age: Optional[int] = None
    gender: str = ""
    skin_type: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "patientId": self.patient_id or f"P-{int(time.time() * 1000)}",
            "age": self.age,
            "gender": self.gender or None,
            "skinType": self.skin_type or None,
        }


@dataclass
class Patient:
    id: str
    patient_id: str
    age: Optional[int] = None
    gender: Optional[str] = None
    skin_type: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Patient":
        return cls(
            id=str(data["id"]),
            patient_id=data.get("patientId") or "",
            age=data.get("age"),
            gender=data.get("gender"),
            skin_type=data.get("skinType"),
            created_at=parse_timestamp(data.get("createdAt")),
        )


# =============================================================================
# CASE
# =============================================================================

@dataclass
class DiagnosisResult:
    """One ranked diagnosis from an AI provider (confidence is 0-100)."""
    name: str
    confidence: float
    description: str = ""
    key_features: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiagnosisResult":
        return cls(
            name=data.get("name", ""),
            confidence=float(data.get("confidence") or 0),
            description=data.get("description") or "",
            key_features=list(data.get("keyFeatures") or []),
            recommendations=list(data.get("recommendations") or []),
        )


@dataclass
class ProviderAnalysis:
    diagnoses: List[DiagnosisResult]
    analysis_time: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ProviderAnalysis"]:
        if not data:
            return None
        return cls(
            diagnoses=[DiagnosisResult.from_dict(d) for d in data.get("diagnoses") or []],
            analysis_time=float(data.get("analysisTime") or 0),
        )

    @property
    def top_diagnosis(self) -> Optional[DiagnosisResult]:
        return self.diagnoses[0] if self.diagnoses else None


@dataclass
class Case:
    """One analyzed diagnostic submission."""
    id: str
    case_id: str
    image_urls: List[str]
    patient_id: Optional[str] = None
    lesion_location: Optional[str] = None
    symptoms: List[str] = field(default_factory=list)
    additional_symptoms: Optional[str] = None
    symptom_duration: Optional[str] = None
    medical_history: List[str] = field(default_factory=list)
    analyses: Dict[AnalysisProvider, ProviderAnalysis] = field(default_factory=dict)
    selected_provider: Optional[AnalysisProvider] = None
    dermatologist_diagnosis: Optional[str] = None
    dermatologist_notes: Optional[str] = None
    user_notes: Optional[str] = None
    is_favorite: bool = False
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    # Per-provider failures reported alongside a fresh analysis; not persisted server-side
    analysis_errors: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Case":
        image_urls = list(data.get("imageUrls") or [])
        if not image_urls and data.get("imageUrl"):
            image_urls = [data["imageUrl"]]

        analyses = {}
        for provider in AnalysisProvider:
            analysis = ProviderAnalysis.from_dict(data.get(f"{provider.value}Analysis"))
            if analysis is not None:
                analyses[provider] = analysis

        return cls(
            id=str(data["id"]),
            case_id=data.get("caseId") or "",
            image_urls=image_urls,
            patient_id=data.get("patientId"),
            lesion_location=data.get("lesionLocation"),
            symptoms=list(data.get("symptoms") or []),
            additional_symptoms=data.get("additionalSymptoms"),
            symptom_duration=data.get("symptomDuration"),
            medical_history=list(data.get("medicalHistory") or []),
            analyses=analyses,
            selected_provider=_parse_enum(AnalysisProvider, data.get("selectedAnalysisProvider")),
            dermatologist_diagnosis=data.get("dermatologistDiagnosis"),
            dermatologist_notes=data.get("dermatologistNotes"),
            user_notes=data.get("userNotes"),
            is_favorite=bool(data.get("isFavorite")),
            status=data.get("status"),
            created_at=parse_timestamp(data.get("createdAt")),
            analysis_errors=list(data.get("analysisErrors") or []),
        )

    @property
    def is_analyzed(self) -> bool:
        return bool(self.analyses)


# =============================================================================
# LESION TRACKING
# =============================================================================

@dataclass
class LesionTracking:
    id: str
    name: str
    status: TrackingStatus = TrackingStatus.MONITORING
    body_location: Optional[str] = None
    description: Optional[str] = None
    snapshot_count: int = 0
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LesionTracking":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            status=_parse_enum(TrackingStatus, data.get("status"), TrackingStatus.MONITORING),
            body_location=data.get("bodyLocation"),
            description=data.get("description"),
            snapshot_count=int(data.get("snapshotCount") or 0),
            user_id=data.get("userId"),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class LesionSnapshot:
    """One observation of a tracked lesion. ``snapshot_order`` is server-assigned."""
    id: str
    tracking_id: str
    snapshot_order: int
    image_urls: List[str]
    case_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LesionSnapshot":
        return cls(
            id=str(data["id"]),
            tracking_id=str(data["lesionTrackingId"]),
            snapshot_order=int(data["snapshotOrder"]),
            image_urls=list(data.get("imageUrls") or []),
            case_id=data.get("caseId"),
            notes=data.get("notes"),
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class ComparisonAnalysis:
    """
    Structured AI diff between two snapshots. A missing change field means no material change.

    ``risk_level`` and ``overall_progression`` are None when the server sent
    nothing or a value outside the known categories; the string it sent is
    kept in ``risk_level_raw`` and ``progression_raw``.
    """
    risk_level: Optional[RiskLevel]
    overall_progression: Optional[Progression]
    change_summary: str = ""
    detailed_analysis: str = ""
    size_change: Optional[str] = None
    color_change: Optional[str] = None
    border_change: Optional[str] = None
    texture_change: Optional[str] = None
    recommendations: List[str] = field(default_factory=list)
    time_elapsed: str = ""
    analysis_time: float = 0.0
    risk_level_raw: Optional[str] = None
    progression_raw: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComparisonAnalysis":
        changes = data.get("changes") or {}
        risk_raw = data.get("riskLevel")
        progression_raw = data.get("overallProgression")
        return cls(
            risk_level=_parse_enum(RiskLevel, risk_raw),
            overall_progression=_parse_enum(Progression, progression_raw),
            change_summary=data.get("changeSummary") or "",
            detailed_analysis=data.get("detailedAnalysis") or "",
            size_change=data.get("sizeChange", changes.get("size")) or None,
            color_change=data.get("colorChange", changes.get("color")) or None,
            border_change=data.get("borderChange", changes.get("border")) or None,
            texture_change=data.get("textureChange", changes.get("texture")) or None,
            recommendations=list(data.get("recommendations") or []),
            time_elapsed=data.get("timeElapsed") or "",
            analysis_time=float(data.get("analysisTime") or 0),
            risk_level_raw=str(risk_raw) if risk_raw is not None else None,
            progression_raw=str(progression_raw) if progression_raw is not None else None,
        )

    @property
    def changed_attributes(self) -> List[str]:
        attrs = {
            "size": self.size_change,
            "color": self.color_change,
            "border": self.border_change,
            "texture": self.texture_change,
        }
        return [name for name, value in attrs.items() if value]


@dataclass
class LesionComparison:
    id: str
    tracking_id: str
    previous_snapshot_id: str
    current_snapshot_id: str
    analysis: ComparisonAnalysis
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LesionComparison":
        return cls(
            id=str(data["id"]),
            tracking_id=str(data["lesionTrackingId"]),
            previous_snapshot_id=str(data["previousSnapshotId"]),
            current_snapshot_id=str(data["currentSnapshotId"]),
            analysis=ComparisonAnalysis.from_dict(data.get("comparisonAnalysis") or {}),
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class LesionTrackingDetail:
    """A tracking with its full history.

    Snapshots are ascending by ``snapshot_order``; comparisons are most recent
    first (descending by the order of their current snapshot).
    """
    tracking: LesionTracking
    snapshots: List[LesionSnapshot]
    comparisons: List[LesionComparison]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LesionTrackingDetail":
        snapshots = sorted(
            (LesionSnapshot.from_dict(s) for s in data.get("snapshots") or []),
            key=lambda s: s.snapshot_order,
        )
        order_by_id = {s.id: s.snapshot_order for s in snapshots}
        comparisons = sorted(
            (LesionComparison.from_dict(c) for c in data.get("comparisons") or []),
            key=lambda c: order_by_id.get(c.current_snapshot_id, -1),
            reverse=True,
        )
        return cls(
            tracking=LesionTracking.from_dict(data["tracking"]),
            snapshots=snapshots,
            comparisons=comparisons,
        )

    def get_snapshot(self, snapshot_id: str) -> Optional[LesionSnapshot]:
        for snapshot in self.snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    def find_comparison(self, previous_snapshot_id: str, current_snapshot_id: str) -> Optional[LesionComparison]:
        for comparison in self.comparisons:
            if (comparison.previous_snapshot_id == previous_snapshot_id
                    and comparison.current_snapshot_id == current_snapshot_id):
                return comparison
        return None

    @property
    def latest_comparison(self) -> Optional[LesionComparison]:
        return self.comparisons[0] if self.comparisons else None


@dataclass
class AddSnapshotResult:
    snapshot: LesionSnapshot
    comparison: Optional[LesionComparison] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AddSnapshotResult":
        comparison = data.get("comparison")
        return cls(
            snapshot=LesionSnapshot.from_dict(data["snapshot"]),
            comparison=LesionComparison.from_dict(comparison) if comparison else None,
        )


@dataclass
class ComparisonDetail:
    comparison: LesionComparison
    previous_snapshot: Optional[LesionSnapshot]
    current_snapshot: Optional[LesionSnapshot]
    tracking: Optional[LesionTracking]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComparisonDetail":
        previous = data.get("previousSnapshot")
        current = data.get("currentSnapshot")
        tracking = data.get("tracking")
        return cls(
            comparison=LesionComparison.from_dict(data["comparison"]),
            previous_snapshot=LesionSnapshot.from_dict(previous) if previous else None,
            current_snapshot=LesionSnapshot.from_dict(current) if current else None,
            tracking=LesionTracking.from_dict(tracking) if tracking else None,
        )


def needs_attention(analysis: ComparisonAnalysis) -> bool:
    """Whether a comparison should prompt the user to mark the tracking urgent.

    This is only a signal for the presentation layer; tracking status is never
    changed automatically.
    """
    return (
        analysis.risk_level == RiskLevel.HIGH
        or analysis.overall_progression in (Progression.WORSENED, Progression.SIGNIFICANT_CHANGE)
    )
