"""Core data models for reports, reputation, feed and routes."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field
from pydantic import ConfigDict


CATEGORIES: tuple[str, ...] = (
    "Traffic",
    "Road Work",
    "Accident",
    "Flood",
    "Public Event",
    "Hazard",
    "Other",
)
SEVERITIES: tuple[str, ...] = ("Low", "Medium", "High")

Category = Literal["Traffic", "Road Work", "Accident", "Flood", "Public Event", "Hazard", "Other"]
Severity = Literal["Low", "Medium", "High"]
ReportStatus = Literal["published", "unpublished", "rejected"]
SafetyRating = Literal["safe", "questionable", "unsafe", "unknown"]
RouteType = Literal["fastest", "eco", "safest"]


class GeoPoint(BaseModel):
    """WGS84 coordinate."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class ReportSubmission(BaseModel):
    """Raw report as received from the calling layer."""

    model_config = ConfigDict(extra="ignore")

    user_id: Optional[str] = None
    category: Optional[str] = None
    severity: Optional[str] = "Medium"
    description: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    location_name: Optional[str] = None
    photo_ref: Optional[str] = None
    photo_bytes: Optional[bytes] = Field(default=None, repr=False, exclude=True)


class NormalizedSubmission(BaseModel):
    """Submission that passed the quality gate."""

    user_id: str
    category: Category
    severity: Severity
    description: str
    lat: float
    lng: float
    location_name: Optional[str] = None
    photo_ref: Optional[str] = None
    has_photo: bool = False


class AcceptDecision(BaseModel):
    """Quality gate acceptance."""

    submission: ReportSubmission
    normalized: NormalizedSubmission
    reason: str = "accepted"


class RejectDecision(BaseModel):
    """Quality gate rejection."""

    submission: ReportSubmission
    reason: str
    details: dict[str, Any] = Field(default_factory=dict)


class EvidenceEntry(BaseModel):
    """One step of how a confidence score was produced."""

    model_config = ConfigDict(frozen=True)

    source: str
    score: int = Field(ge=0, le=100)
    details: str = Field(default="", max_length=300)
    timestamp: datetime


class ImageLabel(BaseModel):
    name: str
    confidence: float = 0.0


class ImageAnalysis(BaseModel):
    """Output contract of an image-content analyzer."""

    success: bool = False
    score: Optional[float] = None
    labels: list[ImageLabel] = Field(default_factory=list)
    objects: list[str] = Field(default_factory=list)
    safety_rating: SafetyRating = "unknown"
    safety_violation_count: int = 0
    error: Optional[str] = None


class ImageSignal(BaseModel):
    """Image result folded into a reputation profile."""

    score: Optional[float] = None
    labels: list[str] = Field(default_factory=list)
    safety_violation_count: Optional[float] = 0


class Report(BaseModel):
    """Scored incident report."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    category: Category
    severity: Severity = "Medium"
    description: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    location_name: Optional[str] = None
    city: Optional[str] = None
    formatted_address: Optional[str] = None
    photo_ref: Optional[str] = None
    confidence_score: int = Field(ge=0, le=100)
    status: ReportStatus
    evidence: list[EvidenceEntry] = Field(default_factory=list)
    image_score: Optional[int] = None
    image_labels: list[str] = Field(default_factory=list)
    safety_rating: Optional[SafetyRating] = None
    comments_count: int = Field(default=0, ge=0)
    created_at: datetime
    expires_at: datetime

    @property
    def point(self) -> Optional[GeoPoint]:
        if self.lat is None or self.lng is None:
            return None
        return GeoPoint(lat=self.lat, lng=self.lng)


class ReputationProfile(BaseModel):
    """Running per-user statistics owned by the reputation ledger."""

    user_id: str
    reports_submitted: int = 0
    avg_confidence: float = 0.0
    image_analyses: int = 0
    avg_image_score: float = 0.0
    high_credibility_reports: int = 0
    reports_published: int = 0
    safety_violations: int = 0
    detected_labels: list[str] = Field(default_factory=list)
    credibility_score: int = 75


class Comment(BaseModel):
    """Discussion comment attached to a report."""

    id: str
    report_id: str
    user_id: str
    body: str
    parent_comment_id: Optional[str] = None
    created_at: datetime
    expires_at: datetime


class FeedItem(BaseModel):
    """Report annotated with its distance from the feed centre."""

    report: Report
    distance_km: Optional[float] = None


class IncidentSummary(BaseModel):
    """Nearby incident as seen by the route scorer."""

    category: str = "Other"
    severity: Severity = "Medium"
    age_hours: float = 0.0


class RouteResult(BaseModel):
    type: RouteType
    duration: str
    duration_minutes: int
    distance: str
    distance_km: float
    cost_estimate: int
    estimated_fuel_cost: str
    incidents_on_route: int
    high_severity_incidents: int
    safety_score: int = Field(ge=0, le=100)
    start_address: str
    end_address: str
    description: str = ""
    features: list[str] = Field(default_factory=list)


class RouteSet(BaseModel):
    fastest: RouteResult
    eco: RouteResult
    safest: RouteResult


class RouteAnalysis(BaseModel):
    eco_extra_minutes: int
    safest_extra_minutes: int
    eco_savings: int
    recommendations: list[str] = Field(default_factory=list)


class RouteComparison(BaseModel):
    routes: RouteSet
    analysis: RouteAnalysis
    recommended: RouteType
    incidents: list[IncidentSummary] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    """What the calling layer receives after a report submission."""

    report: Report
    profile: ReputationProfile
    reason: str = ""


class ReportPage(BaseModel):
    """One page of a user's submission history, newest first."""

    reports: list[Report] = Field(default_factory=list)
    total: int = 0
    limit: int
    offset: int = 0
    status: Optional[str] = None
    category: Optional[str] = None


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    credibility_score: int
    reports_published: int
    reputation_level: str


class CategoryStats(BaseModel):
    category: str
    count: int
    avg_confidence: float


class CityStats(BaseModel):
    """Published-report statistics for one city."""

    city: str
    total_incidents: int = 0
    active_reporters: int = 0
    since: datetime
    categories: list[CategoryStats] = Field(default_factory=list)
