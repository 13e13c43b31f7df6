"""
Project domain models.

These models define restoration projects, their evidence, their workers
and the request timeline recorded as they move through approval.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


class EcosystemType(str, Enum):
    """Blue carbon ecosystem a project restores."""
    MANGROVE = "Mangrove"
    SEAGRASS = "Seagrass"
    SALT_MARSH = "SaltMarsh"
    CORAL_REEF = "CoralReef"
    ESTUARY = "Estuary"


class ProjectKind(str, Enum):
    """Kind of field work."""
    PLANTATION = "Plantation"
    RESTORATION = "Restoration"


class ProjectStatus(str, Enum):
    """Status of a project in the approval and issuance workflow."""
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under-review"
    CORRECTIONS_REQUESTED = "corrections-requested"
    APPROVED = "approved"
    IN_PROGRESS = "in-progress"
    FINAL_VERIFICATION = "final-verification"
    CREDITS_ISSUED = "credits-issued"


class ActorRole(str, Enum):
    """Role of the authenticated actor performing an operation."""
    PANCHAYAT = "panchayat"
    NGO = "ngo"
    NCCR_REVIEWER = "nccr_reviewer"
    SYSTEM = "system"


class Actor(BaseModel):
    """Authenticated actor, trusted as given."""
    id: str = Field(..., description="Actor identifier")
    role: ActorRole = Field(..., description="Actor role")
    name: str = Field("", description="Display name")


class GeoPoint(BaseModel):
    """GPS coordinate."""
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class MediaEvidence(BaseModel):
    """Geotagged photo or video captured on site."""
    url: str = Field(..., description="Location of the uploaded media")
    captured_at: datetime = Field(default_factory=utc_now, description="Capture timestamp")
    location: GeoPoint = Field(..., description="Capture coordinate")
    accuracy_m: float = Field(0.0, ge=0, description="GPS accuracy radius in metres")


class WorkerStatus(str, Enum):
    """Worker availability."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class Worker(BaseModel):
    """Field worker assigned to a project."""
    id: str = Field(..., description="Unique identifier")
    name: str = Field(..., description="Worker name")
    mobile: str = Field(..., description="Mobile number")
    national_id_ref: Optional[str] = Field(None, description="Masked national id reference")
    payment_id: str = Field(..., description="UPI or bank payment identifier")
    assigned_tasks: Set[str] = Field(default_factory=set, description="Assigned task names")
    earned_credits: float = Field(0.0, ge=0, description="Credits earned on this project")
    status: WorkerStatus = Field(WorkerStatus.ACTIVE, description="Worker status")
    joined_at: datetime = Field(default_factory=utc_now, description="When the worker joined")


class TimelineEntry(BaseModel):
    """One recorded status change."""
    status: ProjectStatus = Field(..., description="Status entered")
    timestamp: datetime = Field(..., description="When the status was entered")
    actor_id: str = Field(..., description="Who triggered the change")
    actor_role: ActorRole = Field(..., description="Role of the actor")
    comment: Optional[str] = Field(None, description="Reviewer or submitter comment")
    cycle: int = Field(1, ge=1, description="Approval cycle this entry belongs to")
    active: bool = Field(False, description="Whether this entry is the current head")
    certificate_id: Optional[str] = Field(None, description="Certificate attached on issuance")


class RequestTimeline(BaseModel):
    """Ordered status history of a project request."""
    entries: List[TimelineEntry] = Field(default_factory=list, description="Entries, oldest first")

    @property
    def active_entry(self) -> Optional[TimelineEntry]:
        for entry in reversed(self.entries):
            if entry.active:
                return entry
        return None

    @property
    def current_cycle(self) -> int:
        return self.entries[-1].cycle if self.entries else 1

    def entered_at(self, status: ProjectStatus) -> Optional[datetime]:
        """Timestamp of the most recent entry into ``status``."""
        for entry in reversed(self.entries):
            if entry.status == status:
                return entry.timestamp
        return None

    def cycle(self, number: int) -> List[TimelineEntry]:
        return [entry for entry in self.entries if entry.cycle == number]


class Project(BaseModel):
    """Restoration project model."""
    id: str = Field("", description="Unique identifier")
    title: str = Field(..., description="Project title")
    panchayat_id: str = Field(..., description="Owning Panchayat")
    ngo_partner_id: Optional[str] = Field(None, description="Optional NGO partner")
    submitter_id: str = Field(..., description="Actor who submitted the project")
    ecosystem_type: EcosystemType = Field(..., description="Ecosystem restored")
    project_kind: ProjectKind = Field(ProjectKind.RESTORATION, description="Kind of work")
    location: str = Field("", description="Village, district or coastline")
    hectares_restored: float = Field(0.0, ge=0, description="Area restored in hectares")
    status: ProjectStatus = Field(ProjectStatus.SUBMITTED, description="Workflow status")
    progress_percent: float = Field(0.0, ge=0, le=100, description="Advisory progress")
    created_at: datetime = Field(default_factory=utc_now, description="When the project was created")
    updated_at: datetime = Field(default_factory=utc_now, description="When the project was last updated")
    revision: int = Field(0, ge=0, description="Optimistic concurrency counter")
    media: List[MediaEvidence] = Field(default_factory=list, description="Media evidence")
    workers: List[Worker] = Field(default_factory=list, description="Assigned workers")
    timeline: RequestTimeline = Field(default_factory=RequestTimeline, description="Status history")
    certificate_id: Optional[str] = Field(None, description="Issued certificate id")

    @property
    def is_issued(self) -> bool:
        return self.status == ProjectStatus.CREDITS_ISSUED

    def find_worker(self, worker_id: str) -> Optional[Worker]:
        for worker in self.workers:
            if worker.id == worker_id:
                return worker
        return None
