"""
Certificate domain models.

These models define issued carbon credit certificates, the payload
recorded on the ledger, issuance progress events and the credit views
shown for projects that are ready for, or have received, credits.
"""
import hashlib
import json
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field

from blue_carbon.domains.projects import EcosystemType, utc_now

DEFAULT_METHODOLOGY = "VM0033 - Methodology for Tidal Wetland and Seagrass Restoration"


class CertificateStatus(str, Enum):
    """Registry status of a certificate."""
    ACTIVE = "Active"
    RETIRED = "Retired"
    TRANSFERRED = "Transferred"


class IssuancePayload(BaseModel):
    """Content recorded on the ledger for one issuance."""
    project_id: str = Field(..., description="Project receiving credits")
    credits: int = Field(..., gt=0, description="Credits issued in tCO2e")
    timestamp: datetime = Field(..., description="When the project entered final verification")

    def canonical(self) -> bytes:
        """Stable byte encoding used for content addressing."""
        return json.dumps(
            {
                "project_id": self.project_id,
                "credits": self.credits,
                "timestamp": self.timestamp.isoformat(),
            },
            sort_keys=True,
            separators=(",", ":"),
        ).encode("utf-8")

    def content_hash(self, algorithm: str = "sha256") -> str:
        return "0x" + hashlib.new(algorithm, self.canonical()).hexdigest()


class Certificate(BaseModel):
    """Carbon credit certificate, created exactly once per project."""
    certificate_id: str = Field(..., description="Stable unique identifier")
    project_id: str = Field(..., description="Project the credits belong to")
    credits_generated: int = Field(..., gt=0, description="Credits in tCO2e")
    date_issued: datetime = Field(default_factory=utc_now, description="Issue date")
    blockchain_hash: str = Field(..., description="Ledger hash of the issuance payload")
    vintage_year: int = Field(..., description="Year the removal occurred")
    methodology: str = Field(DEFAULT_METHODOLOGY, description="Crediting methodology")
    status: CertificateStatus = Field(CertificateStatus.ACTIVE, description="Registry status")
    ecosystem_type: Optional[EcosystemType] = Field(None, description="Ecosystem at issuance")
    hectares_restored: Optional[float] = Field(None, description="Area at issuance")

    @staticmethod
    def make_id(vintage_year: int, blockchain_hash: str) -> str:
        """Derive the certificate id from the ledger hash."""
        digest = blockchain_hash[2:] if blockchain_hash.startswith("0x") else blockchain_hash
        return f"NCCR-CERT-{vintage_year}-{digest[:10].upper()}"


class IssuanceStage(str, Enum):
    """Issuance pipeline stages, in order."""
    VALIDATE = "validate"
    LEDGER = "ledger"
    GENERATE = "generate"
    FINALIZE = "finalize"


ISSUANCE_STAGES = [
    IssuanceStage.VALIDATE,
    IssuanceStage.LEDGER,
    IssuanceStage.GENERATE,
    IssuanceStage.FINALIZE,
]


class IssuanceEventType(str, Enum):
    """Kind of progress event emitted by the pipeline."""
    STARTED = "started"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    RETRYING = "retrying"
    FAILED = "failed"
    ISSUED = "issued"


class IssuanceEvent(BaseModel):
    """Progress event for one pipeline stage."""
    project_id: str = Field(..., description="Project being issued")
    stage: IssuanceStage = Field(..., description="Stage the event refers to")
    type: IssuanceEventType = Field(..., description="Event kind")
    attempt: int = Field(1, ge=1, description="Attempt number within the stage")
    detail: str = Field("", description="Human-readable detail")
    certificate: Optional[Certificate] = Field(None, description="Set on the final issued event")
    timestamp: datetime = Field(default_factory=utc_now, description="When the event occurred")

    @property
    def step(self) -> int:
        """One-based position of the stage, for "step n of 4" display."""
        return ISSUANCE_STAGES.index(self.stage) + 1

    @property
    def total_steps(self) -> int:
        return len(ISSUANCE_STAGES)


class CreditProjectView(BaseModel):
    """Project fields shared by every credit view."""
    project_id: str = Field(..., description="Project identifier")
    title: str = Field(..., description="Project title")
    panchayat_id: str = Field(..., description="Owning Panchayat")
    ecosystem_type: EcosystemType = Field(..., description="Ecosystem restored")
    hectares_restored: float = Field(..., description="Area restored")


class ReadyForCredits(CreditProjectView):
    """Project in final verification, awaiting issuance."""
    kind: Literal["ready"] = "ready"
    estimated_credits: int = Field(..., ge=0, description="Credits the project is expected to receive")


class IssuedCertificate(CreditProjectView):
    """Project whose certificate has been issued."""
    kind: Literal["issued"] = "issued"
    certificate_id: str = Field(..., description="Certificate identifier")
    credits_generated: int = Field(..., description="Credits issued")
    date_issued: datetime = Field(..., description="Issue date")
    blockchain_hash: str = Field(..., description="Ledger hash")
    vintage_year: int = Field(..., description="Vintage year")
    methodology: str = Field(..., description="Crediting methodology")
    status: CertificateStatus = Field(..., description="Registry status")


CreditView = Annotated[Union[ReadyForCredits, IssuedCertificate], Field(discriminator="kind")]
