"""
Configuration models.

Policy values (sequestration rates, revenue percentages, progress
threshold, retry budget) are injected at construction time so that a
policy change is a configuration change.
"""
from decimal import Decimal
from typing import Dict, Literal, Optional
from pydantic import BaseModel, Field, model_validator

from blue_carbon.domains.certificates import DEFAULT_METHODOLOGY
from blue_carbon.domains.projects import EcosystemType


def _default_rates() -> Dict[EcosystemType, float]:
    return {
        EcosystemType.MANGROVE: 10.0,
        EcosystemType.SEAGRASS: 5.0,
        EcosystemType.SALT_MARSH: 8.0,
        EcosystemType.CORAL_REEF: 3.0,
        EcosystemType.ESTUARY: 7.0,
    }


class SequestrationRates(BaseModel):
    """Annual sequestration rate in tCO2e per hectare per year."""
    rates: Dict[EcosystemType, float] = Field(
        default_factory=_default_rates, description="Rate per ecosystem type")

    @model_validator(mode="after")
    def _non_negative(self):
        for ecosystem, rate in self.rates.items():
            if rate < 0:
                raise ValueError(f"Sequestration rate for {ecosystem.value} must be non-negative")
        return self


class RevenuePolicy(BaseModel):
    """Stakeholder percentages applied to credit value."""
    panchayat_percent: Decimal = Field(Decimal("70"), ge=0, description="Panchayat share")
    worker_percent: Decimal = Field(Decimal("25"), ge=0, description="Worker share")
    nccr_percent: Decimal = Field(Decimal("5"), ge=0, description="NCCR share")
    currency_precision: int = Field(2, ge=0, description="Decimal places kept in each share")

    @model_validator(mode="after")
    def _sums_to_hundred(self):
        total = self.panchayat_percent + self.worker_percent + self.nccr_percent
        if total != Decimal("100"):
            raise ValueError(f"Revenue percentages must sum to 100, got {total}")
        return self


class LifecyclePolicy(BaseModel):
    """Lifecycle gates."""
    final_verification_threshold: float = Field(
        90.0, ge=0, le=100, description="Minimum progress before final verification")


class IssuanceSettings(BaseModel):
    """Retry budget and certificate defaults for issuance."""
    max_attempts: int = Field(3, ge=1, description="Attempts per retryable stage")
    base_delay: float = Field(0.5, ge=0, description="First backoff delay in seconds")
    backoff_factor: float = Field(2.0, ge=1, description="Backoff multiplier")
    max_delay: float = Field(8.0, ge=0, description="Backoff ceiling in seconds")
    methodology: str = Field(DEFAULT_METHODOLOGY, description="Methodology written on certificates")

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the given failed attempt."""
        return min(self.base_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)


class LedgerSettings(BaseModel):
    """Ledger collaborator selection."""
    provider: Literal["memory", "mongo"] = Field("memory", description="Ledger implementation")
    collection: str = Field("ledger", description="Collection for the mongo ledger")
    hash_algorithm: str = Field("sha256", description="hashlib algorithm for content hashes")


class MongoSettings(BaseModel):
    """MongoDB connection."""
    connection_string: str = Field(..., description="MongoDB connection string")
    database: str = Field(..., description="Database name")


class MRVConfig(BaseModel):
    """Top-level configuration."""
    mongo: Optional[MongoSettings] = None
    sequestration: SequestrationRates = Field(default_factory=SequestrationRates)
    revenue: RevenuePolicy = Field(default_factory=RevenuePolicy)
    lifecycle: LifecyclePolicy = Field(default_factory=LifecyclePolicy)
    issuance: IssuanceSettings = Field(default_factory=IssuanceSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
