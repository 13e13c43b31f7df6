"""
Revenue domain models.
"""
from decimal import Decimal
from pydantic import BaseModel, Field


class RevenueSplit(BaseModel):
    """Credit value split among stakeholders. Derived, never persisted."""
    total_value: Decimal = Field(..., description="Credit quantity times market rate, rounded to the currency precision")
    panchayat_share: Decimal = Field(..., description="Share paid to the Panchayat")
    worker_share: Decimal = Field(..., description="Share paid to workers")
    nccr_share: Decimal = Field(..., description="Share retained by NCCR")
