"""
Donation Service Schemas

DonationRecord is the canonical document stored in the "donations" collection.
ListParams holds the raw query string of GET /api/donations.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

UNPAID = "未缴费"


class DonationRecord(BaseModel):
    name: str = Field(..., description="Donor name, trimmed")
    project: str = Field(..., description="Pledge category")
    method: str = Field("", description="How the pledge will be fulfilled")
    amountTWD: float = Field(0.0, ge=0)
    amountRMB: float = Field(0.0, ge=0)
    content: str = Field("", description="Note or intention")
    payment: str = UNPAID
    contact: str = ""
    deviceId: str = ""
    batchId: str = ""
    localId: str = Field(..., description="Client dedup key, unique when present")
    submittedAt: datetime
    createdAt: datetime
    updatedAt: datetime

    def is_complete(self) -> bool:
        return bool(self.name.strip()) and bool(self.project.strip())


class ListParams(BaseModel):
    # Query values arrive as untrusted strings; unknown keys are ignored
    model_config = ConfigDict(extra="ignore")

    search: Optional[str] = None
    project: Optional[str] = None
    payment: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    page: Optional[str] = None
    limit: Optional[str] = None
    sortBy: Optional[str] = None
    sortOrder: Optional[str] = None
