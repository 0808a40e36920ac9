# models/permit.py

from typing import Optional
from pydantic import BaseModel, Field

from models.enums import (
    PermitStatus,
    SubcodeType,
    ProjectType,
    Priority,
    MilestoneStatus,
    InspectionStatus,
)


# -------------------------------------------------
# Shared fields
# -------------------------------------------------
class PermitBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    project_type: ProjectType
    subcode_type: SubcodeType
    priority: Priority = Priority.NORMAL
    estimated_value: Optional[float] = Field(None, gt=0, description="Estimated construction cost (USD)")
    notes: Optional[str] = None


# -------------------------------------------------
# Create
# -------------------------------------------------
class PermitCreate(PermitBase):
    """
    Property must belong to the caller; the jurisdiction is copied
    from the property.
    """
    property_id: str = Field(..., min_length=1)


# -------------------------------------------------
# Update (PATCH)
# -------------------------------------------------
class PermitUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    project_type: Optional[ProjectType] = None
    subcode_type: Optional[SubcodeType] = None
    priority: Optional[Priority] = None
    estimated_value: Optional[float] = Field(None, gt=0)
    notes: Optional[str] = None
    status: Optional[PermitStatus] = None
    permit_number: Optional[str] = Field(None, description="Number issued by the jurisdiction")
    permit_fee: Optional[float] = Field(None, ge=0)


class PermitStatusUpdate(BaseModel):
    status: PermitStatus
    note: Optional[str] = Field(None, max_length=1000)


# -------------------------------------------------
# Milestones
# -------------------------------------------------
class MilestoneCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[str] = Field(None, description="ISO date")
    sort_order: Optional[int] = None


class MilestoneUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[str] = None
    sort_order: Optional[int] = None
    status: Optional[MilestoneStatus] = None


# -------------------------------------------------
# Inspections
# -------------------------------------------------
class InspectionCreate(BaseModel):
    type: str = Field(..., min_length=1, description="e.g. FOOTING, FRAMING, FINAL")
    scheduled_date: Optional[str] = None
    inspector_name: Optional[str] = None
    inspector_phone: Optional[str] = None
    notes: Optional[str] = None


class InspectionUpdate(BaseModel):
    scheduled_date: Optional[str] = None
    inspector_name: Optional[str] = None
    inspector_phone: Optional[str] = None
    status: Optional[InspectionStatus] = None
    result: Optional[str] = None
    notes: Optional[str] = None
