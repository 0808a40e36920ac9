# models/jurisdiction.py

from typing import Any, Optional
from pydantic import BaseModel, Field, EmailStr, HttpUrl, field_validator

from models.enums import JurisdictionType


class JurisdictionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: JurisdictionType = JurisdictionType.CITY
    state: str = Field(..., min_length=2, max_length=2)
    county: Optional[str] = None
    parent_id: Optional[str] = Field(None, description="Parent jurisdiction (defaults to the state)")
    fips_code: Optional[str] = None

    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    permit_portal_url: Optional[HttpUrl] = None
    website_url: Optional[HttpUrl] = None
    office_hours: Optional[str] = None

    fees: Optional[Any] = Field(None, description="Fee schedule (free-form JSON)")
    requirements: Optional[Any] = Field(None, description="Submission requirements (free-form JSON)")
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("state", mode="before")
    @classmethod
    def upper_state(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class JurisdictionCreate(JurisdictionBase):
    pass


class JurisdictionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[JurisdictionType] = None
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    county: Optional[str] = None
    parent_id: Optional[str] = None
    fips_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    permit_portal_url: Optional[HttpUrl] = None
    website_url: Optional[HttpUrl] = None
    office_hours: Optional[str] = None
    fees: Optional[Any] = None
    requirements: Optional[Any] = None
    notes: Optional[str] = Field(None, max_length=2000)
    is_verified: Optional[bool] = None

    @field_validator("state", mode="before")
    @classmethod
    def upper_state(cls, v):
        return v.strip().upper() if isinstance(v, str) else v
