# models/vendor.py

from typing import List, Optional
from pydantic import BaseModel, Field, EmailStr, HttpUrl, field_validator

from models.enums import VendorSpecialty, SubcodeType, InsuranceType


class VendorProfileBase(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    specialties: List[VendorSpecialty] = Field(..., min_length=1, description="At least one specialty is required")
    service_areas: List[str] = Field(..., min_length=1, description="Counties or towns served")
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[HttpUrl] = None


class VendorProfileCreate(VendorProfileBase):
    pass


class VendorProfileUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    specialties: Optional[List[VendorSpecialty]] = Field(None, min_length=1)
    service_areas: Optional[List[str]] = Field(None, min_length=1)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[HttpUrl] = None


class VendorReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)
    permit_id: Optional[str] = None


class VendorLicenseCreate(BaseModel):
    subcode_type: SubcodeType
    license_number: str = Field(..., min_length=1)
    license_state: str = Field(..., min_length=2, max_length=2)
    expires_at: Optional[str] = None

    @field_validator("license_state", mode="before")
    @classmethod
    def upper_state(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class VendorInsuranceCreate(BaseModel):
    type: InsuranceType
    provider: str = Field(..., min_length=1)
    policy_number: str = Field(..., min_length=1)
    coverage_amount: Optional[float] = Field(None, gt=0)
    expires_at: str = Field(..., min_length=1, description="Policy expiry date is required")


class VendorPaymentCreate(BaseModel):
    amount_cents: int = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)
    permit_id: Optional[str] = None
