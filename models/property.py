# models/property.py

import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from models.enums import PropertyType


ZIP_CODE_RE = re.compile(r"^\d{5}(-\d{4})?$")


def _check_year_built(v: Optional[int]) -> Optional[int]:
    if v is None:
        return v
    if v < 1600 or v > datetime.now().year:
        raise ValueError(f"Year built must be between 1600 and {datetime.now().year}")
    return v


def _check_zip(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not ZIP_CODE_RE.match(v):
        raise ValueError("Invalid ZIP code")
    return v


# -------------------------------------------------
# Shared fields
# -------------------------------------------------
class PropertyBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Display name, e.g. '12 Elm St Duplex'")
    address: str = Field(..., min_length=5, description="Street address")
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2, max_length=2, description="Two-letter state code")
    zip_code: str
    county: Optional[str] = None
    property_type: PropertyType = PropertyType.RESIDENTIAL
    year_built: Optional[int] = None
    square_feet: Optional[int] = Field(None, gt=0)
    units: int = Field(1, gt=0)
    block_lot: Optional[str] = Field(None, description="Tax map block/lot")
    zone_designation: Optional[str] = None

    @field_validator("state", mode="before")
    @classmethod
    def upper_state(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("zip_code")
    @classmethod
    def validate_zip(cls, v):
        return _check_zip(v)

    @field_validator("year_built")
    @classmethod
    def validate_year_built(cls, v):
        return _check_year_built(v)


# -------------------------------------------------
# Create
# -------------------------------------------------
class PropertyCreate(PropertyBase):
    """Jurisdiction is matched from city/state, never supplied."""
    pass


# -------------------------------------------------
# Update (PATCH)
# -------------------------------------------------
class PropertyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, min_length=5)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    zip_code: Optional[str] = None
    county: Optional[str] = None
    property_type: Optional[PropertyType] = None
    year_built: Optional[int] = None
    square_feet: Optional[int] = Field(None, gt=0)
    units: Optional[int] = Field(None, gt=0)
    block_lot: Optional[str] = None
    zone_designation: Optional[str] = None

    @field_validator("state", mode="before")
    @classmethod
    def upper_state(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("zip_code")
    @classmethod
    def validate_zip(cls, v):
        return _check_zip(v)

    @field_validator("year_built")
    @classmethod
    def validate_year_built(cls, v):
        return _check_year_built(v)
