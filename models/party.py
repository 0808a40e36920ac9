# models/party.py

from typing import Optional
from pydantic import BaseModel, Field, EmailStr, model_validator

from models.enums import PartyRole


class ContactInput(BaseModel):
    """Someone without an account (city clerk, sub-contractor)."""
    name: str = Field(..., min_length=1, description="Contact name is required")
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None


class PartyCreate(BaseModel):
    role: PartyRole
    user_id: Optional[str] = None
    contact: Optional[ContactInput] = None
    is_primary: bool = False

    @model_validator(mode="after")
    def require_user_or_contact(self):
        if not self.user_id and not self.contact:
            raise ValueError("Either user_id or contact is required")
        return self


class PartyUpdate(BaseModel):
    role: Optional[PartyRole] = None
    is_primary: Optional[bool] = None
