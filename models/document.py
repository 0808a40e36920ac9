# models/document.py

from typing import List, Optional
from pydantic import BaseModel, Field, EmailStr

from models.enums import DocumentCategory


MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


class DocumentCreate(BaseModel):
    """
    Registers a file that the client already uploaded to storage.
    """
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: DocumentCategory = DocumentCategory.OTHER
    file_url: str = Field(..., min_length=1)
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0, le=MAX_FILE_SIZE, description="Bytes; must be under 10MB")
    mime_type: Optional[str] = None


class PhotoCreate(BaseModel):
    file_url: str = Field(..., min_length=1)
    caption: Optional[str] = Field(None, max_length=500)
    stage: Optional[str] = Field(None, description="Construction stage, e.g. FOUNDATION, FRAMING")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    taken_at: Optional[str] = None


class PhotoShareRecipient(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    message: Optional[str] = Field(None, max_length=1000)


class PhotoShare(BaseModel):
    recipients: List[PhotoShareRecipient] = Field(..., min_length=1, description="At least one recipient is required")


class PermitMessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
