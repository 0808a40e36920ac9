# models/chat.py

from typing import Optional
from pydantic import BaseModel, Field


class ConversationCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    property_id: Optional[str] = None
    permit_id: Optional[str] = None


class ConversationUpdate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class ChatMessageCreate(BaseModel):
    content: str = Field(..., description="Message content is required")


class KnowledgeDocumentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    source_type: str = Field("CODE", description="CODE, GUIDE, FAQ, ...")
    jurisdiction: Optional[str] = Field(None, description="State code the document applies to")
