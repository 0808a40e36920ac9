# routers/knowledge.py

from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional

from dependencies.auth import get_current_user, CurrentUser
from core.errors import handle_supabase_error
from models.chat import KnowledgeDocumentCreate
from services.rag import ingest_document, semantic_search


router = APIRouter(
    prefix="/knowledge",
    tags=["Knowledge Base"],
)


@router.post(
    "/documents",
    status_code=201,
    summary="Add a knowledge document",
    description="""
    Splits the document into overlapping chunks and stores them with
    embeddings for the assistant's retrieval step. Chunks are still stored
    when embedding fails; search then falls back to word matching.
    """,
)
def create_knowledge_document(
    payload: KnowledgeDocumentCreate,
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        document = ingest_document(
            payload.title.strip(),
            payload.content,
            payload.source_type,
            payload.jurisdiction.upper() if payload.jurisdiction else None,
        )
        return {"success": True, "data": document}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to ingest knowledge document", 500)


@router.get("/search", summary="Search the knowledge base")
def search_knowledge(
    q: str = Query(..., min_length=1),
    jurisdiction: Optional[str] = None,
    limit: int = Query(5, ge=1, le=20),
    current_user: CurrentUser = Depends(get_current_user),
):
    if not q.strip():
        raise HTTPException(400, "Query is required")

    try:
        results = semantic_search(q.strip(), jurisdiction.upper() if jurisdiction else None, limit=limit)
        return {"success": True, "data": results}

    except Exception as e:
        raise handle_supabase_error(e, "Failed to search knowledge base", 500)
