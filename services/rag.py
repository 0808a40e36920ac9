# services/rag.py

"""
Knowledge-base retrieval for the AI assistant.

Documents (code excerpts, jurisdiction guides) are split into
overlapping chunks and embedded with OpenAI; embeddings are stored on
each chunk's `metadata.embedding`. Search scores every chunk by cosine
similarity in Python. When embeddings are unavailable (no key, API
error) search falls back to word-overlap scoring.
"""

import math
import re
from typing import List, Optional

from openai import OpenAI

from core.config import settings
from core.supabase_client import get_supabase_client
from core.logging_config import logger
from core.utils import utc_now_iso


CHUNK_MAX_CHARS = 2000
CHUNK_OVERLAP_CHARS = 200
DEFAULT_SEARCH_LIMIT = 5
CONTEXT_RESULTS = 3


class EmbeddingsUnavailable(RuntimeError):
    pass


# ============================================================
# Chunking
# ============================================================
def chunk_document(text: str, max_chars: int = CHUNK_MAX_CHARS, overlap: int = CHUNK_OVERLAP_CHARS) -> List[str]:
    """
    Split on blank lines, packing paragraphs up to `max_chars`. Each new
    chunk starts with the last `overlap` characters of the previous one.
    """
    chunks: List[str] = []
    paragraphs = re.split(r"\n\n+", text)
    current = ""

    for para in paragraphs:
        if current and len(current) + len(para) > max_chars:
            chunks.append(current.strip())
            tail = current[-overlap:] if overlap > 0 else ""
            current = f"{tail}\n\n{para}" if tail else para
        else:
            current += ("\n\n" if current else "") + para

    if current.strip():
        chunks.append(current.strip())

    return chunks


# ============================================================
# Embeddings
# ============================================================
def get_openai_client() -> OpenAI:
    if not settings.OPENAI_API_KEY:
        raise EmbeddingsUnavailable("OPENAI_API_KEY is not set")
    return OpenAI(api_key=settings.OPENAI_API_KEY, timeout=30)


def generate_embeddings(texts: List[str]) -> List[List[float]]:
    client = get_openai_client()
    resp = client.embeddings.create(model=settings.EMBEDDING_MODEL, input=texts)
    return [item.embedding for item in resp.data]


def generate_embedding(text: str) -> List[float]:
    return generate_embeddings([text])[0]


def cosine_similarity(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if not norm_a or not norm_b:
        return 0.0
    return dot / (norm_a * norm_b)


# ============================================================
# Ingestion
# ============================================================
def ingest_document(title: str, content: str, source_type: str, jurisdiction: Optional[str] = None) -> dict:
    """
    Store a knowledge document and its chunks. Chunks are stored without
    embeddings when embedding fails, so they remain reachable by the
    text fallback.
    """
    client = get_supabase_client()

    doc_res = client.table("knowledge_documents").insert({
        "title": title,
        "source": re.sub(r"\s+", "-", title.lower()),
        "source_type": source_type,
        "jurisdiction": jurisdiction,
        "content": content,
        "created_at": utc_now_iso(),
    }).execute()
    document = doc_res.data[0]

    chunks = chunk_document(content)
    try:
        embeddings = generate_embeddings(chunks) if chunks else []
    except Exception as e:
        logger.warning(f"Embedding failed for knowledge document '{title}': {e}")
        embeddings = [None] * len(chunks)

    if chunks:
        client.table("knowledge_chunks").insert([
            {
                "document_id": document["id"],
                "chunk_index": index,
                "content": chunk,
                "metadata": {"embedding": embeddings[index]} if embeddings[index] else {},
            }
            for index, chunk in enumerate(chunks)
        ]).execute()

    return {**document, "chunk_count": len(chunks)}


# ============================================================
# Search
# ============================================================
def _load_chunks(jurisdiction: Optional[str]) -> List[dict]:
    client = get_supabase_client()

    docs_query = client.table("knowledge_documents").select("id, title")
    if jurisdiction:
        docs_query = docs_query.eq("jurisdiction", jurisdiction)
    docs = {d["id"]: d for d in (docs_query.execute().data or [])}
    if not docs:
        return []

    chunks = (
        client.table("knowledge_chunks")
        .select("*")
        .in_("document_id", list(docs.keys()))
        .execute()
    ).data or []

    for chunk in chunks:
        chunk["document_title"] = docs[chunk["document_id"]]["title"]
    return chunks


def fallback_text_search(query: str, chunks: List[dict], limit: int = DEFAULT_SEARCH_LIMIT) -> List[dict]:
    words = [w for w in query.lower().split() if len(w) > 3]

    scored = []
    for chunk in chunks:
        content = chunk["content"].lower()
        matches = sum(1 for w in words if w in content)
        score = matches / max(len(words), 1)
        if score > 0:
            scored.append({
                "content": chunk["content"],
                "score": score,
                "document_title": chunk["document_title"],
            })

    scored.sort(key=lambda r: r["score"], reverse=True)
    return scored[:limit]


def semantic_search(query: str, jurisdiction: Optional[str] = None, limit: int = DEFAULT_SEARCH_LIMIT) -> List[dict]:
    chunks = _load_chunks(jurisdiction)
    if not chunks:
        return []

    try:
        query_embedding = generate_embedding(query)
    except Exception as e:
        logger.warning(f"Semantic search unavailable, using text search: {e}")
        return fallback_text_search(query, chunks, limit)

    scored = []
    for chunk in chunks:
        embedding = (chunk.get("metadata") or {}).get("embedding")
        if not embedding:
            continue
        scored.append({
            "content": chunk["content"],
            "score": cosine_similarity(query_embedding, embedding),
            "document_title": chunk["document_title"],
        })

    scored.sort(key=lambda r: r["score"], reverse=True)
    return scored[:limit]


def build_rag_context(query: str, jurisdiction: Optional[str] = None) -> str:
    """Top knowledge snippets formatted for the system prompt; "" when nothing matches."""
    try:
        results = semantic_search(query, jurisdiction, limit=CONTEXT_RESULTS)
    except Exception as e:
        logger.error(f"RAG context error: {e}")
        return ""

    return "".join(f"### From: {r['document_title']}\n{r['content']}\n\n" for r in results)
