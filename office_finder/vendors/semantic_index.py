"""pgvector-backed semantic index of government services and offices."""

import asyncio
import logging
from typing import Any, Dict, List

from psycopg2 import extras

from office_finder.core.db import get_connection
from office_finder.models import IndexDocument, SearchHit
from office_finder.vendors.embeddings import embed_texts, to_vector_literal

logger = logging.getLogger(__name__)

_SEARCH = """
SELECT id, content, metadata, 1 - (embedding <=> %(embedding)s::vector) AS similarity
FROM office_documents
WHERE 1 - (embedding <=> %(embedding)s::vector) >= %(threshold)s
ORDER BY embedding <=> %(embedding)s::vector
LIMIT %(top_k)s;
"""

_UPSERT_DOCUMENT = """
INSERT INTO office_documents (
    id,
    content,
    metadata,
    embedding,
    updated_at
) VALUES (
    %(id)s,
    %(content)s,
    %(metadata)s,
    %(embedding)s::vector,
    NOW()
)
ON CONFLICT (id) DO UPDATE SET
    content = EXCLUDED.content,
    metadata = EXCLUDED.metadata,
    embedding = EXCLUDED.embedding,
    updated_at = NOW();
"""


def search_documents(text: str, top_k: int, threshold: float) -> List[SearchHit]:
    embedding = embed_texts([text])[0]
    params = {"embedding": to_vector_literal(embedding), "threshold": threshold, "top_k": top_k}
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_SEARCH, params)
            rows = cur.fetchall()

    hits = []
    for doc_id, content, metadata, similarity in rows:
        metadata = dict(metadata or {})
        metadata.setdefault("id", doc_id)
        hits.append(SearchHit(content=content, similarity=float(similarity), metadata=metadata))
    logger.debug("Index search returned %d hits at threshold %.2f", len(hits), threshold)
    return hits


def _prepare_params(document: IndexDocument, embedding: List[float]) -> Dict[str, Any]:
    return {
        "id": document.id,
        "content": document.content,
        "metadata": extras.Json(document.metadata),
        "embedding": to_vector_literal(embedding),
    }


def upsert_documents(documents: List[IndexDocument]) -> int:
    """Idempotent by document id."""
    if not documents:
        return 0
    embeddings = embed_texts([document.content for document in documents])
    with get_connection() as conn:
        with conn.cursor() as cur:
            for document, embedding in zip(documents, embeddings):
                cur.execute(_UPSERT_DOCUMENT, _prepare_params(document, embedding))
        conn.commit()
    logger.info("Upserted %d documents into the semantic index", len(documents))
    return len(documents)


class PgVectorIndex:
    async def search(self, text: str, top_k: int, threshold_hint: float) -> List[SearchHit]:
        return await asyncio.to_thread(search_documents, text, top_k, threshold_hint)

    async def upsert(self, documents: List[IndexDocument]) -> int:
        return await asyncio.to_thread(upsert_documents, documents)
