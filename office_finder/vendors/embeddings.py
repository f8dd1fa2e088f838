"""OpenAI embeddings generation with validation."""

import logging
from typing import List

from openai import OpenAI

from office_finder.core.config import get_settings
from office_finder.core.errors import ConfigError

logger = logging.getLogger(__name__)


def _get_client() -> OpenAI:
    settings = get_settings()
    if not settings.openai_api_key:
        raise ConfigError("OPENAI_API_KEY is required for embeddings")
    return OpenAI(api_key=settings.openai_api_key)


def embed_texts(texts: List[str]) -> List[List[float]]:
    """
    Generate embeddings for a list of texts.

    Raises:
        ValueError: If an embedding's dimension doesn't match EMBEDDING_DIM
    """
    if not texts:
        return []

    settings = get_settings()
    response = _get_client().embeddings.create(model=settings.embedding_model, input=texts)

    embeddings = []
    for i, embedding_obj in enumerate(response.data):
        embedding = embedding_obj.embedding
        if len(embedding) != settings.embedding_dim:
            raise ValueError(
                f"Embedding dimension mismatch for text {i}: "
                f"expected {settings.embedding_dim}, got {len(embedding)}"
            )
        embeddings.append(embedding)

    logger.debug("Embedded %d texts with %s", len(embeddings), settings.embedding_model)
    return embeddings


def to_vector_literal(embedding: List[float]) -> str:
    """Render an embedding the way pgvector parses ``'[x,y,...]'::vector``."""
    return "[" + ",".join(f"{value:.8f}" for value in embedding) + "]"
