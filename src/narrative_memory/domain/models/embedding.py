"""Embedding models."""

from enum import Enum


class EmbeddingType(str, Enum):
    """Declared intent of an embedding request.

    The embedding space is asymmetric: short questions and long narrative
    passages are encoded to be comparable with each other, so query text and
    stored content must never share an intent.
    """

    QUERY = "query"
    DOCUMENT = "document"
