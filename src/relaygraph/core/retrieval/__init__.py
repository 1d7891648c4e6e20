"""Retrieval module for relaygraph."""

from relaygraph.core.retrieval.documents import (
    Document,
    RecursiveCharacterSplitter,
    load_markdown_documents,
)
from relaygraph.core.retrieval.vectorstore import Embedder, InMemoryVectorIndex, OpenAIEmbedder

__all__ = [
    "Document",
    "RecursiveCharacterSplitter",
    "load_markdown_documents",
    "Embedder",
    "InMemoryVectorIndex",
    "OpenAIEmbedder",
]
