"""Embeddings and an in-memory vector index.

The index keeps L2-normalised document vectors in a numpy matrix and ranks by
cosine similarity. Equal scores keep insertion order, so a search over an
unchanged corpus always returns the same chunks in the same order.
"""

from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np
from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from relaygraph.core.logging import get_logger, LogComponent
from relaygraph.core.retrieval.documents import Document

logger = get_logger(LogComponent.RETRIEVAL)


@runtime_checkable
class Embedder(Protocol):
    """Turns text into vectors."""

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        ...

    async def embed_query(self, text: str) -> List[float]:
        ...


class OpenAIEmbedder:
    """Embedder backed by the OpenAI embeddings endpoint."""

    def __init__(
        self,
        model: str = "text-embedding-ada-002",
        client: Optional[AsyncOpenAI] = None,
        batch_size: int = 512
    ) -> None:
        self.model = model
        self.batch_size = batch_size
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # Created on first use so the API key is only needed when embedding
        if self._client is None:
            self._client = AsyncOpenAI()
        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        response = await self.client.embeddings.create(model=self.model, input=texts)
        return [item.embedding for item in sorted(response.data, key=lambda d: d.index)]

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            vectors.extend(await self._embed_batch(texts[start:start + self.batch_size]))
        logger.debug(f"Embedded {len(texts)} texts with {self.model}")
        return vectors

    async def embed_query(self, text: str) -> List[float]:
        return (await self._embed_batch([text]))[0]


def _normalize(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    norms = np.where(norms == 0, 1.0, norms)
    return vectors / norms


class InMemoryVectorIndex:
    """Cosine-similarity search over embedded documents."""

    def __init__(self, embedder: Embedder) -> None:
        self.embedder = embedder
        self.documents: List[Document] = []
        self._matrix: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.documents)

    @classmethod
    async def from_documents(
        cls,
        docs: Sequence[Document],
        embedder: Embedder
    ) -> "InMemoryVectorIndex":
        index = cls(embedder)
        await index.add_documents(docs)
        return index

    async def add_documents(self, docs: Sequence[Document]) -> None:
        if not docs:
            return
        vectors = await self.embedder.embed_documents([d.page_content for d in docs])
        matrix = _normalize(np.asarray(vectors, dtype=float))
        self._matrix = matrix if self._matrix is None else np.vstack([self._matrix, matrix])
        self.documents.extend(docs)
        logger.info(f"Indexed {len(docs)} chunks ({len(self.documents)} total)")

    async def similarity_search_with_scores(
        self,
        query: str,
        k: int = 4
    ) -> List[Tuple[Document, float]]:
        if self._matrix is None or k <= 0:
            return []
        query_vector = _normalize(np.asarray([await self.embedder.embed_query(query)], dtype=float))[0]
        scores = self._matrix @ query_vector
        order = np.argsort(-scores, kind="stable")[:k]
        return [(self.documents[i], float(scores[i])) for i in order]

    async def similarity_search(self, query: str, k: int = 4) -> List[Document]:
        """Top `k` documents by cosine similarity to `query`."""
        return [doc for doc, _ in await self.similarity_search_with_scores(query, k)]
