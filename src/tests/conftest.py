"""Shared test fixtures.

Model calls and embeddings are replaced by deterministic fakes so no test
touches the network.
"""

import asyncio
import re
import zlib
from typing import Any, Callable, List, Optional, Sequence, Type, Union

import numpy as np
import pytest
from pydantic import BaseModel

from relaygraph.core.agent.client import ModelClient, ModelReply
from relaygraph.core.agent.messages import ChatMessage
from relaygraph.core.config import ModelSettings, RelaySettings
from relaygraph.core.errors import StructuredOutputUnsupported
from relaygraph.core.store import ConversationStore

Script = Union[str, ModelReply, Exception]


class FakeModelClient(ModelClient):
    """Scripted ModelClient.

    Replies are consumed in order; the last one repeats once the script is
    exhausted. Exceptions in the script are raised instead of returned.
    `structured` works the same way for `extract`; without it the client
    reports that structured output is unsupported.
    """

    def __init__(
        self,
        replies: Optional[Sequence[Script]] = None,
        model: str = "fake-model",
        structured: Optional[Sequence[Union[BaseModel, Exception]]] = None,
        delay: float = 0.0
    ) -> None:
        self.model = model
        self.replies = list(replies or ["ok"])
        self.structured = list(structured) if structured is not None else None
        self.delay = delay
        self.calls: List[dict] = []

    @staticmethod
    def _next(script: list):
        return script.pop(0) if len(script) > 1 else script[0]

    async def complete(self, system, messages, tools=None) -> ModelReply:
        self.calls.append({"system": system, "messages": list(messages), "tools": tools})
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self._next(self.replies)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return ModelReply(content=reply)
        return reply

    async def extract(self, system, messages, response_model):
        if self.structured is None:
            raise StructuredOutputUnsupported("fake client has no structured output")
        self.calls.append({"system": system, "messages": list(messages), "response_model": response_model})
        result = self._next(self.structured)
        if isinstance(result, Exception):
            raise result
        return result


class FakeEmbedder:
    """Bag-of-words embedder hashing lowercase words into a fixed-size vector."""

    def __init__(self, dimensions: int = 256) -> None:
        self.dimensions = dimensions
        self.calls = 0

    def _vector(self, text: str) -> List[float]:
        vector = np.zeros(self.dimensions)
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            vector[zlib.crc32(word.encode()) % self.dimensions] += 1.0
        return vector.tolist()

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        return [self._vector(t) for t in texts]

    async def embed_query(self, text: str) -> List[float]:
        return self._vector(text)


def fake_factory(by_model: dict, default: Optional[ModelClient] = None) -> Callable[[ModelSettings], ModelClient]:
    """Model factory returning the scripted client registered for a model name."""
    def factory(settings: ModelSettings) -> ModelClient:
        return by_model.get(settings.model) or default or FakeModelClient(model=settings.model)
    return factory


@pytest.fixture
def fake_client() -> FakeModelClient:
    return FakeModelClient(["Hello from the fake model"])


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def context_dir(tmp_path):
    """A small markdown corpus."""
    folder = tmp_path / "ai-context"
    folder.mkdir()
    (folder / "acme.md").write_text(
        "# Acme Corp\n\nAcme builds rocket skates and anvils for desert logistics.\n\n"
        "Acme headquarters are in Phoenix, Arizona.",
        encoding="utf-8",
    )
    (folder / "globex.md").write_text(
        "# Globex\n\nGlobex sells industrial magnets and employs four thousand engineers.",
        encoding="utf-8",
    )
    (folder / "notes.txt").write_text("not markdown, ignored", encoding="utf-8")
    return folder


@pytest.fixture
def settings(tmp_path, context_dir) -> RelaySettings:
    return RelaySettings(context_dir=context_dir, max_steps=25)
