"""Tests for the retrieval workflow."""

import pytest

from relaygraph.core.errors import GraphRunError
from relaygraph.workflows.retrieval import (
    ANSWER_ERROR,
    CONTEXT_SEPARATOR,
    RETRIEVAL_SHAPE,
    build_retrieval_graph,
    retrieval_graph_from_settings,
)
from tests.conftest import FakeEmbedder, FakeModelClient


class TestRetrievalWorkflow:
    """load -> split -> vectorize -> retrieve -> answer."""

    def test_shape_is_a_chain(self):
        assert RETRIEVAL_SHAPE.node_names() == ["load", "split", "vectorize", "retrieve", "answer"]

    @pytest.mark.asyncio
    async def test_answer_uses_retrieved_context(self, context_dir, fake_embedder):
        client = FakeModelClient(["Phoenix, Arizona."])
        plan = build_retrieval_graph(fake_embedder, client, top_k=1)

        record = await plan.run({
            "folder_path": str(context_dir),
            "message": "Where are the Acme headquarters?",
        })
        state = record.state

        assert record.visited() == ["load", "split", "vectorize", "retrieve", "answer"]
        assert state.response == "Phoenix, Arizona."
        assert "Phoenix" in state.context
        assert len(state.raw_docs) == 2
        system = client.calls[0]["system"]
        assert system.startswith("You are a helpful assistant. Use ONLY the provided context")
        assert system.endswith(state.context)
        assert client.calls[0]["messages"][0].content == "Where are the Acme headquarters?"

    @pytest.mark.asyncio
    async def test_context_joins_top_k_chunks(self, context_dir, fake_embedder):
        plan = build_retrieval_graph(fake_embedder, FakeModelClient(), top_k=4)
        state = await plan.ainvoke({"folder_path": str(context_dir), "message": "anvils"})
        assert len(state.context.split(CONTEXT_SEPARATOR)) == len(state.split_docs)
        assert len(state.split_docs) == 2

    @pytest.mark.asyncio
    async def test_idempotent_for_unchanged_corpus(self, context_dir):
        plan = build_retrieval_graph(FakeEmbedder(), FakeModelClient(["same"]), top_k=1)
        inputs = {"folder_path": str(context_dir), "message": "magnets engineers"}
        first = await plan.ainvoke(inputs)
        second = await plan.ainvoke(inputs)
        assert first.context == second.context
        assert "Globex" in first.context

    @pytest.mark.asyncio
    async def test_answer_failure_is_soft(self, context_dir, fake_embedder):
        client = FakeModelClient([TimeoutError("model timeout")])
        plan = build_retrieval_graph(fake_embedder, client)
        state = await plan.ainvoke({"folder_path": str(context_dir), "message": "anything"})
        assert state.response == ANSWER_ERROR

    @pytest.mark.asyncio
    async def test_missing_folder_is_hard_failure(self, tmp_path, fake_embedder):
        plan = build_retrieval_graph(fake_embedder, FakeModelClient())
        with pytest.raises(GraphRunError) as exc_info:
            await plan.run({"folder_path": str(tmp_path / "missing"), "message": "hi"})
        assert exc_info.value.node == "load"
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_empty_folder_answers_without_context(self, tmp_path, fake_embedder):
        client = FakeModelClient(["I don't know."])
        plan = build_retrieval_graph(fake_embedder, client)
        state = await plan.ainvoke({"folder_path": str(tmp_path), "message": "hi"})
        assert state.context == ""
        assert state.response == "I don't know."

    def test_from_settings(self, settings, fake_embedder):
        seen = []

        def factory(model_settings):
            seen.append(model_settings.model)
            return FakeModelClient()

        plan = retrieval_graph_from_settings(settings, factory, embedder=fake_embedder)
        assert seen == ["gpt-4o"]
        assert plan.max_steps == settings.max_steps
