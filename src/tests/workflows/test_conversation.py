"""Tests for the snapshotted conversation workflow."""

import pytest

from relaygraph.core.errors import GraphRunError
from relaygraph.workflows.conversation import (
    SYSTEM_PROMPT,
    build_conversation_graph,
    conversation_graph_from_settings,
    take_turn,
)
from tests.conftest import FakeModelClient


class TestConversationWorkflow:
    """One reply per run, history from the store."""

    @pytest.mark.asyncio
    async def test_first_turn(self, store):
        client = FakeModelClient(["Hello!"])
        plan = build_conversation_graph(client, store)

        snapshot = await take_turn(plan, store, "t1", "hi")
        assert snapshot.version == 1
        assert [(m.role, m.content) for m in snapshot.state] == [("user", "hi"), ("assistant", "Hello!")]
        assert client.calls[0]["system"] == SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_history_is_sent_to_the_model(self, store):
        client = FakeModelClient(["one", "two"])
        plan = build_conversation_graph(client, store)

        await take_turn(plan, store, "t1", "first")
        await take_turn(plan, store, "t1", "second")

        sent = [m.content for m in client.calls[1]["messages"]]
        assert sent == ["first", "one", "second"]

    @pytest.mark.asyncio
    async def test_rollback_changes_context(self, store):
        client = FakeModelClient(["one", "two", "three"])
        plan = build_conversation_graph(client, store)

        await take_turn(plan, store, "t1", "first")
        await take_turn(plan, store, "t1", "second")
        await store.truncate_to("t1", 1)
        snapshot = await take_turn(plan, store, "t1", "again")

        assert snapshot.version == 2
        assert [m.content for m in client.calls[2]["messages"]] == ["first", "one", "again"]

    @pytest.mark.asyncio
    async def test_failed_turn_is_not_snapshotted(self, store):
        plan = build_conversation_graph(FakeModelClient([RuntimeError("provider down")]), store)
        with pytest.raises(GraphRunError):
            await take_turn(plan, store, "t1", "hi")
        assert store.latest("t1") is None

    def test_from_settings(self, settings, store):
        seen = []

        def factory(model_settings):
            seen.append((model_settings.model, model_settings.temperature))
            return FakeModelClient()

        conversation_graph_from_settings(settings, store, factory)
        assert seen == [("gpt-4o-mini", 0.6)]
