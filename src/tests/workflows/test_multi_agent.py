"""Tests for the orchestrated multi-agent workflow."""

import pytest

from relaygraph.core.agent import ChatMessage, ModelReply, ToolCall
from relaygraph.core.errors import RecursionLimitError
from relaygraph.workflows.multi_agent import (
    FINDINGS,
    PROCESS_COMPLETE,
    SAVED,
    SUMMARY_INPUT,
    FilesystemAgent,
    MultiAgentState,
    OrchestratorAgent,
    RouteDecision,
    WebAgent,
    build_multi_agent_graph,
    multi_agent_graph_from_settings,
    parse_route,
    pick_route,
)
from tests.conftest import FakeModelClient


def state_with(*messages):
    return MultiAgentState(messages=list(messages))


class TestRouting:
    """Orchestrator routing decisions."""

    @pytest.mark.parametrize("content, route", [
        ("[router] route=web | scrape it", "web"),
        ("[router] route=fs | save it", "fs"),
        ("[router] route=final | done", "final"),
        ("Process complete", "final"),
        ("no idea", "final"),
    ])
    def test_pick_route(self, content, route):
        assert pick_route(state_with(ChatMessage.assistant(content, name="router"))) == route

    def test_pick_route_empty_history(self):
        assert pick_route(MultiAgentState()) == "final"

    @pytest.mark.parametrize("text, route", [
        ('{"route": "web", "rationale": "needs the page"}', "web"),
        ("route=fs rationale=save the summary", "fs"),
        ("route: final", "final"),
    ])
    def test_parse_route(self, text, route):
        assert parse_route(text).route == route

    def test_parse_route_rationale(self):
        decision = parse_route('{"route": "web", "rationale": "needs the page"}')
        assert decision == RouteDecision(route="web", rationale="needs the page")

    def test_parse_route_failure(self):
        assert parse_route("I think we should browse") is None


class TestAgents:
    """Agent capabilities."""

    @pytest.mark.asyncio
    async def test_orchestrator_completes_after_save(self):
        client = FakeModelClient(["route=web"])
        orchestrator = OrchestratorAgent(client)
        update = await orchestrator.step(state_with(ChatMessage.assistant("Saved.", name=SAVED)))
        last = update["messages"][-1]
        assert (last.content, last.name) == (PROCESS_COMPLETE, "router")
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_orchestrator_structured_route(self):
        client = FakeModelClient(structured=[RouteDecision(route="fs", rationale="save it")])
        update = await OrchestratorAgent(client).step(state_with(ChatMessage.user("go")))
        assert update["messages"][-1].content == "[router] route=fs | save it"

    def test_tool_loop_continuation(self):
        agent = WebAgent(FakeModelClient())
        pending = ChatMessage.assistant("", tool_calls=[ToolCall(id="1", name="FetchPageTool")])
        assert agent.continuation_route(state_with(pending)) == "web_tools"
        assert agent.continuation_route(state_with(ChatMessage.assistant("done"))) == "orchestrator"

    def test_filesystem_agent_sees_findings(self):
        agent = FilesystemAgent(FakeModelClient())
        state = state_with(
            ChatMessage.assistant("## Findings", name=FINDINGS),
            ChatMessage.assistant("[router] route=fs | save", name="router"),
        )
        last = agent.prompt_messages(state)[-1]
        assert (last.role, last.name, last.content) == ("user", SUMMARY_INPUT, "## Findings")


class TestMultiAgentWorkflow:
    """Full runs with a scripted model."""

    @pytest.mark.asyncio
    async def test_web_then_filesystem_then_done(self, tmp_path):
        client = FakeModelClient([
            "route=web rationale=scrape the page",
            ModelReply(tool_calls=[ToolCall(id="c1", name="FetchPageTool", args={"url": "ftp://acme"})]),
            "## Acme\nRocket skates.",
            "route=fs rationale=save the summary",
            ModelReply(tool_calls=[ToolCall(
                id="c2", name="WriteFileTool",
                args={"path": "acme.md", "content": "## Acme\nRocket skates."},
            )]),
            "Saved acme.md",
        ])
        plan = build_multi_agent_graph(client, tmp_path)

        record = await plan.run({"messages": [ChatMessage.user("Summarize https://acme.example")]})
        assert record.visited() == [
            "orchestrator", "web_agent", "web_tools", "web_agent",
            "orchestrator", "fs_agent", "fs_tools", "fs_agent", "orchestrator",
        ]

        messages = record.state.messages
        assert messages[-1].content == PROCESS_COMPLETE
        assert (tmp_path / "acme.md").read_text() == "## Acme\nRocket skates."
        fetch_result = next(m for m in messages if m.tool_call_id == "c1")
        assert fetch_result.content.startswith("Error:")
        assert [m.name for m in messages if m.role == "assistant"][-4:] == [
            "router", SAVED, SAVED, "router"
        ]

    @pytest.mark.asyncio
    async def test_unparseable_orchestrator_output_ends_run(self, tmp_path):
        client = FakeModelClient(["Hmm, not sure what to do."])
        record = await build_multi_agent_graph(client, tmp_path).run(
            {"messages": [ChatMessage.user("hello")]}
        )
        assert record.visited() == ["orchestrator"]
        assert "route=unknown" in record.state.messages[-1].content

    @pytest.mark.asyncio
    async def test_final_route_ends_run(self, tmp_path):
        client = FakeModelClient(structured=[RouteDecision(route="final", rationale="trivial")])
        state = await build_multi_agent_graph(client, tmp_path).ainvoke(
            {"messages": [ChatMessage.user("hello")]}
        )
        assert state.messages[-1].content == "[router] route=final | trivial"

    @pytest.mark.asyncio
    async def test_endless_tool_loop_hits_step_limit(self, tmp_path):
        looping = ModelReply(tool_calls=[ToolCall(id="c", name="FetchPageTool", args={"url": "x"})])
        client = FakeModelClient(["route=web", looping])
        plan = build_multi_agent_graph(client, tmp_path, max_steps=6)
        with pytest.raises(RecursionLimitError):
            await plan.run({"messages": [ChatMessage.user("loop")]})

    def test_from_settings_uses_context_dir(self, settings):
        plan = multi_agent_graph_from_settings(settings, lambda s: FakeModelClient(model=s.model))
        fs_tools = plan.nodes["fs_tools"].fn
        assert set(fs_tools.tools) == {"ListDirectoryTool", "ReadFileTool", "WriteFileTool"}
        assert plan.nodes["orchestrator"].fn.client.model == "gpt-4o"
