"""Orchestrated multi-agent workflow.

An orchestrator decides which specialist runs next; each specialist loops
through its own tool node until it stops requesting tools, then hands control
back to the orchestrator.

    START --> orchestrator
    orchestrator --[web]--> web_agent <--> web_tools
    orchestrator --[fs]---> fs_agent  <--> fs_tools
    orchestrator --[final / anything else]--> END
    web_agent, fs_agent --[done]--> orchestrator

The web agent reads pages and leaves a findings message; the filesystem agent
saves those findings under the workspace root and leaves a confirmation
message, after which the orchestrator closes the run.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from relaygraph.core.agent.base import Agent, ToolExecutor
from relaygraph.core.agent.client import ModelClient, ModelFactory, default_model_factory
from relaygraph.core.agent.messages import ChatMessage, last_message, last_named
from relaygraph.core.config import RelaySettings
from relaygraph.core.errors import StructuredOutputUnsupported
from relaygraph.core.graph import (
    BranchSpec,
    CompiledGraph,
    EdgeSpec,
    GraphShape,
    NodeSpec,
    RunState,
    START,
    END,
)
from relaygraph.core.logging import get_logger, LogComponent
from relaygraph.core.tools import FetchPageTool, filesystem_tools

logger = get_logger(LogComponent.WORKFLOW)

FINDINGS = "scraped_content"
SAVED = "html_summarized"
SUMMARY_INPUT = "html_for_summary"
ROUTER = "router"
PROCESS_COMPLETE = "Process complete"


class MultiAgentState(RunState):
    messages: List[ChatMessage] = []


class RouteDecision(BaseModel):
    """Orchestrator verdict."""
    route: Literal["web", "fs", "final"] = Field(
        ..., description="web to read pages, fs to save content, final to stop"
    )
    rationale: str = Field(..., description="Short reason for the route")


MULTI_AGENT_SHAPE = GraphShape(
    name="multi_agent",
    nodes=[
        NodeSpec(name="orchestrator", writes=["messages"], description="Routes work"),
        NodeSpec(name="web_agent", writes=["messages"], description="Reads web pages"),
        NodeSpec(name="web_tools", writes=["messages"], description="Web tool calls"),
        NodeSpec(name="fs_agent", writes=["messages"], description="Saves findings"),
        NodeSpec(name="fs_tools", writes=["messages"], description="Filesystem tool calls"),
    ],
    edges=[
        EdgeSpec(source=START, target="orchestrator"),
        EdgeSpec(source="web_tools", target="web_agent"),
        EdgeSpec(source="fs_tools", target="fs_agent"),
    ],
    branches=[
        BranchSpec(
            source="orchestrator",
            router="pick_route",
            destinations={"web": "web_agent", "fs": "fs_agent", "final": END},
        ),
        BranchSpec(
            source="web_agent",
            router="web_continue",
            destinations={"web_tools": "web_tools", "orchestrator": "orchestrator"},
            default="orchestrator",
        ),
        BranchSpec(
            source="fs_agent",
            router="fs_continue",
            destinations={"fs_tools": "fs_tools", "orchestrator": "orchestrator"},
            default="orchestrator",
        ),
    ],
)


_ROUTE = re.compile(r"""["']?route["']?\s*[=:]\s*["']?(web|fs|final)\b""")
_RATIONALE = re.compile(r"""["']?rationale["']?\s*[=:]\s*["']?([^"'}]*)""")


def parse_route(text: str) -> Optional[RouteDecision]:
    """Read a route out of free-form or JSON-ish orchestrator text."""
    route = _ROUTE.search(text)
    if route is None:
        logger.warning(f"Could not parse a route from orchestrator output: {text!r}")
        return None
    rationale = _RATIONALE.search(text)
    return RouteDecision(
        route=route.group(1),
        rationale=rationale.group(1).strip() if rationale else "",
    )


def pick_route(state: MultiAgentState) -> str:
    """Route on the orchestrator's `route=` marker; anything else finishes."""
    last = last_message(state.messages)
    text = last.content if last else ""
    if "route=web" in text:
        return "web"
    if "route=fs" in text:
        return "fs"
    return "final"


class OrchestratorAgent(Agent):
    name = "orchestrator"
    system_prompt = (
        "You are the Orchestrator. "
        "route='web' for scraping the content from web pages. "
        "route='fs' for summarizing and saving the content to a file. "
        "route='final' if you can answer without tools. "
        "If the scraper ran successfully send it over to route='fs'. "
        "Return JSON with {route, rationale}."
    )

    async def decide(self, messages: List[ChatMessage]) -> Optional[RouteDecision]:
        try:
            return await self.client.extract(self.system_prompt, messages, RouteDecision)
        except StructuredOutputUnsupported:
            reply = await self.client.complete(self.system_prompt, messages)
            return parse_route(reply.content)

    async def step(self, state: MultiAgentState) -> Dict[str, Any]:
        messages = list(state.messages)
        last = last_message(messages)
        if last is not None and last.name == SAVED:
            messages.append(ChatMessage.assistant(PROCESS_COMPLETE, name=ROUTER))
            return {"messages": messages}

        decision = await self.decide(messages)
        if decision is None:
            content = "[router] route=unknown | could not determine a route"
        else:
            content = f"[router] route={decision.route} | {decision.rationale}"
        logger.agent(content)
        messages.append(ChatMessage.assistant(content, name=ROUTER))
        return {"messages": messages}

    def continuation_route(self, state: MultiAgentState) -> str:
        return pick_route(state)


class _ToolLoopAgent(Agent):
    """Specialist that keeps calling its tools until it produces a final message."""

    output_name: str = ""
    tools_node: str = ""

    def prompt_messages(self, state: MultiAgentState) -> List[ChatMessage]:
        return list(state.messages)

    async def step(self, state: MultiAgentState) -> Dict[str, Any]:
        reply = await self.client.complete(
            self.system_prompt, self.prompt_messages(state), tools=self.tools
        )
        logger.agent(
            f"{self.name}: {len(reply.tool_calls)} tool call(s)"
            if reply.tool_calls else f"{self.name}: {reply.content}"
        )
        message = ChatMessage.assistant(
            reply.content, name=self.output_name, tool_calls=reply.tool_calls
        )
        return {"messages": [*state.messages, message]}

    def continuation_route(self, state: MultiAgentState) -> str:
        last = last_message(state.messages)
        if last is not None and last.role == "assistant" and last.tool_calls:
            return self.tools_node
        return "orchestrator"


class WebAgent(_ToolLoopAgent):
    name = "web_agent"
    output_name = FINDINGS
    tools_node = "web_tools"
    system_prompt = (
        "You are the Web Agent. Your only task is to use the web tools to fetch the "
        "target web page specified by the user and extract its content. You can follow "
        "links to other pages to achieve your goal. Return ONLY a summary of your "
        "findings in a descriptive way in Markdown."
    )


class FilesystemAgent(_ToolLoopAgent):
    name = "fs_agent"
    output_name = SAVED
    tools_node = "fs_tools"
    system_prompt = (
        "You are the Filesystem Agent. You will receive content from a website in "
        "summary form. Save the summary to a markdown file named '{name_of_company}.md' "
        "in the workspace root using the filesystem tools. Respond with a confirmation "
        "message after saving."
    )

    def prompt_messages(self, state: MultiAgentState) -> List[ChatMessage]:
        findings = last_named(state.messages, FINDINGS)
        return [
            *state.messages,
            ChatMessage.user(findings.content if findings else "", name=SUMMARY_INPUT),
        ]


def build_multi_agent_graph(
    client: ModelClient,
    workspace: Union[str, Path],
    max_steps: Optional[int] = None
) -> CompiledGraph:
    """Compile the multi-agent workflow.

    Args:
        client: Model client shared by the three agents
        workspace: Directory the filesystem agent may read and write
    """
    orchestrator = OrchestratorAgent(client)
    web = WebAgent(client, tools=[FetchPageTool])
    fs = FilesystemAgent(client, tools=filesystem_tools(workspace))

    handlers = {
        "orchestrator": orchestrator,
        "web_agent": web,
        "web_tools": ToolExecutor(web.tools),
        "fs_agent": fs,
        "fs_tools": ToolExecutor(fs.tools),
    }
    routers = {
        "pick_route": orchestrator.continuation_route,
        "web_continue": web.continuation_route,
        "fs_continue": fs.continuation_route,
    }
    return MULTI_AGENT_SHAPE.build(MultiAgentState, handlers, routers).compile(max_steps=max_steps)


def multi_agent_graph_from_settings(
    settings: RelaySettings,
    models: ModelFactory = default_model_factory
) -> CompiledGraph:
    return build_multi_agent_graph(
        models(settings.agents),
        settings.context_dir,
        max_steps=settings.max_steps,
    )
