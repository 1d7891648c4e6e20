"""Agent module for relaygraph."""

from relaygraph.core.agent.base import Agent, ToolExecutor
from relaygraph.core.agent.client import (
    ModelClient,
    ModelReply,
    MirascopeModelClient,
    ModelFactory,
    default_model_factory,
)
from relaygraph.core.agent.messages import ChatMessage, ToolCall, last_message, last_named

__all__ = [
    'Agent',
    'ToolExecutor',
    'ModelClient',
    'ModelReply',
    'MirascopeModelClient',
    'ModelFactory',
    'default_model_factory',
    'ChatMessage',
    'ToolCall',
    'last_message',
    'last_named',
]
