"""Tool integrations for relaygraph agents."""

from relaygraph.core.tools.filesystem import (
    ListDirectoryTool,
    ReadFileTool,
    WriteFileTool,
    filesystem_tools,
)
from relaygraph.core.tools.web import FetchPageTool, html_to_text

__all__ = [
    "FetchPageTool",
    "html_to_text",
    "ListDirectoryTool",
    "ReadFileTool",
    "WriteFileTool",
    "filesystem_tools",
]
