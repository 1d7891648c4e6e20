"""Filesystem tools sandboxed to a single root directory.

`filesystem_tools(root)` returns tool classes bound to `root`. Every path a
model passes is interpreted relative to that root; anything resolving outside
of it is refused.
"""

from pathlib import Path
from typing import ClassVar, List, Type, Union

from mirascope.core import BaseTool
from pydantic import Field

from relaygraph.core.logging import get_logger, LogComponent

logger = get_logger(LogComponent.TOOLS)


class _SandboxedTool(BaseTool):
    root: ClassVar[Path] = Path(".")

    def resolve(self, relative: str) -> Path:
        """Resolve `relative` inside the sandbox.

        Raises:
            PermissionError: If the path escapes the root
        """
        root = self.root.resolve()
        candidate = (root / relative.lstrip("/")).resolve()
        if candidate != root and not candidate.is_relative_to(root):
            raise PermissionError(f"Path '{relative}' is outside the allowed directory")
        return candidate


class ListDirectoryTool(_SandboxedTool):
    """List the files and folders in a directory of the workspace."""

    path: str = Field(
        default=".",
        description="Directory to list, relative to the workspace root"
    )

    def call(self) -> str:
        target = self.resolve(self.path)
        if not target.is_dir():
            return f"Error: '{self.path}' is not a directory"
        entries = sorted(target.iterdir(), key=lambda p: p.name)
        if not entries:
            return "(empty directory)"
        return "\n".join(
            f"[DIR] {p.name}" if p.is_dir() else f"[FILE] {p.name}"
            for p in entries
        )


class ReadFileTool(_SandboxedTool):
    """Read a UTF-8 text file from the workspace."""

    path: str = Field(..., description="File to read, relative to the workspace root")

    def call(self) -> str:
        target = self.resolve(self.path)
        if not target.is_file():
            return f"Error: '{self.path}' does not exist"
        return target.read_text(encoding="utf-8")


class WriteFileTool(_SandboxedTool):
    """Create or overwrite a UTF-8 text file in the workspace.

    Missing parent directories are created.
    """

    path: str = Field(..., description="File to write, relative to the workspace root (e.g. 'acme.md')")
    content: str = Field(..., description="Full text content of the file")

    def call(self) -> str:
        target = self.resolve(self.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.content, encoding="utf-8")
        logger.info(f"Wrote {len(self.content)} characters to {target}")
        return f"Successfully wrote {self.path}"


def filesystem_tools(root: Union[str, Path]) -> List[Type[BaseTool]]:
    """List, read and write tools confined to `root`."""
    root_path = Path(root)
    return [
        type(tool.__name__, (tool,), {"root": root_path, "__doc__": tool.__doc__})
        for tool in (ListDirectoryTool, ReadFileTool, WriteFileTool)
    ]
