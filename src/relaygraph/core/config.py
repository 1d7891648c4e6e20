"""Runtime configuration for relaygraph services.

Settings are a plain pydantic model so they can be built directly in tests.
`RelaySettings.from_env()` loads a `.env` file first, then reads the
`RELAYGRAPH_*` variables. The OpenAI key is picked up by the SDK itself from
`OPENAI_API_KEY`.
"""

import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from relaygraph.core.logging import LogLevel


class ModelSettings(BaseModel):
    """Model name and sampling temperature for one role."""
    model: str
    temperature: Optional[float] = None


class RelaySettings(BaseModel):
    """Configuration for the workflows and the HTTP service.

    Attributes:
        context_dir: Folder holding the markdown corpus and uploads
        max_steps: Node executions allowed per run before it is aborted
        log_level: Root log level for `configure_logging`
        host: Bind address for the HTTP server
        port: Bind port for the HTTP server
        embedding_model: OpenAI embedding model used by the retrieval workflow
        chunk_size: Maximum characters per retrieval chunk
        chunk_overlap: Characters shared between consecutive chunks
        top_k: Chunks retrieved per query
        max_upload_bytes: Upper bound for uploaded context files
    """
    context_dir: Path = Field(default_factory=lambda: Path.cwd() / "ai-context")
    max_steps: int = Field(default=25, ge=1)
    log_level: LogLevel = LogLevel.INFO
    host: str = "0.0.0.0"
    port: int = 8000

    embedding_model: str = "text-embedding-ada-002"
    chunk_size: int = Field(default=800, gt=0)
    chunk_overlap: int = Field(default=100, ge=0)
    top_k: int = Field(default=4, ge=1)
    max_upload_bytes: int = 10 * 1024 * 1024

    comparison_models: Dict[str, ModelSettings] = Field(default_factory=lambda: {
        "A": ModelSettings(model="gpt-4", temperature=0.8),
        "B": ModelSettings(model="o3-mini"),
        "C": ModelSettings(model="gpt-4o-mini", temperature=0.4),
    })
    evaluator: ModelSettings = Field(
        default_factory=lambda: ModelSettings(model="gpt-4o-mini", temperature=0.2)
    )
    rag_answer: ModelSettings = Field(
        default_factory=lambda: ModelSettings(model="gpt-4o", temperature=0.3)
    )
    agents: ModelSettings = Field(
        default_factory=lambda: ModelSettings(model="gpt-4o", temperature=0.0)
    )
    conversation: ModelSettings = Field(
        default_factory=lambda: ModelSettings(model="gpt-4o-mini", temperature=0.6)
    )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "RelaySettings":
        """Build settings from the environment, loading `.env` first."""
        load_dotenv(env_file)
        values = {}
        if os.getenv("RELAYGRAPH_CONTEXT_DIR"):
            values["context_dir"] = Path(os.environ["RELAYGRAPH_CONTEXT_DIR"])
        if os.getenv("RELAYGRAPH_MAX_STEPS"):
            values["max_steps"] = int(os.environ["RELAYGRAPH_MAX_STEPS"])
        if os.getenv("RELAYGRAPH_LOG_LEVEL"):
            values["log_level"] = LogLevel[os.environ["RELAYGRAPH_LOG_LEVEL"].upper()]
        if os.getenv("RELAYGRAPH_HOST"):
            values["host"] = os.environ["RELAYGRAPH_HOST"]
        if os.getenv("RELAYGRAPH_PORT"):
            values["port"] = int(os.environ["RELAYGRAPH_PORT"])
        if os.getenv("RELAYGRAPH_EMBEDDING_MODEL"):
            values["embedding_model"] = os.environ["RELAYGRAPH_EMBEDDING_MODEL"]
        if os.getenv("RELAYGRAPH_AGENT_MODEL"):
            values["agents"] = ModelSettings(
                model=os.environ["RELAYGRAPH_AGENT_MODEL"], temperature=0.0
            )
        return cls(**values)
