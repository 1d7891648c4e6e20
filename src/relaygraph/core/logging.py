"""Logging configuration with pretty formatting for relaygraph."""

import logging
import sys
from typing import Optional, Dict, Any
from enum import Enum, IntEnum
from datetime import datetime

# ANSI Color Codes
class Colors:
    """ANSI color codes for pretty terminal output."""
    HEADER = '\033[95m'      # Pink
    INFO = '\033[94m'        # Blue
    SUCCESS = '\033[92m'     # Green
    WARNING = '\033[93m'     # Yellow
    ERROR = '\033[91m'       # Red
    RESET = '\033[0m'        # Reset
    BOLD = '\033[1m'         # Bold
    DIM = '\033[2m'          # Dim

PRETTY_FORMAT = (
    "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
)

DETAILED_FORMAT = (
    f"{Colors.DIM}%(asctime)s{Colors.RESET} │ "
    f"%(colored_level)-40s │ "
    f"{Colors.DIM}%(name)s{Colors.RESET} │ "
    f"%(message)s"
)

class PrettyFormatter(logging.Formatter):
    """Formatter with colors and symbols per level."""

    level_colors = {
        'DEBUG': (Colors.DIM, '🔍'),
        'VERBOSE': (Colors.DIM, '·'),
        'INFO': (Colors.INFO, 'ℹ️'),
        'WARNING': (Colors.WARNING, '⚠️'),
        'ERROR': (Colors.ERROR, '❌'),
        'CRITICAL': (Colors.ERROR + Colors.BOLD, '🚨'),
        'AGENT': (Colors.SUCCESS, '🤖'),
        'TOOL': (Colors.HEADER, '🔧')
    }

    def format(self, record):
        color, symbol = self.level_colors.get(record.levelname, (Colors.RESET, '•'))
        record.colored_level = f"{color}{symbol} {record.levelname}{Colors.RESET}"

        message = super().format(record)

        if record.levelno >= logging.WARNING:
            message = f"{message}\n{Colors.DIM}{'─' * 80}{Colors.RESET}"

        return message

class PrettyLogHandler(logging.StreamHandler):
    """Stream handler that stamps a short wall-clock time on each record."""

    def emit(self, record):
        record.asctime = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        super().emit(record)

class LogComponent(str, Enum):
    """Components that can be logged."""
    GRAPH = "relaygraph.core.graph"
    NODES = "relaygraph.core.graph.nodes"
    EXECUTOR = "relaygraph.core.graph.executor"
    AGENT = "relaygraph.core.agent"
    TOOLS = "relaygraph.core.tools"
    RETRIEVAL = "relaygraph.core.retrieval"
    STORE = "relaygraph.core.store"
    WORKFLOW = "relaygraph.workflows"
    HTTP = "relaygraph.extensions.http"

class LogLevel(IntEnum):
    """Log levels mapped to logging module levels."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL
    AGENT = 25  # agent outputs
    TOOL = 26   # tool calls

class VerbosityLevel(IntEnum):
    """Custom verbosity levels for more granular control."""
    DEBUG = logging.DEBUG
    VERBOSE = 15
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

logging.addLevelName(LogLevel.AGENT, "AGENT")
logging.addLevelName(LogLevel.TOOL, "TOOL")
logging.addLevelName(VerbosityLevel.VERBOSE, "VERBOSE")

def configure_logging(
    default_level: LogLevel = LogLevel.INFO,
    component_levels: Optional[Dict[LogComponent, LogLevel]] = None,
    pretty: bool = True,
    log_file: Optional[str] = None
) -> None:
    """Configure root logging with pretty console output and an optional file."""
    handlers = []

    console_handler = PrettyLogHandler(sys.stderr) if pretty else logging.StreamHandler()
    console_handler.setFormatter(
        PrettyFormatter(DETAILED_FORMAT if pretty else PRETTY_FORMAT)
    )
    handlers.append(console_handler)

    # File output never carries colour codes
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(PRETTY_FORMAT))
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(default_level.value)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    for handler in handlers:
        root_logger.addHandler(handler)

    if not component_levels:
        component_levels = {
            LogComponent.AGENT: LogLevel.AGENT,
            LogComponent.TOOLS: LogLevel.TOOL,
            LogComponent.GRAPH: default_level,
            LogComponent.EXECUTOR: default_level,
        }

    for component, level in component_levels.items():
        logging.getLogger(component.value).setLevel(level.value)

def get_logger(component: LogComponent) -> logging.Logger:
    """Get a logger for a component, with `.agent()` and `.tool()` shortcuts."""
    logger = logging.getLogger(component.value)

    def log_agent(self, msg: str) -> None:
        self.log(LogLevel.AGENT, msg)

    def log_tool(self, msg: str) -> None:
        self.log(LogLevel.TOOL, msg)

    logger.agent = lambda msg: log_agent(logger, msg)
    logger.tool = lambda msg: log_tool(logger, msg)

    return logger

def log_verbose(logger: logging.Logger, message: str) -> None:
    """Log a message at VERBOSE level."""
    if logger.isEnabledFor(VerbosityLevel.VERBOSE):
        logger.log(VerbosityLevel.VERBOSE, message)

def log_state(logger: logging.Logger, state: Dict[str, Any], prefix: str = "") -> None:
    """Log a state mapping field by field at DEBUG level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    for key, value in state.items():
        if isinstance(value, dict):
            logger.debug(f"{prefix}{key}:")
            log_state(logger, value, prefix + "  ")
        else:
            text = repr(value)
            if len(text) > 200:
                text = text[:200] + "…"
            logger.debug(f"{prefix}{key}: {text}")
