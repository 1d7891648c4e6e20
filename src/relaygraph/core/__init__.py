"""Core modules for relaygraph."""

from relaygraph.core.config import ModelSettings, RelaySettings
from relaygraph.core.logging import configure_logging, get_logger, LogLevel, LogComponent

__all__ = [
    'ModelSettings',
    'RelaySettings',
    'configure_logging',
    'get_logger',
    'LogLevel',
    'LogComponent',
]
