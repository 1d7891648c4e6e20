"""relaygraph - async graph workflow engine."""

from relaygraph.core.graph import Graph, CompiledGraph, RunState, START, END
from relaygraph.core.logging import configure_logging, LogLevel, LogComponent

__all__ = [
    'Graph',
    'CompiledGraph',
    'RunState',
    'START',
    'END',
    'configure_logging',
    'LogLevel',
    'LogComponent',
]
