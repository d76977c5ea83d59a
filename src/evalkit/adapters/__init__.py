"""Agent adapters for the evaluation engine.

Provides the Agent interface and concrete adapters for out-of-process agents.
"""

from __future__ import annotations

from .base import Agent, FunctionAgent, Message
from .http_adapter import HttpAgent
from .subprocess_adapter import SubprocessAgent

__all__ = [
    "Agent",
    "FunctionAgent",
    "Message",
    "HttpAgent",
    "SubprocessAgent",
]
