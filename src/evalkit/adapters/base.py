"""Agent boundary consumed by the evaluation engine.

Philosophy:
- Agent-agnostic: anything that turns a message into a message is evaluable
- The engine never inspects agent internals, only process() in and out
- Failures are raised, not returned; callers decide how to isolate them

Public API:
    Message: A single message exchanged with an agent
    Agent: Abstract interface for evaluable agents
    FunctionAgent: Wrap a plain callable as an Agent
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """A message exchanged with an agent."""

    role: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }


class Agent(ABC):
    """Interface for evaluating any agent.

    Implement this to make your agent evaluable by the engine.

    Example::

        class MyAgent(Agent):
            def process(self, message: Message) -> Message:
                reply = self.llm.complete(message.content)
                return Message(role="assistant", content=reply)
    """

    @abstractmethod
    def process(self, message: Message) -> Message:
        """Handle one input message and return the agent's reply.

        Raise on failure; the engine records the failure per case.
        """

    @property
    def name(self) -> str:
        """Human-readable agent name."""
        return self.__class__.__name__


class FunctionAgent(Agent):
    """Adapter turning ``fn(content) -> str | Message`` into an Agent.

    Handy for tests and for objectives that build agents on the fly.
    """

    def __init__(self, fn: Callable[[str], Any], name: str = ""):
        self._fn = fn
        self._name = name or getattr(fn, "__name__", "FunctionAgent")

    def process(self, message: Message) -> Message:
        reply = self._fn(message.content)
        if isinstance(reply, Message):
            return reply
        return Message(role="assistant", content=str(reply))

    @property
    def name(self) -> str:
        return self._name


__all__ = [
    "Message",
    "Agent",
    "FunctionAgent",
]
