"""Adapter for any agent accessible via CLI subprocess.

Runs the agent as a subprocess per message, sends the message content via
stdin, and reads the reply from stdout.

Usage::

    from evalkit.adapters.subprocess_adapter import SubprocessAgent

    agent = SubprocessAgent(command=["python", "-m", "my_agent"], json_output=True)
    reply = agent.process(Message(role="user", content="What is 2+2?"))
    print(reply.content)
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import time

from ..errors import AgentError
from .base import Agent, Message

logger = logging.getLogger(__name__)


class SubprocessAgent(Agent):
    """Adapter for agents accessible via CLI subprocess.

    Args:
        command: Command to invoke the agent (e.g. ["python", "-m", "my_agent"])
        timeout: Timeout in seconds for each subprocess call
        json_output: If True, parse stdout as JSON {"content", "metadata"}
        env: Additional environment variables for the subprocess
    """

    def __init__(
        self,
        command: list[str],
        timeout: float = 120.0,
        json_output: bool = False,
        env: dict[str, str] | None = None,
    ):
        if not command:
            raise ValueError("command must be a non-empty list")
        self._command = command
        self._timeout = timeout
        self._json_output = json_output
        self._env = env

    def _run(self, stdin_text: str) -> str:
        """Run the command with stdin_text and return stdout."""
        env = dict(os.environ)
        if self._env:
            env.update(self._env)

        try:
            result = subprocess.run(
                self._command,
                input=stdin_text,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            logger.error("Subprocess timed out after %.1fs", self._timeout)
            raise AgentError(f"agent timed out after {self._timeout:.1f}s") from e
        except FileNotFoundError as e:
            logger.error("Command not found: %s", self._command)
            raise AgentError(f"command not found: {self._command[0]}") from e

        if result.returncode != 0:
            logger.warning("Subprocess returned %d: %s", result.returncode, result.stderr[:500])
            raise AgentError(f"agent exited with status {result.returncode}")
        return result.stdout.strip()

    def process(self, message: Message) -> Message:
        """Send one message to the agent via stdin."""
        start = time.time()
        output = self._run(message.content)
        elapsed = time.time() - start

        if self._json_output and output:
            try:
                data = json.loads(output)
                metadata = dict(data.get("metadata") or {})
                metadata.setdefault("elapsed_s", elapsed)
                return Message(
                    role="assistant",
                    content=str(data.get("content", output)),
                    metadata=metadata,
                )
            except (json.JSONDecodeError, AttributeError):
                logger.debug("Subprocess output is not a JSON object, using raw text")

        return Message(role="assistant", content=output, metadata={"elapsed_s": elapsed})

    @property
    def name(self) -> str:
        return f"Subprocess({' '.join(self._command[:2])})"


__all__ = ["SubprocessAgent"]
