"""Transport that answers commands from a recorded fixture.

A fixture maps command names to a response entry, or to a list of entries
consumed in order (the last one repeats)::

    commands:
      login:
        result: {user_id: u1, username: admin}
      my_channels:
        error: {id: api.channel.error, message: boom, status_code: 500}
      users:
        - result: [...]
        - result: []
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from mm_client.gateway import TransportRejected

logger = logging.getLogger(__name__)


def _entries(command: str, raw: Any) -> list[dict[str, Any]]:
    entries = raw if isinstance(raw, list) else [raw]
    for entry in entries:
        if not isinstance(entry, dict) or not ({"result", "error"} & entry.keys()):
            raise ValueError(
                f"Fixture entry for '{command}' needs a 'result' or 'error' key"
            )
    if not entries:
        raise ValueError(f"Fixture for '{command}' has no entries")
    return list(entries)


class ReplayTransport:
    """Replays fixture responses and records every invocation."""

    def __init__(self, responses: Mapping[str, Any]) -> None:
        self._responses = {
            command: _entries(command, raw) for command, raw in responses.items()
        }
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @classmethod
    def from_file(cls, path: str | Path) -> ReplayTransport:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        commands = data.get("commands", {}) if isinstance(data, dict) else {}
        logger.debug("Loaded %d command fixture(s) from %s", len(commands), path)
        return cls(commands)

    def commands_called(self) -> list[str]:
        return [command for command, _ in self.calls]

    async def invoke(
        self, command: str, args: Mapping[str, Any] | None = None
    ) -> Any:
        self.calls.append((command, dict(args or {})))
        # every backend round trip is a suspension point
        await asyncio.sleep(0)

        queue = self._responses.get(command)
        if not queue:
            raise TransportRejected(f"command {command} not found")
        entry = queue.pop(0) if len(queue) > 1 else queue[0]
        if "error" in entry:
            raise TransportRejected(entry["error"])
        return entry.get("result")
