"""stdio server mode: JSON line-delimited message protocol over stdin/stdout.

Each input line is one inbound message ``{"origin": str | null, "data": ...}``.
Each reply is written as ``{"targetOrigin": str, "message": <envelope JSON text>}``.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any, TextIO

import orjson

from mermaid_bridge.contracts.requests import MessageEvent
from mermaid_bridge.engine.router import MessageRouter


class StdioSender:
    """Reply channel that writes each posted message as one JSON line."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def post_message(self, message: str, target_origin: str) -> None:
        line = orjson.dumps({"targetOrigin": target_origin, "message": message}).decode()
        self.stream.write(line + "\n")
        self.stream.flush()


class StdioServer:
    """Feeds stdin lines to a ``MessageRouter``, one message at a time."""

    def __init__(
        self,
        router: MessageRouter,
        *,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.router = router
        self.stdin = stdin or sys.stdin
        self.sender = StdioSender(stdout)

    def _write_error(self, message: str) -> None:
        self.sender.stream.write(orjson.dumps({"ok": False, "error": message}).decode() + "\n")
        self.sender.stream.flush()

    async def handle_line(self, line: str) -> Any:
        line = line.strip()
        if not line:
            return None
        try:
            request = orjson.loads(line)
        except orjson.JSONDecodeError as e:
            self._write_error(f"Invalid JSON: {e}")
            return None
        if not isinstance(request, dict) or "data" not in request:
            self._write_error("Each line must be an object with a 'data' field")
            return None

        origin = request.get("origin")
        event = MessageEvent(
            data=request["data"],
            origin=origin if isinstance(origin, str) else None,
            source=self.sender,
        )
        return await self.router.handle_message(event)

    async def serve(self) -> None:
        """Main server loop: read lines until EOF."""
        loop = asyncio.get_running_loop()
        while True:
            # Blocking readline runs off-loop so host callbacks can still be delivered.
            line = await loop.run_in_executor(None, self.stdin.readline)
            if not line:
                break
            await self.handle_line(line)

    def run(self) -> None:
        asyncio.run(self.serve())
