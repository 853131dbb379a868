"""CLI adapter — sends one ask from argv/stdin, prints pushed frames as JSON lines."""

from __future__ import annotations

import asyncio
import json
import os
import sys

from chat_relay import create_router
from chat_relay.config import configure_logging, load_settings
from chat_relay.relay.models import TransportEvent
from chat_relay.relay.pusher import ConnectionPusher


class StdoutPusher(ConnectionPusher):
    async def push(self, connection_id: str, payload: bytes) -> None:
        frame = {"connection_id": connection_id, "payload": payload.decode("utf-8", errors="replace")}
        print(json.dumps(frame), flush=True)


async def run_cli(text: str, token: str, connection_id: str = "cli-default") -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    router = create_router(StdoutPusher(), settings=settings)
    body = json.dumps({"action": "ask", "token": token, "data": text})
    await router.handle(TransportEvent(connection_id=connection_id, route_key="ask", body=body))


def main() -> None:
    token = os.environ.get("RELAY_TOKEN", "")
    if not token:
        print("RELAY_TOKEN must hold a bearer token", file=sys.stderr)
        sys.exit(1)

    if len(sys.argv) > 1:
        text = " ".join(sys.argv[1:])
    else:
        text = sys.stdin.read().strip()
        if not text:
            print("Usage: relay-cli <prompt>  OR  echo '<prompt>' | relay-cli", file=sys.stderr)
            sys.exit(1)

    asyncio.run(run_cli(text, token, os.environ.get("RELAY_CONNECTION_ID", "cli-default")))


if __name__ == "__main__":
    main()
