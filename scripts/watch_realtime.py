"""Watch script: follows the realtime poll endpoint and prints what changes.

Usage:
    python scripts/watch_realtime.py TOKEN                     # uses http://localhost:8000/api
    python scripts/watch_realtime.py TOKEN http://host/api     # custom API URL

Mint a TOKEN for an existing user with:
    python -c "from auth.application.services import create_access_token; print(create_access_token('<user-uuid>'))"
"""

import asyncio
import sys

from realtime.infrastructure.polling_client import (
    ActivityEvent,
    ErrorEvent,
    NotificationEvent,
    PollingClient,
    PollingConfig,
    PresenceEvent,
    StatusEvent,
)
from shared.logging import configure_logging


def describe(event) -> str | None:
    if isinstance(event, ActivityEvent):
        who = (event.activity.get("user") or {}).get("name", "someone")
        return f"  [{event.activity['type']}] {who}: {event.activity['description']}"
    if isinstance(event, PresenceEvent):
        names = ", ".join(u["name"] for u in event.online_users) or "nobody"
        return f"  online ({event.total_online}): {names}"
    if isinstance(event, NotificationEvent):
        return f"  notification: {event.notification}"
    if isinstance(event, StatusEvent):
        return f"-- {event.status}"
    if isinstance(event, ErrorEvent):
        return f"!! {event.error}"
    return None


async def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    token = sys.argv[1]
    api_url = sys.argv[2] if len(sys.argv) > 2 else "http://localhost:8000/api"
    configure_logging()
    print(f"Watching {api_url}/realtime/poll (Ctrl+C to stop)\n")

    async with PollingClient(PollingConfig(api_url=api_url, token=token)) as client:
        async for event in client.subscribe():
            line = describe(event)
            if line:
                print(line)
            if isinstance(event, ErrorEvent):
                break


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
