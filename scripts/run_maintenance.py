"""Maintenance script: ends abandoned sessions and tidies presence records.

Usage:
    python scripts/run_maintenance.py            # run once
    python scripts/run_maintenance.py 60         # repeat every 60 seconds

Intervals come from SESSION_GRACE_PERIOD_SECONDS, PRESENCE_IDLE_SECONDS and
PRESENCE_RETENTION_DAYS.
"""

import asyncio
import sys

from maintenance import run_maintenance
from shared.dependencies import get_session_locks
from shared.infrastructure.database import async_session, engine
from shared.logging import configure_logging


async def main() -> None:
    every = float(sys.argv[1]) if len(sys.argv) > 1 else None
    configure_logging()
    locks = get_session_locks()

    try:
        while True:
            report = await run_maintenance(async_session, locks)
            print(
                f"Ended {len(report.ended_sessions)} sessions, idled {report.idled}, "
                f"reaped {report.reaped}, {report.online} users online"
            )
            if every is None:
                break
            await asyncio.sleep(every)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
