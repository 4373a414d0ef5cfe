import logging
from datetime import datetime, timedelta
from uuid import UUID

from activities.domain.entities import Activity
from activities.domain.repository import ActivityRepository
from presence.domain.repository import PresenceRepository
from realtime.domain.entities import PollResult, PresenceSummary
from realtime.domain.repository import NotificationSource
from shared.clock import ensure_utc, utcnow
from shared.config import settings

logger = logging.getLogger(__name__)


async def poll(
    activity_repo: ActivityRepository,
    presence_repo: PresenceRepository,
    notifications: NotificationSource,
    user_id: UUID,
    watermark: datetime | None = None,
    *,
    activity_limit: int = settings.POLL_ACTIVITY_LIMIT,
    presence_window: timedelta = timedelta(seconds=settings.POLL_PRESENCE_WINDOW_SECONDS),
    presence_limit: int = settings.POLL_PRESENCE_LIMIT,
    default_lookback: timedelta = timedelta(seconds=settings.POLL_DEFAULT_LOOKBACK_SECONDS),
    settle: timedelta = timedelta(seconds=settings.POLL_SETTLE_SECONDS),
) -> PollResult:
    """Assemble everything that changed after ``watermark``.

    The server clock is read once, up front. Activities are read in the
    window ``watermark < created_at <= server_time - settle`` so rows whose
    transaction is still committing are left for a later poll.

    When more than ``activity_limit`` activities fall in the window, the
    oldest page is returned and ``timestamp`` is the ``created_at`` of the
    newest row in it, so a client that sends back ``timestamp`` receives the
    rest on its next poll. Otherwise ``timestamp`` is the window's upper
    bound. Either way each activity is delivered exactly once.
    """
    server_time = utcnow()
    since = ensure_utc(watermark) if watermark else server_time - default_lookback
    until = max(since, server_time - settle)

    rows = await activity_repo.list_created_between(since, until, activity_limit + 1)
    page = rows[:activity_limit]
    timestamp = until
    if len(rows) > activity_limit:
        page = _drop_split_timestamp(page, rows[activity_limit])
        timestamp = ensure_utc(page[-1].created_at)

    online = await presence_repo.online_users(server_time - presence_window, presence_limit)
    pending = await notifications.pending_for(user_id, since)

    logger.debug(
        "Poll for user %s since %s: %d activities, %d online, %d notifications, next %s",
        user_id,
        since.isoformat(),
        len(page),
        len(online),
        len(pending),
        timestamp.isoformat(),
    )
    return PollResult(
        timestamp=timestamp,
        activities=page[::-1],
        presence=PresenceSummary(online_users=online),
        notifications=pending,
    )


def _drop_split_timestamp(page: list[Activity], following: Activity) -> list[Activity]:
    """Trim trailing rows of a full page that share ``created_at`` with the
    first row left out.

    The strict lower bound of the next poll would otherwise skip the rows
    left out. A page holding a single timestamp is kept whole.
    """
    if following.created_at != page[-1].created_at:
        return page
    trimmed = [a for a in page if a.created_at != following.created_at]
    return trimmed or page
