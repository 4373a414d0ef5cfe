from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from activities.domain.entities import Activity
from presence.domain.entities import OnlineUser


@dataclass
class PresenceSummary:
    online_users: list[OnlineUser] = field(default_factory=list)

    @property
    def total_online(self) -> int:
        return len(self.online_users)


@dataclass
class PollResult:
    """One delta view. ``timestamp`` is the watermark for the next poll."""

    timestamp: datetime
    activities: list[Activity] = field(default_factory=list)
    presence: PresenceSummary = field(default_factory=PresenceSummary)
    notifications: list[dict[str, Any]] = field(default_factory=list)
