from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utcnow():
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuditContext:
    """Who is acting and when. Passed into every mutating service call."""

    user_id: Optional[int] = None
    now: datetime = field(default_factory=utcnow)

    @property
    def today(self):
        return self.now.date()
