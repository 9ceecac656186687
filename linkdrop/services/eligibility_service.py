import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from linkdrop.models.link import Eligibility
from linkdrop.repositories.base import AbstractLinkRepository

logger = logging.getLogger(__name__)

DAILY_SUBMISSION_LIMIT = 2


def _local_midnight(day: date, tz: tzinfo | None) -> datetime:
    midnight = datetime.combine(day, time.min)
    if tz is None:
        # Naive -> aware in the host's local zone, DST included.
        return midnight.astimezone()
    return midnight.replace(tzinfo=tz)


def start_of_local_day(now: datetime, tz: tzinfo | None = None) -> datetime:
    """Midnight that opened the calendar day containing `now`, in `tz` (host local if None)."""
    return _local_midnight(now.astimezone(tz).date(), tz)


def next_local_midnight(now: datetime, tz: tzinfo | None = None) -> datetime:
    """Midnight that closes the calendar day containing `now`."""
    start = start_of_local_day(now, tz)
    return _local_midnight(start.date() + timedelta(days=1), tz)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionGatekeeper:
    """
    Enforces DAILY_SUBMISSION_LIMIT per sender per local calendar day.
    The window resets at local midnight, not 24h after the last submission.
    """

    def __init__(
        self,
        repository: AbstractLinkRepository,
        clock: Callable[[], datetime] | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or _utcnow
        self._tz = tz

    def check_eligibility(self, sender_id: str) -> Eligibility:
        now = self._clock()
        day_start = start_of_local_day(now, self._tz)
        try:
            count = self._repository.count_submissions_since(sender_id, day_start)
        except Exception:
            # Fail open.
            logger.exception("[eligibility] count failed, allowing | sender=%s", sender_id)
            return Eligibility(allowed=True, next_eligible_at=None, count_today=0)

        if count >= DAILY_SUBMISSION_LIMIT:
            next_at = next_local_midnight(now, self._tz)
            logger.info(
                "[eligibility] limit reached | sender=%s | count=%d | next=%s",
                sender_id,
                count,
                next_at.isoformat(),
            )
            return Eligibility(allowed=False, next_eligible_at=next_at, count_today=count)
        return Eligibility(allowed=True, next_eligible_at=None, count_today=count)


def remaining_today(eligibility: Eligibility) -> int:
    return max(0, DAILY_SUBMISSION_LIMIT - eligibility.count_today)
