"""Wall-clock helpers for the scheduled jobs (reference time zone, period keys)."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalTimeSnapshot:
    local: datetime

    @property
    def weekday(self) -> int:
        """Monday == 0."""
        return self.local.weekday()

    @property
    def hour(self) -> int:
        return self.local.hour

    @property
    def day(self) -> date:
        return self.local.date()


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_time_snapshot(now: datetime, time_zone: str) -> LocalTimeSnapshot | None:
    """*now* in *time_zone*, or None when the zone is unknown."""
    try:
        zone = ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r; scheduled job skipped", time_zone)
        return None
    return LocalTimeSnapshot(local=as_utc(now).astimezone(zone))


def iso_week_key(day: date) -> str:
    """ISO-8601 week, e.g. 2026-W07."""
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def iso_date_key(day: date) -> str:
    return day.isoformat()
