"""Time-gated email jobs: weekly action reminder and daily sent digest."""
from grant_notify.services.scheduled.daily_digest import DailyDigestResult, preview_daily_digest, run_daily_digest
from grant_notify.services.scheduled.weekly_reminder import WeeklyReminderResult, run_weekly_reminder

__all__ = [
    "DailyDigestResult",
    "WeeklyReminderResult",
    "preview_daily_digest",
    "run_daily_digest",
    "run_weekly_reminder",
]
