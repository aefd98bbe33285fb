"""
Single source of truth for database tables that exist after migrations (001–002).

Use these names when writing raw SQL. Committee tables are owned by the committee
application; this service only reads them.
"""
# Tables written by the notification pipeline. Must match models and migration 002.
NOTIFICATION_TABLE_NAMES = (
    "notification_events",
    "notification_deliveries",
    "notification_preferences",
    "push_subscriptions",
    "email_weekly_reminders",
    "email_daily_digests",
)

# Committee tables read by the scheduled jobs. Must match models and migration 001.
COMMITTEE_TABLE_NAMES = (
    "user_profiles",
    "grant_proposals",
    "votes",
    "audit_log",
)

ALL_TABLE_NAMES = COMMITTEE_TABLE_NAMES + NOTIFICATION_TABLE_NAMES
