"""
Centralized constants for the notification queue and scheduler (Encapsulate What Changes).

Change job IDs, intervals or status names here instead of scattering literals across
main, routes and services. Tunable numbers (attempts, backoff cap, pacing) live in
config.Settings so they can be set per environment.
"""

# Channel families
CHANNEL_PUSH = "push"
CHANNEL_EMAIL = "email"
CHANNELS = (CHANNEL_PUSH, CHANNEL_EMAIL)

# Delivery statuses. Forward-only: pending -> sent | failed | permanently_failed
STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_PERMANENTLY_FAILED = "permanently_failed"

# Enqueue result reasons
REASON_DUPLICATE = "duplicate"
REASON_NO_RECIPIENTS = "no_recipients"

# Stored error text is capped so one bad provider response cannot bloat the row
MAX_ERROR_MESSAGE_LENGTH = 500

# Column widths on notification_events (migration 002)
MAX_IDEMPOTENCY_KEY_LENGTH = 255
MAX_LINK_PATH_LENGTH = 1024
MAX_LINK_LABEL_LENGTH = 128

# Fire-and-forget drain after enqueue processes at least this many deliveries
BACKGROUND_DRAIN_MIN_LIMIT = 25

# Scheduler job IDs (must match ids used in main.py add_job)
PUSH_DRAIN_JOB_ID = "drain_push_deliveries"
EMAIL_DRAIN_JOB_ID = "drain_email_deliveries"
REMINDERS_JOB_ID = "scheduled_email_reminders"
DRAIN_INTERVAL_SECONDS = 60
REMINDERS_INTERVAL_MINUTES = 15

# Committee roles (owned by the committee application)
ROLE_MEMBER = "member"
ROLE_OVERSIGHT = "oversight"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"
WORKER_ROLES = (ROLE_OVERSIGHT, ROLE_ADMIN)

# Audit-log action written by the committee app when a donation is marked sent
AUDIT_ACTION_PROPOSAL_SENT = "meeting_decision_sent"
AUDIT_ENTITY_PROPOSAL = "proposal"

WEEKDAY_TUESDAY = 1  # datetime.weekday(): Monday == 0
