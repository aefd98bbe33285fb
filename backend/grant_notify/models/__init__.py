from grant_notify.models.committee import AuditLogEntry, GrantProposal, UserProfile, Vote
from grant_notify.models.notification_delivery import NotificationDelivery
from grant_notify.models.notification_event import NotificationEvent
from grant_notify.models.notification_preference import NotificationPreference
from grant_notify.models.push_subscription import PushSubscription
from grant_notify.models.scheduled_audit import DailyDigestAudit, WeeklyReminderAudit

__all__ = [
    "AuditLogEntry",
    "DailyDigestAudit",
    "GrantProposal",
    "NotificationDelivery",
    "NotificationEvent",
    "NotificationPreference",
    "PushSubscription",
    "UserProfile",
    "Vote",
    "WeeklyReminderAudit",
]
