"""
Notification queue: idempotent enqueue, delivery expansion, retrying worker, completion.
"""
from grant_notify.services.notifications.completion import finalize_events
from grant_notify.services.notifications.enqueue import (
    enqueue_event,
    queue_email_notification,
    queue_push_event,
    start_background_drain,
)
from grant_notify.services.notifications.expander import expand_event
from grant_notify.services.notifications.preferences import (
    deactivate_push_subscription,
    get_notification_preferences,
    list_user_ids_by_roles,
    save_push_subscription,
    update_notification_preferences,
)
from grant_notify.services.notifications.types import (
    DrainResult,
    EnqueueResult,
    NotificationContent,
)
from grant_notify.services.notifications.worker import (
    backoff_delay_minutes,
    process_all_channels,
    process_pending_deliveries,
)

__all__ = [
    "DrainResult",
    "EnqueueResult",
    "NotificationContent",
    "backoff_delay_minutes",
    "deactivate_push_subscription",
    "enqueue_event",
    "expand_event",
    "finalize_events",
    "get_notification_preferences",
    "list_user_ids_by_roles",
    "process_all_channels",
    "process_pending_deliveries",
    "queue_email_notification",
    "queue_push_event",
    "save_push_subscription",
    "start_background_drain",
    "update_notification_preferences",
]
