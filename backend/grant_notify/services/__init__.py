from grant_notify.services.action_emails import (
    queue_admin_send_required_emails,
    queue_meeting_review_emails,
    queue_vote_required_emails,
)

__all__ = ["queue_admin_send_required_emails", "queue_meeting_review_emails", "queue_vote_required_emails"]
