"""
"Action required" emails, one personalised event per recipient.

Domain code calls these when a proposal needs votes, is ready for the meeting, or is
approved and waiting to be sent. Each email also lists the recipient's other
outstanding actions. Keys are action-required:<kind>:<proposal_id>:<user_id>.
"""
import logging

from sqlalchemy.orm import Session

from grant_notify.models.committee import UserProfile
from grant_notify.services.email_content import build_action_required_content
from grant_notify.services.notifications.enqueue import enqueue_event
from grant_notify.services.notifications.types import unique_ids
from grant_notify.services.outstanding import (
    ACTION_ADMIN_SEND,
    ACTION_MEETING,
    ACTION_VOTE,
    PROPOSAL_JOINT,
    display_name,
    load_outstanding_state,
)

logger = logging.getLogger(__name__)

EVENT_ACTION_REQUIRED = "action_required"


def _queue_action_required(
    db: Session,
    recipient_user_ids,
    proposal_id: str,
    action_type: str,
    action_title: str,
    action_description: str,
    action_link_path: str,
    key_prefix: str,
    actor_user_id: str | None = None,
) -> int:
    """Returns how many recipients got a newly enqueued email."""
    recipients = unique_ids(recipient_user_ids)
    if not recipients:
        return 0
    state = load_outstanding_state(db)
    users = {u.id: u for u in db.query(UserProfile).filter(UserProfile.id.in_(recipients)).all()}

    queued = 0
    for user_id in recipients:
        user = users.get(user_id)
        if user is None or not (user.email or "").strip():
            continue
        content = build_action_required_content(
            recipient_name=display_name(user),
            action_title=action_title,
            action_description=action_description,
            action_link_path=action_link_path,
            outstanding_actions=state.actions_by_user_id.get(user_id, []),
        )
        result = enqueue_event(
            db,
            EVENT_ACTION_REQUIRED,
            [user_id],
            f"{key_prefix}:{user_id}",
            content,
            link_path=action_link_path,
            payload={"actionType": action_type, "actionTitle": action_title, "targetRole": user.role},
            actor_user_id=actor_user_id,
            entity_id=proposal_id,
        )
        if result.enqueued:
            queued += 1
    logger.info("Queued %s %s email(s) for proposal %s", queued, action_type, proposal_id)
    return queued


def queue_vote_required_emails(
    db: Session,
    proposal_id: str,
    proposal_title: str,
    proposal_type: str,
    recipient_user_ids,
    actor_user_id: str | None = None,
) -> int:
    description = (
        "A joint proposal now needs your vote."
        if proposal_type == PROPOSAL_JOINT
        else "A discretionary proposal now needs your acknowledgement or flag."
    )
    return _queue_action_required(
        db,
        recipient_user_ids,
        proposal_id,
        ACTION_VOTE,
        proposal_title,
        description,
        f"/workspace?proposalId={proposal_id}",
        f"action-required:vote:{proposal_id}",
        actor_user_id,
    )


def queue_meeting_review_emails(
    db: Session,
    proposal_id: str,
    proposal_title: str,
    recipient_user_ids,
    actor_user_id: str | None = None,
) -> int:
    return _queue_action_required(
        db,
        recipient_user_ids,
        proposal_id,
        ACTION_MEETING,
        proposal_title,
        "This proposal is ready for meeting review and decision.",
        f"/meeting?proposalId={proposal_id}",
        f"action-required:meeting:{proposal_id}",
        actor_user_id,
    )


def queue_admin_send_required_emails(
    db: Session,
    proposal_id: str,
    proposal_title: str,
    recipient_user_ids,
    actor_user_id: str | None = None,
) -> int:
    return _queue_action_required(
        db,
        recipient_user_ids,
        proposal_id,
        ACTION_ADMIN_SEND,
        proposal_title,
        "This approved proposal now requires execution and sent confirmation.",
        f"/admin?proposalId={proposal_id}",
        f"action-required:admin-send:{proposal_id}",
        actor_user_id,
    )
