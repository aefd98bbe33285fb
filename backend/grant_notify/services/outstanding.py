"""
Outstanding committee work, computed from the committee tables.

- vote_required: proposals in to_review that a voting user (member/oversight) has not voted on.
  Discretionary proposals never ask the proposer to vote and ignore the proposer's own vote.
- meeting_review_required: to_review proposals whose votes are complete, for oversight/manager.
- admin_send_required: approved proposals waiting to be marked Sent, for admins.
- own proposal updates: what each proposer is waiting on and who to chase.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from grant_notify.core.constants import ROLE_ADMIN, ROLE_MANAGER, ROLE_MEMBER, ROLE_OVERSIGHT
from grant_notify.models.committee import GrantProposal, UserProfile, Vote
from grant_notify.services.notifications.types import unique_ids

ACTION_VOTE = "vote_required"
ACTION_MEETING = "meeting_review_required"
ACTION_ADMIN_SEND = "admin_send_required"

PROPOSAL_TO_REVIEW = "to_review"
PROPOSAL_APPROVED = "approved"
PROPOSAL_JOINT = "joint"
PROPOSAL_DISCRETIONARY = "discretionary"


@dataclass
class OutstandingAction:
    id: str
    type: str
    title: str
    description: str
    link_path: str
    created_at: datetime | None = None


@dataclass
class OwnProposalUpdate:
    id: str
    title: str
    status_label: str  # "To review" | "Approved"
    summary: str
    chase_names: list[str]
    link_path: str
    created_at: datetime | None = None


@dataclass
class OutstandingState:
    users_by_id: dict[str, UserProfile] = field(default_factory=dict)
    actions_by_user_id: dict[str, list[OutstandingAction]] = field(default_factory=dict)
    own_updates_by_user_id: dict[str, list[OwnProposalUpdate]] = field(default_factory=dict)


def _sort_key(item):
    ts = item.created_at.timestamp() if item.created_at else 0.0
    return (ts, item.title)


def proposal_title(proposal: GrantProposal) -> str:
    return (proposal.proposal_title or "").strip() or "Proposal"


def display_name(user: UserProfile) -> str:
    """Greeting name: full name, else the email local part, else 'there'."""
    full_name = (user.full_name or "").strip()
    if full_name:
        return full_name
    local = (user.email or "").split("@")[0].strip()
    return local or "there"


def display_name_or_email(user: UserProfile | None) -> str:
    if user is None:
        return "Unknown user"
    return (user.full_name or "").strip() or (user.email or "").strip() or "Unknown user"


def load_outstanding_state(db: Session) -> OutstandingState:
    users = db.query(UserProfile).order_by(UserProfile.id).all()
    to_review = db.query(GrantProposal).filter(GrantProposal.status == PROPOSAL_TO_REVIEW).all()
    approved = db.query(GrantProposal).filter(GrantProposal.status == PROPOSAL_APPROVED).all()

    votes_by_proposal: dict[str, set[str]] = defaultdict(set)
    to_review_ids = [p.id for p in to_review]
    if to_review_ids:
        for vote in db.query(Vote).filter(Vote.proposal_id.in_(to_review_ids)).all():
            votes_by_proposal[vote.proposal_id].add(vote.voter_id)

    users_by_id = {u.id: u for u in users}
    voting_user_ids = [u.id for u in users if u.role in (ROLE_MEMBER, ROLE_OVERSIGHT)]
    meeting_users = [u for u in users if u.role in (ROLE_OVERSIGHT, ROLE_MANAGER)]
    admin_users = [u for u in users if u.role == ROLE_ADMIN]
    meeting_chase = unique_ids(display_name_or_email(u) for u in meeting_users)
    admin_chase = unique_ids(display_name_or_email(u) for u in admin_users)

    actions: dict[str, list[OutstandingAction]] = defaultdict(list)
    own_updates: dict[str, list[OwnProposalUpdate]] = defaultdict(list)

    for proposal in to_review:
        title = proposal_title(proposal)
        discretionary = proposal.proposal_type == PROPOSAL_DISCRETIONARY
        stored = votes_by_proposal.get(proposal.id, set())
        eligible_votes = {v for v in stored if v != proposal.proposer_id} if discretionary else stored
        required_voters = [uid for uid in voting_user_ids if not (discretionary and uid == proposal.proposer_id)]
        pending_voters = [uid for uid in required_voters if uid not in eligible_votes]
        ready_for_meeting = bool(required_voters) and len(eligible_votes) >= len(required_voters)

        for uid in pending_voters:
            actions[uid].append(
                OutstandingAction(
                    id=f"{proposal.id}:vote:{uid}",
                    type=ACTION_VOTE,
                    title=title,
                    description=(
                        "Mark this proposal as acknowledged or flagged."
                        if discretionary
                        else "Cast your vote and amount recommendation."
                    ),
                    link_path=f"/workspace?proposalId={proposal.id}",
                    created_at=proposal.created_at,
                )
            )
        if ready_for_meeting:
            for user in meeting_users:
                actions[user.id].append(
                    OutstandingAction(
                        id=f"{proposal.id}:meeting:{user.id}",
                        type=ACTION_MEETING,
                        title=title,
                        description="Review votes and record the meeting decision.",
                        link_path=f"/meeting?proposalId={proposal.id}",
                        created_at=proposal.created_at,
                    )
                )

        if pending_voters:
            count = len(pending_voters)
            summary = f"Waiting on {count} remaining vote{'s' if count != 1 else ''} before meeting review."
            chase = unique_ids(display_name_or_email(users_by_id.get(uid)) for uid in pending_voters)
            link = f"/workspace?proposalId={proposal.id}"
        else:
            summary = "All votes are complete. Waiting for oversight/manager meeting decision."
            chase = meeting_chase
            link = f"/meeting?proposalId={proposal.id}"
        own_updates[proposal.proposer_id].append(
            OwnProposalUpdate(
                id=proposal.id,
                title=title,
                status_label="To review",
                summary=summary,
                chase_names=chase,
                link_path=link,
                created_at=proposal.created_at,
            )
        )

    for proposal in approved:
        title = proposal_title(proposal)
        for user in admin_users:
            actions[user.id].append(
                OutstandingAction(
                    id=f"{proposal.id}:admin:{user.id}",
                    type=ACTION_ADMIN_SEND,
                    title=title,
                    description="Mark the donation as Sent after execution is complete.",
                    link_path=f"/admin?proposalId={proposal.id}",
                    created_at=proposal.created_at,
                )
            )
        own_updates[proposal.proposer_id].append(
            OwnProposalUpdate(
                id=proposal.id,
                title=title,
                status_label="Approved",
                summary="Approved and waiting for admin execution plus Sent confirmation.",
                chase_names=admin_chase,
                link_path=f"/admin?proposalId={proposal.id}",
                created_at=proposal.created_at,
            )
        )

    return OutstandingState(
        users_by_id=users_by_id,
        actions_by_user_id={uid: sorted(items, key=_sort_key) for uid, items in actions.items()},
        own_updates_by_user_id={uid: sorted(items, key=_sort_key) for uid, items in own_updates.items()},
    )


def load_approved_unsent(db: Session) -> list[GrantProposal]:
    """Approved proposals not yet marked Sent, oldest first (the digest's outstanding section)."""
    return (
        db.query(GrantProposal)
        .filter(GrantProposal.status == PROPOSAL_APPROVED)
        .order_by(GrantProposal.created_at.asc(), GrantProposal.id.asc())
        .all()
    )
