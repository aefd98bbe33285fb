"""Committee tables read by the notification jobs

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

Owned by the committee application. Created here so a standalone database
(local dev, previews) has the shape the scheduled jobs query.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("full_name", sa.String(256), nullable=False, server_default=""),
        sa.Column("email", sa.String(320), nullable=False, server_default=""),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=True),
    )
    op.create_index("ix_user_profiles_role", "user_profiles", ["role"])

    op.create_table(
        "grant_proposals",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("proposal_title", sa.String(512), nullable=True),
        sa.Column("proposer_id", sa.String(64), nullable=False),
        sa.Column("proposal_type", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_grant_proposals_proposer_id", "grant_proposals", ["proposer_id"])
    op.create_index("ix_grant_proposals_status", "grant_proposals", ["status"])

    op.create_table(
        "votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("proposal_id", sa.String(64), nullable=False),
        sa.Column("voter_id", sa.String(64), nullable=False),
    )
    op.create_index("ix_votes_proposal_id", "votes", ["proposal_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("votes")
    op.drop_table("grant_proposals")
    op.drop_table("user_profiles")
