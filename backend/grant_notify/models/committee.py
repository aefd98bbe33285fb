"""Committee tables owned by the grant workflow application. Read-only here.

The scheduled jobs and action-required emails derive their content from these rows;
this service never writes them.
"""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from grant_notify.db.base import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(String(64), primary_key=True)
    full_name = Column(String(256), nullable=False, server_default="")
    email = Column(String(320), nullable=False, server_default="")
    role = Column(String(32), nullable=False, index=True)  # member | oversight | manager | admin
    timezone = Column(String(64), nullable=True)


class GrantProposal(Base):
    __tablename__ = "grant_proposals"

    id = Column(String(64), primary_key=True)
    proposal_title = Column(String(512), nullable=True)
    proposer_id = Column(String(64), nullable=False, index=True)
    proposal_type = Column(String(32), nullable=False)  # joint | discretionary
    status = Column(String(32), nullable=False, index=True)  # to_review | approved | sent | declined
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)


class Vote(Base):
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(String(64), nullable=False, index=True)
    voter_id = Column(String(64), nullable=False)


class AuditLogEntry(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
