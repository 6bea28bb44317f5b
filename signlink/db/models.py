# File: signlink/db/models.py

import enum

from sqlalchemy import (
    Column, String, DateTime, Enum, JSON, Text, Integer, ForeignKey, Index
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class SignRequestStatus(enum.Enum):
    PENDING = "PENDING"
    SIGNED = "SIGNED"


class SignEventType(enum.Enum):
    LINK_CREATED = "LINK_CREATED"
    LINK_SENT = "LINK_SENT"
    CLIENT_SIGNED = "CLIENT_SIGNED"
    SIGNED_COPY_SENT = "SIGNED_COPY_SENT"
    SIGNED_COPY_SEND_FAILED = "SIGNED_COPY_SEND_FAILED"


class SignRequest(Base):
    __tablename__ = "sign_requests"

    token = Column(String(64), primary_key=True)
    contract_json = Column(JSON, nullable=False)
    status = Column(Enum(SignRequestStatus), nullable=False, default=SignRequestStatus.PENDING)
    sign_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    last_signed_at = Column(DateTime(timezone=True), nullable=True)
    signed_by_ip = Column(String(64), nullable=True)
    signed_user_agent = Column(Text, nullable=True)

    events = relationship("SignEvent", back_populates="sign_request", order_by="SignEvent.id")


class SignEvent(Base):
    __tablename__ = "sign_events"
    __table_args__ = (
        Index("idx_sign_events_token_created", "token", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(64), ForeignKey("sign_requests.token"), nullable=False)
    event_type = Column(Enum(SignEventType), nullable=False)
    event_payload = Column(JSON, nullable=False, default=dict)
    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    sign_request = relationship("SignRequest", back_populates="events")
