# lead_intake/models/lead.py
from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    Text,
    Uuid,
    false,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from lead_intake.db.base import Base


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Contact
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    sms_consent = Column(Boolean, nullable=False, default=False, server_default=false())

    # Property
    address = Column(String(500), nullable=False)
    is_listed = Column(String(3))
    condition = Column(String(16))
    timeline = Column(String(16))
    asking_price = Column(String(50))

    # Sparse marketing attribution; NULL when the submission carried none
    attribution = Column(JSONB(none_as_null=True), nullable=True)

    # Webhook delivery status (written only by the webhook forwarder)
    webhook_sent = Column(Boolean, nullable=False, default=False, server_default=false())
    webhook_sent_at = Column(DateTime(timezone=True))

    # CRM delivery status (written only by the CRM synchronizer)
    ghl_sent = Column(Boolean, nullable=False, default=False, server_default=false())
    ghl_sent_at = Column(DateTime(timezone=True))
    ghl_response = Column(Text)
    ghl_error = Column(Text)

    __table_args__ = (
        Index("idx_leads_created_at", "created_at"),
        Index("idx_leads_email", "email"),
    )
