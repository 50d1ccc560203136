"""
Lead model — one row per prospective customer.

Each project (company setup, bank account setup, legacy bank deal) owns an
identical set of workflow columns distinguished only by prefix. Code never
reads these columns by hand; it goes through app.workflow.state, which maps a
Project onto its prefix.
"""
import uuid

from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


def _new_id():
    return uuid.uuid4().hex


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Text, primary_key=True, default=_new_id)
    full_name = Column(Text, nullable=False, default='')
    email = Column(Text, nullable=True)
    whatsapp = Column(Text, nullable=True)           # E.164
    nationality = Column(Text, nullable=True)
    residence_country = Column(Text, nullable=True)
    setup_type = Column(Text, nullable=True)         # mainland / freezone / offshore / bank
    activity = Column(Text, nullable=True)
    needs_bank_account = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    assigned_agent = Column(Text, nullable=True)     # legacy handle, see SETUP_TYPE_AGENT
    google_review_requested_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # -- Company project --
    company_feasible = Column(Boolean, nullable=True)
    company_agent_contacted_at = Column(DateTime(timezone=True), nullable=True)
    company_quoted_amount = Column(Float, nullable=True)
    company_quote_sent_at = Column(DateTime(timezone=True), nullable=True)
    company_quote_viewed_at = Column(DateTime(timezone=True), nullable=True)
    company_quote_whatsapp_sent_at = Column(DateTime(timezone=True), nullable=True)
    company_quote_whatsapp_message_id = Column(Text, nullable=True)
    company_approval_requested_at = Column(DateTime(timezone=True), nullable=True)
    company_proceed_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    company_quote_approved_at = Column(DateTime(timezone=True), nullable=True)
    company_approved = Column(Boolean, nullable=True)
    company_quote_declined_at = Column(DateTime(timezone=True), nullable=True)
    company_quote_decline_reason = Column(Text, nullable=True)
    company_quote_questions_at = Column(DateTime(timezone=True), nullable=True)
    company_quote_questions_reason = Column(Text, nullable=True)
    company_invoice_number = Column(Text, nullable=True)
    company_invoice_sent_at = Column(DateTime(timezone=True), nullable=True)
    company_invoice_amount = Column(Float, nullable=True)
    company_invoice_version = Column(Integer, nullable=False, default=1)
    company_invoice_payment_link = Column(Text, nullable=True)
    company_invoice_html = Column(Text, nullable=True)
    company_invoice_viewed_at = Column(DateTime(timezone=True), nullable=True)
    company_payment_link = Column(Text, nullable=True)
    company_payment_received_at = Column(DateTime(timezone=True), nullable=True)
    company_completed_at = Column(DateTime(timezone=True), nullable=True)
    company_declined_at = Column(DateTime(timezone=True), nullable=True)
    company_decline_reason = Column(Text, nullable=True)
    company_decline_stage = Column(Text, nullable=True)
    company_payment_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    company_payment_reminder_count = Column(Integer, nullable=False, default=0)

    # -- Bank project --
    bank_feasible = Column(Boolean, nullable=True)
    bank_agent_contacted_at = Column(DateTime(timezone=True), nullable=True)
    bank_quoted_amount = Column(Float, nullable=True)
    bank_quote_sent_at = Column(DateTime(timezone=True), nullable=True)
    bank_quote_viewed_at = Column(DateTime(timezone=True), nullable=True)
    bank_quote_whatsapp_sent_at = Column(DateTime(timezone=True), nullable=True)
    bank_quote_whatsapp_message_id = Column(Text, nullable=True)
    bank_approval_requested_at = Column(DateTime(timezone=True), nullable=True)
    bank_proceed_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    bank_quote_approved_at = Column(DateTime(timezone=True), nullable=True)
    bank_approved = Column(Boolean, nullable=True)
    bank_quote_declined_at = Column(DateTime(timezone=True), nullable=True)
    bank_quote_decline_reason = Column(Text, nullable=True)
    bank_quote_questions_at = Column(DateTime(timezone=True), nullable=True)
    bank_quote_questions_reason = Column(Text, nullable=True)
    bank_invoice_number = Column(Text, nullable=True)
    bank_invoice_sent_at = Column(DateTime(timezone=True), nullable=True)
    bank_invoice_amount = Column(Float, nullable=True)
    bank_invoice_version = Column(Integer, nullable=False, default=1)
    bank_invoice_payment_link = Column(Text, nullable=True)
    bank_invoice_html = Column(Text, nullable=True)
    bank_invoice_viewed_at = Column(DateTime(timezone=True), nullable=True)
    bank_payment_link = Column(Text, nullable=True)
    bank_payment_received_at = Column(DateTime(timezone=True), nullable=True)
    bank_completed_at = Column(DateTime(timezone=True), nullable=True)
    bank_declined_at = Column(DateTime(timezone=True), nullable=True)
    bank_decline_reason = Column(Text, nullable=True)
    bank_decline_stage = Column(Text, nullable=True)
    bank_payment_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    bank_payment_reminder_count = Column(Integer, nullable=False, default=0)

    # -- Bank deal project (legacy alternate bank track) --
    bank_deal_feasible = Column(Boolean, nullable=True)
    bank_deal_agent_contacted_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_quoted_amount = Column(Float, nullable=True)
    bank_deal_quote_sent_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_quote_viewed_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_quote_whatsapp_sent_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_quote_whatsapp_message_id = Column(Text, nullable=True)
    bank_deal_approval_requested_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_proceed_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_quote_approved_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_approved = Column(Boolean, nullable=True)
    bank_deal_quote_declined_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_quote_decline_reason = Column(Text, nullable=True)
    bank_deal_quote_questions_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_quote_questions_reason = Column(Text, nullable=True)
    bank_deal_invoice_number = Column(Text, nullable=True)
    bank_deal_invoice_sent_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_invoice_amount = Column(Float, nullable=True)
    bank_deal_invoice_version = Column(Integer, nullable=False, default=1)
    bank_deal_invoice_payment_link = Column(Text, nullable=True)
    bank_deal_invoice_html = Column(Text, nullable=True)
    bank_deal_invoice_viewed_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_payment_link = Column(Text, nullable=True)
    bank_deal_payment_received_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_completed_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_declined_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_decline_reason = Column(Text, nullable=True)
    bank_deal_decline_stage = Column(Text, nullable=True)
    bank_deal_payment_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    bank_deal_payment_reminder_count = Column(Integer, nullable=False, default=0)

    activities = relationship(
        'LeadActivity', back_populates='lead',
        order_by='LeadActivity.id', passive_deletes=True,
    )
    agent_assignments = relationship(
        'LeadAgent', back_populates='lead',
        order_by='LeadAgent.order', passive_deletes=True,
    )

    def to_dict(self):
        """Flat column dict; datetimes as ISO strings."""
        out = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if hasattr(value, 'isoformat'):
                value = value.isoformat()
            out[column.name] = value
        return out
