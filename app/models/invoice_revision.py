"""
InvoiceRevision — history of every invoice sent for a lead's project.
"""
from sqlalchemy import Column, Integer, Float, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from app.database import Base


class InvoiceRevision(Base):
    __tablename__ = 'invoice_revisions'
    __table_args__ = (
        UniqueConstraint('lead_id', 'project', 'version', name='uq_invoice_revision_version'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Text, ForeignKey('leads.id', ondelete='CASCADE'), nullable=False)
    project = Column(Text, nullable=False)         # company / bank / bank-deal
    version = Column(Integer, nullable=False)
    invoice_number = Column(Text, nullable=False)
    amount = Column(Float, nullable=True)
    payment_link = Column(Text, nullable=True)
    html = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
