"""
LeadActivity — append-only audit trail, one row per transition.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class LeadActivity(Base):
    __tablename__ = 'lead_activities'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Text, ForeignKey('leads.id', ondelete='CASCADE'), nullable=False, index=True)
    action = Column(Text, nullable=False)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    lead = relationship('Lead', back_populates='activities')
