"""
Agent + LeadAgent — who works a lead, in what order, and how far they got.

Service type and bank are explicit columns on the assignment; nothing is
inferred from agent names.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class Agent(Base):
    __tablename__ = 'agents'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    whatsapp = Column(Text, nullable=True)
    service_type = Column(Text, nullable=False, default='company')   # company / bank
    bank_name = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'whatsapp': self.whatsapp,
            'service_type': self.service_type,
            'bank_name': self.bank_name,
            'is_active': self.is_active,
        }


class LeadAgent(Base):
    __tablename__ = 'lead_agents'
    __table_args__ = (
        Index('ix_lead_agents_lead_service', 'lead_id', 'service_type'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Text, ForeignKey('leads.id', ondelete='CASCADE'), nullable=False)
    agent_id = Column(Integer, ForeignKey('agents.id'), nullable=False)
    service_type = Column(Text, nullable=False, default='company')
    bank_name = Column(Text, nullable=True)
    order = Column(Integer, nullable=False, default=1)
    status = Column(Text, nullable=False, default='assigned')
    is_current = Column(Boolean, nullable=False, default=False)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())
    contacted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_working_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    declined_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    lead = relationship('Lead', back_populates='agent_assignments')
    agent = relationship('Agent')

    def to_dict(self):
        return {
            'id': self.id,
            'lead_id': self.lead_id,
            'agent_id': self.agent_id,
            'agent': self.agent.to_dict() if self.agent else None,
            'service_type': self.service_type,
            'bank_name': self.bank_name,
            'order': self.order,
            'status': self.status,
            'is_current': self.is_current,
            'contacted_at': self.contacted_at.isoformat() if self.contacted_at else None,
            'accepted_at': self.accepted_at.isoformat() if self.accepted_at else None,
            'started_working_at': self.started_working_at.isoformat() if self.started_working_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'declined_at': self.declined_at.isoformat() if self.declined_at else None,
            'notes': self.notes,
        }
