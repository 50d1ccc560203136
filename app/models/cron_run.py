"""
CronRun — one row per scheduled batch run, for /api/admin/cron/status.
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON
from sqlalchemy.sql import func

from app.database import Base


class CronRun(Base):
    __tablename__ = 'cron_runs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(Text, nullable=False)              # e.g. 'payment-reminders'
    ran_at = Column(DateTime(timezone=True), server_default=func.now())
    processed = Column(Integer, default=0)
    sent = Column(Integer, default=0)
    skipped = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    errors = Column(JSON, default=list)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'ran_at': self.ran_at.isoformat() if self.ran_at else None,
            'processed': self.processed,
            'sent': self.sent,
            'skipped': self.skipped,
            'error_count': self.error_count,
            'errors': self.errors or [],
        }
