"""
Payment reminder batch.

Picks leads whose invoice is sent but unpaid, skips declined projects and
anything reminded within the cooldown, oldest invoice first, capped per
project. Each lead is committed on its own so one failure never undoes
another lead's reminder. The run's counters land in a CronRun row.
"""
import logging
from datetime import timedelta

from sqlalchemy import or_

from app import config
from app.logging_config import lead_logger
from app.models.cron_run import CronRun
from app.models.lead import Lead
from app.workflow.errors import WorkflowError
from app.workflow.projects import Project
from app.workflow.transitions import send_payment_reminder

logger = logging.getLogger('services.reminders')

RUN_TYPE = 'payment-reminders'
SCHEDULED_PROJECTS = (Project.COMPANY, Project.BANK)


def _col(project, name):
    return getattr(Lead, project.prefix + name)


def find_reminder_candidates(session, project: Project, now, limit=None):
    """Leads due a reminder for this project, oldest invoice first."""
    limit = limit or config.REMINDER_BATCH_LIMIT
    cutoff = now - timedelta(hours=config.REMINDER_COOLDOWN_HOURS)
    return (
        session.query(Lead)
        .filter(
            _col(project, 'invoice_sent_at').isnot(None),
            _col(project, 'payment_received_at').is_(None),
            _col(project, 'declined_at').is_(None),
            _col(project, 'quote_declined_at').is_(None),
            or_(_col(project, 'approved').is_(None), _col(project, 'approved').is_(True)),
            or_(
                _col(project, 'payment_reminder_sent_at').is_(None),
                _col(project, 'payment_reminder_sent_at') <= cutoff,
            ),
        )
        .order_by(_col(project, 'invoice_sent_at').asc())
        .limit(limit)
        .all()
    )


def run_payment_reminders(session, mailer, now, projects=SCHEDULED_PROJECTS):
    """Send every due reminder. Returns {processed, sent, skipped, errors}."""
    processed = sent = skipped = 0
    errors = []

    for project in projects:
        for lead in find_reminder_candidates(session, project, now):
            processed += 1
            lead_id = lead.id
            log = lead_logger(logger, lead_id, project)
            try:
                send_payment_reminder(session, lead, project, now, mailer)
                session.commit()
                sent += 1
            except WorkflowError as e:
                session.rollback()
                skipped += 1
                errors.append({'id': lead_id, 'project': project.value, 'error': e.message})
                log.warning("Reminder skipped: %s", e.message, event='payment_reminder')
            except Exception as e:
                # one lead never aborts the batch; the run record is always written
                session.rollback()
                skipped += 1
                errors.append({'id': lead_id, 'project': project.value, 'error': f'{type(e).__name__}: {e}'})
                log.error("Reminder failed", exc_info=True, event='payment_reminder')

    run = CronRun(
        type=RUN_TYPE,
        ran_at=now,
        processed=processed,
        sent=sent,
        skipped=skipped,
        error_count=len(errors),
        errors=errors,
    )
    session.add(run)
    session.commit()
    logger.info("Payment reminders: processed=%d sent=%d skipped=%d errors=%d",
                processed, sent, skipped, len(errors))
    return {'processed': processed, 'sent': sent, 'skipped': skipped, 'errors': errors}


def latest_runs(session, limit=10):
    return (
        session.query(CronRun)
        .filter(CronRun.type == RUN_TYPE)
        .order_by(CronRun.ran_at.desc(), CronRun.id.desc())
        .limit(limit)
        .all()
    )
