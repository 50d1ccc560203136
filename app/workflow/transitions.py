"""
Transition handlers — every state change a lead's project can go through.

Handlers are HTTP-free: routes authorize the caller (token or admin session),
load the lead, then call in here with an open session and `now`. Each handler
checks its idempotency guard first, mutates fields through app.workflow.state,
appends one activity entry and fires best-effort notifications.

Replays return alreadyX flags. Precondition violations raise
PreconditionFailed. A failed customer email raises DeliveryFailed before any
field is written.
"""
import logging
from datetime import datetime, timezone

from app import config
from app.logging_config import lead_logger
from app.models.agent import LeadAgent
from app.services import tokens
from app.services.email_templates import (
    build_completion_email, build_payment_confirmation_email, build_quote_email,
    build_reminder_email, format_aed, service_name,
)
from app.services.lead_store import log_activity
from app.services.mailer import MailError
from app.services.notifications import notify_admin
from app.workflow.errors import PreconditionFailed, DeliveryFailed
from app.workflow.projects import Project
from app.workflow import state as st

logger = logging.getLogger('workflow.transitions')

DECISIONS = ('proceed', 'decline', 'questions')
OVERRIDE_DECISIONS = ('accept', 'decline', 'questions')
DEFAULT_DECLINE_STAGE = 'After Invoice'


def utcnow():
    return datetime.now(timezone.utc)


def iso(value):
    return value.isoformat() if value else None


# ── Customer (token-gated) ──────────────────────────────────────────────────

def view_quote(session, lead, project: Project, now, mailer=None):
    """Record the first time the customer opens the quote page."""
    f = st.read_fields(lead, project)
    if not f.quote_sent_at:
        raise PreconditionFailed('Quote has not been sent')
    if f.quote_viewed_at:
        return {'viewedAt': iso(f.quote_viewed_at), 'alreadyViewed': True, 'notified': False}

    st.write_fields(lead, project, quote_viewed_at=now)
    log_activity(session, lead.id, 'quote_viewed', f'Customer viewed the {project.label.lower()} quote')
    notified = False
    if mailer is not None:
        notified = notify_admin(
            mailer, 'quote_viewed', lead, project,
            lines=[f'{project.label} quote opened by the customer',
                   f'Amount: {format_aed(f.quoted_amount)}'],
            amount=f.quoted_amount,
        )
    lead_logger(logger, lead, project).info("Quote viewed", event='quote_viewed')
    return {'viewedAt': iso(now), 'alreadyViewed': False, 'notified': notified}


def decide(session, lead, project: Project, decision, now, reason=None, mailer=None):
    """Customer decision on a quote: proceed, decline or questions."""
    if decision not in DECISIONS:
        raise PreconditionFailed(f"Invalid decision '{decision}'")
    f = st.read_fields(lead, project)
    if not f.quote_sent_at:
        raise PreconditionFailed('No quote has been sent for this project')

    if f.is_approved:
        return {
            'success': True,
            'decision': 'proceed',
            'alreadyProceeded': True,
            'date': iso(f.proceed_confirmed_at or f.quote_approved_at),
        }
    if decision == 'questions' and f.quote_questions_at:
        return {
            'success': True,
            'decision': 'questions',
            'alreadyHasQuestions': True,
            'date': iso(f.quote_questions_at),
        }
    if f.is_declined:
        return {
            'success': True,
            'decision': 'decline',
            'alreadyDeclined': True,
            'date': iso(f.quote_declined_at or f.declined_at),
        }

    reason = (reason or '').strip() or None
    label = project.label.lower()
    if decision == 'proceed':
        st.apply_proceed(lead, project, now)
        event, message = 'quote_approved', f'Customer approved the {label} quote'
    elif decision == 'decline':
        st.apply_decline(lead, project, now, reason)
        event, message = 'quote_declined', f'Customer declined the {label} quote'
    else:
        st.apply_questions(lead, project, now, reason)
        event, message = 'quote_questions', f'Customer has questions about the {label} quote'
    if reason:
        message += f': {reason}'

    log_activity(session, lead.id, event, message)
    lead_logger(logger, lead, project).info("Quote decision: %s", decision, event=event)

    notified = False
    if mailer is not None:
        lines = [message, f'Amount: {format_aed(f.quoted_amount)}']
        notified = notify_admin(mailer, event, lead, project, lines=lines, amount=f.quoted_amount)
    return {'success': True, 'decision': decision, 'date': iso(now), 'notified': notified}


def mark_invoice_viewed(session, lead, project: Project, now, mailer=None):
    f = st.read_fields(lead, project)
    if not f.invoice_sent_at:
        raise PreconditionFailed('Invoice has not been sent')
    if f.invoice_viewed_at:
        return {'viewedAt': iso(f.invoice_viewed_at), 'alreadyViewed': True}

    st.write_fields(lead, project, invoice_viewed_at=now)
    log_activity(session, lead.id, 'invoice_viewed', f'Customer viewed invoice {f.invoice_number}')
    if mailer is not None:
        notify_admin(mailer, 'invoice_viewed', lead, project,
                     lines=[f'Invoice {f.invoice_number} opened by the customer'],
                     amount=f.invoice_amount)
    return {'viewedAt': iso(now), 'alreadyViewed': False}


# ── Admin ───────────────────────────────────────────────────────────────────

def send_quote(session, lead, project: Project, now, mailer, whatsapp=None, amount=None):
    """Email a (possibly revised) quote and open a fresh decision cycle."""
    f = st.read_fields(lead, project)
    if amount is not None:
        amount = float(amount)
        if amount <= 0:
            raise PreconditionFailed('Quoted amount must be greater than zero')
    else:
        amount = f.quoted_amount
    if not lead.email:
        raise PreconditionFailed('Lead has no email address')
    if amount is None:
        raise PreconditionFailed('Quoted amount is required before sending a quote')
    if f.invoice_unpaid:
        raise PreconditionFailed('Invoice already sent. Reset Quote Workflow before sending a new quote.')

    revised = bool(f.quote_sent_at)
    approval_url = tokens.quote_approval_url(lead.id, project)
    subject, html, text = build_quote_email(lead, project, amount, approval_url, revised=revised)
    try:
        mailer.send(lead.email, subject, html, text=text)
    except MailError as e:
        raise DeliveryFailed(f'Failed to send quote email: {e}') from e

    st.clear_decision(lead, project)
    st.write_fields(lead, project, quoted_amount=amount, quote_sent_at=now, approval_requested_at=now)
    log_activity(
        session, lead.id, 'quote_sent',
        f"{'Revised ' if revised else ''}{project.label} quote sent ({format_aed(amount)})",
    )
    lead_logger(logger, lead, project).info("Quote sent%s", ' (revised)' if revised else '',
                                            event='quote_sent')

    wa = {'attempted': False, 'ok': False, 'error': None}
    if whatsapp is not None and lead.whatsapp:
        wa = send_quote_whatsapp(session, lead, project, now, whatsapp, approval_url=approval_url)

    return {
        'ok': True,
        'revised': revised,
        'approvalUrl': approval_url,
        'quoteSentAt': iso(now),
        'whatsapp': wa,
    }


def send_quote_whatsapp(session, lead, project: Project, now, whatsapp, approval_url=None):
    """Best-effort WhatsApp nudge pointing at the quote. Never raises on delivery."""
    f = st.read_fields(lead, project)
    if not f.quote_sent_at:
        raise PreconditionFailed('Send the quote email before the WhatsApp notification')
    if not lead.whatsapp:
        return {'attempted': False, 'ok': False, 'error': 'Lead has no WhatsApp number'}

    approval_url = approval_url or tokens.quote_approval_url(lead.id, project)
    body = (
        f"Hello {lead.full_name or ''}, your quote for {service_name(lead, project)} "
        f"({format_aed(f.quoted_amount)}) has been emailed to you. "
        f"You can review and respond here: {approval_url}"
    )
    result = whatsapp.send_text(lead.whatsapp, body)
    if result['ok']:
        st.write_fields(lead, project, quote_whatsapp_sent_at=now,
                        quote_whatsapp_message_id=result.get('message_id'))
        log_activity(session, lead.id, 'whatsapp_sent', f'{project.label} quote WhatsApp notification sent')
    else:
        lead_logger(logger, lead, project).warning("Quote WhatsApp not sent: %s", result.get('error'),
                                                   event='quote_whatsapp')
    return {'attempted': True, 'ok': result['ok'], 'error': result.get('error')}


def send_payment_reminder(session, lead, project: Project, now, mailer, notify=True):
    """Email a payment reminder for an unpaid invoice."""
    f = st.read_fields(lead, project)
    if not f.invoice_sent_at:
        raise PreconditionFailed('Invoice has not been sent')
    if f.payment_received_at:
        raise PreconditionFailed('Payment already received')
    if f.is_declined:
        raise PreconditionFailed('Project is declined')
    if not lead.email:
        raise PreconditionFailed('Lead has no email address')
    payment_link = f.invoice_payment_link or f.payment_link
    amount = f.invoice_amount if f.invoice_amount is not None else f.quoted_amount
    if not payment_link or not f.invoice_number or amount is None:
        raise PreconditionFailed('Invoice is missing payment link, number or amount')

    subject, html, text = build_reminder_email(lead, project, f.invoice_number, amount, payment_link)
    try:
        mailer.send(lead.email, subject, html, text=text)
    except MailError as e:
        raise DeliveryFailed(f'Failed to send payment reminder: {e}') from e

    count = (f.payment_reminder_count or 0) + 1
    st.write_fields(lead, project, payment_reminder_sent_at=now, payment_reminder_count=count)
    log_activity(session, lead.id, 'payment_reminder_sent',
                 f'Payment reminder #{count} sent for invoice {f.invoice_number}')
    if notify:
        notify_admin(mailer, 'payment_reminder', lead, project,
                     lines=[f'Reminder #{count} for invoice {f.invoice_number}'], amount=amount)
    return {'ok': True, 'reminderCount': count, 'sentAt': iso(now)}


def send_payment_confirmation(session, lead, project: Project, now, mailer):
    """Thank the customer once payment is recorded. May be re-sent."""
    f = st.read_fields(lead, project)
    if not f.payment_received_at:
        raise PreconditionFailed('Payment has not been received')
    if not lead.email:
        raise PreconditionFailed('Lead has no email address')

    amount = f.invoice_amount if f.invoice_amount is not None else f.quoted_amount
    subject, html, text = build_payment_confirmation_email(lead, project, amount)
    try:
        mailer.send(lead.email, subject, html, text=text)
    except MailError as e:
        raise DeliveryFailed(f'Failed to send payment confirmation email: {e}') from e

    log_activity(session, lead.id, 'payment_confirmation_sent',
                 f'{project.label} payment confirmation email sent')
    lead_logger(logger, lead, project).info("Payment confirmation sent", event='payment_confirmation_sent')
    return {'ok': True, 'message': 'Payment confirmation email sent', 'sentAt': iso(now)}


def send_completion(session, lead, project: Project, now, mailer):
    """
    Completion email listing every finished service.

    The first completion email a lead receives also asks for a Google review
    (when GOOGLE_REVIEW_LINK is set) and stamps google_review_requested_at.
    """
    f = st.read_fields(lead, project)
    if not f.completed_at:
        raise PreconditionFailed(f'{project.label} project is not completed')
    if not lead.email:
        raise PreconditionFailed('Lead has no email address')

    review = lead.google_review_requested_at is None and bool(config.GOOGLE_REVIEW_LINK)
    subject, html, text = build_completion_email(
        lead, review_link=config.GOOGLE_REVIEW_LINK if review else None,
    )
    try:
        mailer.send(lead.email, subject, html, text=text)
    except MailError as e:
        raise DeliveryFailed(f'Failed to send completion email: {e}') from e

    if review:
        lead.google_review_requested_at = now
    log_activity(session, lead.id, 'completion_sent',
                 f"Completion email sent{' (with Google review request)' if review else ''}")
    lead_logger(logger, lead, project).info("Completion email sent", event='completion_sent')
    return {'ok': True, 'message': 'Completion email sent', 'googleReviewRequested': review,
            'sentAt': iso(now)}


def override_decision(session, lead, project: Project, decision, now, reason=None):
    """Admin forces a decision. Always applies."""
    if decision not in OVERRIDE_DECISIONS:
        raise PreconditionFailed("decision must be 'accept', 'decline' or 'questions'")
    reason = (reason or '').strip() or None

    if decision == 'accept':
        st.apply_proceed(lead, project, now)
    elif decision == 'decline':
        st.apply_decline(lead, project, now, reason)
    else:
        st.clear_fields(lead, project, (
            'approved', 'proceed_confirmed_at', 'quote_approved_at',
            'quote_declined_at', 'quote_decline_reason',
            'declined_at', 'decline_reason', 'decline_stage',
        ))
        st.apply_questions(lead, project, now, reason)

    message = f'Admin set {project.label.lower()} decision to {decision}'
    if reason:
        message += f': {reason}'
    log_activity(session, lead.id, 'admin_override_decision', message)
    lead_logger(logger, lead, project).info(message, event='admin_override_decision')
    return {'ok': True, 'project': project.value, 'decision': decision}


def close_project(session, lead, project: Project, now, reason=None, stage=None):
    """Admin marks a project as lost."""
    stage = stage or DEFAULT_DECLINE_STAGE
    st.apply_close(lead, project, now, reason, stage)
    action = 'lead_declined' if project == Project.COMPANY else 'bank_declined'
    message = f'{project.label} closed as declined ({stage})'
    if reason:
        message += f': {reason}'
    log_activity(session, lead.id, action, message)
    return {'ok': True, 'declinedAt': iso(now), 'declineStage': stage}


def reset_project(session, lead, project: Project, reason=None):
    """Rewind one project's quote cycle. Refused once money has moved."""
    f = st.read_fields(lead, project)
    if f.hard_blocked:
        raise PreconditionFailed('Cannot reset after payment received or completion.')

    st.clear_fields(lead, project, st.RESET_FIELDS + ('invoice_version', 'payment_reminder_count'))
    message = f'{project.label} quote workflow reset'
    if reason:
        message += f': {reason}'
    log_activity(session, lead.id, 'quote_workflow_reset', message)
    lead_logger(logger, lead, project).info(message, event='reset')
    return {'ok': True}


def master_reset(session, lead, reason=None):
    """Null every workflow field of every project and drop agent assignments."""
    for project in Project:
        st.clear_fields(lead, project, st.FIELD_NAMES)
    lead.assigned_agent = 'unassigned'
    removed = (
        session.query(LeadAgent)
        .filter(LeadAgent.lead_id == lead.id)
        .delete(synchronize_session=False)
    )
    message = 'Master reset: all workflow fields cleared'
    if reason:
        message += f': {reason}'
    log_activity(session, lead.id, 'master_reset', message)
    lead_logger(logger, lead).warning("Master reset (%d agent assignments removed)", removed,
                                      event='master_reset')
    return {'ok': True, 'agentAssignmentsRemoved': removed}


PROGRESS_FIELDS = ('feasible', 'quoted_amount', 'agent_contacted', 'payment_received',
                   'completed', 'payment_link')


def update_progress(session, lead, project: Project, now, changes):
    """Admin bookkeeping: feasibility, amount, contact, payment and completion."""
    unknown = set(changes) - set(PROGRESS_FIELDS)
    if unknown:
        raise PreconditionFailed(f"Unknown progress fields: {', '.join(sorted(unknown))}")
    f = st.read_fields(lead, project)
    updates = {}
    notes = []

    if 'feasible' in changes:
        value = changes['feasible']
        if value not in (True, False, None):
            raise PreconditionFailed('feasible must be true, false or null')
        updates['feasible'] = value
        notes.append(f'feasibility set to {value}')
    if 'quoted_amount' in changes:
        value = changes['quoted_amount']
        if value is not None:
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise PreconditionFailed('quoted_amount must be a number') from None
            if value <= 0:
                raise PreconditionFailed('quoted_amount must be greater than zero')
        updates['quoted_amount'] = value
        notes.append(f'quoted amount set to {format_aed(value)}')
    if 'payment_link' in changes:
        link = (changes['payment_link'] or '').strip() or None
        if link and not link.lower().startswith('https://'):
            raise PreconditionFailed('Payment link must use HTTPS')
        updates['payment_link'] = link
        notes.append('payment link updated')
    for flag, field in (('agent_contacted', 'agent_contacted_at'),
                        ('payment_received', 'payment_received_at'),
                        ('completed', 'completed_at')):
        if flag in changes:
            current = getattr(f, field)
            updates[field] = (current or now) if changes[flag] else None
            notes.append(f"{flag.replace('_', ' ')} {'set' if changes[flag] else 'cleared'}")

    if updates.get('completed_at') and f.is_declined:
        raise PreconditionFailed('Cannot complete a declined project')

    st.write_fields(lead, project, **updates)
    if notes:
        log_activity(session, lead.id, 'progress_updated', f"{project.label}: {'; '.join(notes)}")
    return {'ok': True, 'updated': sorted(updates)}
