"""
Admin notifications — email to the support inbox, mirrored to Slack when configured.

Notification failure never blocks a transition: notify_admin() logs and
returns False instead of raising.
"""
import logging
import requests

from app import config
from app.logging_config import lead_logger
from app.services.email_templates import build_admin_notification, format_aed

logger = logging.getLogger('services.notifications')

EVENT_TITLES = {
    'quote_viewed': 'Quote Viewed',
    'quote_approved': 'Quote Approved',
    'quote_declined': 'Quote Declined',
    'quote_questions': 'Customer Questions',
    'invoice_viewed': 'Invoice Viewed',
    'payment_reminder': 'Payment Reminder Sent',
    'new_lead': 'New Lead',
}


def event_subject(event, lead, amount=None):
    """e.g. '[Quote Approved] Lead Jane Doe – AED 5,000'"""
    title = EVENT_TITLES.get(event, event.replace('_', ' ').title())
    subject = f'[{title}] Lead {lead.full_name or lead.id}'
    if amount is not None:
        subject += f' – {format_aed(amount)}'
    return subject


def _post_slack(subject, lines, lead_url):
    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": subject[:150]},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": '\n'.join(f'• {line}' for line in lines) or '_no details_'},
        },
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"<{lead_url}|Open lead>"}],
        },
    ]
    requests.post(config.SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)


def notify_admin(mailer, event, lead, project, subject=None, lines=None, amount=None):
    """Best-effort admin notification. Returns True if the email went out."""
    lines = list(lines or [])
    subject = subject or event_subject(event, lead, amount)
    log = lead_logger(logger, lead, project)

    sent = False
    try:
        html, text = build_admin_notification(event, lead, project, subject, lines)
        mailer.send(config.ADMIN_NOTIFY_EMAIL, subject, html, text=text)
        sent = True
        log.info("Admin notified: %s", subject, event=event)
    except Exception:
        log.error("Failed to notify admin for %s", event, exc_info=True, event=event)

    if config.SLACK_WEBHOOK_URL:
        try:
            _post_slack(subject, lines, f'{config.ADMIN_BASE_URL}/admin/leads/{lead.id}')
        except Exception:
            log.error("Failed to post Slack notification", exc_info=True, event=event)

    return sent
