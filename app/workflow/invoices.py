"""
Invoice sending — numbering, versioning, HTML snapshot and revision history.

Invoice numbers look like UBD-INV-20260118-0003: the date of issue plus a
sequence shared by all projects for that day. Numbers already used by any
invoice revision are never handed out again, even after a reset.
"""
import logging
from urllib.parse import urlparse

from app.logging_config import lead_logger
from app.models.invoice_revision import InvoiceRevision
from app.models.lead import Lead
from app.services import tokens
from app.services.email_templates import build_invoice_email, build_invoice_snapshot, format_aed
from app.services.lead_store import log_activity
from app.services.mailer import MailError
from app.workflow.errors import PreconditionFailed, DeliveryFailed
from app.workflow.projects import Project
from app.workflow import state as st
from app.workflow.transitions import iso

logger = logging.getLogger('workflow.invoices')

INVOICE_PREFIX = 'UBD-INV'


def _sequence_of(number, prefix):
    tail = number[len(prefix):]
    return int(tail) if tail.isdigit() else 0


def next_invoice_number(session, now):
    """Next free UBD-INV-YYYYMMDD-NNNN for the day of `now`."""
    prefix = f'{INVOICE_PREFIX}-{now.strftime("%Y%m%d")}-'
    pattern = f'{prefix}%'

    used = set()
    for project in Project:
        column = getattr(Lead, project.prefix + 'invoice_number')
        used.update(n for (n,) in session.query(column).filter(column.like(pattern)))
    used.update(
        n for (n,) in session.query(InvoiceRevision.invoice_number)
        .filter(InvoiceRevision.invoice_number.like(pattern))
    )
    highest = max((_sequence_of(n, prefix) for n in used), default=0)
    return f'{prefix}{highest + 1:04d}'


def validate_payment_link(link):
    if not link:
        raise PreconditionFailed('Payment link is required')
    parsed = urlparse(link)
    if parsed.scheme != 'https' or not parsed.netloc:
        raise PreconditionFailed('Payment link must be a valid HTTPS URL')
    return link


def send_invoice(session, lead, project: Project, now, mailer, payment_link=None):
    """Email the invoice for an approved quote. Re-sending while unpaid issues a revision."""
    f = st.read_fields(lead, project)
    if not lead.email:
        raise PreconditionFailed('Lead has no email address')
    if f.payment_received_at:
        raise PreconditionFailed('Cannot send invoice after payment is received')
    if f.is_declined or not f.is_approved:
        raise PreconditionFailed('Quote must be approved before sending invoice')
    if f.quoted_amount is None:
        raise PreconditionFailed('Quoted amount is required before sending an invoice')
    link = validate_payment_link((payment_link or '').strip() or f.payment_link)

    revised = f.invoice_unpaid
    version = (f.invoice_version or 1) + 1 if revised else 1
    number = next_invoice_number(session, now)
    amount = f.quoted_amount
    view_url = tokens.invoice_view_url(lead.id, project, version)

    subject, html, text = build_invoice_email(
        lead, project, number, amount, link, view_url, version=version, revised=revised,
    )
    try:
        mailer.send(lead.email, subject, html, text=text)
    except MailError as e:
        raise DeliveryFailed(f'Failed to send invoice email: {e}') from e

    snapshot = build_invoice_snapshot(lead, project, number, amount, link, revised=revised, now=now)
    st.write_fields(
        lead, project,
        invoice_number=number,
        invoice_sent_at=now,
        invoice_amount=amount,
        invoice_version=version,
        invoice_payment_link=link,
        invoice_html=snapshot,
        invoice_viewed_at=None,
        payment_link=link,
    )

    revision = (
        session.query(InvoiceRevision)
        .filter_by(lead_id=lead.id, project=project.value, version=version)
        .one_or_none()
    )
    if revision is None:
        revision = InvoiceRevision(lead_id=lead.id, project=project.value, version=version)
        session.add(revision)
    revision.invoice_number = number
    revision.amount = amount
    revision.payment_link = link
    revision.html = snapshot
    revision.sent_at = now

    message = (f'Revised {project.label.lower()} invoice v{version} ({number}) sent, {format_aed(amount)}'
               if revised else f'{project.label} invoice {number} sent, {format_aed(amount)}')
    log_activity(session, lead.id, 'invoice_sent', message)
    lead_logger(logger, lead, project).info(message, event='invoice_sent')

    return {
        'ok': True,
        'message': f"{'Revised invoice' if revised else 'Invoice'} {number} sent successfully",
        'invoiceNumber': number,
        'invoiceVersion': version,
        'invoiceViewUrl': view_url,
        'invoiceSentAt': iso(now),
        'revised': revised,
    }


def invoice_revisions(session, lead_id, project: Project):
    return (
        session.query(InvoiceRevision)
        .filter(InvoiceRevision.lead_id == lead_id, InvoiceRevision.project == project.value)
        .order_by(InvoiceRevision.version.desc())
        .all()
    )


def invoice_snapshot(session, lead, project: Project, version=None):
    """HTML for the public invoice page: a specific revision, or the current invoice."""
    f = st.read_fields(lead, project)
    if version is not None and (version != f.invoice_version or not f.invoice_sent_at):
        revision = (
            session.query(InvoiceRevision)
            .filter_by(lead_id=lead.id, project=project.value, version=int(version))
            .one_or_none()
        )
        if revision is not None:
            return revision.html
    return f.invoice_html
