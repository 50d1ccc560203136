"""
Invoice routes — public invoice page/details (token-gated) and admin view links.
"""
import logging
from flask import Blueprint, jsonify, request, Response

from app.database import session_scope
from app.extensions import get_mailer
from app.services import tokens
from app.services.email_templates import service_name
from app.services.lead_store import get_lead
from app.workflow import state as st
from app.workflow import transitions
from app.workflow.errors import PreconditionFailed, Unauthorized
from app.workflow.invoices import invoice_snapshot
from app.workflow.projects import Project

logger = logging.getLogger('routes.invoice')

bp = Blueprint('invoice', __name__)


def _claims(token):
    claims = tokens.verify(token, tokens.VIEW_INVOICE)
    if claims is None:
        raise Unauthorized('This invoice link is invalid or has expired')
    return claims


@bp.route('/api/invoice/details', methods=['POST'])
def details():
    data = request.get_json(silent=True) or {}
    claims = _claims(data.get('token'))
    project = claims.project
    with session_scope() as session:
        lead = get_lead(session, claims.lead_id)
        f = st.read_fields(lead, project)
        if not f.invoice_sent_at:
            raise PreconditionFailed('Invoice has not been sent')
        return jsonify({
            'ok': True,
            'project': project.value,
            'customerName': lead.full_name,
            'serviceName': service_name(lead, project),
            'invoiceNumber': f.invoice_number,
            'invoiceVersion': f.invoice_version,
            'amount': f.invoice_amount,
            'paymentLink': f.invoice_payment_link or f.payment_link,
            'invoiceSentAt': transitions.iso(f.invoice_sent_at),
            'paid': bool(f.payment_received_at),
        })


@bp.route('/invoice/view')
def view():
    """Public invoice page: the stored HTML snapshot. First open of the live invoice is recorded."""
    claims = _claims(request.args.get('token'))
    version = claims.extra.get('version')
    with session_scope() as session:
        lead = get_lead(session, claims.lead_id)
        html = invoice_snapshot(session, lead, claims.project, version)
        if not html:
            raise PreconditionFailed('Invoice has not been sent')
        f = st.read_fields(lead, claims.project)
        if f.invoice_sent_at and version in (None, f.invoice_version):
            transitions.mark_invoice_viewed(session, lead, claims.project, transitions.utcnow(),
                                            mailer=get_mailer())
    return Response(html, mimetype='text/html')


@bp.route('/api/invoice/view-link')
def view_link():
    """Admin: mint a 30-day invoice view URL."""
    lead_id = request.args.get('leadId')
    if not lead_id:
        raise PreconditionFailed('leadId is required')
    try:
        project = Project.parse(request.args.get('project') or 'company')
    except ValueError as e:
        raise PreconditionFailed(str(e)) from None
    version = request.args.get('version', type=int)

    with session_scope() as session:
        get_lead(session, lead_id)
    url = tokens.invoice_view_url(lead_id, project, version)
    return jsonify({'ok': True, 'url': url})
