"""
Quote routes — public, token-gated customer actions on an emailed quote.

/api/quote/proceed and /api/quote/decline are kept for links sent before
/api/quote/decide existed.
"""
import logging
from flask import Blueprint, jsonify, request

from app.database import session_scope
from app.extensions import get_mailer
from app.services import tokens
from app.services.email_templates import quote_coverage, service_name
from app.services.lead_store import get_lead
from app.workflow import state as st
from app.workflow import transitions
from app.workflow.errors import PreconditionFailed, Unauthorized
from app.workflow.status import derive_status

logger = logging.getLogger('routes.quote')

bp = Blueprint('quote', __name__)


def _verified_request():
    """(claims, body) for a valid approve-quote token, else 401."""
    data = request.get_json(silent=True) or {}
    token = data.get('token') or request.args.get('token')
    claims = tokens.verify(token, tokens.APPROVE_QUOTE)
    if claims is None:
        raise Unauthorized('This link is invalid or has expired')
    return claims, data


def _reason(data):
    for key in ('reason', 'questionsReason', 'declineReason'):
        if data.get(key):
            return str(data[key])[:2000]
    return None


def _decide(decision, claims, data):
    with session_scope() as session:
        lead = get_lead(session, claims.lead_id)
        result = transitions.decide(
            session, lead, claims.project, decision, transitions.utcnow(),
            reason=_reason(data), mailer=get_mailer(),
        )
    return jsonify(result)


@bp.route('/api/quote/decide', methods=['POST'])
def decide():
    """Customer decision: proceed, decline or questions."""
    claims, data = _verified_request()
    decision = str(data.get('decision') or '').strip().lower()
    if decision not in transitions.DECISIONS:
        raise PreconditionFailed("decision must be 'proceed', 'decline' or 'questions'")
    return _decide(decision, claims, data)


@bp.route('/api/quote/proceed', methods=['POST'])
def proceed():
    claims, data = _verified_request()
    return _decide('proceed', claims, data)


@bp.route('/api/quote/decline', methods=['POST'])
def decline():
    claims, data = _verified_request()
    return _decide('decline', claims, data)


@bp.route('/api/quote/view', methods=['POST'])
def view():
    """Record the first open of the quote page."""
    claims, _ = _verified_request()
    with session_scope() as session:
        lead = get_lead(session, claims.lead_id)
        result = transitions.view_quote(session, lead, claims.project, transitions.utcnow(),
                                        mailer=get_mailer())
    return jsonify({
        'ok': True,
        'state': {'viewedAt': result['viewedAt'], 'alreadyViewed': result['alreadyViewed']},
    })


@bp.route('/api/quote/details', methods=['POST'])
def details():
    """Read-only quote summary for the project named in the token."""
    claims, _ = _verified_request()
    project = claims.project
    with session_scope() as session:
        lead = get_lead(session, claims.lead_id)
        f = st.read_fields(lead, project)
        iso = transitions.iso
        return jsonify({
            'ok': True,
            'project': project.value,
            'customerName': lead.full_name,
            'serviceName': service_name(lead, project),
            'amount': f.quoted_amount,
            'quoteCoverage': quote_coverage(lead, project),
            'status': derive_status(lead, project),
            'quoteSentAt': iso(f.quote_sent_at),
            'viewedAt': iso(f.quote_viewed_at),
            'approved': f.approved,
            'proceedConfirmedAt': iso(f.proceed_confirmed_at),
            'quoteApprovedAt': iso(f.quote_approved_at),
            'declinedAt': iso(f.quote_declined_at or f.declined_at),
            'declineReason': f.quote_decline_reason or f.decline_reason,
            'questionsAt': iso(f.quote_questions_at),
            'questionsReason': f.quote_questions_reason,
        })
