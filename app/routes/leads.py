"""
Lead routes — capture (public), admin CRUD and every admin workflow action.
"""
import hmac
import logging
from flask import Blueprint, jsonify, request

from app import config
from app.database import session_scope
from app.extensions import get_mailer, get_whatsapp
from app.services import tokens
from app.services import lead_store
from app.services.agents import lead_assignments
from app.workflow import transitions
from app.workflow.errors import PreconditionFailed, Forbidden
from app.workflow.invoices import send_invoice, invoice_revisions
from app.workflow.projects import Project
from app.workflow.status import lead_summary

logger = logging.getLogger('routes.leads')

bp = Blueprint('leads', __name__)


def _body():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise PreconditionFailed('Request body must be a JSON object')
    return data


def _project(value, default='company'):
    try:
        return Project.parse(value or default)
    except ValueError as e:
        raise PreconditionFailed(str(e)) from None


def _lead_payload(session, lead, detail=False):
    payload = lead.to_dict()
    payload.update(lead_summary(lead))
    if detail:
        payload['agents'] = [a.to_dict() for a in lead_assignments(session, lead.id)]
    return payload


# ── Capture (public form) ───────────────────────────────────────────────────

@bp.route('/api/leads/capture', methods=['POST'])
def capture():
    data = _body() or request.form.to_dict()
    with session_scope() as session:
        lead = lead_store.create_lead(session, data)
        lead_id = lead.id
    return jsonify({'ok': True, 'id': lead_id}), 201


# ── CRUD ────────────────────────────────────────────────────────────────────

@bp.route('/api/leads')
def list_leads():
    with session_scope() as session:
        leads = lead_store.list_leads(
            session,
            search=request.args.get('q'),
            setup_type=request.args.get('setupType'),
            limit=request.args.get('limit', 200, type=int),
        )
        status = request.args.get('status')
        rows = [_lead_payload(session, lead) for lead in leads]
        if status:
            rows = [r for r in rows if r['status'] == status]
        return jsonify({'ok': True, 'leads': rows})


@bp.route('/api/leads/<lead_id>')
def get_lead(lead_id):
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        return jsonify({'ok': True, 'lead': _lead_payload(session, lead, detail=True)})


@bp.route('/api/leads/<lead_id>', methods=['PATCH'])
def update_lead(lead_id):
    """Edit base fields; `progress` carries per-project bookkeeping, keyed by project."""
    data = _body()
    progress = data.pop('progress', None) or {}
    if not isinstance(progress, dict):
        raise PreconditionFailed('progress must be an object keyed by project')
    for project_key, changes in progress.items():
        if changes is not None and not isinstance(changes, dict):
            raise PreconditionFailed(f"progress.{project_key} must be an object")
    now = transitions.utcnow()
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        lead_store.update_lead(session, lead, data)
        for project_key, changes in progress.items():
            transitions.update_progress(session, lead, _project(project_key), now, changes or {})
        session.flush()
        return jsonify({'ok': True, 'lead': _lead_payload(session, lead, detail=True)})


@bp.route('/api/leads/bulk-delete', methods=['POST'])
def bulk_delete():
    ids = _body().get('ids') or []
    if not isinstance(ids, list):
        raise PreconditionFailed('ids must be a list')
    with session_scope() as session:
        result = lead_store.bulk_delete(session, ids)
    return jsonify({'ok': True, **result})


@bp.route('/api/leads/<lead_id>/activities')
def activities(lead_id):
    with session_scope() as session:
        lead_store.get_lead(session, lead_id)
        entries = lead_store.list_activities(session, lead_id)
        return jsonify({'ok': True, 'activities': [
            {
                'id': a.id,
                'action': a.action,
                'message': a.message,
                'created_at': a.created_at.isoformat() if a.created_at else None,
            }
            for a in entries
        ]})


@bp.route('/api/leads/<lead_id>/invoices')
def invoices(lead_id):
    project = _project(request.args.get('project'))
    with session_scope() as session:
        lead_store.get_lead(session, lead_id)
        return jsonify({'ok': True, 'invoices': [
            {
                'version': r.version,
                'invoiceNumber': r.invoice_number,
                'amount': r.amount,
                'paymentLink': r.payment_link,
                'sentAt': r.sent_at.isoformat() if r.sent_at else None,
                'viewUrl': tokens.invoice_view_url(lead_id, project, r.version),
            }
            for r in invoice_revisions(session, lead_id, project)
        ]})


# ── Customer emails ─────────────────────────────────────────────────────────

@bp.route('/api/leads/<lead_id>/email/quote/<project>', methods=['POST'])
def email_quote(lead_id, project):
    data = _body()
    project = _project(project)
    whatsapp = get_whatsapp() if data.get('sendWhatsapp', True) else None
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = transitions.send_quote(
            session, lead, project, transitions.utcnow(), get_mailer(),
            whatsapp=whatsapp, amount=data.get('amount'),
        )
    return jsonify(result)


@bp.route('/api/leads/<lead_id>/email/invoice/<project>', methods=['POST'])
def email_invoice(lead_id, project):
    data = _body()
    project = _project(project)
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = send_invoice(session, lead, project, transitions.utcnow(), get_mailer(),
                              payment_link=data.get('paymentLink'))
    return jsonify(result)


@bp.route('/api/leads/<lead_id>/email/reminder/payment', methods=['POST'])
def email_payment_reminder(lead_id):
    project = _project(_body().get('project'))
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = transitions.send_payment_reminder(session, lead, project, transitions.utcnow(),
                                                   get_mailer())
    return jsonify(result)


@bp.route('/api/leads/<lead_id>/email/payment-confirmation', methods=['POST'])
def email_payment_confirmation(lead_id):
    project = _project(_body().get('project'))
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = transitions.send_payment_confirmation(session, lead, project, transitions.utcnow(),
                                                       get_mailer())
    return jsonify(result)


@bp.route('/api/leads/<lead_id>/email/completion', methods=['POST'])
def email_completion(lead_id):
    project = _project(_body().get('project'))
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = transitions.send_completion(session, lead, project, transitions.utcnow(), get_mailer())
    return jsonify(result)


@bp.route('/api/leads/<lead_id>/whatsapp/quote-notification', methods=['POST'])
def whatsapp_quote(lead_id):
    project = _project(_body().get('project'))
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = transitions.send_quote_whatsapp(session, lead, project, transitions.utcnow(),
                                                 get_whatsapp())
    return jsonify({'ok': result['ok'], 'whatsapp': result})


# ── Decisions ───────────────────────────────────────────────────────────────

@bp.route('/api/leads/<lead_id>/override-decision', methods=['POST'])
def override_decision(lead_id):
    data = _body()
    if not data.get('project') or not data.get('decision'):
        raise PreconditionFailed('project and decision are required')
    project = _project(data['project'])
    decision = str(data['decision']).lower()
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = transitions.override_decision(session, lead, project, decision,
                                               transitions.utcnow(), reason=data.get('reason'))
    return jsonify(result)


@bp.route('/api/leads/<lead_id>/decline', methods=['POST'])
def decline(lead_id):
    data = _body()
    project = _project(data.get('project'))
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = transitions.close_project(
            session, lead, project, transitions.utcnow(),
            reason=data.get('reason'), stage=data.get('stage'),
        )
    return jsonify(result)


# ── Resets ──────────────────────────────────────────────────────────────────

def _reset(lead_id, project):
    reason = _body().get('reason')
    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = transitions.reset_project(session, lead, project, reason=reason)
    return jsonify(result)


@bp.route('/api/leads/<lead_id>/reset-quote', methods=['POST'])
def reset_quote(lead_id):
    return _reset(lead_id, Project.COMPANY)


@bp.route('/api/leads/<lead_id>/reset-bank', methods=['POST'])
def reset_bank(lead_id):
    return _reset(lead_id, Project.BANK)


@bp.route('/api/leads/<lead_id>/reset-bank-deal', methods=['POST'])
def reset_bank_deal(lead_id):
    return _reset(lead_id, Project.BANK_DEAL)


def _check_master_password(password):
    if not config.MASTER_RESET_PASSWORD:
        raise Forbidden('Master reset is disabled (MASTER_RESET_PASSWORD not set)')
    if not password or not hmac.compare_digest(str(password), config.MASTER_RESET_PASSWORD):
        raise Forbidden('Invalid master reset password')


@bp.route('/api/leads/<lead_id>/reset-master/confirmation', methods=['POST'])
def master_reset_confirmation(lead_id):
    """Trade the master password for a short-lived confirmation bound to this lead."""
    _check_master_password(_body().get('password'))
    with session_scope() as session:
        lead_store.get_lead(session, lead_id)
    return jsonify({
        'ok': True,
        'confirmation': tokens.master_reset_token(lead_id),
        'expiresInSeconds': config.MASTER_RESET_TOKEN_MINUTES * 60,
    })


@bp.route('/api/leads/<lead_id>/reset-master', methods=['POST'])
def master_reset(lead_id):
    data = _body()
    confirmation = data.get('confirmation')
    if confirmation:
        claims = tokens.verify(confirmation, tokens.MASTER_RESET)
        if claims is None or claims.lead_id != lead_id:
            raise Forbidden('Confirmation is invalid or has expired')
    else:
        _check_master_password(data.get('password'))

    with session_scope() as session:
        lead = lead_store.get_lead(session, lead_id)
        result = transitions.master_reset(session, lead, reason=data.get('reason'))
    return jsonify(result)
