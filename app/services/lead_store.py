"""
Lead record store — lookups, capture, activity log and bulk delete.
"""
import logging

from sqlalchemy import or_

from app import config
from app.models.activity import LeadActivity
from app.models.agent import LeadAgent
from app.models.invoice_revision import InvoiceRevision
from app.models.lead import Lead
from app.services.whatsapp import normalize_phone, is_valid_e164
from app.workflow.errors import LeadNotFound, PreconditionFailed

logger = logging.getLogger('services.lead_store')

CAPTURE_FIELDS = (
    'full_name', 'email', 'whatsapp', 'nationality', 'residence_country',
    'setup_type', 'activity', 'needs_bank_account', 'notes',
)

# Admin-editable base fields (workflow fields go through transitions).
EDITABLE_FIELDS = CAPTURE_FIELDS + ('assigned_agent',)


def get_lead(session, lead_id) -> Lead:
    lead = session.get(Lead, lead_id) if lead_id else None
    if lead is None:
        raise LeadNotFound(lead_id)
    return lead


def agent_for_setup_type(setup_type):
    return config.SETUP_TYPE_AGENT.get((setup_type or '').lower(), config.DEFAULT_AGENT)


def _clean(data, allowed):
    values = {}
    for key in allowed:
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, str):
            value = value.strip() or None
        values[key] = value
    if 'email' in values and values['email']:
        values['email'] = values['email'].lower()
    if 'setup_type' in values and values['setup_type']:
        values['setup_type'] = values['setup_type'].lower()
    if 'needs_bank_account' in values:
        values['needs_bank_account'] = bool(values['needs_bank_account'])
    if values.get('whatsapp'):
        phone = normalize_phone(values['whatsapp'])
        if not is_valid_e164(phone):
            raise PreconditionFailed('WhatsApp number must be in international format, e.g. +971501234567')
        values['whatsapp'] = phone
    return values


def create_lead(session, data) -> Lead:
    """Create a lead from the public capture form. All workflow fields start null."""
    values = _clean(data, CAPTURE_FIELDS)
    if not values.get('full_name'):
        raise PreconditionFailed('Full name is required')
    if not values.get('email') and not values.get('whatsapp'):
        raise PreconditionFailed('Email or WhatsApp number is required')
    if values.get('setup_type') and values['setup_type'] not in config.SETUP_TYPE_LABELS:
        raise PreconditionFailed(f"Unknown setup type '{values['setup_type']}'")

    lead = Lead(**values)
    lead.assigned_agent = agent_for_setup_type(values.get('setup_type'))
    session.add(lead)
    session.flush()
    log_activity(session, lead.id, 'lead_created',
                 f"Lead captured ({values.get('setup_type') or 'unspecified'}), assigned to {lead.assigned_agent}")
    logger.info("Lead %s captured", lead.id, extra={'lead_id': lead.id})
    return lead


def update_lead(session, lead, data) -> Lead:
    values = _clean(data, EDITABLE_FIELDS)
    for key, value in values.items():
        setattr(lead, key, value)
    return lead


def log_activity(session, lead_id, action, message=None):
    entry = LeadActivity(lead_id=lead_id, action=action, message=message)
    session.add(entry)
    return entry


def list_activities(session, lead_id):
    return (
        session.query(LeadActivity)
        .filter(LeadActivity.lead_id == lead_id)
        .order_by(LeadActivity.created_at.desc(), LeadActivity.id.desc())
        .all()
    )


def list_leads(session, search=None, setup_type=None, limit=200):
    query = session.query(Lead)
    if setup_type:
        query = query.filter(Lead.setup_type == setup_type.lower())
    if search:
        like = f'%{search.strip()}%'
        query = query.filter(or_(Lead.full_name.ilike(like), Lead.email.ilike(like), Lead.whatsapp.ilike(like)))
    return query.order_by(Lead.created_at.desc()).limit(limit).all()


def bulk_delete(session, lead_ids):
    """Delete leads and everything hanging off them, children first."""
    ids = [i for i in (lead_ids or []) if i]
    if not ids:
        raise PreconditionFailed('No lead ids given')

    agents = session.query(LeadAgent).filter(LeadAgent.lead_id.in_(ids)).delete(synchronize_session=False)
    activities = session.query(LeadActivity).filter(LeadActivity.lead_id.in_(ids)).delete(synchronize_session=False)
    revisions = session.query(InvoiceRevision).filter(InvoiceRevision.lead_id.in_(ids)).delete(synchronize_session=False)
    leads = session.query(Lead).filter(Lead.id.in_(ids)).delete(synchronize_session=False)

    logger.info("Bulk delete: %d leads, %d activities, %d assignments, %d invoice revisions",
                leads, activities, agents, revisions)
    return {
        'deleted': leads,
        'activities': activities,
        'agent_assignments': agents,
        'invoice_revisions': revisions,
    }
