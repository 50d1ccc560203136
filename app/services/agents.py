"""
Agent assignment — contact order, status progression and the current-agent flag.
"""
import logging

from sqlalchemy import func

from app import config
from app.models.agent import Agent, LeadAgent
from app.services.lead_store import log_activity
from app.workflow.errors import PreconditionFailed, WorkflowError

logger = logging.getLogger('services.agents')

SERVICE_TYPES = ('company', 'bank')

# Reaching a status implies every earlier milestone happened.
_MILESTONES = (
    ('contacted', 'contacted_at'),
    ('accepted', 'accepted_at'),
    ('working', 'started_working_at'),
    ('completed', 'completed_at'),
)


class AgentNotFound(WorkflowError):
    status_code = 404


def list_agents(session, service_type=None, active_only=False):
    query = session.query(Agent)
    if service_type:
        query = query.filter(Agent.service_type == service_type)
    if active_only:
        query = query.filter(Agent.is_active.is_(True))
    return query.order_by(Agent.name).all()


def create_agent(session, data):
    name = (data.get('name') or '').strip()
    if not name:
        raise PreconditionFailed('Agent name is required')
    service_type = (data.get('service_type') or 'company').lower()
    if service_type not in SERVICE_TYPES:
        raise PreconditionFailed("service_type must be 'company' or 'bank'")
    agent = Agent(
        name=name,
        email=(data.get('email') or '').strip() or None,
        whatsapp=(data.get('whatsapp') or '').strip() or None,
        service_type=service_type,
        bank_name=(data.get('bank_name') or '').strip() or None,
        is_active=bool(data.get('is_active', True)),
    )
    session.add(agent)
    session.flush()
    return agent


def get_assignment(session, lead_id, agent_id):
    assignment = (
        session.query(LeadAgent)
        .filter(LeadAgent.lead_id == lead_id, LeadAgent.agent_id == agent_id)
        .order_by(LeadAgent.id.desc())
        .first()
    )
    if assignment is None:
        raise AgentNotFound('Agent is not assigned to this lead')
    return assignment


def assign_agent(session, lead, agent_id, service_type=None, make_current=False):
    """Append an agent to the lead's contact sequence for one service type."""
    agent = session.get(Agent, agent_id)
    if agent is None:
        raise AgentNotFound('Agent not found')
    service_type = (service_type or agent.service_type).lower()
    if service_type not in SERVICE_TYPES:
        raise PreconditionFailed("service_type must be 'company' or 'bank'")

    last_order = (
        session.query(func.max(LeadAgent.order))
        .filter(LeadAgent.lead_id == lead.id, LeadAgent.service_type == service_type)
        .scalar()
    )
    has_current = (
        session.query(LeadAgent)
        .filter(LeadAgent.lead_id == lead.id, LeadAgent.service_type == service_type,
                LeadAgent.is_current.is_(True))
        .count()
    )
    assignment = LeadAgent(
        lead_id=lead.id,
        agent_id=agent.id,
        service_type=service_type,
        bank_name=agent.bank_name if service_type == 'bank' else None,
        order=(last_order or 0) + 1,
        status='assigned',
        is_current=False,
    )
    session.add(assignment)
    session.flush()
    if make_current or not has_current:
        set_current(session, lead, assignment)
    log_activity(session, lead.id, 'agent_assigned',
                 f'{agent.name} assigned for {service_type} (position {assignment.order})')
    return assignment


def update_status(session, lead, assignment, status, now):
    if status not in config.AGENT_STATUSES:
        raise PreconditionFailed(f"Invalid status. Must be one of: {', '.join(config.AGENT_STATUSES)}")

    assignment.status = status
    if status == 'declined':
        assignment.declined_at = now
    elif status == 'assigned':
        assignment.declined_at = None
    else:
        names = [s for s, _ in _MILESTONES]
        if status in names:
            for _, column in _MILESTONES[:names.index(status) + 1]:
                if getattr(assignment, column) is None:
                    setattr(assignment, column, now)
            # the milestone being entered always gets a fresh timestamp
            setattr(assignment, dict(_MILESTONES)[status], now)

    name = assignment.agent.name if assignment.agent else assignment.agent_id
    log_activity(session, lead.id, 'agent_status_updated', f'{name} marked {status}')
    return assignment


def set_current(session, lead, assignment):
    """Make this the only current assignment for its service type."""
    (
        session.query(LeadAgent)
        .filter(
            LeadAgent.lead_id == lead.id,
            LeadAgent.service_type == assignment.service_type,
            LeadAgent.id != assignment.id,
        )
        .update({LeadAgent.is_current: False}, synchronize_session='fetch')
    )
    assignment.is_current = True
    return assignment


def lead_assignments(session, lead_id):
    return (
        session.query(LeadAgent)
        .filter(LeadAgent.lead_id == lead_id)
        .order_by(LeadAgent.service_type, LeadAgent.order)
        .all()
    )
