"""
Agent routes — the agent directory and per-lead assignments.
"""
import logging
from flask import Blueprint, jsonify, request

from app.database import session_scope
from app.services import agents as agent_service
from app.services.lead_store import get_lead
from app.workflow import transitions
from app.workflow.errors import PreconditionFailed

logger = logging.getLogger('routes.agents')

bp = Blueprint('agents', __name__)


@bp.route('/api/agents')
def list_agents():
    with session_scope() as session:
        agents = agent_service.list_agents(
            session,
            service_type=request.args.get('serviceType'),
            active_only=request.args.get('active') == '1',
        )
        return jsonify({'ok': True, 'agents': [a.to_dict() for a in agents]})


@bp.route('/api/agents', methods=['POST'])
def create_agent():
    data = request.get_json(silent=True) or {}
    with session_scope() as session:
        agent = agent_service.create_agent(session, data)
        return jsonify({'ok': True, 'agent': agent.to_dict()}), 201


@bp.route('/api/leads/<lead_id>/agents')
def lead_agents(lead_id):
    with session_scope() as session:
        get_lead(session, lead_id)
        rows = agent_service.lead_assignments(session, lead_id)
        return jsonify({'ok': True, 'agents': [a.to_dict() for a in rows]})


@bp.route('/api/leads/<lead_id>/agents', methods=['POST'])
def assign_agent(lead_id):
    data = request.get_json(silent=True) or {}
    agent_id = data.get('agentId')
    if not agent_id:
        raise PreconditionFailed('agentId is required')
    with session_scope() as session:
        lead = get_lead(session, lead_id)
        assignment = agent_service.assign_agent(
            session, lead, agent_id,
            service_type=data.get('serviceType'),
            make_current=bool(data.get('makeCurrent')),
        )
        return jsonify({'ok': True, 'assignment': assignment.to_dict()}), 201


@bp.route('/api/leads/<lead_id>/agents/<int:agent_id>/status', methods=['PATCH'])
def update_agent_status(lead_id, agent_id):
    data = request.get_json(silent=True) or {}
    status = (data.get('status') or '').strip().lower()
    with session_scope() as session:
        lead = get_lead(session, lead_id)
        assignment = agent_service.get_assignment(session, lead_id, agent_id)
        agent_service.update_status(session, lead, assignment, status, transitions.utcnow())
        if data.get('notes') is not None:
            assignment.notes = data['notes']
        return jsonify({'ok': True, 'assignment': assignment.to_dict()})


@bp.route('/api/leads/<lead_id>/agents/<int:agent_id>/set-current', methods=['POST'])
def set_current(lead_id, agent_id):
    with session_scope() as session:
        lead = get_lead(session, lead_id)
        assignment = agent_service.get_assignment(session, lead_id, agent_id)
        agent_service.set_current(session, lead, assignment)
        return jsonify({'ok': True, 'assignment': assignment.to_dict()})
