"""
Dashboard routes — pipeline summary, stats API, health checks.
"""
import logging
from collections import Counter
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.database import session_scope
from app.models.lead import Lead
from app.services.circuit_breaker import get_all_breakers
from app.workflow.status import lead_status

logger = logging.getLogger('routes.dashboard')

bp = Blueprint('dashboard', __name__)


def _status_counts(session):
    return Counter(lead_status(lead) for lead in session.query(Lead).all())


@bp.route('/')
def index():
    """Home hub: lead totals and the pipeline breakdown."""
    with session_scope() as session:
        counts = _status_counts(session)
    return jsonify({
        'ok': True,
        'total': sum(counts.values()),
        'by_status': dict(counts),
    })


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """Delivery channel breakers plus a database round trip."""
    database = 'ok'
    try:
        with session_scope() as session:
            session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        logger.error("Database health check failed: %s", e)
        database = 'error'

    services = {name: cb.get_health() for name, cb in get_all_breakers().items()}
    return jsonify({'ok': database == 'ok', 'database': database, 'services': services})


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_circuit(service):
    breaker = get_all_breakers().get(service)
    if breaker is None:
        return jsonify({'ok': False, 'error': f'Unknown service: {service}'}), 404
    breaker.reset()
    return jsonify({'ok': True, 'service': breaker.get_health()})


@bp.route('/api/stats')
def get_stats():
    """Lead counts per derived status."""
    with session_scope() as session:
        counts = _status_counts(session)
    return jsonify({
        'total': sum(counts.values()),
        'by_status': dict(counts),
    })
