"""
Cron routes — the scheduled payment-reminder batch and its run history.

The batch endpoint is reachable without an admin session; callers present
CRON_SECRET as a Bearer token or ?secret=.
"""
import hmac
import logging
from flask import Blueprint, jsonify, request

from app import config
from app.database import session_scope
from app.extensions import get_mailer
from app.services.reminders import run_payment_reminders, latest_runs
from app.workflow import transitions

logger = logging.getLogger('routes.cron')

bp = Blueprint('cron', __name__)


def _presented_secret():
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip()
    return request.args.get('secret')


@bp.route('/api/cron/payment-reminders', methods=['GET', 'POST'])
def payment_reminders():
    if not config.CRON_SECRET:
        logger.error("CRON_SECRET not set — refusing to run payment reminders")
        return jsonify({'ok': False, 'error': 'CRON_SECRET is not configured'}), 500
    presented = _presented_secret()
    if not presented or not hmac.compare_digest(presented, config.CRON_SECRET):
        return jsonify({'ok': False, 'error': 'Unauthorized'}), 401

    with session_scope() as session:
        result = run_payment_reminders(session, get_mailer(), transitions.utcnow())
    return jsonify({'ok': True, **result})


@bp.route('/api/admin/cron/status')
def cron_status():
    limit = request.args.get('limit', 10, type=int)
    with session_scope() as session:
        runs = [run.to_dict() for run in latest_runs(session, limit=limit)]
    return jsonify({
        'ok': True,
        'lastRun': runs[0] if runs else None,
        'runs': runs,
    })
