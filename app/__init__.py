"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
import logging
from flask import Flask, request, session, redirect, jsonify, render_template_string

logger = logging.getLogger('app')


LOGIN_PAGE = '''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Login — {{ brand }} Admin</title>
    <style>body { font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; }</style>
</head>
<body style="min-height:100vh;display:flex;align-items:center;justify-content:center;background:#f5f5f5;margin:0;">
    <div style="background:white;border-radius:12px;box-shadow:0 2px 8px rgba(0,0,0,0.06);padding:2.5rem;width:100%;max-width:360px;">
        <h1 style="color:#0b2a4a;font-size:1.1rem;margin:0 0 .25rem;">{{ brand }} Lead Desk</h1>
        <p style="color:#666;font-size:.85rem;margin:0 0 1.5rem;">Enter password to continue</p>
        {% if error %}
        <p style="color:#c0392b;font-size:.8rem;">Wrong password</p>
        {% endif %}
        <form method="POST" action="/login">
            <input type="password" name="password" autofocus placeholder="Password"
                   style="width:100%;box-sizing:border-box;border:1px solid #ddd;border-radius:8px;padding:.6rem;margin-bottom:1rem;">
            <button type="submit"
                    style="width:100%;border:0;border-radius:8px;padding:.6rem;background:#c9a14a;color:white;cursor:pointer;">
                Log in
            </button>
        </form>
    </div>
</body>
</html>
'''

OPEN_PATHS = {'/health', '/login', '/logout', '/api/leads/capture', '/invoice/view'}
OPEN_PREFIXES = ('/api/quote/', '/api/invoice/details', '/api/cron/', '/static/')


def _is_open(path):
    return path in OPEN_PATHS or path.startswith(OPEN_PREFIXES)


def _register_error_handlers(app):
    from sqlalchemy.exc import SQLAlchemyError
    from app import config
    from app.services.tokens import TokenConfigError
    from app.workflow.errors import WorkflowError

    @app.errorhandler(WorkflowError)
    def handle_workflow_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(e):
        logger.error("Storage failure on %s %s", request.method, request.path, exc_info=e)
        body = {'ok': False, 'error': 'Database error'}
        if not config.is_production():
            body['debug'] = str(e)
        return jsonify(body), 500

    @app.errorhandler(TokenConfigError)
    def handle_token_config(e):
        logger.critical("Token signing misconfigured: %s", e)
        return jsonify({'ok': False, 'error': 'Link signing is not configured'}), 500


def create_app(mailer=None, whatsapp=None):
    """Create and configure the Flask application.

    mailer / whatsapp override the clients built from config (used by tests
    and scripts that bring their own transport).
    """
    from app import config
    from app.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    # Secret key for sessions
    app.secret_key = config.SECRET_KEY

    # ── Simple password auth ────────────────────────────────────────────
    @app.before_request
    def require_login():
        if _is_open(request.path):
            return
        if session.get('authenticated'):
            return
        if not config.ADMIN_PASSWORD and not config.is_production():
            return  # no password set, open access (local dev)
        if request.path.startswith('/api/'):
            return jsonify({'ok': False, 'error': 'Unauthorized'}), 401
        return redirect('/login')

    @app.route('/login', methods=['GET', 'POST'])
    def login():
        if request.method == 'POST':
            password = request.form.get('password')
            if password is None and request.is_json:
                password = (request.get_json(silent=True) or {}).get('password')
            if config.ADMIN_PASSWORD and password == config.ADMIN_PASSWORD:
                session['authenticated'] = True
                if request.is_json:
                    return jsonify({'ok': True})
                return redirect('/')
            if request.is_json:
                return jsonify({'ok': False, 'error': 'Invalid password'}), 401
            return render_template_string(LOGIN_PAGE, error=True, brand=config.BRAND_NAME), 401
        return render_template_string(LOGIN_PAGE, error=False, brand=config.BRAND_NAME)

    @app.route('/logout')
    def logout():
        session.clear()
        return redirect('/login')

    _register_error_handlers(app)

    # Register blueprints
    from app.routes.dashboard import bp as dashboard_bp
    from app.routes.quote import bp as quote_bp
    from app.routes.invoice import bp as invoice_bp
    from app.routes.leads import bp as leads_bp
    from app.routes.agents import bp as agents_bp
    from app.routes.cron import bp as cron_bp

    app.register_blueprint(dashboard_bp)
    app.register_blueprint(quote_bp)
    app.register_blueprint(invoice_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(agents_bp)
    app.register_blueprint(cron_bp)

    # Delivery clients + circuit breakers
    if mailer is not None:
        app.extensions['mailer'] = mailer
    if whatsapp is not None:
        app.extensions['whatsapp'] = whatsapp
    from app.extensions import init_extensions
    init_extensions(app)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic, no init_db() call.
    import importlib
    importlib.import_module('app.models.lead')
    importlib.import_module('app.models.agent')
    importlib.import_module('app.models.activity')
    importlib.import_module('app.models.invoice_revision')
    importlib.import_module('app.models.cron_run')

    return app
