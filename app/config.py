"""
Centralized configuration — env vars, constants, agent routing map.
"""
import os


# ── Environment ──────────────────────────────────────────────────────────────
APP_ENV = os.getenv('APP_ENV', 'development')

# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis (circuit breaker state) ────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Auth ─────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')
ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')
MASTER_RESET_PASSWORD = os.getenv('MASTER_RESET_PASSWORD')
CRON_SECRET = os.getenv('CRON_SECRET')

# ── Transition tokens ────────────────────────────────────────────────────────
TOKEN_SECRET = os.getenv('QUOTE_APPROVAL_SECRET') or os.getenv('JWT_SECRET')
TOKEN_PLACEHOLDER_SECRET = 'default-secret-change-in-production'
QUOTE_TOKEN_DAYS = 30
INVOICE_TOKEN_DAYS = 30
MASTER_RESET_TOKEN_MINUTES = 5

# ── Public URLs ──────────────────────────────────────────────────────────────
ADMIN_BASE_URL = os.getenv('ADMIN_BASE_URL', 'http://localhost:3001')

# ── SMTP ─────────────────────────────────────────────────────────────────────
SMTP_HOST = os.getenv('SMTP_HOST', 'smtp.gmail.com')
SMTP_PORT = int(os.getenv('SMTP_PORT', '587'))
SMTP_USER = os.getenv('SMTP_USER')
SMTP_PASS = os.getenv('SMTP_PASS')
SMTP_FROM = os.getenv('SMTP_FROM')
BRAND_NAME = os.getenv('BRAND_NAME', 'UAE Business Desk')
ADMIN_NOTIFY_EMAIL = os.getenv('ADMIN_NOTIFY_EMAIL', 'support@uaebusinessdesk.com')
SUPPORT_EMAIL = os.getenv('SUPPORT_EMAIL') or SMTP_USER or 'support@uaebusinessdesk.com'
SUPPORT_WHATSAPP = os.getenv('SUPPORT_WHATSAPP', '+971 50 420 9110')
GOOGLE_REVIEW_LINK = os.getenv('GOOGLE_REVIEW_LINK')

# ── WhatsApp Cloud API ───────────────────────────────────────────────────────
WHATSAPP_GRAPH_VERSION = os.getenv('WHATSAPP_GRAPH_VERSION', 'v22.0')
WHATSAPP_PHONE_NUMBER_ID = os.getenv('WHATSAPP_PHONE_NUMBER_ID')
WHATSAPP_TOKEN = os.getenv('WHATSAPP_TOKEN') or os.getenv('WHATSAPP_ACCESS_TOKEN')

# ── Slack notifications (optional mirror of admin emails) ────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Payment reminders ────────────────────────────────────────────────────────
REMINDER_COOLDOWN_HOURS = 48
REMINDER_BATCH_LIMIT = 50

# ── Agent routing: setup type → default agent handle ────────────────────────
SETUP_TYPE_AGENT = {
    'mainland': 'athar',
    'freezone': 'anoop',
    'offshore': 'anoop',
    'bank':     'self',
}
DEFAULT_AGENT = 'self'

# ── Setup types ──────────────────────────────────────────────────────────────
SETUP_TYPE_LABELS = {
    'mainland': 'Mainland Company Setup',
    'freezone': 'Free Zone Company Setup',
    'offshore': 'Offshore Company Setup',
    'bank':     'Bank Account Setup',
}

# ── Agent assignment statuses ────────────────────────────────────────────────
AGENT_STATUSES = [
    'assigned',
    'contacted',
    'accepted',
    'working',
    'completed',
    'declined',
    'on_hold',
    'cancelled',
]


def is_production():
    """True when running with APP_ENV=production."""
    return APP_ENV.lower() == 'production'
