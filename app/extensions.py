"""
Shared clients — Redis, the SMTP mailer and the WhatsApp client.

Redis is module-level (connection is lazy, so importing is always safe).
The mailer and WhatsApp client are built once in init_extensions() and kept
on app.extensions; request handlers fetch them with get_mailer() /
get_whatsapp() and pass them down explicitly.
"""
import logging
import redis
from flask import current_app

from app.config import REDIS_URL

logger = logging.getLogger('app.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


def init_extensions(app):
    """Build delivery clients for this app. Pre-set entries (tests) are kept."""
    from app.services.circuit_breaker import init_breakers
    from app.services.mailer import Mailer
    from app.services.whatsapp import WhatsAppClient

    breakers = init_breakers(redis_client)

    # ── SMTP ─────────────────────────────────────────────────────────────────
    if 'mailer' not in app.extensions:
        mailer = Mailer.from_config(breaker=breakers['smtp'])
        if not mailer.configured:
            logger.warning("SMTP credentials not set — customer emails will fail")
        app.extensions['mailer'] = mailer

    # ── WhatsApp ─────────────────────────────────────────────────────────────
    if 'whatsapp' not in app.extensions:
        whatsapp = WhatsAppClient.from_config(breaker=breakers['whatsapp'])
        if not whatsapp.configured:
            logger.warning("WhatsApp credentials not set — WhatsApp notifications will be skipped")
        app.extensions['whatsapp'] = whatsapp


def get_mailer():
    return current_app.extensions['mailer']


def get_whatsapp():
    return current_app.extensions['whatsapp']
