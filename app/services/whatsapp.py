"""
WhatsApp Cloud API client (Graph API text messages).

WhatsApp is always best-effort: send_text() never raises, it returns
{ok, message_id, error} so callers can surface the outcome in a secondary
response field.
"""
import logging
import re

import requests

from app.services.circuit_breaker import CircuitOpenError

logger = logging.getLogger('services.whatsapp')

E164_RE = re.compile(r'^\+[1-9]\d{7,14}$')


def normalize_phone(raw):
    """Strip spaces/dashes/brackets and turn a leading 00 into +."""
    if not raw:
        return ''
    phone = re.sub(r'[\s\-()]', '', str(raw))
    if phone.startswith('00'):
        phone = '+' + phone[2:]
    return phone


def is_valid_e164(phone):
    return bool(phone and E164_RE.match(phone))


class WhatsAppError(Exception):
    pass


class WhatsAppClient:
    API_BASE = 'https://graph.facebook.com'

    def __init__(self, phone_number_id=None, token=None, graph_version='v22.0',
                 breaker=None, timeout=15):
        self.phone_number_id = phone_number_id
        self.token = token
        self.graph_version = graph_version
        self.breaker = breaker
        self.timeout = timeout

    @classmethod
    def from_config(cls, breaker=None):
        from app import config
        return cls(
            phone_number_id=config.WHATSAPP_PHONE_NUMBER_ID,
            token=config.WHATSAPP_TOKEN,
            graph_version=config.WHATSAPP_GRAPH_VERSION,
            breaker=breaker,
        )

    @property
    def configured(self):
        return bool(self.phone_number_id and self.token)

    @property
    def messages_url(self):
        return f'{self.API_BASE}/{self.graph_version}/{self.phone_number_id}/messages'

    def _post(self, payload):
        resp = requests.post(
            self.messages_url,
            json=payload,
            headers={'Authorization': f'Bearer {self.token}'},
            timeout=self.timeout,
        )
        try:
            data = resp.json()
        except ValueError:
            data = {'raw': resp.text}
        if not resp.ok:
            err = data.get('error', {}) if isinstance(data, dict) else {}
            message = err.get('message') or err.get('error_user_msg') or resp.text or 'Unknown error'
            raise WhatsAppError(f'WhatsApp API error ({resp.status_code}): {message}')
        return data

    def send_text(self, to, body):
        """Send a plain text message. Returns {ok, message_id, error}."""
        phone = normalize_phone(to)
        if not phone or not body:
            return {'ok': False, 'message_id': None, 'error': 'Recipient and message body are required'}
        if not is_valid_e164(phone):
            return {'ok': False, 'message_id': None, 'error': f'Invalid E.164 phone number: {phone}'}
        if not self.configured:
            return {'ok': False, 'message_id': None,
                    'error': 'WhatsApp API credentials not configured'}

        payload = {
            'messaging_product': 'whatsapp',
            'to': phone.lstrip('+'),
            'type': 'text',
            'text': {'preview_url': True, 'body': body},
        }
        try:
            if self.breaker is not None:
                data = self.breaker.call(self._post, payload)
            else:
                data = self._post(payload)
        except (requests.RequestException, WhatsAppError, CircuitOpenError) as e:
            logger.error("WhatsApp send to %s failed: %s", phone, e)
            return {'ok': False, 'message_id': None, 'error': str(e)}

        messages = data.get('messages') or [{}]
        message_id = messages[0].get('id')
        logger.info("WhatsApp message sent to %s (%s)", phone, message_id)
        return {'ok': True, 'message_id': message_id, 'error': None}
