"""
Signed transition tokens — HS256 JWTs that let customers act on emailed links.

Every token binds a lead, a project and an action. verify() fails closed: any
bad signature, expiry, action mismatch or missing required claim yields None.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any

import jwt

from app import config
from app.workflow.projects import Project

logger = logging.getLogger('services.tokens')

APPROVE_QUOTE = 'approve_quote'
VIEW_INVOICE = 'view_invoice'
MASTER_RESET = 'master_reset'

ACTIONS = (APPROVE_QUOTE, VIEW_INVOICE, MASTER_RESET)

ALGORITHM = 'HS256'
REQUIRED_CLAIMS = ['exp', 'iat', 'lead_id', 'action']
RESERVED_CLAIMS = frozenset(('lead_id', 'project', 'action', 'iat', 'exp'))

_warned_placeholder = False


class TokenConfigError(RuntimeError):
    """Signing secret missing or left at the placeholder in production."""


@dataclass
class TokenClaims:
    lead_id: str
    project: Project
    action: str
    extra: Dict[str, Any] = field(default_factory=dict)


def _secret() -> str:
    global _warned_placeholder
    secret = config.TOKEN_SECRET
    if secret and secret != config.TOKEN_PLACEHOLDER_SECRET:
        return secret
    if config.is_production():
        raise TokenConfigError(
            'QUOTE_APPROVAL_SECRET (or JWT_SECRET) must be set to a non-default value in production'
        )
    if not _warned_placeholder:
        logger.warning('Token secret not configured, signing with the development placeholder')
        _warned_placeholder = True
    return config.TOKEN_PLACEHOLDER_SECRET


def issue(lead_id: str, project, action: str, expires_in: timedelta = None, **claims) -> str:
    """Mint a token for one lead/project/action. Defaults to a 30 day lifetime."""
    if action not in ACTIONS:
        raise ValueError(f"Unknown token action '{action}'")
    if expires_in is None:
        expires_in = timedelta(days=config.QUOTE_TOKEN_DAYS)
    now = datetime.now(timezone.utc)
    payload = {
        'lead_id': lead_id,
        'project': Project.from_claim(getattr(project, 'value', project)).value,
        'action': action,
        'iat': now,
        'exp': now + expires_in,
    }
    clash = RESERVED_CLAIMS.intersection(claims)
    if clash:
        raise ValueError(f"Reserved token claims cannot be overridden: {', '.join(sorted(clash))}")
    payload.update(claims)
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def verify(token: str, action: str) -> Optional[TokenClaims]:
    """Decode and check a token for the expected action."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, _secret(), algorithms=[ALGORITHM],
                             options={'require': REQUIRED_CLAIMS})
    except jwt.ExpiredSignatureError:
        logger.info('Transition token expired')
        return None
    except jwt.InvalidTokenError as e:
        logger.warning('Invalid transition token: %s', e)
        return None

    if payload.get('action') != action:
        logger.warning("Token action mismatch: expected '%s', got '%s'", action, payload.get('action'))
        return None
    lead_id = payload.get('lead_id')
    if not lead_id:
        logger.warning('Transition token missing lead_id')
        return None

    extra = {k: v for k, v in payload.items() if k not in RESERVED_CLAIMS}
    return TokenClaims(
        lead_id=str(lead_id),
        project=Project.from_claim(payload.get('project')),
        action=action,
        extra=extra,
    )


def quote_token(lead_id, project) -> str:
    return issue(lead_id, project, APPROVE_QUOTE, timedelta(days=config.QUOTE_TOKEN_DAYS))


def invoice_token(lead_id, project, version=None) -> str:
    claims = {'version': version} if version is not None else {}
    return issue(lead_id, project, VIEW_INVOICE, timedelta(days=config.INVOICE_TOKEN_DAYS), **claims)


def master_reset_token(lead_id) -> str:
    return issue(lead_id, Project.COMPANY, MASTER_RESET,
                 timedelta(minutes=config.MASTER_RESET_TOKEN_MINUTES))


def quote_approval_url(lead_id, project) -> str:
    return f'{config.ADMIN_BASE_URL}/quote/approve?token={quote_token(lead_id, project)}'


def invoice_view_url(lead_id, project, version=None) -> str:
    return f'{config.ADMIN_BASE_URL}/invoice/view?token={invoice_token(lead_id, project, version)}'
