"""
Customer and admin email bodies, rendered with Jinja2.

Every builder returns (subject, html, text).
"""
from datetime import datetime, timezone

from jinja2 import Environment, DictLoader, select_autoescape

from app import config
from app.workflow.projects import Project


def format_aed(amount):
    if amount is None:
        return 'N/A'
    if float(amount).is_integer():
        return f'AED {int(amount):,}'
    return f'AED {amount:,.2f}'


def service_name(lead, project):
    if project == Project.COMPANY:
        return config.SETUP_TYPE_LABELS.get((lead.setup_type or '').lower(), 'Company Setup')
    return 'Bank Account Setup'


def quote_coverage(lead, project):
    """What the quoted amount covers, shown on the quote page and email."""
    if project != Project.COMPANY:
        return 'Bank Account Setup only'
    if lead.needs_bank_account or lead.bank_quoted_amount is not None:
        return ('Company Setup only (Bank Account Setup will be quoted separately '
                'after company incorporation is completed)')
    return 'Company Setup only'


_LAYOUT = '''<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{{ title }}</title></head>
<body style="font-family:-apple-system,'Segoe UI',Roboto,Arial,sans-serif;background:#f5f5f5;padding:20px;color:#333;">
<div style="max-width:640px;margin:0 auto;background:#fff;border-radius:8px;padding:32px;">
  <div style="border-bottom:3px solid #c9a14a;padding-bottom:12px;margin-bottom:24px;">
    <h1 style="color:#0b2a4a;font-size:22px;margin:0;">{{ brand }}</h1>
  </div>
  {% block content %}{% endblock %}
  <p style="margin-top:32px;font-size:13px;color:#666;">{{ brand }}</p>
</div>
</body>
</html>'''

_TEMPLATES = {
    'layout.html': _LAYOUT,
    'quote.html': '''{% extends "layout.html" %}{% block content %}
<p>Dear {{ name }},</p>
{% if revised %}<p style="background:#fff3cd;padding:12px;border-left:4px solid #ffc107;">This is a revised quote based on your latest request.</p>{% endif %}
<p>Thank you for your enquiry. Please find our quote for <strong>{{ service }}</strong> below.</p>
<p style="font-size:26px;font-weight:bold;color:#0b2a4a;">{{ amount }}</p>
<p><strong>Coverage:</strong> {{ coverage }}</p>
<p>You can review the quote and let us know how you would like to proceed:</p>
<p><a href="{{ approval_url }}" style="display:inline-block;background:#c9a14a;color:#fff;padding:12px 28px;border-radius:6px;text-decoration:none;">Review Quote</a></p>
<p style="font-size:13px;color:#666;">This link is valid for {{ valid_days }} days.</p>
{% endblock %}''',
    'invoice_email.html': '''{% extends "layout.html" %}{% block content %}
<p>Dear {{ name }},</p>
{% if revised %}<p style="background:#fff3cd;padding:12px;border-left:4px solid #ffc107;">This is a revised invoice (version {{ version }}).</p>{% endif %}
<p>Thank you for confirming. Your invoice <strong>{{ invoice_number }}</strong> for {{ service }} is ready.</p>
<p style="font-size:26px;font-weight:bold;color:#0b2a4a;">{{ amount }}</p>
<p><a href="{{ payment_link }}" style="display:inline-block;background:#c9a14a;color:#fff;padding:12px 28px;border-radius:6px;text-decoration:none;">Pay Now</a></p>
<p><a href="{{ view_url }}">View invoice online</a></p>
{% endblock %}''',
    'invoice_snapshot.html': '''{% extends "layout.html" %}{% block content %}
<h2 style="color:#0b2a4a;">Invoice {{ invoice_number }}</h2>
<p><strong>Date:</strong> {{ date }}</p>
<p><strong>Bill To:</strong><br>{{ name }}{% if email %}<br>{{ email }}{% endif %}{% if whatsapp %}<br>{{ whatsapp }}{% endif %}</p>
{% if revised %}<p style="background:#fff3cd;padding:12px;border-left:4px solid #ffc107;"><strong>Note:</strong> This is a revised invoice based on your latest request.</p>{% endif %}
<div style="background:#f8f9fa;border-left:4px solid #c9a14a;padding:16px;">
  <p><strong>Service:</strong> {{ service }}</p>
  <p><strong>Coverage:</strong> {{ coverage }}</p>
</div>
<p style="text-align:center;font-size:30px;font-weight:bold;color:#0b2a4a;">{{ amount }}</p>
<p style="text-align:center;"><a href="{{ payment_link }}" style="display:inline-block;background:#c9a14a;color:#fff;padding:12px 28px;border-radius:6px;text-decoration:none;">Pay Now</a></p>
{% endblock %}''',
    'reminder.html': '''{% extends "layout.html" %}{% block content %}
<p>Dear {{ name }},</p>
<p>This is a friendly reminder that invoice <strong>{{ invoice_number }}</strong> for {{ service }} ({{ amount }}) is still awaiting payment.</p>
<p><a href="{{ payment_link }}" style="display:inline-block;background:#c9a14a;color:#fff;padding:12px 28px;border-radius:6px;text-decoration:none;">Pay Now</a></p>
<p>If you have already paid, please ignore this message.</p>
{% endblock %}''',
    'payment_confirmation.html': '''{% extends "layout.html" %}{% block content %}
<p>Dear {{ name }},</p>
<div style="background:#ecfdf5;border:2px solid #10b981;border-radius:8px;padding:20px;text-align:center;">
  <p style="color:#065f46;font-weight:bold;margin:0 0 6px 0;">Thank You!</p>
  <p style="margin:0;">We have received your payment{% if amount %} of {{ amount }}{% endif %} for {{ service }}.</p>
</div>
<h3 style="color:#0b2a4a;">Next Steps</h3>
<ol>{% for step in steps %}<li>{{ step }}</li>{% endfor %}</ol>
<p>Questions? Email <a href="mailto:{{ support_email }}">{{ support_email }}</a> or WhatsApp {{ support_whatsapp }}.</p>
{% endblock %}''',
    'completion.html': '''{% extends "layout.html" %}{% block content %}
<p>Dear {{ name }},</p>
<p>We are pleased to let you know that your UAE business setup work has been completed.</p>
{% if completed %}<p><strong>Completed services:</strong></p>
<ul>{% for item in completed %}<li>{{ item }} completed</li>{% endfor %}</ul>{% endif %}
<h3 style="color:#0b2a4a;">Next Steps for You</h3>
<ul>{% for step in steps %}<li>{{ step }}</li>{% endfor %}</ul>
{% if review_link %}<div style="background:#f8f9fa;border-left:4px solid #c9a14a;padding:16px;">
  <p>We would greatly appreciate your feedback. If you are happy with our service, please leave us a review on Google:</p>
  <p><a href="{{ review_link }}" style="display:inline-block;background:#c9a14a;color:#fff;padding:10px 24px;border-radius:6px;text-decoration:none;">Leave a Review</a></p>
</div>{% endif %}
<p>Thank you for choosing {{ brand }}. We wish you success with your business in the UAE!</p>
{% endblock %}''',
    'admin_notify.html': '''{% extends "layout.html" %}{% block content %}
<h2 style="color:#0b2a4a;font-size:18px;">{{ subject }}</h2>
<ul>{% for line in lines %}<li>{{ line }}</li>{% endfor %}</ul>
<p><a href="{{ lead_url }}">Open lead in admin</a></p>
<p style="font-size:12px;color:#999;">event={{ event }} project={{ project }} lead={{ lead_id }}</p>
{% endblock %}''',
}

_env = Environment(loader=DictLoader(_TEMPLATES), autoescape=select_autoescape(default=True))


def _render(template_name, **ctx):
    ctx.setdefault('brand', config.BRAND_NAME)
    ctx.setdefault('title', config.BRAND_NAME)
    return _env.get_template(template_name).render(**ctx)


def _customer_name(lead):
    return lead.full_name or 'Valued Client'


def build_quote_email(lead, project, amount, approval_url, revised=False):
    service = service_name(lead, project)
    prefix = 'Revised Quote' if revised else 'Your Quote'
    subject = f'{prefix}: {service} – {format_aed(amount)}'
    html = _render(
        'quote.html',
        name=_customer_name(lead), service=service, amount=format_aed(amount),
        coverage=quote_coverage(lead, project), approval_url=approval_url,
        revised=revised, valid_days=config.QUOTE_TOKEN_DAYS,
    )
    text = (f'Dear {_customer_name(lead)},\n\nOur quote for {service}: {format_aed(amount)}.\n'
            f'Review and respond here: {approval_url}\n')
    return subject, html, text


def build_invoice_email(lead, project, invoice_number, amount, payment_link, view_url,
                        version=1, revised=False):
    service = service_name(lead, project)
    if version > 1:
        subject = f'Revised Invoice R{version}: {invoice_number}'
    else:
        subject = f'Invoice {invoice_number} – {service}'
    html = _render(
        'invoice_email.html',
        name=_customer_name(lead), service=service, amount=format_aed(amount),
        invoice_number=invoice_number, payment_link=payment_link, view_url=view_url,
        version=version, revised=revised,
    )
    text = (f'Invoice {invoice_number} for {service}: {format_aed(amount)}.\n'
            f'Pay here: {payment_link}\nView online: {view_url}\n')
    return subject, html, text


def build_invoice_snapshot(lead, project, invoice_number, amount, payment_link, revised=False, now=None):
    now = now or datetime.now(timezone.utc)
    return _render(
        'invoice_snapshot.html',
        title=f'Invoice {invoice_number}',
        invoice_number=invoice_number, date=now.strftime('%B %d, %Y'),
        name=_customer_name(lead), email=lead.email, whatsapp=lead.whatsapp,
        service=service_name(lead, project), coverage=quote_coverage(lead, project),
        amount=format_aed(amount), payment_link=payment_link, revised=revised,
    )


def build_reminder_email(lead, project, invoice_number, amount, payment_link):
    service = service_name(lead, project)
    subject = f'Payment Reminder: Invoice {invoice_number}'
    html = _render(
        'reminder.html',
        name=_customer_name(lead), service=service, amount=format_aed(amount),
        invoice_number=invoice_number, payment_link=payment_link,
    )
    text = (f'Reminder: invoice {invoice_number} ({format_aed(amount)}) is awaiting payment.\n'
            f'Pay here: {payment_link}\n')
    return subject, html, text


PAYMENT_NEXT_STEPS = (
    'We will begin preparing your documentation',
    'You will receive a document checklist via email within 2 business days',
    'Please prepare and submit the required documents as per the checklist',
    'We will keep you updated on the progress throughout the process',
)

COMPLETION_NEXT_STEPS = (
    'Review all documents and deliverables',
    'Ensure compliance with ongoing requirements',
    'Keep all documents in a safe place',
    'Contact us if you need any assistance in the future',
)


def build_payment_confirmation_email(lead, project, amount=None):
    service = service_name(lead, project)
    subject = f'Payment Received – {service}'
    html = _render(
        'payment_confirmation.html',
        name=_customer_name(lead), service=service,
        amount=format_aed(amount) if amount is not None else None,
        steps=PAYMENT_NEXT_STEPS,
        support_email=config.SUPPORT_EMAIL, support_whatsapp=config.SUPPORT_WHATSAPP,
    )
    steps = '\n'.join(f'{i}. {s}' for i, s in enumerate(PAYMENT_NEXT_STEPS, 1))
    text = (f'Dear {_customer_name(lead)},\n\nWe have received your payment for {service}. '
            f'Thank you for choosing {config.BRAND_NAME}.\n\nNext Steps:\n{steps}\n\n'
            f'Email: {config.SUPPORT_EMAIL}\nWhatsApp: {config.SUPPORT_WHATSAPP}\n')
    return subject, html, text


def completed_services(lead):
    """Service names for every project with a completion date, company first."""
    return [service_name(lead, p) for p in Project
            if getattr(lead, p.prefix + 'completed_at') is not None]


def build_completion_email(lead, review_link=None):
    completed = completed_services(lead)
    subject = 'Project Completed'
    html = _render(
        'completion.html',
        name=_customer_name(lead), completed=completed,
        steps=COMPLETION_NEXT_STEPS, review_link=review_link,
    )
    lines = [f'Dear {_customer_name(lead)},', '',
             'Your UAE business setup work has been completed.']
    lines += [f'- {item} completed' for item in completed]
    if review_link:
        lines += ['', f'Please consider leaving us a Google review: {review_link}']
    return subject, html, '\n'.join(lines) + '\n'


def build_admin_notification(event, lead, project, subject, lines):
    lead_url = f'{config.ADMIN_BASE_URL}/admin/leads/{lead.id}'
    html = _render(
        'admin_notify.html',
        subject=subject, lines=lines, lead_url=lead_url,
        event=event, project=getattr(project, 'value', project), lead_id=lead.id,
    )
    text = '\n'.join([subject, ''] + list(lines) + ['', lead_url])
    return html, text
