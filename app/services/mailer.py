"""
SMTP mailer.

One Mailer is built in create_app() and kept on app.extensions['mailer'];
handlers receive it explicitly. Port 465 uses implicit TLS, anything else
STARTTLS. Sends go through the 'smtp' circuit breaker.
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid

from app.services.circuit_breaker import CircuitOpenError

logger = logging.getLogger('services.mailer')


class MailError(Exception):
    """Message could not be handed to the SMTP server."""


class Mailer:
    def __init__(self, host, port, user=None, password=None, sender=None,
                 brand_name='', breaker=None, timeout=30):
        self.host = host
        self.port = int(port)
        self.user = user
        self.password = password
        self.sender = sender or user
        self.brand_name = brand_name
        self.breaker = breaker
        self.timeout = timeout

    @classmethod
    def from_config(cls, breaker=None):
        from app import config
        return cls(
            config.SMTP_HOST, config.SMTP_PORT,
            user=config.SMTP_USER,
            password=config.SMTP_PASS,
            sender=config.SMTP_FROM,
            brand_name=config.BRAND_NAME,
            breaker=breaker,
        )

    @property
    def configured(self):
        return bool(self.host and self.user and self.password and self.sender)

    def build_message(self, to, subject, html, text=None, reply_to=None):
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = formataddr((self.brand_name, self.sender)) if self.brand_name else self.sender
        msg['To'] = to
        msg['Message-ID'] = make_msgid()
        if reply_to:
            msg['Reply-To'] = reply_to
        if text:
            msg.attach(MIMEText(text, 'plain', 'utf-8'))
        msg.attach(MIMEText(html, 'html', 'utf-8'))
        return msg

    def _deliver(self, msg):
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        with server:
            if self.port != 465:
                server.starttls()
            server.login(self.user, self.password)
            server.send_message(msg)

    def send(self, to, subject, html, text=None, reply_to=None):
        """Send one message. Returns the Message-ID; raises MailError on failure."""
        if not to:
            raise MailError('Recipient address is required')
        if not self.configured:
            raise MailError('SMTP is not configured (SMTP_USER, SMTP_PASS, SMTP_FROM)')

        msg = self.build_message(to, subject, html, text=text, reply_to=reply_to)
        try:
            if self.breaker is not None:
                self.breaker.call(self._deliver, msg)
            else:
                self._deliver(msg)
        except (smtplib.SMTPException, OSError, CircuitOpenError) as e:
            logger.error("SMTP send to %s failed: %s", to, e)
            raise MailError(str(e)) from e

        logger.info("Email sent to %s: %s", to, subject)
        return msg['Message-ID']
