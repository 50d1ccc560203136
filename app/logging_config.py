"""
Logging setup for the lead desk.

configure_logging() is called once from create_app() and from the cron script.
LOG_FORMAT picks "text" for terminals or "json" for log aggregators; LOG_LEVEL
defaults to INFO.

Workflow code logs through lead_logger(), which stamps lead_id and project on
every record so both formats can show which lead a line belongs to.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Record attributes carried by lead_logger() / extra={...}
CONTEXT_FIELDS = ('lead_id', 'project', 'event')


def _context(record):
    return {f: getattr(record, f) for f in CONTEXT_FIELDS if getattr(record, f, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextTextFormatter(logging.Formatter):
    """Plain text with a trailing [lead=... project=... event=...] tag."""

    def __init__(self):
        super().__init__('[%(asctime)s] %(levelname)s %(name)s: %(message)s',
                         datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record):
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        tag = ' '.join(f"{k.replace('_id', '')}={v}" for k, v in context.items())
        head, sep, tail = line.partition('\n')
        return f'{head} [{tag}]{sep}{tail}'


class WorkflowLogger(logging.LoggerAdapter):
    """
    Adapter that merges a fixed lead/project context into every call.

    Accepts an `event=` keyword per call so handlers can tag what happened
    without building an extra dict each time.
    """

    def process(self, msg, kwargs):
        extra = dict(self.extra)
        event = kwargs.pop('event', None)
        if event is not None:
            extra['event'] = event
        extra.update(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        return msg, kwargs


def lead_logger(logger, lead, project=None):
    """WorkflowLogger bound to one lead and, optionally, one project."""
    context = {'lead_id': getattr(lead, 'id', lead)}
    if project is not None:
        context['project'] = getattr(project, 'value', project)
    return WorkflowLogger(logger, context)


_NOISY_LOGGERS = [
    'urllib3',
    'requests',
    'sqlalchemy.engine',
    'werkzeug',
    'redis',
]


def configure_logging(app=None):
    """
    Install one stderr handler on the root logger.

    Environment variables:
        LOG_LEVEL  - Python log level name (default: INFO)
        LOG_FORMAT - "text" (default) or "json"
    """
    level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if os.getenv('LOG_FORMAT', 'text').lower() == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ContextTextFormatter())
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.handlers.clear()
        app.logger.propagate = True
