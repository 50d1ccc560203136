"""Shared test fixtures."""
import pytest
from unittest.mock import patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.workflow.projects import Project
from app.workflow.state import write_fields


class FakeRedis:
    """Minimal in-memory Redis hash store (what the circuit breakers use)."""

    def __init__(self):
        self.hash_store = {}

    def hset(self, key, field=None, value=None, mapping=None):
        h = self.hash_store.setdefault(key, {})
        if mapping:
            h.update({k: str(v) for k, v in mapping.items()})
        if field is not None:
            h[field] = str(value)

    def hincrby(self, key, field, amount=1):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)
        return int(h[field])

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def delete(self, *keys):
        for k in keys:
            self.hash_store.pop(k, None)

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def hset(self, key, field=None, value=None, mapping=None):
        self._ops.append(lambda: self._redis.hset(key, field, value, mapping=mapping))
        return self

    def hincrby(self, key, field, amount=1):
        self._ops.append(lambda: self._redis.hincrby(key, field, amount))
        return self

    def execute(self):
        return [op() for op in self._ops]


class FakeMailer:
    """Records every message instead of talking SMTP."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send(self, to, subject, html, text=None, reply_to=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({'to': to, 'subject': subject, 'html': html, 'text': text})
        return f'<msg-{len(self.sent)}@test>'

    def subjects(self):
        return [m['subject'] for m in self.sent]

    def to(self, address):
        return [m for m in self.sent if m['to'] == address]


class FakeWhatsApp:
    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []

    def send_text(self, to, body):
        self.sent.append({'to': to, 'body': body})
        if self.ok:
            return {'ok': True, 'message_id': f'wamid.{len(self.sent)}', 'error': None}
        return {'ok': False, 'message_id': None, 'error': 'WhatsApp API error (400): bad number'}


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import app.models.lead
    import app.models.agent
    import app.models.activity
    import app.models.invoice_revision
    import app.models.cron_run
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    close() is disabled so session_scope() in route handlers doesn't
    invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('app.database.get_session', return_value=db_session):
        yield db_session
    db_session.close = _real_close


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def whatsapp():
    return FakeWhatsApp()


@pytest.fixture
def app(fake_redis, mailer, whatsapp):
    """Flask test app with fake delivery clients and open admin access."""
    with patch('app.extensions.redis_client', fake_redis), \
            patch('app.config.ADMIN_PASSWORD', None), \
            patch('app.config.APP_ENV', 'test'):
        from app import create_app
        app = create_app(mailer=mailer, whatsapp=whatsapp)
        app.config['TESTING'] = True
        yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def make_lead(db_session):
    """Factory — commits a Lead. Per-project fields go in company= / bank= / bank_deal= dicts."""
    from app.models.lead import Lead

    def _make(company=None, bank=None, bank_deal=None, **overrides):
        values = dict(
            full_name='Jane Doe',
            email='jane@example.com',
            whatsapp='+971501234567',
            setup_type='mainland',
            assigned_agent='athar',
        )
        values.update(overrides)
        lead = Lead(**values)
        for project, fields in ((Project.COMPANY, company), (Project.BANK, bank),
                                (Project.BANK_DEAL, bank_deal)):
            if fields:
                write_fields(lead, project, **fields)
        db_session.add(lead)
        db_session.commit()
        return lead
    return _make
