"""Tests for app.services.lead_store — capture, edit, activity log and bulk delete."""
import pytest

from app.models.activity import LeadActivity
from app.models.agent import Agent, LeadAgent
from app.models.invoice_revision import InvoiceRevision
from app.models.lead import Lead
from app.services import lead_store
from app.workflow.errors import LeadNotFound, PreconditionFailed


class TestCreateLead:

    def test_routes_to_agent_by_setup_type(self, db_session):
        lead = lead_store.create_lead(db_session, {
            'full_name': ' Sara Lindqvist ', 'email': 'Sara@Example.com', 'setup_type': 'Freezone',
        })
        assert lead.full_name == 'Sara Lindqvist'
        assert lead.email == 'sara@example.com'
        assert lead.setup_type == 'freezone'
        assert lead.assigned_agent == 'anoop'

    def test_unknown_setup_type_rejected(self, db_session):
        with pytest.raises(PreconditionFailed):
            lead_store.create_lead(db_session, {'full_name': 'X', 'email': 'x@example.com',
                                                'setup_type': 'moon-base'})

    def test_requires_contact(self, db_session):
        with pytest.raises(PreconditionFailed, match='Email or WhatsApp'):
            lead_store.create_lead(db_session, {'full_name': 'No Contact'})

    def test_normalizes_whatsapp(self, db_session):
        lead = lead_store.create_lead(db_session, {'full_name': 'Ravi', 'whatsapp': '00971 50-123 4567'})
        assert lead.whatsapp == '+971501234567'

    def test_invalid_whatsapp_rejected(self, db_session):
        with pytest.raises(PreconditionFailed, match='international format'):
            lead_store.create_lead(db_session, {'full_name': 'Ravi', 'whatsapp': '0501234567'})

    def test_workflow_fields_start_empty(self, db_session):
        lead = lead_store.create_lead(db_session, {'full_name': 'Ravi', 'email': 'r@example.com'})
        db_session.flush()
        assert lead.company_quote_sent_at is None
        assert lead.bank_quoted_amount is None
        assert lead.assigned_agent == 'self'

    def test_logs_creation(self, db_session):
        lead = lead_store.create_lead(db_session, {'full_name': 'Ravi', 'email': 'r@example.com'})
        db_session.flush()
        assert [a.action for a in lead_store.list_activities(db_session, lead.id)] == ['lead_created']


class TestGetLead:

    def test_missing_raises_404(self, db_session):
        with pytest.raises(LeadNotFound) as exc_info:
            lead_store.get_lead(db_session, 'nope')
        assert exc_info.value.status_code == 404

    def test_empty_id_raises(self, db_session):
        with pytest.raises(LeadNotFound):
            lead_store.get_lead(db_session, '')


class TestListLeads:

    def test_search_matches_name_or_email(self, db_session, make_lead):
        make_lead(full_name='Omar Haddad', email='omar@example.com')
        make_lead(full_name='Chloe Martin', email='chloe@example.com')
        assert [l.full_name for l in lead_store.list_leads(db_session, search='omar')] == ['Omar Haddad']

    def test_filter_by_setup_type(self, db_session, make_lead):
        make_lead(setup_type='bank')
        make_lead(setup_type='mainland')
        assert len(lead_store.list_leads(db_session, setup_type='BANK')) == 1


class TestBulkDelete:

    def test_removes_children_first(self, db_session, make_lead):
        lead = make_lead()
        agent = Agent(name='Athar', service_type='company')
        db_session.add(agent)
        db_session.flush()
        db_session.add(LeadAgent(lead_id=lead.id, agent_id=agent.id, service_type='company'))
        db_session.add(InvoiceRevision(lead_id=lead.id, project='company', version=1,
                                       invoice_number='UBD-INV-20260118-0001'))
        lead_store.log_activity(db_session, lead.id, 'note', 'hello')
        db_session.commit()

        counts = lead_store.bulk_delete(db_session, [lead.id])

        assert counts == {'deleted': 1, 'activities': 1, 'agent_assignments': 1, 'invoice_revisions': 1}
        assert db_session.query(Lead).count() == 0
        assert db_session.query(LeadActivity).count() == 0

    def test_empty_ids_rejected(self, db_session):
        with pytest.raises(PreconditionFailed):
            lead_store.bulk_delete(db_session, [])
