"""Tests for the public invoice page, invoice details and admin view links."""
from datetime import datetime, timezone

import pytest

from app.models.invoice_revision import InvoiceRevision
from app.services import tokens
from app.workflow.projects import Project

SENT = datetime(2026, 1, 17, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def invoiced(make_lead):
    return make_lead(company={
        'quoted_amount': 8000.0, 'approved': True, 'proceed_confirmed_at': SENT,
        'invoice_number': 'UBD-INV-20260117-0001', 'invoice_sent_at': SENT, 'invoice_amount': 8000.0,
        'invoice_payment_link': 'https://pay.example.com/x', 'invoice_version': 1,
        'invoice_html': '<html><body>UBD-INV-20260117-0001</body></html>',
    })


class TestInvoicePage:

    def test_renders_snapshot_and_records_view(self, client, invoiced, mailer):
        token = tokens.invoice_token(invoiced.id, Project.COMPANY, 1)
        resp = client.get(f'/invoice/view?token={token}')
        assert resp.status_code == 200
        assert resp.content_type.startswith('text/html')
        assert b'UBD-INV-20260117-0001' in resp.data
        assert invoiced.company_invoice_viewed_at is not None
        assert len(mailer.sent) == 1

    def test_second_open_does_not_renotify(self, client, invoiced, mailer):
        token = tokens.invoice_token(invoiced.id, Project.COMPANY)
        client.get(f'/invoice/view?token={token}')
        client.get(f'/invoice/view?token={token}')
        assert len(mailer.sent) == 1

    def test_quote_token_rejected(self, client, invoiced):
        token = tokens.quote_token(invoiced.id, Project.COMPANY)
        assert client.get(f'/invoice/view?token={token}').status_code == 401

    def test_not_sent_yet(self, client, make_lead):
        lead = make_lead()
        token = tokens.invoice_token(lead.id, Project.COMPANY)
        assert client.get(f'/invoice/view?token={token}').status_code == 400

    @pytest.mark.parametrize('version', [1, 2])
    def test_old_revision_link_still_renders_after_reset(self, client, db_session, invoiced, mailer, version):
        db_session.add(InvoiceRevision(lead_id=invoiced.id, project='company', version=version,
                                       invoice_number='UBD-INV-20260117-0001',
                                       html='<html><body>archived copy</body></html>'))
        db_session.commit()
        reset = client.post(f'/api/leads/{invoiced.id}/reset-quote', json={})
        assert reset.status_code == 200

        token = tokens.invoice_token(invoiced.id, Project.COMPANY, version)
        resp = client.get(f'/invoice/view?token={token}')
        assert resp.status_code == 200
        assert b'archived copy' in resp.data
        assert invoiced.company_invoice_viewed_at is None
        assert mailer.sent == []

    def test_superseded_revision_does_not_mark_current_viewed(self, client, db_session, invoiced, mailer):
        invoiced.company_invoice_version = 2
        db_session.add(InvoiceRevision(lead_id=invoiced.id, project='company', version=1,
                                       invoice_number='UBD-INV-20260117-0001',
                                       html='<html><body>first draft</body></html>'))
        db_session.commit()

        token = tokens.invoice_token(invoiced.id, Project.COMPANY, 1)
        resp = client.get(f'/invoice/view?token={token}')
        assert b'first draft' in resp.data
        assert invoiced.company_invoice_viewed_at is None


class TestInvoiceDetails:

    def test_details(self, client, invoiced):
        token = tokens.invoice_token(invoiced.id, Project.COMPANY)
        data = client.post('/api/invoice/details', json={'token': token}).get_json()
        assert data['invoiceNumber'] == 'UBD-INV-20260117-0001'
        assert data['amount'] == 8000.0
        assert data['paymentLink'] == 'https://pay.example.com/x'
        assert data['paid'] is False


class TestViewLink:

    def test_mints_url(self, client, invoiced):
        data = client.get(f'/api/invoice/view-link?leadId={invoiced.id}&project=company').get_json()
        claims = tokens.verify(data['url'].split('token=', 1)[1], tokens.VIEW_INVOICE)
        assert claims.lead_id == invoiced.id

    def test_requires_lead_id(self, client):
        assert client.get('/api/invoice/view-link').status_code == 400

    def test_unknown_project(self, client, invoiced):
        resp = client.get(f'/api/invoice/view-link?leadId={invoiced.id}&project=yacht')
        assert resp.status_code == 400
