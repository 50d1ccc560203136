"""Tests for app.workflow.state / status — stage precedence and admin labels."""
from datetime import datetime, timezone, timedelta

import pytest

from app.models.lead import Lead
from app.workflow.projects import Project, primary_project
from app.workflow.state import (
    Stage, project_state, read_fields, write_fields, clear_fields,
    apply_proceed, apply_decline, apply_questions, apply_close,
)
from app.workflow.status import derive_status, derive_next_action, lead_status, lead_summary

NOW = datetime(2026, 1, 18, 10, 0, tzinfo=timezone.utc)
EARLIER = NOW - timedelta(days=1)


def _lead(setup_type='mainland', **company):
    lead = Lead(full_name='Jane Doe', setup_type=setup_type)
    write_fields(lead, Project.COMPANY, **company)
    return lead


class TestProject:

    @pytest.mark.parametrize('raw,expected', [
        ('company', Project.COMPANY),
        ('BANK', Project.BANK),
        ('bank_deal', Project.BANK_DEAL),
        ('bank-deal', Project.BANK_DEAL),
    ])
    def test_parse(self, raw, expected):
        assert Project.parse(raw) == expected

    def test_parse_unknown_raises(self):
        with pytest.raises(ValueError):
            Project.parse('yacht')

    def test_from_claim_is_lenient(self):
        assert Project.from_claim(None) == Project.COMPANY
        assert Project.from_claim('bank-deal') == Project.BANK_DEAL

    def test_prefix(self):
        assert Project.BANK_DEAL.prefix == 'bank_deal_'

    def test_primary_project(self):
        assert primary_project(_lead(setup_type='bank')) == Project.BANK
        assert primary_project(_lead(setup_type=None)) == Project.COMPANY


class TestFieldAccess:

    def test_counters_default_when_null(self):
        lead = Lead()
        f = read_fields(lead, Project.BANK)
        assert f.invoice_version == 1
        assert f.payment_reminder_count == 0

    def test_unknown_field_raises(self):
        with pytest.raises(KeyError):
            write_fields(Lead(), Project.COMPANY, colour='red')

    def test_clear_resets_counters(self):
        lead = _lead(invoice_version=4, payment_reminder_count=2, quoted_amount=10.0)
        clear_fields(lead, Project.COMPANY, ('invoice_version', 'payment_reminder_count', 'quoted_amount'))
        assert lead.company_invoice_version == 1
        assert lead.company_payment_reminder_count == 0
        assert lead.company_quoted_amount is None


class TestPrecedence:
    """Each row: company fields -> (status, next action)."""

    @pytest.mark.parametrize('fields,status,action', [
        ({}, 'New', 'Send WhatsApp to Agent'),
        ({'agent_contacted_at': NOW}, 'Feasibility Review', 'Set Feasibility & Quote'),
        ({'agent_contacted_at': NOW, 'feasible': True}, 'Agent Contacted', 'Enter Quoted Amount'),
        ({'feasible': False}, 'Not Feasible', 'Closed (Not Feasible)'),
        ({'quoted_amount': 5000.0}, 'Quoted', 'Send Company Quote'),
        ({'quoted_amount': 5000.0, 'quote_sent_at': NOW}, 'Quoted', 'Waiting for customer decision'),
        ({'quote_sent_at': EARLIER, 'quote_viewed_at': NOW},
         'Awaiting Customer Approval', 'Waiting for customer decision'),
        ({'quote_sent_at': EARLIER, 'quote_questions_at': NOW},
         'Awaiting Customer Approval', 'Customer has questions - contact customer'),
        ({'quote_sent_at': EARLIER, 'approved': True, 'proceed_confirmed_at': NOW},
         'Awaiting Payment', 'Generate & Send Company Invoice'),
        ({'quote_sent_at': EARLIER, 'approved': True, 'invoice_sent_at': NOW},
         'Awaiting Payment', 'Send payment reminder / follow up'),
        ({'invoice_sent_at': NOW}, 'Invoice Sent', 'Send payment reminder / follow up'),
        ({'invoice_sent_at': EARLIER, 'payment_received_at': NOW}, 'Company In Progress', 'Mark Company Completed'),
        ({'payment_received_at': EARLIER, 'completed_at': NOW}, 'Completed', 'Completed'),
        ({'quote_sent_at': EARLIER, 'approved': False, 'quote_declined_at': NOW},
         'Declined', 'Company Quote Declined'),
        ({'completed_at': EARLIER, 'declined_at': NOW}, 'Declined', 'No further action'),
    ])
    def test_status_and_next_action(self, fields, status, action):
        lead = _lead(**fields)
        assert derive_status(lead, Project.COMPANY) == status
        assert derive_next_action(lead, Project.COMPANY) == action

    def test_declined_beats_everything(self):
        lead = _lead(approved=False, payment_received_at=NOW, invoice_sent_at=EARLIER)
        assert project_state(lead, Project.COMPANY).stage == Stage.DECLINED

    def test_questions_carry_reason(self):
        lead = _lead(quote_sent_at=EARLIER, quote_questions_at=NOW, quote_questions_reason='Visa quota?')
        state = project_state(lead, Project.COMPANY)
        assert state.stage == Stage.QUESTIONED
        assert state.reason == 'Visa quota?'

    def test_bank_label(self):
        lead = Lead(full_name='B', setup_type='bank')
        write_fields(lead, Project.BANK, payment_received_at=NOW)
        assert lead_status(lead) == 'Bank In Progress'
        assert derive_next_action(lead, Project.BANK) == 'Mark Bank Completed'

    def test_summary_covers_every_project(self):
        summary = lead_summary(_lead(quoted_amount=100.0))
        assert summary['primary_project'] == 'company'
        assert set(summary['projects']) == {'company', 'bank', 'bank-deal'}
        assert summary['projects']['bank']['stage'] == 'new'


class TestDecisionMutations:
    """Approval and decline are never set together."""

    def test_proceed_clears_decline(self):
        lead = _lead(quote_sent_at=EARLIER)
        apply_decline(lead, Project.COMPANY, EARLIER, 'too expensive')
        apply_proceed(lead, Project.COMPANY, NOW)
        f = read_fields(lead, Project.COMPANY)
        assert f.approved is True
        assert f.quote_declined_at is None
        assert f.quote_decline_reason is None
        assert f.proceed_confirmed_at == NOW

    def test_proceed_keeps_existing_timestamps(self):
        lead = _lead(approved=True, proceed_confirmed_at=EARLIER, quote_approved_at=EARLIER)
        apply_proceed(lead, Project.COMPANY, NOW)
        assert lead.company_proceed_confirmed_at == EARLIER

    def test_decline_clears_approval(self):
        lead = _lead(approved=True, proceed_confirmed_at=EARLIER, quote_approved_at=EARLIER)
        apply_decline(lead, Project.COMPANY, NOW, None)
        f = read_fields(lead, Project.COMPANY)
        assert f.approved is False
        assert f.proceed_confirmed_at is None
        assert f.quote_approved_at is None
        assert f.is_declined and not f.is_approved

    def test_questions_leave_decision_alone(self):
        lead = _lead(approved=True, proceed_confirmed_at=EARLIER)
        apply_questions(lead, Project.COMPANY, NOW, 'one more thing')
        assert lead.company_approved is True
        assert lead.company_quote_questions_reason == 'one more thing'

    def test_close_clears_completion(self):
        lead = _lead(completed_at=EARLIER, approved=True, proceed_confirmed_at=EARLIER)
        apply_close(lead, Project.COMPANY, NOW, 'client vanished', 'After Invoice')
        f = read_fields(lead, Project.COMPANY)
        assert f.completed_at is None
        assert f.approved is False
        assert f.decline_stage == 'After Invoice'
