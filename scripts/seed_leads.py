#!/usr/bin/env python3
"""
Seed leads for exercising the admin workflow locally.

Creates one lead per pipeline stage:
  1. New lead, nothing done yet
  2. Quote sent, not opened
  3. Customer has questions
  4. Approved, invoice sent and unpaid (due a reminder)
  5. Paid, work in progress
  6. Quote declined
  7. Company completed, bank account still being quoted

Usage:
    python scripts/seed_leads.py          # seed all scenarios
    python scripts/seed_leads.py --clear  # wipe seeded data first

Requires: DATABASE_URL set (or defaults to sqlite:///local.db).
"""
import sys
import os
import argparse
from datetime import datetime, timezone, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import get_session, engine, Base
from app.models.activity import LeadActivity
from app.models.agent import Agent, LeadAgent
from app.models.cron_run import CronRun
from app.models.invoice_revision import InvoiceRevision
from app.models.lead import Lead
from app.services.lead_store import bulk_delete, log_activity
from app.workflow.projects import Project
from app.workflow.state import write_fields
from app.workflow.status import lead_summary

# Seeded leads are recognisable by their email domain
SEED_DOMAIN = '@seed.example.com'

CUSTOMERS = [
    ('Omar Haddad', 'mainland', '+971501110001', 'General Trading'),
    ('Sara Lindqvist', 'freezone', '+971501110002', 'E-commerce'),
    ('Ravi Menon', 'freezone', '+971501110003', 'IT Consulting'),
    ('Chloe Martin', 'mainland', '+971501110004', 'Interior Design'),
    ('Yusuf Demir', 'offshore', '+971501110005', 'Holding Company'),
    ('Anna Kowalska', 'freezone', '+971501110006', 'Marketing Agency'),
    ('Daniel Okafor', 'mainland', '+971501110007', 'Logistics'),
]


def _lead(session, idx, **extra):
    name, setup_type, phone, activity = CUSTOMERS[idx]
    lead = Lead(
        full_name=name,
        email=name.lower().replace(' ', '.') + SEED_DOMAIN,
        whatsapp=phone,
        setup_type=setup_type,
        activity=activity,
        nationality='AE',
        residence_country='AE',
        assigned_agent='self',
        **extra,
    )
    session.add(lead)
    session.flush()
    log_activity(session, lead.id, 'lead_created', 'Seeded lead')
    return lead


def seed(session):
    now = datetime.now(timezone.utc)
    company = Project.COMPANY
    leads = []

    # 1. New
    leads.append(_lead(session, 0))

    # 2. Quoted, not opened
    lead = _lead(session, 1)
    write_fields(lead, company, feasible=True, quoted_amount=12500.0,
                 quote_sent_at=now - timedelta(hours=3), approval_requested_at=now - timedelta(hours=3))
    leads.append(lead)

    # 3. Questions
    lead = _lead(session, 2)
    write_fields(lead, company, feasible=True, quoted_amount=9800.0,
                 quote_sent_at=now - timedelta(days=2), quote_viewed_at=now - timedelta(days=1),
                 quote_questions_at=now - timedelta(hours=20),
                 quote_questions_reason='Does the price include the visa quota?')
    leads.append(lead)

    # 4. Invoice unpaid, last reminder long ago
    lead = _lead(session, 3)
    sent = now - timedelta(days=6)
    write_fields(lead, company, feasible=True, quoted_amount=15000.0,
                 quote_sent_at=sent - timedelta(days=2), quote_viewed_at=sent - timedelta(days=2),
                 approved=True, proceed_confirmed_at=sent - timedelta(days=1),
                 quote_approved_at=sent - timedelta(days=1),
                 invoice_number=f"UBD-INV-{sent:%Y%m%d}-0001", invoice_sent_at=sent,
                 invoice_amount=15000.0, payment_link='https://pay.example.com/inv-0001',
                 invoice_payment_link='https://pay.example.com/inv-0001')
    session.add(InvoiceRevision(lead_id=lead.id, project=company.value, version=1,
                                invoice_number=lead.company_invoice_number, amount=15000.0,
                                payment_link=lead.company_payment_link, sent_at=sent))
    leads.append(lead)

    # 5. Paid, in progress
    lead = _lead(session, 4)
    write_fields(lead, company, feasible=True, quoted_amount=22000.0, quote_sent_at=now - timedelta(days=14),
                 approved=True, proceed_confirmed_at=now - timedelta(days=12),
                 invoice_number=f"UBD-INV-{now:%Y%m%d}-0002", invoice_sent_at=now - timedelta(days=11),
                 invoice_amount=22000.0, payment_received_at=now - timedelta(days=9))
    leads.append(lead)

    # 6. Declined
    lead = _lead(session, 5)
    write_fields(lead, company, feasible=True, quoted_amount=8000.0, quote_sent_at=now - timedelta(days=5),
                 approved=False, quote_declined_at=now - timedelta(days=4),
                 quote_decline_reason='Found a cheaper provider')
    leads.append(lead)

    # 7. Company done, bank quoting
    lead = _lead(session, 6, needs_bank_account=True)
    write_fields(lead, company, feasible=True, quoted_amount=18000.0, approved=True,
                 quote_sent_at=now - timedelta(days=30), invoice_sent_at=now - timedelta(days=28),
                 invoice_number=f"UBD-INV-{now:%Y%m%d}-0003", invoice_amount=18000.0,
                 payment_received_at=now - timedelta(days=27), completed_at=now - timedelta(days=3))
    write_fields(lead, Project.BANK, feasible=True, quoted_amount=3500.0)
    leads.append(lead)

    agent = Agent(name='Seed Agent', email='agent' + SEED_DOMAIN, service_type='company')
    session.add(agent)
    session.flush()
    session.add(LeadAgent(lead_id=leads[4].id, agent_id=agent.id, service_type='company',
                          order=1, status='working', is_current=True,
                          contacted_at=now - timedelta(days=8), accepted_at=now - timedelta(days=8),
                          started_working_at=now - timedelta(days=7)))
    return leads


def clear(session):
    ids = [row.id for row in session.query(Lead.id).filter(Lead.email.like(f'%{SEED_DOMAIN}'))]
    if ids:
        counts = bulk_delete(session, ids)
        print(f'  Cleared {counts}')
    session.query(Agent).filter(Agent.email.like(f'%{SEED_DOMAIN}')).delete(synchronize_session=False)


def main():
    parser = argparse.ArgumentParser(description='Seed workflow leads')
    parser.add_argument('--clear', action='store_true', help='Remove previously seeded data first')
    args = parser.parse_args()

    # Local SQLite has no migrations applied; build the tables directly
    for model in (Lead, LeadActivity, Agent, LeadAgent, InvoiceRevision, CronRun):
        model.__table__.create(engine, checkfirst=True)

    session = get_session()
    try:
        if args.clear:
            clear(session)
        print('Seeding leads...')
        for lead in seed(session):
            summary = lead_summary(lead)
            print(f'  {lead.full_name:<16} {summary["status"]:<28} -> {summary["next_action"]}')
        session.commit()
        print('Done.')
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == '__main__':
    main()
