#!/usr/bin/env python3
"""
Run the payment-reminder batch once, outside the web process.

Usage:
    python scripts/run_payment_reminders.py            # send due reminders
    python scripts/run_payment_reminders.py --dry-run  # list candidates only

Uses the same SMTP settings and circuit breaker as the app.
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import get_session
from app.extensions import redis_client
from app.logging_config import configure_logging
from app.services.circuit_breaker import init_breakers
from app.services.mailer import Mailer
from app.services.reminders import SCHEDULED_PROJECTS, find_reminder_candidates, run_payment_reminders
from app.workflow.transitions import utcnow


def main():
    parser = argparse.ArgumentParser(description='Send due payment reminders')
    parser.add_argument('--dry-run', action='store_true', help='List candidates without sending')
    args = parser.parse_args()

    configure_logging()
    now = utcnow()
    session = get_session()
    try:
        if args.dry_run:
            for project in SCHEDULED_PROJECTS:
                for lead in find_reminder_candidates(session, project, now):
                    print(f'  {project.value:<8} {lead.id}  {lead.full_name}')
            return

        mailer = Mailer.from_config(breaker=init_breakers(redis_client)['smtp'])
        result = run_payment_reminders(session, mailer, now)
        print(f"processed={result['processed']} sent={result['sent']} "
              f"skipped={result['skipped']} errors={len(result['errors'])}")
    finally:
        session.close()


if __name__ == '__main__':
    main()
