"""Initial lead workflow schema: leads, agents, lead_agents, lead_activities, invoice_revisions, cron_runs

Revision ID: 3f1a6c0d8e21
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a6c0d8e21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PROJECT_PREFIXES = ('company_', 'bank_', 'bank_deal_')

NOW = sa.text('(CURRENT_TIMESTAMP)')


def _ts(name, **kw):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=True, **kw)


def _project_columns(p):
    """The per-project workflow block, identical for every prefix."""
    return [
        sa.Column(f'{p}feasible', sa.Boolean(), nullable=True),
        _ts(f'{p}agent_contacted_at'),
        sa.Column(f'{p}quoted_amount', sa.Float(), nullable=True),
        _ts(f'{p}quote_sent_at'),
        _ts(f'{p}quote_viewed_at'),
        _ts(f'{p}quote_whatsapp_sent_at'),
        sa.Column(f'{p}quote_whatsapp_message_id', sa.Text(), nullable=True),
        _ts(f'{p}approval_requested_at'),
        _ts(f'{p}proceed_confirmed_at'),
        _ts(f'{p}quote_approved_at'),
        sa.Column(f'{p}approved', sa.Boolean(), nullable=True),
        _ts(f'{p}quote_declined_at'),
        sa.Column(f'{p}quote_decline_reason', sa.Text(), nullable=True),
        _ts(f'{p}quote_questions_at'),
        sa.Column(f'{p}quote_questions_reason', sa.Text(), nullable=True),
        sa.Column(f'{p}invoice_number', sa.Text(), nullable=True),
        _ts(f'{p}invoice_sent_at'),
        sa.Column(f'{p}invoice_amount', sa.Float(), nullable=True),
        sa.Column(f'{p}invoice_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column(f'{p}invoice_payment_link', sa.Text(), nullable=True),
        sa.Column(f'{p}invoice_html', sa.Text(), nullable=True),
        _ts(f'{p}invoice_viewed_at'),
        sa.Column(f'{p}payment_link', sa.Text(), nullable=True),
        _ts(f'{p}payment_received_at'),
        _ts(f'{p}completed_at'),
        _ts(f'{p}declined_at'),
        sa.Column(f'{p}decline_reason', sa.Text(), nullable=True),
        sa.Column(f'{p}decline_stage', sa.Text(), nullable=True),
        _ts(f'{p}payment_reminder_sent_at'),
        sa.Column(f'{p}payment_reminder_count', sa.Integer(), nullable=False, server_default='0'),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    project_columns = [c for p in PROJECT_PREFIXES for c in _project_columns(p)]
    op.create_table('leads',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('full_name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('whatsapp', sa.Text(), nullable=True),
        sa.Column('nationality', sa.Text(), nullable=True),
        sa.Column('residence_country', sa.Text(), nullable=True),
        sa.Column('setup_type', sa.Text(), nullable=True),
        sa.Column('activity', sa.Text(), nullable=True),
        sa.Column('needs_bank_account', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('assigned_agent', sa.Text(), nullable=True),
        _ts('created_at', server_default=NOW),
        _ts('updated_at', server_default=NOW),
        *project_columns,
        sa.PrimaryKeyConstraint('id'),
    )
    # Reminder batch scans unpaid invoices per project
    for p in ('company_', 'bank_'):
        op.create_index(f'ix_leads_{p}invoice_sent_at', 'leads', [f'{p}invoice_sent_at'])

    op.create_table('agents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('whatsapp', sa.Text(), nullable=True),
        sa.Column('service_type', sa.Text(), nullable=False, server_default='company'),
        sa.Column('bank_name', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at', server_default=NOW),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('lead_agents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lead_id', sa.Text(), nullable=False),
        sa.Column('agent_id', sa.Integer(), nullable=False),
        sa.Column('service_type', sa.Text(), nullable=False, server_default='company'),
        sa.Column('bank_name', sa.Text(), nullable=True),
        sa.Column('order', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.Text(), nullable=False, server_default='assigned'),
        sa.Column('is_current', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('assigned_at', server_default=NOW),
        _ts('contacted_at'),
        _ts('accepted_at'),
        _ts('started_working_at'),
        _ts('completed_at'),
        _ts('declined_at'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['agent_id'], ['agents.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lead_agents_lead_service', 'lead_agents', ['lead_id', 'service_type'])

    op.create_table('lead_activities',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lead_id', sa.Text(), nullable=False),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        _ts('created_at', server_default=NOW),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lead_activities_lead_id', 'lead_activities', ['lead_id'])

    op.create_table('invoice_revisions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lead_id', sa.Text(), nullable=False),
        sa.Column('project', sa.Text(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.Text(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=True),
        sa.Column('payment_link', sa.Text(), nullable=True),
        sa.Column('html', sa.Text(), nullable=True),
        _ts('sent_at'),
        _ts('created_at', server_default=NOW),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('lead_id', 'project', 'version', name='uq_invoice_revision_version'),
    )

    op.create_table('cron_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        _ts('ran_at', server_default=NOW),
        sa.Column('processed', sa.Integer(), nullable=True),
        sa.Column('sent', sa.Integer(), nullable=True),
        sa.Column('skipped', sa.Integer(), nullable=True),
        sa.Column('error_count', sa.Integer(), nullable=True),
        sa.Column('errors', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('cron_runs')
    op.drop_table('invoice_revisions')
    op.drop_index('ix_lead_activities_lead_id', 'lead_activities')
    op.drop_table('lead_activities')
    op.drop_index('ix_lead_agents_lead_service', 'lead_agents')
    op.drop_table('lead_agents')
    op.drop_table('agents')
    for p in ('company_', 'bank_'):
        op.drop_index(f'ix_leads_{p}invoice_sent_at', 'leads')
    op.drop_table('leads')
