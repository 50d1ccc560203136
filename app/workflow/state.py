"""
Per-project workflow state.

The Lead row stores each project as a flat run of nullable columns. This
module is the storage boundary: ProjectFields is the typed snapshot of one
project's columns, ProjectState is the tagged variant derived from it, and the
apply_* functions are the only code that writes decision fields, so the
decline and approval branches can never both be set.
"""
from dataclasses import dataclass, fields as dc_fields
from datetime import datetime
from enum import Enum
from typing import Optional

from app.workflow.projects import Project


@dataclass
class ProjectFields:
    feasible: Optional[bool] = None
    agent_contacted_at: Optional[datetime] = None
    quoted_amount: Optional[float] = None
    quote_sent_at: Optional[datetime] = None
    quote_viewed_at: Optional[datetime] = None
    quote_whatsapp_sent_at: Optional[datetime] = None
    quote_whatsapp_message_id: Optional[str] = None
    approval_requested_at: Optional[datetime] = None
    proceed_confirmed_at: Optional[datetime] = None
    quote_approved_at: Optional[datetime] = None
    approved: Optional[bool] = None
    quote_declined_at: Optional[datetime] = None
    quote_decline_reason: Optional[str] = None
    quote_questions_at: Optional[datetime] = None
    quote_questions_reason: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_sent_at: Optional[datetime] = None
    invoice_amount: Optional[float] = None
    invoice_version: int = 1
    invoice_payment_link: Optional[str] = None
    invoice_html: Optional[str] = None
    invoice_viewed_at: Optional[datetime] = None
    payment_link: Optional[str] = None
    payment_received_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    decline_stage: Optional[str] = None
    payment_reminder_sent_at: Optional[datetime] = None
    payment_reminder_count: int = 0

    @property
    def is_declined(self) -> bool:
        return bool(self.declined_at or self.quote_declined_at or self.approved is False)

    @property
    def is_approved(self) -> bool:
        return bool(self.approved is True or self.proceed_confirmed_at or self.quote_approved_at)

    @property
    def invoice_unpaid(self) -> bool:
        return bool(self.invoice_sent_at and not self.payment_received_at)

    @property
    def hard_blocked(self) -> bool:
        """Payment or completion recorded; only a master reset may rewind."""
        return bool(self.payment_received_at or self.completed_at)


FIELD_NAMES = tuple(f.name for f in dc_fields(ProjectFields))

# Cleared before every quote send.
DECISION_FIELDS = (
    'quote_viewed_at',
    'proceed_confirmed_at',
    'quote_approved_at',
    'approved',
    'quote_declined_at',
    'quote_decline_reason',
    'quote_questions_at',
    'quote_questions_reason',
    'declined_at',
    'decline_reason',
    'decline_stage',
)

# Cleared by a per-project reset. Feasibility, amount and payment link survive.
RESET_FIELDS = DECISION_FIELDS + (
    'quote_sent_at',
    'quote_whatsapp_sent_at',
    'quote_whatsapp_message_id',
    'approval_requested_at',
    'invoice_number',
    'invoice_sent_at',
    'invoice_amount',
    'invoice_payment_link',
    'invoice_html',
    'invoice_viewed_at',
    'payment_reminder_sent_at',
)

_COUNTER_DEFAULTS = {'invoice_version': 1, 'payment_reminder_count': 0}


def read_fields(lead, project: Project) -> ProjectFields:
    """Snapshot one project's columns off a Lead row."""
    values = {name: getattr(lead, project.prefix + name) for name in FIELD_NAMES}
    for name, default in _COUNTER_DEFAULTS.items():
        if values[name] is None:
            values[name] = default
    return ProjectFields(**values)


def write_fields(lead, project: Project, **changes):
    """Write project-relative field names back onto the Lead row."""
    for name, value in changes.items():
        if name not in FIELD_NAMES:
            raise KeyError(f"Unknown project field '{name}'")
        setattr(lead, project.prefix + name, value)


def clear_fields(lead, project: Project, names):
    """Null the given fields; counters go back to their defaults."""
    write_fields(lead, project, **{n: _COUNTER_DEFAULTS.get(n) for n in names})


# ── Tagged variant ──────────────────────────────────────────────────────────

class Stage(str, Enum):
    DECLINED = 'declined'
    NOT_FEASIBLE = 'not_feasible'
    COMPLETED = 'completed'
    IN_PROGRESS = 'in_progress'
    AWAITING_PAYMENT = 'awaiting_payment'
    INVOICE_SENT = 'invoice_sent'
    QUESTIONED = 'questioned'
    AWAITING_APPROVAL = 'awaiting_approval'
    QUOTED = 'quoted'
    FEASIBILITY_REVIEW = 'feasibility_review'
    AGENT_CONTACTED = 'agent_contacted'
    NEW = 'new'


@dataclass(frozen=True)
class ProjectState:
    """One stage tag plus the payload that stage carries."""
    stage: Stage
    at: Optional[datetime] = None
    amount: Optional[float] = None
    reason: Optional[str] = None
    approved: bool = False          # invoice stages: customer decision recorded


def project_state(lead, project: Project) -> ProjectState:
    """Collapse a project's columns into a single stage. First match wins."""
    f = read_fields(lead, project)

    if f.is_declined:
        return ProjectState(
            Stage.DECLINED,
            at=f.declined_at or f.quote_declined_at,
            reason=f.decline_reason or f.quote_decline_reason,
        )
    if f.feasible is False:
        return ProjectState(Stage.NOT_FEASIBLE)
    if f.completed_at:
        return ProjectState(Stage.COMPLETED, at=f.completed_at)
    if f.payment_received_at:
        return ProjectState(Stage.IN_PROGRESS, at=f.payment_received_at)

    if f.invoice_sent_at:
        amount = f.invoice_amount if f.invoice_amount is not None else f.quoted_amount
        if f.is_approved:
            return ProjectState(Stage.AWAITING_PAYMENT, at=f.invoice_sent_at, amount=amount, approved=True)
        if f.approval_requested_at:
            return ProjectState(Stage.AWAITING_PAYMENT, at=f.invoice_sent_at, amount=amount)
        return ProjectState(Stage.INVOICE_SENT, at=f.invoice_sent_at, amount=amount)
    if f.is_approved:
        return ProjectState(
            Stage.AWAITING_PAYMENT,
            at=f.quote_approved_at or f.proceed_confirmed_at,
            amount=f.quoted_amount,
            approved=True,
        )

    if f.quote_sent_at:
        if f.quote_questions_at:
            return ProjectState(Stage.QUESTIONED, at=f.quote_questions_at,
                                amount=f.quoted_amount, reason=f.quote_questions_reason)
        if f.quote_viewed_at:
            return ProjectState(Stage.AWAITING_APPROVAL, at=f.quote_viewed_at, amount=f.quoted_amount)
        return ProjectState(Stage.QUOTED, at=f.quote_sent_at, amount=f.quoted_amount)
    if f.quoted_amount is not None:
        return ProjectState(Stage.QUOTED, amount=f.quoted_amount)

    if f.agent_contacted_at:
        if f.feasible is None:
            return ProjectState(Stage.FEASIBILITY_REVIEW, at=f.agent_contacted_at)
        return ProjectState(Stage.AGENT_CONTACTED, at=f.agent_contacted_at)
    return ProjectState(Stage.NEW)


# ── Decision mutations ──────────────────────────────────────────────────────

def apply_proceed(lead, project: Project, now: datetime):
    """Accept the quote. Existing approval timestamps are kept."""
    f = read_fields(lead, project)
    write_fields(
        lead, project,
        approved=True,
        proceed_confirmed_at=f.proceed_confirmed_at or now,
        quote_approved_at=f.quote_approved_at or now,
    )
    clear_fields(lead, project, (
        'quote_declined_at', 'quote_decline_reason',
        'declined_at', 'decline_reason', 'decline_stage',
    ))


def apply_decline(lead, project: Project, now: datetime, reason: Optional[str] = None):
    write_fields(
        lead, project,
        approved=False,
        quote_declined_at=now,
        quote_decline_reason=reason,
    )
    clear_fields(lead, project, ('proceed_confirmed_at', 'quote_approved_at'))


def apply_questions(lead, project: Project, now: datetime, reason: Optional[str] = None):
    """Pause for questions. Never touches approved or the decline fields."""
    write_fields(lead, project, quote_questions_at=now, quote_questions_reason=reason)


def apply_close(lead, project: Project, now: datetime, reason: Optional[str], stage: str):
    """Admin closes the project as lost."""
    write_fields(
        lead, project,
        approved=False,
        declined_at=now,
        decline_reason=reason,
        decline_stage=stage,
    )
    clear_fields(lead, project, ('completed_at', 'proceed_confirmed_at', 'quote_approved_at'))


def clear_decision(lead, project: Project):
    clear_fields(lead, project, DECISION_FIELDS)
