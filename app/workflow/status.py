"""
Status and next-action labels — the single source used by list, detail and stats views.
"""
from app.workflow.projects import Project, primary_project
from app.workflow.state import Stage, project_state

STATUS_LABELS = {
    Stage.DECLINED: 'Declined',
    Stage.NOT_FEASIBLE: 'Not Feasible',
    Stage.COMPLETED: 'Completed',
    Stage.AWAITING_PAYMENT: 'Awaiting Payment',
    Stage.INVOICE_SENT: 'Invoice Sent',
    Stage.QUESTIONED: 'Awaiting Customer Approval',
    Stage.AWAITING_APPROVAL: 'Awaiting Customer Approval',
    Stage.QUOTED: 'Quoted',
    Stage.FEASIBILITY_REVIEW: 'Feasibility Review',
    Stage.AGENT_CONTACTED: 'Agent Contacted',
    Stage.NEW: 'New',
}

FOLLOW_UP = 'Send payment reminder / follow up'


def derive_status(lead, project: Project) -> str:
    state = project_state(lead, project)
    if state.stage == Stage.IN_PROGRESS:
        return f'{project.label} In Progress'
    return STATUS_LABELS[state.stage]


def derive_next_action(lead, project: Project) -> str:
    """What the admin should do next on this project."""
    state = project_state(lead, project)
    stage = state.stage

    if stage == Stage.DECLINED:
        if getattr(lead, project.prefix + 'declined_at'):
            return 'No further action'
        return f'{project.label} Quote Declined'
    if stage == Stage.NOT_FEASIBLE:
        return 'Closed (Not Feasible)'
    if stage == Stage.COMPLETED:
        return 'Completed'
    if stage == Stage.IN_PROGRESS:
        return f'Mark {project.label} Completed'
    if stage == Stage.AWAITING_PAYMENT:
        if getattr(lead, project.prefix + 'invoice_sent_at'):
            return FOLLOW_UP
        return f'Generate & Send {project.label} Invoice'
    if stage == Stage.INVOICE_SENT:
        return FOLLOW_UP
    if stage == Stage.QUESTIONED:
        return 'Customer has questions - contact customer'
    if stage == Stage.AWAITING_APPROVAL:
        return 'Waiting for customer decision'
    if stage == Stage.QUOTED:
        if state.at:
            return 'Waiting for customer decision'
        return f'Send {project.label} Quote'
    if stage == Stage.FEASIBILITY_REVIEW:
        return 'Set Feasibility & Quote'
    if stage == Stage.AGENT_CONTACTED:
        return 'Enter Quoted Amount'
    return 'Send WhatsApp to Agent'


def lead_status(lead) -> str:
    """Status of the lead's primary project."""
    return derive_status(lead, primary_project(lead))


def lead_next_action(lead) -> str:
    return derive_next_action(lead, primary_project(lead))


def lead_summary(lead) -> dict:
    """Per-project status block for API payloads."""
    out = {
        'status': lead_status(lead),
        'next_action': lead_next_action(lead),
        'primary_project': primary_project(lead).value,
        'projects': {},
    }
    for project in Project:
        state = project_state(lead, project)
        out['projects'][project.value] = {
            'stage': state.stage.value,
            'status': derive_status(lead, project),
            'next_action': derive_next_action(lead, project),
        }
    return out
