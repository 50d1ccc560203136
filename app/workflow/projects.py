"""
Project selector — which of a lead's parallel workflow tracks is in play.
"""
from enum import Enum


class Project(str, Enum):
    COMPANY = 'company'
    BANK = 'bank'
    BANK_DEAL = 'bank-deal'

    @property
    def prefix(self) -> str:
        """Column prefix on the Lead row, e.g. 'bank_deal_'."""
        return self.value.replace('-', '_') + '_'

    @property
    def label(self) -> str:
        return {
            Project.COMPANY: 'Company',
            Project.BANK: 'Bank',
            Project.BANK_DEAL: 'Bank Deal',
        }[self]

    @classmethod
    def from_claim(cls, value) -> 'Project':
        """Lenient parse for token claims: missing or unknown means company."""
        if value in ('bank', 'bank-deal'):
            return cls(value)
        return cls.COMPANY

    @classmethod
    def parse(cls, value) -> 'Project':
        """Strict parse for admin input. Accepts 'bank_deal' as an alias."""
        if isinstance(value, str):
            value = value.strip().lower().replace('_', '-')
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown project '{value}'") from None


def primary_project(lead) -> Project:
    """Bank-only leads are tracked on the bank project; everything else on company."""
    if (lead.setup_type or '').lower() == 'bank':
        return Project.BANK
    return Project.COMPANY
