"""
Data Models Package

This package contains all Pydantic models used in Pocket Ledger.
All data flowing through the system must conform to these schemas.
"""

from pocket_ledger.models.account import (
    ASSET_KINDS,
    Account,
    AccountBase,
    AccountKind,
    CashAccount,
    CreditCardAccount,
    CreditorAccount,
    DebitCardAccount,
    DebtorAccount,
    SavingAccount,
    parse_account,
    quantize_money,
)
from pocket_ledger.models.ledger import (
    ChangeKind,
    EntryKind,
    IntegrityReport,
    LedgerChange,
    LedgerEntry,
    ReconciliationResult,
    TransferResult,
    inflow_kind_for,
    outflow_kind_for,
    signed_delta,
)
from pocket_ledger.models.billing import (
    AlertLevel,
    BillingCycle,
    DueDateAlert,
    InstallmentPlan,
)
from pocket_ledger.models.budget import (
    BudgetParticipant,
    BudgetStatus,
    SharedBudget,
    SplitType,
)
from pocket_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from pocket_ledger.models.validation import ValidationIssue, ValidationResult

__all__ = [
    # Account models
    "ASSET_KINDS",
    "Account",
    "AccountBase",
    "AccountKind",
    "CashAccount",
    "CreditCardAccount",
    "CreditorAccount",
    "DebitCardAccount",
    "DebtorAccount",
    "SavingAccount",
    "parse_account",
    "quantize_money",
    # Ledger models
    "ChangeKind",
    "EntryKind",
    "IntegrityReport",
    "LedgerChange",
    "LedgerEntry",
    "ReconciliationResult",
    "TransferResult",
    "inflow_kind_for",
    "outflow_kind_for",
    "signed_delta",
    # Billing models
    "AlertLevel",
    "BillingCycle",
    "DueDateAlert",
    "InstallmentPlan",
    # Budget models
    "BudgetParticipant",
    "BudgetStatus",
    "SharedBudget",
    "SplitType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
