"""
Tests for Pocket Ledger models

Test strategy:
1. Unit tests for individual models and their validators
2. Integration tests for flows live beside the components they exercise
3. No external services in tests (in-memory storage only)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pocket_ledger.models.account import (
    AccountKind,
    CashAccount,
    CreditCardAccount,
    DebtorAccount,
    SavingAccount,
    parse_account,
    quantize_money,
)
from pocket_ledger.models.ledger import (
    EntryKind,
    IntegrityReport,
    LedgerEntry,
    inflow_kind_for,
    outflow_kind_for,
    signed_delta,
)
from pocket_ledger.models.budget import (
    BudgetParticipant,
    BudgetStatus,
    SharedBudget,
)
from pocket_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestAccountModels:
    """Tests for the per-kind account variants."""

    def test_current_balance_starts_at_initial(self):
        """Test a new account's running balance equals its initial balance."""
        account = CashAccount(name="Wallet", initial_balance=Decimal("12.345"))
        assert account.initial_balance == Decimal("12.35")
        assert account.current_balance == Decimal("12.35")
        assert account.account_kind == AccountKind.CASH
        assert account.is_asset

    def test_name_is_stripped(self):
        """Test account names are stripped."""
        account = SavingAccount(name="  Holidays  ")
        assert account.name == "Holidays"

    def test_credit_fields_only_on_credit_cards(self):
        """Test a cash account cannot carry a cut-off day."""
        with pytest.raises(ValueError):
            CashAccount(name="Wallet", cut_off_day=15)

    def test_credit_card_requires_cycle_terms(self):
        """Test credit cards need a cut-off day and grace days."""
        with pytest.raises(ValueError):
            CreditCardAccount(name="Visa")

    def test_credit_card_cut_off_bounds(self):
        """Test the cut-off day must be between 1 and 31."""
        with pytest.raises(ValueError):
            CreditCardAccount(name="Visa", cut_off_day=32, grace_days=20)

    def test_available_credit(self):
        """Test available credit is the limit minus the debt."""
        card = CreditCardAccount(
            name="Visa",
            cut_off_day=15,
            grace_days=20,
            credit_limit=Decimal("1000"),
            initial_balance=Decimal("300"),
        )
        assert card.available_credit == Decimal("700.00")
        assert not card.is_asset

    def test_available_credit_without_limit(self):
        """Test cards without a limit have no available credit."""
        card = CreditCardAccount(name="Visa", cut_off_day=15, grace_days=20)
        assert card.available_credit is None

    def test_last_four_digits_pattern(self):
        """Test last four digits must be four digits."""
        with pytest.raises(ValueError):
            CreditCardAccount(
                name="Visa", cut_off_day=15, grace_days=20, last_four_digits="12a4"
            )

    def test_negative_balance_policy_per_kind(self):
        """Test which kinds may go negative."""
        assert not CashAccount.allows_negative_balance
        assert CreditCardAccount.allows_negative_balance
        assert DebtorAccount.allows_negative_balance

    def test_parse_account_picks_the_variant(self):
        """Test raw data is parsed into the matching variant."""
        account = parse_account({
            "kind": "credit_card",
            "name": "Visa",
            "cut_off_day": 10,
            "grace_days": 15,
        })
        assert isinstance(account, CreditCardAccount)
        assert account.cut_off_day == 10

    def test_parse_account_unknown_kind(self):
        """Test an unknown kind is rejected."""
        with pytest.raises(ValueError):
            parse_account({"kind": "crypto", "name": "Wallet"})

    def test_quantize_money_rounds_half_up(self):
        """Test money rounds half up to cents."""
        assert quantize_money(Decimal("0.005")) == Decimal("0.01")
        assert quantize_money(Decimal("-0.005")) == Decimal("-0.01")


class TestSignedDelta:
    """Tests for the entry direction table."""

    @pytest.mark.parametrize("account_kind,entry_kind,expected", [
        (AccountKind.CASH, EntryKind.DEPOSIT, Decimal("10")),
        (AccountKind.CASH, EntryKind.WITHDRAWAL, Decimal("-10")),
        (AccountKind.SAVING, EntryKind.PAYMENT, Decimal("10")),
        (AccountKind.DEBIT_CARD, EntryKind.CHARGE, Decimal("-10")),
        (AccountKind.CREDIT_CARD, EntryKind.CHARGE, Decimal("10")),
        (AccountKind.CREDIT_CARD, EntryKind.PAYMENT, Decimal("-10")),
        (AccountKind.DEBTOR, EntryKind.CHARGE, Decimal("10")),
        (AccountKind.CREDITOR, EntryKind.PAYMENT, Decimal("-10")),
    ])
    def test_direction(self, account_kind, entry_kind, expected):
        """Test the signed delta for each account and entry kind."""
        assert signed_delta(account_kind, entry_kind, Decimal("10")) == expected

    def test_inflow_and_outflow_kinds(self):
        """Test the entry kinds used to move money in and out."""
        assert inflow_kind_for(AccountKind.CASH) == EntryKind.DEPOSIT
        assert inflow_kind_for(AccountKind.CREDIT_CARD) == EntryKind.PAYMENT
        assert outflow_kind_for(AccountKind.DEBIT_CARD) == EntryKind.WITHDRAWAL
        assert outflow_kind_for(AccountKind.DEBTOR) == EntryKind.CHARGE


class TestLedgerEntry:
    """Tests for the immutable entry model."""

    def test_amount_must_be_positive(self):
        """Test entry amounts must be positive."""
        with pytest.raises(ValueError):
            LedgerEntry(account_id=uuid4(), kind=EntryKind.DEPOSIT, amount=Decimal("0"))
        with pytest.raises(ValueError):
            LedgerEntry(account_id=uuid4(), kind=EntryKind.DEPOSIT, amount=Decimal("-5"))

    def test_amount_rounding_to_zero_is_rejected(self):
        """Test an amount that rounds to zero is rejected."""
        with pytest.raises(ValueError):
            LedgerEntry(account_id=uuid4(), kind=EntryKind.DEPOSIT, amount=Decimal("0.004"))

    def test_entries_are_frozen(self):
        """Test ledger entries are immutable."""
        entry = LedgerEntry(account_id=uuid4(), kind=EntryKind.DEPOSIT, amount=Decimal("5"))
        with pytest.raises(ValueError):
            entry.amount = Decimal("6")

    def test_defaults(self):
        """Test entry defaults."""
        entry = LedgerEntry(account_id=uuid4(), kind=EntryKind.CHARGE, amount=Decimal("5"))
        assert entry.entry_date == date.today()
        assert not entry.is_adjustment
        assert not entry.is_deleted

    def test_installments_only_on_charges(self):
        """Test installment metadata requires a charge."""
        with pytest.raises(ValueError, match="Only charges"):
            LedgerEntry(
                account_id=uuid4(),
                kind=EntryKind.PAYMENT,
                amount=Decimal("100"),
                installments_total_amount=Decimal("300"),
                installments_count=3,
                installment_number=1,
            )

    def test_installment_fields_go_together(self):
        """Test installment fields are all set or all empty."""
        with pytest.raises(ValueError):
            LedgerEntry(
                account_id=uuid4(),
                kind=EntryKind.CHARGE,
                amount=Decimal("100"),
                installments_count=3,
                installment_number=1,
            )

    def test_signed_amount_uses_the_account_kind(self):
        """Test the signed amount depends on the account kind."""
        card = CreditCardAccount(name="Visa", cut_off_day=1, grace_days=10)
        entry = LedgerEntry(account_id=card.id, kind=EntryKind.PAYMENT, amount=Decimal("40"))
        assert entry.signed_amount(card) == Decimal("-40")


class TestIntegrityReport:
    """Tests for the integrity report model."""

    def test_drift(self):
        """Test drift is the stored minus the recomputed balance."""
        report = IntegrityReport(
            account_id=uuid4(),
            stored_balance=Decimal("100"),
            recomputed_balance=Decimal("90"),
            entry_count=2,
        )
        assert report.drift == Decimal("10")
        assert not report.is_consistent


class TestBudgetModels:
    """Tests for shared budget models."""

    def test_participant_paid_within_epsilon(self):
        """Test a participant within epsilon of the share is paid."""
        participant = BudgetParticipant(
            debtor_id=uuid4(),
            share_amount=Decimal("100"),
            paid_amount=Decimal("99.99"),
        )
        assert participant.is_paid
        assert participant.remaining_amount == Decimal("0.01")

    def test_participant_cannot_overpay(self):
        """Test paid amounts cannot exceed the share."""
        participant = BudgetParticipant(debtor_id=uuid4(), share_amount=Decimal("100"))
        with pytest.raises(ValueError):
            participant.paid_amount = Decimal("100.01")

    def test_shares_must_add_up(self):
        """Test shares plus the user's share must equal the total."""
        with pytest.raises(ValueError, match="must equal the total"):
            SharedBudget(
                name="Dinner",
                total_amount=Decimal("300"),
                user_share=Decimal("50"),
                participants=[
                    BudgetParticipant(debtor_id=uuid4(), share_amount=Decimal("100")),
                ],
            )

    def test_status_follows_participants(self):
        """Test the budget is pending until every participant is paid."""
        budget = SharedBudget(
            name="Dinner",
            total_amount=Decimal("300"),
            user_share=Decimal("100"),
            participants=[
                BudgetParticipant(debtor_id=uuid4(), share_amount=Decimal("100")),
                BudgetParticipant(
                    debtor_id=uuid4(),
                    share_amount=Decimal("100"),
                    paid_amount=Decimal("100"),
                ),
            ],
        )
        assert budget.status == BudgetStatus.PENDING
        assert budget.outstanding_amount == Decimal("100")
        assert budget.collected_amount == Decimal("100")
        assert len(budget.pending_participants) == 1

    def test_status_serialized(self):
        """Test the derived status is serialized."""
        budget = SharedBudget(
            name="Dinner",
            total_amount=Decimal("100"),
            user_share=Decimal("100"),
        )
        assert budget.model_dump()["status"] == "settled"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_APPLIED,
            description="Entry applied",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a spreadsheet row."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            description="Test",
            details={"key": "value"},
        )
        row = event.to_sheets_row()
        assert isinstance(row, list)
        assert len(row) == 11
        assert row[2] == "account_created"

    def test_partial_failure_is_critical(self):
        """Test partial failure events are critical."""
        event = AuditEventBuilder.saga_partial_failure(
            saga_id=uuid4(),
            saga_name="transfer",
            applied_steps=["debit_source"],
            failed_compensations=[("debit_source", "StorageError()")],
            error_message="boom",
        )
        assert event.severity == AuditSeverity.CRITICAL
        assert event.error_code == "PARTIAL_FAILURE"
        assert event.details["applied_steps"] == ["debit_source"]

    def test_entry_applied_builder(self):
        """Test the entry-applied builder."""
        entry_id = uuid4()
        event = AuditEventBuilder.entry_applied(
            entry_id=entry_id,
            account_id=uuid4(),
            kind="deposit",
            amount=Decimal("20"),
            new_balance=Decimal("100"),
        )
        assert event.entity_id == entry_id
        assert event.details["new_balance"] == "100"
