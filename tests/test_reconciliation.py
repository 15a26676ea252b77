"""Tests for reconciliation against a user-asserted real-world balance."""

from decimal import Decimal

import pytest

from pocket_ledger.exceptions import ValidationError
from pocket_ledger.models.account import CashAccount, CreditCardAccount, DebtorAccount
from pocket_ledger.models.audit import AuditEventType
from pocket_ledger.models.ledger import EntryKind
from pocket_ledger.reconciliation import ReconciliationEngine, ReconciliationView


class TestReconciliationEngine:
    """Tests for planning the adjustment."""

    def test_real_above_ledger_is_a_deposit(self, settings):
        """Test a higher real balance plans a deposit."""
        plan = ReconciliationEngine(settings).plan(Decimal("80"), Decimal("100"))
        assert plan.entry_kind == EntryKind.DEPOSIT
        assert plan.amount == Decimal("20.00")

    def test_real_below_ledger_is_a_withdrawal(self, settings):
        """Test a lower real balance plans a withdrawal."""
        plan = ReconciliationEngine(settings).plan(Decimal("80"), Decimal("55.5"))
        assert plan.entry_kind == EntryKind.WITHDRAWAL
        assert plan.amount == Decimal("24.50")

    def test_within_epsilon_is_a_noop(self, settings):
        """Test differences below epsilon plan nothing."""
        plan = ReconciliationEngine(settings).plan(Decimal("80"), Decimal("80.005"))
        assert plan.is_noop
        assert plan.amount == Decimal("0")

    def test_exactly_epsilon_is_adjusted(self, settings):
        """Test a difference of exactly epsilon is adjusted."""
        plan = ReconciliationEngine(settings).plan(Decimal("80"), Decimal("79.99"))
        assert plan.entry_kind == EntryKind.WITHDRAWAL
        assert plan.amount == Decimal("0.01")

    def test_non_finite_asserted_balance(self, settings):
        """Test a non-finite real balance is rejected."""
        with pytest.raises(ValidationError):
            ReconciliationEngine(settings).plan(Decimal("80"), Decimal("NaN"))

    def test_views(self):
        """Test which figure each account kind is reconciled on."""
        limited = CreditCardAccount(
            name="Visa", cut_off_day=1, grace_days=10, credit_limit=Decimal("500")
        )
        unlimited = CreditCardAccount(name="Amex", cut_off_day=1, grace_days=10)
        assert ReconciliationEngine.view_for(CashAccount(name="Wallet")) == ReconciliationView.BALANCE
        assert ReconciliationEngine.view_for(limited) == ReconciliationView.AVAILABLE_CREDIT
        assert ReconciliationEngine.view_for(unlimited) == ReconciliationView.AMOUNT_OWED
        assert ReconciliationEngine.view_for(DebtorAccount(name="Ana")) == ReconciliationView.AMOUNT_OWED

    def test_owed_accounts_translate_to_charge_or_payment(self, settings):
        """Test owed accounts adjust with charges and payments."""
        engine = ReconciliationEngine(settings)
        debtor = DebtorAccount(name="Ana", initial_balance=Decimal("40"))
        assert engine.plan_for_account(debtor, Decimal("60")).entry_kind == EntryKind.CHARGE
        assert engine.plan_for_account(debtor, Decimal("10")).entry_kind == EntryKind.PAYMENT


class TestReconcile:
    """Tests for reconcile() as a one-step saga."""

    async def test_creates_one_adjustment(self, coordinator, ledger, cash, events_of):
        """Test reconciling creates exactly one adjustment entry."""
        result = await coordinator.reconcile(cash.id, Decimal("250"))

        assert result.adjustment_created
        assert result.difference == Decimal("50")
        assert result.new_balance == Decimal("250.00")
        assert result.entry.is_adjustment
        assert result.entry.kind == EntryKind.DEPOSIT

        entries = await ledger.list_entries(cash.id)
        assert [e.id for e in entries] == [result.entry.id]
        assert len(events_of(AuditEventType.RECONCILIATION_ADJUSTED)) == 1

    async def test_noop_is_reported_distinctly(self, coordinator, ledger, cash, events_of):
        """Test a no-op reconcile writes nothing and says so."""
        result = await coordinator.reconcile(cash.id, Decimal("200.004"))

        assert not result.adjustment_created
        assert result.entry is None
        assert result.new_balance == Decimal("200.00")
        assert await ledger.list_entries(cash.id) == []
        assert len(events_of(AuditEventType.RECONCILIATION_NO_OP)) == 1

    async def test_accepts_expression_input(self, coordinator, cash):
        """Test the real balance may be typed as an expression."""
        result = await coordinator.reconcile(cash.id, "=100+50")
        assert result.new_balance == Decimal("150.00")

    async def test_may_drive_cash_negative(self, coordinator, cash):
        """Test the real world wins: an overdrawn wallet is recorded as such."""
        result = await coordinator.reconcile(cash.id, "-10")
        assert result.new_balance == Decimal("-10.00")

    async def test_card_reconciled_on_available_credit(self, coordinator, registry, card):
        """Test cards with a limit reconcile on available credit."""
        result = await coordinator.reconcile(card.id, Decimal("650"))

        assert result.ledger_balance == Decimal("700.00")
        assert result.entry.kind == EntryKind.WITHDRAWAL
        account = await registry.get_account(card.id)
        assert account.current_balance == Decimal("350.00")
        assert account.available_credit == Decimal("650.00")

    async def test_debtor_reconciled_on_amount_owed(self, coordinator, debtors):
        """Test debtors reconcile on the amount owed."""
        result = await coordinator.reconcile(debtors[0].id, Decimal("40"))
        assert result.entry.kind == EntryKind.CHARGE
        assert result.new_balance == Decimal("40.00")

    async def test_invariant_holds_after_reconcile(self, coordinator, ledger, registry, cash):
        """Test the balance still equals its entries after reconciling."""
        await coordinator.reconcile(cash.id, Decimal("123.45"))
        account = await registry.get_account(cash.id)
        assert await ledger.recompute_balance(cash.id) == account.current_balance
