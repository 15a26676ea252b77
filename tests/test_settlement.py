"""
Tests for shared budgets.

TestSharedBudgetSettlement covers the pure bookkeeping; the flow tests
go through the coordinator so every state change is paired with its
ledger entries.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from pocket_ledger.budgets import SharedBudgetSettlement
from pocket_ledger.exceptions import NotFoundError, OverpaymentError, ValidationError
from pocket_ledger.models.audit import AuditEventType
from pocket_ledger.models.budget import BudgetStatus, SplitType
from pocket_ledger.services.storage import StorageError


@pytest.fixture
def settlement(settings):
    return SharedBudgetSettlement(settings)


@pytest.fixture
def dinner(settlement):
    return settlement.create_split("Dinner", Decimal("300"), [uuid4(), uuid4()])


class TestSharedBudgetSettlement:
    """Tests for splits and repayment tracking."""

    def test_equal_split_includes_the_user(self, dinner):
        """Test an equal split counts the user as a participant."""
        assert [p.share_amount for p in dinner.participants] == [Decimal("100.00")] * 2
        assert dinner.user_share == Decimal("100.00")
        assert dinner.status == BudgetStatus.PENDING

    def test_user_absorbs_the_rounding_remainder(self, settlement):
        """Test the user's share absorbs the rounding remainder."""
        budget = settlement.create_split("Taxi", Decimal("100"), [uuid4(), uuid4()])
        assert [p.share_amount for p in budget.participants] == [Decimal("33.33")] * 2
        assert budget.user_share == Decimal("33.34")

    def test_fixed_split(self, settlement):
        """Test a fixed split uses the given amounts."""
        ana, luis = uuid4(), uuid4()
        budget = settlement.create_split(
            "Groceries",
            Decimal("200"),
            [ana, luis],
            split_type=SplitType.FIXED,
            fixed_amounts={ana: Decimal("50"), luis: Decimal("70")},
        )
        assert budget.user_share == Decimal("80.00")
        assert budget.participants[1].share_amount == Decimal("70.00")

    @pytest.mark.parametrize("fixed", [
        {},
        {"extra": Decimal("10")},
    ])
    def test_fixed_split_needs_one_amount_per_participant(self, settlement, fixed):
        """Test a fixed split needs an amount per participant."""
        ana = uuid4()
        with pytest.raises(ValidationError) as exc_info:
            settlement.create_split(
                "Groceries", Decimal("200"), [ana],
                split_type=SplitType.FIXED, fixed_amounts=fixed,
            )
        assert exc_info.value.field == "fixed_amounts"

    def test_fixed_shares_cannot_exceed_total(self, settlement):
        """Test fixed shares cannot exceed the total."""
        ana, luis = uuid4(), uuid4()
        with pytest.raises(ValidationError):
            settlement.create_split(
                "Groceries", Decimal("100"), [ana, luis],
                split_type=SplitType.FIXED,
                fixed_amounts={ana: Decimal("60"), luis: Decimal("40.01")},
            )

    def test_fixed_share_must_be_positive(self, settlement):
        """Test fixed shares must be positive."""
        ana = uuid4()
        with pytest.raises(ValidationError):
            settlement.create_split(
                "Groceries", Decimal("100"), [ana],
                split_type=SplitType.FIXED, fixed_amounts={ana: Decimal("0")},
            )

    def test_rejects_non_positive_total(self, settlement):
        """Test a non-positive total is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            settlement.create_split("Dinner", Decimal("0"), [uuid4()])
        assert exc_info.value.field == "total_amount"

    def test_rejects_no_participants(self, settlement):
        """Test a split needs participants."""
        with pytest.raises(ValidationError) as exc_info:
            settlement.create_split("Dinner", Decimal("300"), [])
        assert exc_info.value.field == "participants"

    def test_rejects_duplicate_participants(self, settlement):
        """Test participants must be distinct."""
        ana = uuid4()
        with pytest.raises(ValidationError):
            settlement.create_split("Dinner", Decimal("300"), [ana, ana])

    def test_rejects_total_too_small_to_split(self, settlement):
        """Test a total too small for a cent each is rejected."""
        with pytest.raises(ValidationError):
            settlement.create_split("Gum", Decimal("0.02"), [uuid4(), uuid4()])

    def test_partial_payment(self, settlement, dinner):
        """Test a partial payment updates the paid amount."""
        participant = dinner.participants[0]
        updated, applied = settlement.record_partial_payment(
            dinner, participant.id, Decimal("40")
        )

        assert applied.amount == Decimal("40.00")
        assert applied.participant.remaining_amount == Decimal("60.00")
        assert not applied.participant.is_paid
        assert dinner.participants[0].paid_amount == Decimal("0")
        assert updated.status == BudgetStatus.PENDING

    def test_budget_pending_until_everyone_paid(self, settlement, dinner):
        """Test the budget stays pending until everyone has paid."""
        first, second = dinner.participants
        budget, applied = settlement.record_partial_payment(dinner, first.id, Decimal("100"))
        assert applied.participant.is_paid
        assert budget.status == BudgetStatus.PENDING

        budget, _ = settlement.record_partial_payment(budget, second.id, Decimal("100"))
        assert budget.status == BudgetStatus.SETTLED

    def test_payment_within_epsilon_is_capped(self, settlement, dinner):
        """Test paid_amount never exceeds the share."""
        participant = dinner.participants[0]
        _, applied = settlement.record_partial_payment(
            dinner, participant.id, Decimal("100.005")
        )
        assert applied.amount == Decimal("100.00")
        assert applied.participant.paid_amount == applied.participant.share_amount

    def test_overpayment(self, settlement, dinner):
        """Test paying more than the remaining share is rejected."""
        participant = dinner.participants[0]
        with pytest.raises(OverpaymentError) as exc_info:
            settlement.record_partial_payment(dinner, participant.id, Decimal("100.02"))
        assert exc_info.value.remaining == Decimal("100.00")

    def test_payment_after_fully_paid(self, settlement, dinner):
        """Test a paid participant cannot pay again."""
        participant = dinner.participants[0]
        budget, _ = settlement.record_partial_payment(dinner, participant.id, Decimal("100"))
        with pytest.raises(OverpaymentError):
            settlement.record_partial_payment(budget, participant.id, Decimal("1"))

    def test_unknown_participant(self, settlement, dinner):
        """Test paying for an unknown participant is rejected."""
        with pytest.raises(NotFoundError):
            settlement.record_partial_payment(dinner, uuid4(), Decimal("10"))

    def test_non_positive_payment(self, settlement, dinner):
        """Test a non-positive payment is rejected."""
        with pytest.raises(ValidationError):
            settlement.record_partial_payment(dinner, dinner.participants[0].id, Decimal("0"))

    def test_settle_all_is_idempotent(self, settlement, dinner):
        """Test settling twice pays nothing the second time."""
        budget, _ = settlement.record_partial_payment(
            dinner, dinner.participants[0].id, Decimal("30")
        )
        budget, payments = settlement.settle_all(budget)

        assert [p.amount for p in payments] == [Decimal("70.00"), Decimal("100.00")]
        assert budget.status == BudgetStatus.SETTLED

        budget, payments = settlement.settle_all(budget)
        assert payments == []

    def test_cancel(self, settlement, dinner):
        """Test a cancelled budget accepts no further payments or cancellation."""
        cancelled = settlement.cancel(dinner)
        assert cancelled.status == BudgetStatus.CANCELLED
        assert settlement.plan_settlement(cancelled) == []

        with pytest.raises(ValidationError):
            settlement.cancel(cancelled)
        with pytest.raises(ValidationError):
            settlement.record_partial_payment(
                cancelled, cancelled.participants[0].id, Decimal("10")
            )


class TestSharedBudgetFlows:
    """Tests for budget sagas through the coordinator."""

    async def test_create_split_charges_participants(
        self, coordinator, registry, debtors, events_of
    ):
        """Test creating a split charges every participant's share."""
        budget = await coordinator.create_split(
            "Dinner", "300", [d.id for d in debtors]
        )

        for debtor in debtors:
            account = await registry.get_account(debtor.id)
            assert account.current_balance == Decimal("100.00")
        stored = await coordinator.get_budget(budget.id)
        assert stored.total_amount == Decimal("300.00")
        assert len(events_of(AuditEventType.BUDGET_CREATED)) == 1

    async def test_create_split_on_credit_charges_the_creditor(
        self, coordinator, registry, ledger, debtors, creditor
    ):
        """Test a split fronted on credit charges the creditor the total."""
        budget = await coordinator.create_split(
            "Trip", Decimal("600"), [d.id for d in debtors], creditor_id=creditor.id
        )

        account = await registry.get_account(creditor.id)
        assert account.current_balance == Decimal("600.00")
        entries = await ledger.list_entries(creditor.id)
        assert [e.id for e in entries] == [budget.creditor_entry_id]

    async def test_create_split_rejects_non_debtors(
        self, coordinator, ledger, cash, debtors, budget_storage
    ):
        """Test participants must be debtor accounts."""
        with pytest.raises(ValidationError):
            await coordinator.create_split("Dinner", "300", [debtors[0].id, cash.id])

        assert await ledger.list_entries(debtors[0].id) == []
        assert await budget_storage.list_budgets(include_cancelled=True) == []

    async def test_create_split_rolls_back_on_failure(
        self, coordinator, registry, entry_storage, debtors, creditor, budget_storage
    ):
        """Test a failed charge rolls back the whole split."""
        entry_storage.fail_save_for.add(debtors[1].id)

        with pytest.raises(StorageError):
            await coordinator.create_split(
                "Trip", "600", [d.id for d in debtors], creditor_id=creditor.id
            )

        for account_id in (debtors[0].id, debtors[1].id, creditor.id):
            account = await registry.get_account(account_id)
            assert account.current_balance == Decimal("0.00")
        assert await budget_storage.list_budgets(include_cancelled=True) == []

    async def test_partial_payments_until_settled(
        self, coordinator, registry, debtors, cash, events_of
    ):
        """Test partial payments until the budget is settled."""
        budget = await coordinator.create_split("Dinner", "300", [d.id for d in debtors])
        first, second = budget.participants

        participant = await coordinator.record_partial_payment(
            budget.id, first.id, "=60+40", destination_account_id=cash.id
        )
        assert participant.is_paid
        assert (await coordinator.get_budget(budget.id)).status == BudgetStatus.PENDING

        await coordinator.record_partial_payment(budget.id, second.id, Decimal("100"))

        stored = await coordinator.get_budget(budget.id)
        assert stored.status == BudgetStatus.SETTLED
        assert (await registry.get_account(cash.id)).current_balance == Decimal("300.00")
        for debtor in debtors:
            assert (await registry.get_account(debtor.id)).current_balance == Decimal("0.00")
        assert len(events_of(AuditEventType.BUDGET_SETTLED)) == 1

    async def test_overpayment_changes_nothing(
        self, coordinator, registry, debtors, events_of
    ):
        """Test a rejected overpayment leaves the ledger untouched."""
        budget = await coordinator.create_split("Dinner", "300", [d.id for d in debtors])

        with pytest.raises(OverpaymentError):
            await coordinator.record_partial_payment(
                budget.id, budget.participants[0].id, Decimal("150")
            )

        account = await registry.get_account(debtors[0].id)
        assert account.current_balance == Decimal("100.00")
        stored = await coordinator.get_budget(budget.id)
        assert stored.participants[0].paid_amount == Decimal("0")
        assert events_of(AuditEventType.ENTRY_REJECTED)[-1].error_code == "OVERPAYMENT"

    async def test_unknown_budget(self, coordinator):
        """Test an unknown budget raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await coordinator.record_partial_payment(uuid4(), uuid4(), Decimal("10"))

    async def test_settle_budget_is_idempotent(self, coordinator, ledger, debtors, debit):
        """Test settling a budget twice adds no entries."""
        budget = await coordinator.create_split("Dinner", "300", [d.id for d in debtors])
        await coordinator.record_partial_payment(
            budget.id, budget.participants[0].id, Decimal("25")
        )

        settled = await coordinator.settle_budget(budget.id, destination_account_id=debit.id)
        assert settled.status == BudgetStatus.SETTLED

        before = [len(await ledger.list_entries(d.id)) for d in debtors]
        again = await coordinator.settle_budget(budget.id, destination_account_id=debit.id)
        after = [len(await ledger.list_entries(d.id)) for d in debtors]

        assert again.status == BudgetStatus.SETTLED
        assert before == after
        # 75 + 100 landed in the debit account
        assert (await ledger.recompute_balance(debit.id)) == Decimal("275.00")

    async def test_cancel_budget_writes_off_and_reverses_creditor(
        self, coordinator, registry, debtors, creditor, events_of
    ):
        """Test cancelling writes off debts and reverses the creditor charge."""
        budget = await coordinator.create_split(
            "Trip", "300", [d.id for d in debtors], creditor_id=creditor.id
        )
        await coordinator.record_partial_payment(
            budget.id, budget.participants[0].id, Decimal("40")
        )

        cancelled = await coordinator.cancel_budget(budget.id)

        assert cancelled.status == BudgetStatus.CANCELLED
        for account_id in (debtors[0].id, debtors[1].id, creditor.id):
            assert (await registry.get_account(account_id)).current_balance == Decimal("0.00")
        assert len(events_of(AuditEventType.BUDGET_CANCELLED)) == 1

        with pytest.raises(ValidationError):
            await coordinator.record_partial_payment(
                budget.id, budget.participants[1].id, Decimal("10")
            )
        with pytest.raises(ValidationError):
            await coordinator.cancel_budget(budget.id)
        with pytest.raises(ValidationError):
            await coordinator.settle_budget(budget.id)
