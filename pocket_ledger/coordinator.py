"""
Transfer Coordinator for Pocket Ledger

This module ties together the ledger components and defines every
operation that touches more than one row:
1. Transfers between the user's accounts
2. Debtor repayments and creditor payments
3. Shared budgets (create, repay, settle, cancel)
4. Reconciliation against a real-world balance

DESIGN DECISION: Each of these is a saga (see pocket_ledger.saga).
- Preconditions are checked before the first write, so a rejected
  operation never changes state
- Steps run in order; a failure rolls back the steps already applied
- Every step is audited under one correlation id

Two-entry operations produce a linked pair: both entries get their ids
up front and reference each other, so neither is ever rewritten.
"""

from datetime import date
from decimal import Decimal
from typing import NamedTuple, Optional, Union
from uuid import UUID, uuid4

import structlog

from pocket_ledger.audit import AuditLogger
from pocket_ledger.budgets import AppliedPayment, SharedBudgetSettlement
from pocket_ledger.calculations.billing_cycle import collect_due_date_alerts
from pocket_ledger.calculations.expression import parse_amount_input
from pocket_ledger.config import LedgerSettings, get_settings
from pocket_ledger.exceptions import (
    InsufficientBalanceError,
    LedgerError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from pocket_ledger.ledger import (
    AccountRegistry,
    ChangeNotifier,
    TransactionLedger,
    build_installment_plan,
    new_entry,
)
from pocket_ledger.models.account import (
    ASSET_KINDS,
    AccountBase,
    AccountKind,
    quantize_money,
)
from pocket_ledger.models.audit import AuditEventType
from pocket_ledger.models.billing import DueDateAlert, InstallmentPlan
from pocket_ledger.models.budget import (
    BudgetParticipant,
    BudgetStatus,
    SharedBudget,
    SplitType,
)
from pocket_ledger.models.ledger import (
    ChangeKind,
    EntryKind,
    LedgerChange,
    LedgerEntry,
    ReconciliationResult,
    TransferResult,
    inflow_kind_for,
)
from pocket_ledger.reconciliation import ReconciliationEngine
from pocket_ledger.saga import Saga
from pocket_ledger.services.storage import (
    AccountStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    EntryStorageInterface,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryEntryStorage,
)


logger = structlog.get_logger("pocket_ledger.coordinator")

# Money leaves from accounts that hold funds...
TRANSFER_SOURCE_KINDS = ASSET_KINDS
# ...and lands in one of those or pays down a card
TRANSFER_DESTINATION_KINDS = ASSET_KINDS | {AccountKind.CREDIT_CARD}

AmountInput = Union[Decimal, str]


def to_amount(value: AmountInput, field: str = "amount") -> Decimal:
    """
    Normalize an amount argument to positive cents.

    Strings go through parse_amount_input, so "=50+20" works.

    Raises:
        ValidationError: If the amount is missing, invalid or not positive
    """
    if isinstance(value, str):
        amount = parse_amount_input(value, field=field)
    else:
        if value is None or not Decimal(value).is_finite():
            raise ValidationError(f"{field} must be a finite number", field=field)
        amount = quantize_money(Decimal(value))
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    return amount


class TransferCoordinator:
    """
    Runs every multi-account operation as a saga.

    The coordinator enforces:
    - No write before all preconditions pass
    - Compensation of applied steps on failure
    - PartialFailureError (and a CRITICAL audit event) when compensation fails
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        budget_storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        reconciliation: Optional[ReconciliationEngine] = None,
        settlement: Optional[SharedBudgetSettlement] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._ledger = ledger
        self._registry = ledger.registry
        self._budgets = budget_storage
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger
        self._reconciliation = reconciliation or ReconciliationEngine(self._settings)
        self._settlement = settlement or SharedBudgetSettlement(self._settings)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _reject(self, account_id: UUID, error: LedgerError) -> None:
        """Audit a business-rule rejection; the caller raises."""
        await self._audit.log_entry_rejected(
            account_id=account_id,
            reason=str(error),
            error_code=error.code,
        )

    async def _account_of_kind(
        self,
        account_id: UUID,
        kinds: frozenset,
        field: str,
        message: str,
    ) -> AccountBase:
        account = await self._registry.get_account(account_id)
        if account.account_kind not in kinds:
            raise ValidationError(message, field=field)
        return account

    def _add_entry_step(self, saga: Saga, name: str, entry: LedgerEntry) -> None:
        """A saga step applying one entry, compensated by reversing it."""
        async def apply():
            return await self._ledger.apply_entry(entry)

        async def undo(_):
            return await self._ledger.reverse_entry(entry.account_id, entry.id, saga.saga_id)

        saga.add_step(name, apply, undo)

    @staticmethod
    def _linked_entries(
        source: AccountBase,
        source_kind: EntryKind,
        destination: AccountBase,
        destination_kind: EntryKind,
        amount: Decimal,
        description: str,
        entry_date: date,
        correlation_id: UUID,
    ) -> tuple[LedgerEntry, LedgerEntry]:
        source_entry_id, destination_entry_id = uuid4(), uuid4()
        source_entry = new_entry(
            id=source_entry_id,
            account_id=source.id,
            kind=source_kind,
            amount=amount,
            entry_date=entry_date,
            description=description,
            linked_entry_id=destination_entry_id,
            correlation_id=correlation_id,
        )
        destination_entry = new_entry(
            id=destination_entry_id,
            account_id=destination.id,
            kind=destination_kind,
            amount=amount,
            entry_date=entry_date,
            description=description,
            linked_entry_id=source_entry_id,
            correlation_id=correlation_id,
        )
        return source_entry, destination_entry

    async def _run_linked_pair(
        self,
        saga_name: str,
        source: AccountBase,
        source_kind: EntryKind,
        destination: AccountBase,
        destination_kind: EntryKind,
        amount: Decimal,
        description: str,
        entry_date: Optional[date],
    ) -> TransferResult:
        saga = Saga(saga_name, self._audit)
        source_entry, destination_entry = self._linked_entries(
            source, source_kind,
            destination, destination_kind,
            amount, description,
            entry_date or date.today(),
            saga.saga_id,
        )
        self._add_entry_step(saga, "debit_source", source_entry)
        self._add_entry_step(saga, "credit_destination", destination_entry)
        results = await saga.run()

        await self._audit.log_transfer_completed(
            saga_id=saga.saga_id,
            source_id=source.id,
            destination_id=destination.id,
            amount=amount,
        )
        return TransferResult(
            source_entry=source_entry,
            destination_entry=destination_entry,
            source_balance=results["debit_source"].current_balance,
            destination_balance=results["credit_destination"].current_balance,
            correlation_id=saga.saga_id,
        )

    async def get_budget(self, budget_id: UUID) -> SharedBudget:
        budget = await self._budgets.get_budget(budget_id)
        if budget is None:
            raise NotFoundError("Budget", budget_id)
        return budget

    def _publish_budget(self, budget: SharedBudget) -> None:
        self._registry.notifier.publish(LedgerChange(
            change_kind=ChangeKind.BUDGET_CHANGED,
            budget_id=budget.id,
        ))

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    async def transfer(
        self,
        source_id: UUID,
        destination_id: UUID,
        amount: AmountInput,
        description: str = "",
        entry_date: Optional[date] = None,
    ) -> TransferResult:
        """
        Move money between two of the user's accounts.

        A transfer into a credit card is a payment and lowers its debt.

        Raises:
            ValidationError: Bad amount, same account, or unsupported kinds
            NotFoundError: If either account doesn't exist
            InsufficientBalanceError: If the source can't cover the amount
            PartialFailureError: If a failed transfer could not be rolled back
        """
        amount = to_amount(amount)
        if source_id == destination_id:
            raise ValidationError(
                "Source and destination must be different accounts",
                field="destination_id",
            )

        source = await self._account_of_kind(
            source_id, TRANSFER_SOURCE_KINDS, "source_id",
            "Transfers must come from a cash, debit or saving account",
        )
        destination = await self._account_of_kind(
            destination_id, TRANSFER_DESTINATION_KINDS, "destination_id",
            "Transfers can only go to a cash, debit, saving or credit card account",
        )

        # Checked against the pre-transfer balance
        if source.current_balance < amount:
            error = InsufficientBalanceError(source.id, source.current_balance, amount)
            await self._reject(source.id, error)
            raise error

        return await self._run_linked_pair(
            "transfer",
            source, EntryKind.WITHDRAWAL,
            destination, inflow_kind_for(destination.account_kind),
            amount,
            description or f"Transfer to {destination.name}",
            entry_date,
        )

    async def record_debtor_payment(
        self,
        debtor_id: UUID,
        amount: AmountInput,
        destination_account_id: UUID,
        description: str = "",
        entry_date: Optional[date] = None,
    ) -> TransferResult:
        """
        A debtor paid the user back into one of their accounts.

        Raises:
            OverpaymentError: If amount exceeds what the debtor owes + epsilon
        """
        amount = to_amount(amount)
        debtor = await self._account_of_kind(
            debtor_id, frozenset({AccountKind.DEBTOR}), "debtor_id",
            "Account is not a debtor",
        )
        destination = await self._account_of_kind(
            destination_account_id, TRANSFER_DESTINATION_KINDS, "destination_account_id",
            "Payments can only land in a cash, debit, saving or credit card account",
        )

        if amount > debtor.current_balance + self._settings.epsilon:
            error = OverpaymentError(debtor.current_balance, amount, f"debtor {debtor.name}")
            await self._reject(debtor.id, error)
            raise error

        return await self._run_linked_pair(
            "debtor_payment",
            debtor, EntryKind.PAYMENT,
            destination, inflow_kind_for(destination.account_kind),
            amount,
            description or f"Payment from {debtor.name}",
            entry_date,
        )

    async def pay_creditor(
        self,
        creditor_id: UUID,
        source_account_id: UUID,
        amount: AmountInput,
        description: str = "",
        entry_date: Optional[date] = None,
    ) -> TransferResult:
        """
        The user paid a creditor from one of their accounts.

        Raises:
            OverpaymentError: If amount exceeds what is owed + epsilon
            InsufficientBalanceError: If the source can't cover the amount
        """
        amount = to_amount(amount)
        creditor = await self._account_of_kind(
            creditor_id, frozenset({AccountKind.CREDITOR}), "creditor_id",
            "Account is not a creditor",
        )
        source = await self._account_of_kind(
            source_account_id, TRANSFER_SOURCE_KINDS, "source_account_id",
            "Creditors can only be paid from a cash, debit or saving account",
        )

        if amount > creditor.current_balance + self._settings.epsilon:
            error = OverpaymentError(creditor.current_balance, amount, f"creditor {creditor.name}")
            await self._reject(creditor.id, error)
            raise error
        if source.current_balance < amount:
            error = InsufficientBalanceError(source.id, source.current_balance, amount)
            await self._reject(source.id, error)
            raise error

        return await self._run_linked_pair(
            "creditor_payment",
            source, EntryKind.WITHDRAWAL,
            creditor, EntryKind.PAYMENT,
            amount,
            description or f"Payment to {creditor.name}",
            entry_date,
        )

    # -------------------------------------------------------------------------
    # Single-account operations
    # -------------------------------------------------------------------------

    async def reconcile(
        self,
        account_id: UUID,
        asserted_balance: AmountInput,
        entry_date: Optional[date] = None,
    ) -> ReconciliationResult:
        """
        Match the ledger to the balance the user sees in the real world.

        For credit cards with a limit the asserted figure is the
        available credit; for debtors, creditors and cards without a
        limit it is the amount owed.
        """
        if isinstance(asserted_balance, str):
            asserted_balance = parse_amount_input(
                asserted_balance, field="asserted_balance", allow_negative=True
            )
        account = await self._registry.get_account(account_id)
        ledger_figure = self._reconciliation.ledger_figure(account)
        plan = self._reconciliation.plan_for_account(account, asserted_balance)

        saga = Saga("reconcile", self._audit)
        entry = self._reconciliation.build_adjustment(
            account, plan, correlation_id=saga.saga_id, entry_date=entry_date
        )
        if entry is None:
            await self._audit.log_reconciliation(account.id, plan.difference, None)
            return ReconciliationResult(
                account_id=account.id,
                adjustment_created=False,
                difference=plan.difference,
                ledger_balance=ledger_figure,
                asserted_balance=asserted_balance,
                new_balance=account.current_balance,
            )

        self._add_entry_step(saga, "apply_adjustment", entry)
        results = await saga.run()
        await self._audit.log_reconciliation(
            account.id, plan.difference, entry.id, correlation_id=saga.saga_id
        )
        return ReconciliationResult(
            account_id=account.id,
            adjustment_created=True,
            difference=plan.difference,
            ledger_balance=ledger_figure,
            asserted_balance=asserted_balance,
            entry=entry,
            new_balance=results["apply_adjustment"].current_balance,
        )

    async def record_installment_charge(
        self,
        card_id: UUID,
        total_amount: AmountInput,
        installments_count: int,
        transaction_date: Optional[date] = None,
        description: str = "",
    ) -> tuple[LedgerEntry, InstallmentPlan]:
        """
        Charge a card "in N months".

        Records the first monthly installment carrying the original
        total and count, and returns the full due-date schedule.
        """
        total = to_amount(total_amount, field="total_amount")
        card = await self._account_of_kind(
            card_id, frozenset({AccountKind.CREDIT_CARD}), "card_id",
            "Installments are only available on credit cards",
        )
        transaction_date = transaction_date or date.today()
        plan = build_installment_plan(card, total, installments_count, transaction_date)

        entry, _ = await self._ledger.record(
            card.id,
            EntryKind.CHARGE,
            plan.installment_amount,
            entry_date=transaction_date,
            description=description or f"Installment 1/{installments_count}",
            installments_total_amount=plan.total_amount,
            installments_count=installments_count,
            installment_number=1,
        )
        return entry, plan

    async def due_date_alerts(self, today: Optional[date] = None) -> list[DueDateAlert]:
        """Alerts for the notification dispatcher, one pass over all cards."""
        cards = await self._registry.list_accounts(AccountKind.CREDIT_CARD)
        return collect_due_date_alerts(
            cards,
            today=today,
            alert_days=self._settings.due_date_alert_days,
            cut_off_reminder_days=self._settings.cut_off_reminder_days,
        )

    # -------------------------------------------------------------------------
    # Shared budgets
    # -------------------------------------------------------------------------

    async def create_split(
        self,
        name: str,
        total_amount: AmountInput,
        debtor_ids: list[UUID],
        split_type: SplitType = SplitType.EQUAL,
        fixed_amounts: Optional[dict[UUID, Decimal]] = None,
        creditor_id: Optional[UUID] = None,
        description: Optional[str] = None,
        entry_date: Optional[date] = None,
    ) -> SharedBudget:
        """
        Create a shared budget and charge every participant their share.

        If a creditor fronted the money, the creditor is charged the full
        total in the same saga.
        """
        total = to_amount(total_amount, field="total_amount")
        budget = self._settlement.create_split(
            name=name,
            total_amount=total,
            debtor_ids=debtor_ids,
            split_type=split_type,
            fixed_amounts=fixed_amounts,
            creditor_id=creditor_id,
            description=description,
        )

        for debtor_id in debtor_ids:
            await self._account_of_kind(
                debtor_id, frozenset({AccountKind.DEBTOR}), "participants",
                f"Participant {debtor_id} is not a debtor account",
            )
        if creditor_id is not None:
            await self._account_of_kind(
                creditor_id, frozenset({AccountKind.CREDITOR}), "creditor_id",
                "Account is not a creditor",
            )

        saga = Saga("create_shared_budget", self._audit)
        entry_date = entry_date or date.today()
        label = f"Shared budget: {budget.name}"

        if creditor_id is not None:
            creditor_entry = new_entry(
                account_id=creditor_id,
                kind=EntryKind.CHARGE,
                amount=budget.total_amount,
                entry_date=entry_date,
                description=label,
                correlation_id=saga.saga_id,
            )
            budget = budget.model_copy(update={"creditor_entry_id": creditor_entry.id})
            self._add_entry_step(saga, "charge_creditor", creditor_entry)

        for index, participant in enumerate(budget.participants):
            self._add_entry_step(saga, f"charge_participant_{index}", new_entry(
                account_id=participant.debtor_id,
                kind=EntryKind.CHARGE,
                amount=participant.share_amount,
                entry_date=entry_date,
                description=label,
                correlation_id=saga.saga_id,
            ))

        async def save_budget():
            await self._budgets.save_budget(budget)
            return budget

        saga.add_step("save_budget", save_budget)
        await saga.run()

        await self._audit.log_budget_event(
            AuditEventType.BUDGET_CREATED,
            budget.id,
            f"Shared budget created: {budget.name}",
            details={
                "total_amount": str(budget.total_amount),
                "user_share": str(budget.user_share),
                "participants": len(budget.participants),
            },
            correlation_id=saga.saga_id,
        )
        self._publish_budget(budget)
        return budget

    def _add_repayment_steps(
        self,
        saga: Saga,
        index: int,
        budget: SharedBudget,
        payment: AppliedPayment,
        debtor: AccountBase,
        destination: Optional[AccountBase],
        entry_date: date,
    ) -> None:
        """Payment on the debtor, plus the matching inflow if it landed somewhere."""
        description = f"Shared budget repayment: {budget.name}"
        if destination is None:
            self._add_entry_step(saga, f"participant_payment_{index}", new_entry(
                account_id=debtor.id,
                kind=EntryKind.PAYMENT,
                amount=payment.amount,
                entry_date=entry_date,
                description=description,
                correlation_id=saga.saga_id,
            ))
            return

        debtor_entry, destination_entry = self._linked_entries(
            debtor, EntryKind.PAYMENT,
            destination, inflow_kind_for(destination.account_kind),
            payment.amount, description, entry_date, saga.saga_id,
        )
        self._add_entry_step(saga, f"participant_payment_{index}", debtor_entry)
        self._add_entry_step(saga, f"deposit_{index}", destination_entry)

    async def _destination(self, destination_account_id: Optional[UUID]) -> Optional[AccountBase]:
        if destination_account_id is None:
            return None
        return await self._account_of_kind(
            destination_account_id, TRANSFER_DESTINATION_KINDS, "destination_account_id",
            "Payments can only land in a cash, debit, saving or credit card account",
        )

    async def _commit_budget_payments(
        self,
        saga_name: str,
        original: SharedBudget,
        updated: SharedBudget,
        payments: list[AppliedPayment],
        destination: Optional[AccountBase],
        entry_date: Optional[date],
    ) -> Saga:
        saga = Saga(saga_name, self._audit)
        entry_date = entry_date or date.today()
        for index, payment in enumerate(payments):
            debtor = await self._registry.get_account(payment.participant.debtor_id)
            self._add_repayment_steps(
                saga, index, updated, payment, debtor, destination, entry_date
            )

        async def update_budget():
            await self._budgets.update_budget(updated)
            return updated

        saga.add_step("update_budget", update_budget)
        await saga.run()

        await self._audit.log_budget_event(
            AuditEventType.BUDGET_PAYMENT_RECORDED,
            updated.id,
            f"{len(payments)} repayment(s) recorded",
            details={
                "amounts": [str(p.amount) for p in payments],
                "outstanding": str(updated.outstanding_amount),
            },
            correlation_id=saga.saga_id,
        )
        if original.status != BudgetStatus.SETTLED and updated.status == BudgetStatus.SETTLED:
            await self._audit.log_budget_event(
                AuditEventType.BUDGET_SETTLED,
                updated.id,
                f"Shared budget settled: {updated.name}",
                correlation_id=saga.saga_id,
            )
        self._publish_budget(updated)
        return saga

    async def record_partial_payment(
        self,
        budget_id: UUID,
        participant_id: UUID,
        amount: AmountInput,
        destination_account_id: Optional[UUID] = None,
        entry_date: Optional[date] = None,
    ) -> BudgetParticipant:
        """
        A participant paid back some or all of their share.

        Raises:
            NotFoundError: Unknown budget or participant
            OverpaymentError: If amount exceeds the remaining share + epsilon
        """
        amount = to_amount(amount)
        budget = await self.get_budget(budget_id)
        destination = await self._destination(destination_account_id)

        try:
            updated, payment = self._settlement.record_partial_payment(
                budget, participant_id, amount
            )
        except OverpaymentError as error:
            participant = budget.get_participant(participant_id)
            await self._reject(participant.debtor_id, error)
            raise

        await self._commit_budget_payments(
            "budget_repayment", budget, updated, [payment], destination, entry_date
        )
        return payment.participant

    async def settle_budget(
        self,
        budget_id: UUID,
        destination_account_id: Optional[UUID] = None,
        entry_date: Optional[date] = None,
    ) -> SharedBudget:
        """
        Mark every participant fully paid ("settle all").

        Idempotent: once everyone is paid no further entries are created.
        """
        budget = await self.get_budget(budget_id)
        if budget.status == BudgetStatus.CANCELLED:
            raise ValidationError("Budget is cancelled", field="budget_id")

        updated, payments = self._settlement.settle_all(budget)
        if not payments:
            logger.info("budget_already_settled", budget_id=str(budget_id))
            return budget

        destination = await self._destination(destination_account_id)
        await self._commit_budget_payments(
            "settle_budget", budget, updated, payments, destination, entry_date
        )
        return updated

    async def cancel_budget(
        self,
        budget_id: UUID,
        entry_date: Optional[date] = None,
    ) -> SharedBudget:
        """
        Cancel a shared budget.

        What participants still owe is written off their debtor accounts
        and the creditor charge, if any, is reversed. Repayments already
        received stay where they landed.
        """
        budget = await self.get_budget(budget_id)
        cancelled = self._settlement.cancel(budget)

        saga = Saga("cancel_shared_budget", self._audit)
        entry_date = entry_date or date.today()
        for index, participant in enumerate(budget.participants):
            if participant.remaining_amount <= 0:
                continue
            self._add_entry_step(saga, f"write_off_participant_{index}", new_entry(
                account_id=participant.debtor_id,
                kind=EntryKind.PAYMENT,
                amount=participant.remaining_amount,
                entry_date=entry_date,
                description=f"Shared budget cancelled: {budget.name}",
                correlation_id=saga.saga_id,
            ))

        async def save_cancelled():
            await self._budgets.update_budget(cancelled)
            return cancelled

        async def restore(_):
            await self._budgets.update_budget(budget)

        saga.add_step("mark_cancelled", save_cancelled, restore)

        if budget.creditor_id is not None and budget.creditor_entry_id is not None:
            async def reverse_creditor_charge():
                return await self._ledger.reverse_entry(
                    budget.creditor_id, budget.creditor_entry_id, saga.saga_id
                )

            # Last step: nothing after it can fail and require undoing it
            saga.add_step("reverse_creditor_charge", reverse_creditor_charge)

        await saga.run()

        await self._audit.log_budget_event(
            AuditEventType.BUDGET_CANCELLED,
            budget.id,
            f"Shared budget cancelled: {budget.name}",
            details={"written_off": str(budget.outstanding_amount)},
            correlation_id=saga.saga_id,
        )
        self._publish_budget(cancelled)
        return cancelled


# =============================================================================
# FACTORY
# =============================================================================

class LedgerComponents(NamedTuple):
    registry: AccountRegistry
    ledger: TransactionLedger
    coordinator: TransferCoordinator
    audit_logger: AuditLogger
    notifier: ChangeNotifier


def create_ledger_components(
    settings: Optional[LedgerSettings] = None,
    account_storage: Optional[AccountStorageInterface] = None,
    entry_storage: Optional[EntryStorageInterface] = None,
    budget_storage: Optional[BudgetStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> LedgerComponents:
    """
    Factory function to create all ledger components.

    Storage not passed explicitly comes from the configured backend:
    in-memory by default, Google Sheets when
    LEDGER_STORAGE_BACKEND=google_sheets.

    Returns:
        LedgerComponents sharing one audit logger and one notifier
    """
    settings = settings or get_settings().ledger

    if settings.storage_backend == "google_sheets":
        from pocket_ledger.services.storage.google_sheets import (
            GoogleSheetsAccountStorage,
            GoogleSheetsAuditStorage,
            GoogleSheetsBudgetStorage,
            GoogleSheetsClient,
            GoogleSheetsEntryStorage,
        )

        sheets_client = GoogleSheetsClient()
        account_storage = account_storage or GoogleSheetsAccountStorage(sheets_client)
        entry_storage = entry_storage or GoogleSheetsEntryStorage(sheets_client)
        budget_storage = budget_storage or GoogleSheetsBudgetStorage(sheets_client)
        audit_storage = audit_storage or GoogleSheetsAuditStorage(sheets_client)
    else:
        account_storage = account_storage or InMemoryAccountStorage()
        entry_storage = entry_storage or InMemoryEntryStorage()
        budget_storage = budget_storage or InMemoryBudgetStorage()
        audit_storage = audit_storage or InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    notifier = ChangeNotifier()
    registry = AccountRegistry(account_storage, audit_logger, notifier, settings)
    ledger = TransactionLedger(registry, entry_storage, audit_logger, settings=settings)
    coordinator = TransferCoordinator(ledger, budget_storage, audit_logger, settings=settings)

    logger.info("ledger_components_created", storage_backend=settings.storage_backend)
    return LedgerComponents(registry, ledger, coordinator, audit_logger, notifier)
