"""
Account Registry

Single source of truth for accounts and their running balances.

Balance writes are read-modify-write against storage with an optimistic
version stamp. A write that lost the race raises StaleVersionError in
storage; the registry re-reads the account, re-runs the caller's checks
against the fresh balance and tries again, a bounded number of times.
"""

from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from pocket_ledger.audit import AuditLogger
from pocket_ledger.calculations.expression import parse_amount_input
from pocket_ledger.config import LedgerSettings, get_settings
from pocket_ledger.exceptions import NotFoundError, ValidationError
from pocket_ledger.ledger.notifications import ChangeNotifier
from pocket_ledger.models.account import AccountBase, AccountKind, parse_account
from pocket_ledger.models.ledger import ChangeKind, LedgerChange
from pocket_ledger.services.storage import AccountStorageInterface, StaleVersionError


# Called with (account as read, proposed balance); raises to veto the write
BalanceCheck = Callable[[AccountBase, Decimal], None]


class AccountRegistry:
    """Creates, reads and re-balances accounts."""

    def __init__(
        self,
        storage: AccountStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[ChangeNotifier] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._notifier = notifier or ChangeNotifier()
        self._settings = settings or get_settings().ledger

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    async def create_account(self, account: AccountBase) -> AccountBase:
        """
        Persist a new account.

        The running balance of a new account always equals its initial
        balance, whatever the caller put in current_balance.
        """
        account = account.model_copy(update={
            "current_balance": account.initial_balance,
            "version": 0,
        })
        await self._storage.create_account(account)
        await self._audit.log_account_created(
            account_id=account.id,
            kind=account.kind,
            initial_balance=account.initial_balance,
        )
        self._notifier.publish(LedgerChange(
            change_kind=ChangeKind.ACCOUNT_CREATED,
            account_id=account.id,
            balance=account.current_balance,
        ))
        return account

    async def open_account(
        self,
        kind: AccountKind,
        name: str,
        initial_balance: str = "0",
        **attributes: Any,
    ) -> AccountBase:
        """
        Create an account from raw user input.

        initial_balance accepts a plain number or an "=expression".

        Raises:
            ValidationError: On a bad balance or fields the kind doesn't have
        """
        balance = parse_amount_input(
            str(initial_balance), field="initial_balance", allow_negative=True
        )
        try:
            account = parse_account({
                "kind": AccountKind(kind).value,
                "name": name,
                "initial_balance": balance,
                **attributes,
            })
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"][1:]) or None
            raise ValidationError(first["msg"], field=field) from e
        return await self.create_account(account)

    async def get_account(self, account_id: UUID) -> AccountBase:
        """
        Raises:
            NotFoundError: If the account doesn't exist
        """
        account = await self._storage.get_account(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    async def list_accounts(self, kind: Optional[AccountKind] = None) -> list[AccountBase]:
        return await self._storage.list_accounts(kind)

    async def adjust_balance(
        self,
        account_id: UUID,
        delta: Decimal,
        check: Optional[BalanceCheck] = None,
    ) -> AccountBase:
        """
        Add delta to the account's current balance.

        Args:
            account_id: Account to update
            delta: Signed change
            check: Business rule run against every fresh read before writing

        Raises:
            NotFoundError: If the account doesn't exist
            StaleVersionError: If every attempt lost the race
            Whatever `check` raises
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(StaleVersionError),
            stop=stop_after_attempt(self._settings.balance_write_retries),
            reraise=True,
        ):
            with attempt:
                account = await self.get_account(account_id)
                new_balance = account.current_balance + delta
                if check is not None:
                    check(account, new_balance)
                updated = await self._storage.update_balance(
                    account_id, new_balance, account.version
                )

        self._notifier.publish(LedgerChange(
            change_kind=ChangeKind.BALANCE_CHANGED,
            account_id=account_id,
            balance=updated.current_balance,
        ))
        return updated
