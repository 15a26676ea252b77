"""
Change Notifications

Every committed write publishes a LedgerChange naming exactly which
account, entry or budget moved. Collaborators (UI, exporters, alert
dispatchers) subscribe instead of refetching the whole ledger.

Notifications are published only after storage accepted the write.
A failing subscriber is logged and skipped; the write it was told
about has already happened.
"""

from typing import Callable, Optional

import structlog

from pocket_ledger.models.ledger import ChangeKind, LedgerChange


ChangeHandler = Callable[[LedgerChange], None]

logger = structlog.get_logger("pocket_ledger.notifications")


class ChangeNotifier:
    """Synchronous publish/subscribe for ledger changes."""

    def __init__(self):
        # None key holds subscribers to every kind
        self._subscribers: dict[Optional[ChangeKind], list[ChangeHandler]] = {}

    def subscribe(
        self,
        handler: ChangeHandler,
        change_kind: Optional[ChangeKind] = None,
    ) -> None:
        """Register a handler for one change kind, or for all of them."""
        self._subscribers.setdefault(change_kind, []).append(handler)

    def unsubscribe(
        self,
        handler: ChangeHandler,
        change_kind: Optional[ChangeKind] = None,
    ) -> None:
        handlers = self._subscribers.get(change_kind, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, change: LedgerChange) -> int:
        """
        Deliver a change to its subscribers.

        Returns:
            Number of handlers that ran without raising
        """
        handlers = self._subscribers.get(change.change_kind, []) + self._subscribers.get(None, [])
        delivered = 0
        for handler in handlers:
            try:
                handler(change)
                delivered += 1
            except Exception:
                logger.exception(
                    "change_handler_failed",
                    change_kind=change.change_kind.value,
                    account_id=str(change.account_id) if change.account_id else None,
                )
        return delivered
