"""Balance reconciliation against user-asserted real-world figures."""

from pocket_ledger.reconciliation.engine import (
    ReconciliationEngine,
    ReconciliationPlan,
    ReconciliationView,
)

__all__ = ["ReconciliationEngine", "ReconciliationPlan", "ReconciliationView"]
