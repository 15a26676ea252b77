"""
Two-Stage Entry Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Amount present, finite and positive
- Entry kind compatible with the account kind
- Installment metadata only where it makes sense

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Absurd amount detection
- Suspiciously old dates

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails

IMPORTANT: Validation NEVER silently fixes issues.
Errors reject the entry; warnings are reported and the entry proceeds.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from pocket_ledger.config import LedgerSettings, get_settings
from pocket_ledger.exceptions import ValidationError
from pocket_ledger.models.account import AccountBase, AccountKind
from pocket_ledger.models.ledger import EntryKind
from pocket_ledger.models.validation import ValidationIssue, ValidationResult


# Dates older than this are accepted but flagged
SUSPICIOUS_AGE = timedelta(days=365 * 2)


class EntryValidator:
    """
    Validates a prospective ledger entry through a two-stage pipeline.

    Runs before anything is written, so a rejected entry never leaves
    partial state behind.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _validate_schema(
        self,
        account: AccountBase,
        kind: EntryKind,
        amount: Optional[Decimal],
        installments_count: Optional[int],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif not Decimal(amount).is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a finite number",
                severity="error",
            ))
        elif Decimal(amount) <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Enter the magnitude; the entry kind gives the direction",
            ))

        if installments_count is not None:
            if account.account_kind != AccountKind.CREDIT_CARD or kind != EntryKind.CHARGE:
                issues.append(ValidationIssue(
                    field="installments_count",
                    issue_type="invalid_value",
                    message="Only credit card charges can be split into installments",
                    severity="error",
                ))
            elif installments_count < 2:
                issues.append(ValidationIssue(
                    field="installments_count",
                    issue_type="invalid_value",
                    message="An installment plan needs at least 2 installments",
                    severity="error",
                ))

        # Schema is valid if no errors (warnings are okay)
        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        amount: Decimal,
        entry_date: date,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        # Future date check (with tolerance)
        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if entry_date > max_future_date:
            issues.append(ValidationIssue(
                field="entry_date",
                issue_type="future_date",
                message=f"Entry date ({entry_date}) is too far in the future",
                severity="error",
                suggested_fix="Please verify the date is correct",
            ))

        # Very old date check (probably a typo)
        if entry_date < today - SUSPICIOUS_AGE:
            issues.append(ValidationIssue(
                field="entry_date",
                issue_type="suspicious_date",
                message=f"Entry date ({entry_date}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date",
            ))

        # Absurd amount check
        if amount > self._settings.max_entry_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({amount:,.2f}) exceeds the maximum of "
                    f"{self._settings.max_entry_amount:,.2f}"
                ),
                severity="error",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(
        self,
        account: AccountBase,
        kind: EntryKind,
        amount: Optional[Decimal],
        entry_date: Optional[date] = None,
        installments_count: Optional[int] = None,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            account: The account the entry would be applied to
            kind: Entry kind
            amount: Raw amount (may be invalid)
            entry_date: When the movement happened (defaults to today)
            installments_count: Set for installment charges
            today: Override for the current date

        Returns:
            ValidationResult with all issues found
        """
        today = today or date.today()
        entry_date = entry_date or today
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(
            account, EntryKind(kind), amount, installments_count
        )
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                Decimal(amount), entry_date, today
            )
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            account_id=account.id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def ensure_valid(self, *args, **kwargs) -> ValidationResult:
        """
        Same as validate(), but raise on the first error-level issue.

        Raises:
            ValidationError: Carrying the offending field name
        """
        result = self.validate(*args, **kwargs)
        if not result.is_valid:
            first = result.errors[0]
            raise ValidationError(first.message, field=first.field)
        return result

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to non-technical users.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if not result.is_valid:
            lines.append("❌ This entry cannot be recorded:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
