"""
Classification enums shared by execution requests and audit records.

DESIGN DECISION: The six conversion cases are a closed enum rather than free
strings. The engine dispatches on it through a table that must cover every member.
"""

from enum import Enum


class ConversionCase(str, Enum):
    """
    How the operation, account and primary currencies relate.

    ACCOUNT_PRIMARY_SAME and AMOUNT_DIFFERENT_OTHERS_SAME describe the same
    relationship and share one computation; both labels exist so that stored
    audit records keep their original wording.
    """
    ALL_SAME = "all_same"
    AMOUNT_ACCOUNT_SAME = "amount_account_same"
    AMOUNT_PRIMARY_SAME = "amount_primary_same"
    ACCOUNT_PRIMARY_SAME = "account_primary_same"
    AMOUNT_DIFFERENT_OTHERS_SAME = "amount_different_others_same"
    ALL_DIFFERENT = "all_different"


class OperationKind(str, Enum):
    """Financial operations that go through the engine."""
    TRANSACTION = "transaction"
    TRANSFER = "transfer"
    GOAL_CREATION = "goal_creation"
    GOAL_CONTRIBUTION = "goal_contribution"
    BILL_CREATION = "bill_creation"
    BILL_PAYMENT = "bill_payment"
    LIABILITY_CREATION = "liability_creation"
    LIABILITY_PAYMENT = "liability_payment"
    ACCOUNT_CREATION = "account_creation"
    BUDGET_CREATION = "budget_creation"
    BUDGET_SPENDING = "budget_spending"

    @property
    def allows_zero_amount(self) -> bool:
        """Goal creation previews pass 0 as a placeholder amount."""
        return self == OperationKind.GOAL_CREATION
