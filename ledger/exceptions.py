"""
Domain errors raised by the settlement engine and the wallet ledger.

Calculation errors (InvalidOrderState and the IntegrityAlarm family) always
prevent a settlement from being written. CommissionConfigMissing is a warning
category, not an error: settlement proceeds with zero commission.
"""


class LedgerError(Exception):
    """Base class for all settlement and wallet ledger errors."""


class InvalidOrderState(LedgerError):
    """Settlement was attempted on an order that is not delivered."""


class IntegrityAlarm(LedgerError):
    """A money invariant could not be satisfied; needs manual reconciliation."""


class NegativeAmount(IntegrityAlarm):
    """A pricing input or a resolved settlement amount is negative."""


class ResidueExceeded(IntegrityAlarm):
    """The conservation residual is too large to absorb into net earning."""


class InsufficientFunds(LedgerError):
    """A Completed deduction would drive the wallet balance negative."""

    def __init__(self, balance, amount):
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient wallet balance: balance={balance} requested={amount}"
        )


class InvalidAmount(LedgerError, ValueError):
    """Transaction amounts must be strictly positive."""


class DuplicateOrderTransaction(LedgerError):
    """A deduction or refund for this order is already on the account."""


class InvalidStatusTransition(LedgerError):
    """Only Pending transactions may move to Completed or Failed."""


class ImmutableRecord(LedgerError):
    """Settlements and adjustments cannot be edited or deleted."""


class CommissionConfigMissing(UserWarning):
    """No commission configuration applies; zero commission was used."""
