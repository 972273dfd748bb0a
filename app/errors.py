# app/errors.py
from __future__ import annotations

from typing import Any


class PayoutError(Exception):
    """
    Base for every typed failure the payout/wallet engine surfaces.

    `code` is machine-readable and stable; routes map it to an HTTP status so the
    dashboard can tell "not enough balance" apart from "below minimum" apart from
    "already pledged to pending requests".
    """

    code = "PAYOUT_ERROR"
    default_message = "Payout operation failed"

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"detail": self.message, "code": self.code}
        for k, v in self.details.items():
            out[k] = str(v) if v is not None else None
        return out


class NotFound(PayoutError):
    code = "NOT_FOUND"
    default_message = "Not found"


class InsufficientFunds(PayoutError):
    code = "INSUFFICIENT_FUNDS"
    default_message = "Insufficient wallet balance"


class BelowMinimum(PayoutError):
    code = "BELOW_MINIMUM"
    default_message = "Amount is below the minimum payout amount"


class OverPledged(PayoutError):
    code = "OVER_PLEDGED"
    default_message = "Insufficient available balance; pending payouts are on hold"


class ValidationError(PayoutError):
    code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class TransientStoreError(PayoutError):
    code = "STORE_UNAVAILABLE"
    default_message = "Storage temporarily unavailable"
