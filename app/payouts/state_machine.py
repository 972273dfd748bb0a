# app/payouts/state_machine.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.errors import ValidationError
from app.payouts.model import APPROVED, COMPLETED, PENDING, REJECTED, STATUSES
from app.wallets.model import PAYOUT_APPROVED, PAYOUT_COMPLETED, PAYOUT_REFUND, PAYOUT_REVERTED


@dataclass(frozen=True)
class WalletEffect:
    sign: int  # -1 debit, +1 credit
    reason: str
    description: str

    @property
    def is_debit(self) -> bool:
        return self.sign < 0


_DEBIT_APPROVED = WalletEffect(-1, PAYOUT_APPROVED, "Payout approved - funds deducted")
_DEBIT_COMPLETED = WalletEffect(-1, PAYOUT_COMPLETED, "Payout completed - funds deducted")
_CREDIT_REFUND = WalletEffect(1, PAYOUT_REFUND, "Payout rejected - funds returned")
_CREDIT_REVERTED = WalletEffect(1, PAYOUT_REVERTED, "Payout reverted to pending - funds returned")


# (new_status, previous_status) -> wallet effect.
# Any status may be set from any status; pairs missing here move no money.
# Debit happens only when leaving a non-debited status (pending/rejected),
# credit only when leaving a debited one (approved/completed).
TRANSITION_EFFECTS: dict[tuple[str, str], WalletEffect] = {
    (APPROVED, PENDING): _DEBIT_APPROVED,
    (APPROVED, REJECTED): _DEBIT_APPROVED,
    (COMPLETED, PENDING): _DEBIT_COMPLETED,
    (COMPLETED, REJECTED): _DEBIT_COMPLETED,
    (REJECTED, APPROVED): _CREDIT_REFUND,
    (REJECTED, COMPLETED): _CREDIT_REFUND,
    (PENDING, APPROVED): _CREDIT_REVERTED,
    (PENDING, COMPLETED): _CREDIT_REVERTED,
}


def normalize_status(value: str) -> str:
    status = (value or "").strip().lower()
    if status not in STATUSES:
        raise ValidationError(f"Unknown payout status: {value!r}", status=value)
    return status


def wallet_effect(new_status: str, previous_status: str) -> Optional[WalletEffect]:
    """
    Decided from the previous status at the moment of transition, never from
    the request's history, so toggling statuses cannot double-refund.
    """
    return TRANSITION_EFFECTS.get((new_status, previous_status))
