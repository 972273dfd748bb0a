import pytest

from app.errors import ValidationError
from app.payouts.model import APPROVED, COMPLETED, PENDING, REJECTED, STATUSES
from app.payouts.state_machine import normalize_status, wallet_effect
from app.wallets.model import PAYOUT_APPROVED, PAYOUT_COMPLETED, PAYOUT_REFUND, PAYOUT_REVERTED


@pytest.mark.parametrize(
    "new, prev, sign, reason",
    [
        (APPROVED, PENDING, -1, PAYOUT_APPROVED),
        (COMPLETED, PENDING, -1, PAYOUT_COMPLETED),
        (APPROVED, REJECTED, -1, PAYOUT_APPROVED),
        (COMPLETED, REJECTED, -1, PAYOUT_COMPLETED),
        (REJECTED, APPROVED, 1, PAYOUT_REFUND),
        (REJECTED, COMPLETED, 1, PAYOUT_REFUND),
        (PENDING, APPROVED, 1, PAYOUT_REVERTED),
        (PENDING, COMPLETED, 1, PAYOUT_REVERTED),
    ],
)
def test_money_moving_transitions(new, prev, sign, reason):
    effect = wallet_effect(new, prev)
    assert effect is not None
    assert effect.sign == sign
    assert effect.reason == reason


@pytest.mark.parametrize(
    "new, prev",
    [
        (APPROVED, APPROVED),
        (APPROVED, COMPLETED),
        (COMPLETED, APPROVED),
        (COMPLETED, COMPLETED),
        (REJECTED, PENDING),
        (REJECTED, REJECTED),
        (PENDING, PENDING),
        (PENDING, REJECTED),
    ],
)
def test_transitions_without_wallet_effect(new, prev):
    assert wallet_effect(new, prev) is None


def test_debit_only_leaving_undebited_states():
    debited = {APPROVED, COMPLETED}
    for new in STATUSES:
        for prev in STATUSES:
            effect = wallet_effect(new, prev)
            if effect is None:
                continue
            if effect.is_debit:
                assert prev not in debited and new in debited
            else:
                assert prev in debited and new not in debited


def test_normalize_status_accepts_case_and_whitespace():
    assert normalize_status(" Approved ") == APPROVED


@pytest.mark.parametrize("bad", ["", "paid", None, "cancelled"])
def test_normalize_status_rejects_unknown(bad):
    with pytest.raises(ValidationError):
        normalize_status(bad)
