import uuid
from decimal import Decimal

import pytest

from app.errors import BelowMinimum, InsufficientFunds, NotFound, OverPledged, ValidationError
from app.payouts import service
from app.payouts.model import APPROVED, COMPLETED, PENDING, REJECTED
from app.platform_settings import MIN_PAYOUT_AMOUNT_KEY
from app.wallets.model import PAYOUT_APPROVED, PAYOUT_REFUND, PAYOUT_REVERTED
from services import metrics

LOW_MIN = Decimal("10")

BANK = {"bank_name": "First Bank", "account_number": "12345678", "account_name": "A. Affiliate"}


def _create(store, user_id, amount, dispatcher=None, **kw):
    kw.setdefault("min_payout_amount", LOW_MIN)
    return service.create_payout(
        store,
        user_id=user_id,
        amount=amount,
        payment_method="bank_transfer",
        payment_details=BANK,
        dispatcher=dispatcher,
        **kw,
    )


def _balance(store, user_id):
    return service.get_wallet_balance(store, user_id)["balance"]


def _ledger(store, user_id):
    return service.list_transactions(store, user_id=user_id)


# ---------------------------
# Scenarios
# ---------------------------

def test_scenario_a_second_request_is_over_pledged(store, make_user, dispatcher):
    user_id = make_user("100")
    first = _create(store, user_id, "40", dispatcher)
    assert first.status == PENDING

    with pytest.raises(OverPledged):
        _create(store, user_id, "70", dispatcher)

    assert _balance(store, user_id) == Decimal("100.00")
    assert len(service.list_payout_requests(store, user_id=user_id)) == 1


def test_scenario_b_approve_debits_once(store, make_user, admin_id, dispatcher):
    user_id = make_user("100")
    payout = _create(store, user_id, "40", dispatcher)

    result = service.transition(store, payout_id=payout.id, new_status=APPROVED, actor_id=admin_id, dispatcher=dispatcher)

    assert result.status == APPROVED
    assert result.previous_status == PENDING
    assert result.wallet_delta == Decimal("-40.00")
    assert _balance(store, user_id) == Decimal("60.00")
    txs = _ledger(store, user_id)
    assert [(t.amount, t.type, t.payout_id) for t in txs] == [(Decimal("-40.00"), PAYOUT_APPROVED, payout.id)]


def test_scenario_c_reject_after_approve_refunds(store, make_user, admin_id, dispatcher):
    user_id = make_user("100")
    payout = _create(store, user_id, "40", dispatcher)
    service.transition(store, payout_id=payout.id, new_status=APPROVED, actor_id=admin_id, dispatcher=dispatcher)
    service.transition(store, payout_id=payout.id, new_status=REJECTED, actor_id=admin_id, dispatcher=dispatcher)

    assert _balance(store, user_id) == Decimal("100.00")
    txs = _ledger(store, user_id)
    assert txs[0].amount == Decimal("40.00")
    assert txs[0].type == PAYOUT_REFUND
    assert len(txs) == 2


def test_scenario_d_reject_pending_moves_no_money(store, make_user, admin_id, dispatcher):
    user_id = make_user("100")
    payout = _create(store, user_id, "40", dispatcher)
    result = service.transition(store, payout_id=payout.id, new_status=REJECTED, actor_id=admin_id, dispatcher=dispatcher)

    assert result.wallet_delta == Decimal("0.00")
    assert _balance(store, user_id) == Decimal("100.00")
    assert _ledger(store, user_id) == []


def test_scenario_e_amount_above_balance(store, make_user, dispatcher):
    user_id = make_user("30")
    with pytest.raises(InsufficientFunds):
        _create(store, user_id, "40", dispatcher)
    assert _balance(store, user_id) == Decimal("30.00")
    assert service.list_payout_requests(store, user_id=user_id) == []


# ---------------------------
# create_payout checks
# ---------------------------

def test_insufficient_funds_checked_before_minimum(store, make_user):
    user_id = make_user("5")
    # 8 is below the minimum of 10 AND above the balance of 5
    with pytest.raises(InsufficientFunds):
        _create(store, user_id, "8")


def test_below_minimum(store, make_user):
    user_id = make_user("100")
    with pytest.raises(BelowMinimum):
        _create(store, user_id, "9.99")


def test_minimum_falls_back_to_platform_setting_then_settings(store, make_user):
    user_id = make_user("100")
    with pytest.raises(BelowMinimum):
        _create(store, user_id, "49", min_payout_amount=None)  # settings default 50

    store.set_platform_setting(MIN_PAYOUT_AMOUNT_KEY, "20")
    payout = _create(store, user_id, "25", min_payout_amount=None)
    assert payout.amount == Decimal("25.00")


def test_unparseable_platform_minimum_uses_settings_default(store, make_user):
    user_id = make_user("100")
    store.set_platform_setting(MIN_PAYOUT_AMOUNT_KEY, "lots")
    with pytest.raises(BelowMinimum):
        _create(store, user_id, "49", min_payout_amount=None)


def test_pledge_accounting_allows_exact_remainder(store, make_user):
    user_id = make_user("100")
    _create(store, user_id, "40")
    _create(store, user_id, "60")
    with pytest.raises(OverPledged):
        _create(store, user_id, "10")

    out = service.get_wallet_balance(store, user_id)
    assert out["pending_total"] == Decimal("100.00")
    assert out["available"] == Decimal("0.00")


def test_approved_requests_no_longer_count_as_pending(store, make_user, admin_id):
    user_id = make_user("100")
    p = _create(store, user_id, "40")
    service.transition(store, payout_id=p.id, new_status=APPROVED, actor_id=admin_id)
    # balance 60, nothing pending
    _create(store, user_id, "60")


@pytest.mark.parametrize("amount", ["0", "-5", "abc", None, True])
def test_invalid_amount(store, make_user, amount):
    user_id = make_user("100")
    with pytest.raises(ValidationError):
        _create(store, user_id, amount)


def test_empty_payment_method(store, make_user):
    user_id = make_user("100")
    with pytest.raises(ValidationError):
        service.create_payout(store, user_id=user_id, amount="20", payment_method="  ", min_payout_amount=LOW_MIN)


def test_missing_wallet(store):
    with pytest.raises(NotFound):
        _create(store, uuid.uuid4(), "20")


def test_sub_cent_amount_rejected(store, make_user):
    user_id = make_user("100")
    with pytest.raises(ValidationError):
        _create(store, user_id, "20.005")
    assert service.list_payout_requests(store, user_id=user_id) == []

    payout = _create(store, user_id, "20.1")
    assert payout.amount == Decimal("20.10")


def test_create_counts_rejections(store, make_user):
    user_id = make_user("30")
    with pytest.raises(InsufficientFunds):
        _create(store, user_id, "40")
    assert metrics.get_counter("payout_rejections_total", {"operation": "create", "code": "INSUFFICIENT_FUNDS"}) == 1


# ---------------------------
# transition
# ---------------------------

def test_approve_blocked_by_insufficient_funds_changes_nothing(store, make_user, admin_id):
    user_id = make_user("100")
    payout = _create(store, user_id, "80")
    # drain the wallet after the request was made
    from app.wallets.admin import adjust_wallet

    adjust_wallet(store, user_id=user_id, amount="50", direction="debit")

    with pytest.raises(InsufficientFunds):
        service.transition(store, payout_id=payout.id, new_status=APPROVED, actor_id=admin_id)

    assert service.get_payout(store, payout.id).status == PENDING
    assert _balance(store, user_id) == Decimal("50.00")
    assert service.list_status_history(store, payout.id) == []


def test_transition_unknown_payout(store, admin_id):
    with pytest.raises(NotFound):
        service.transition(store, payout_id=uuid.uuid4(), new_status=APPROVED, actor_id=admin_id)


def test_transition_unknown_status(store, make_user, admin_id):
    user_id = make_user("100")
    payout = _create(store, user_id, "40")
    with pytest.raises(ValidationError):
        service.transition(store, payout_id=payout.id, new_status="paid", actor_id=admin_id)


def test_restamp_approved_is_noop_for_money(store, make_user, admin_id):
    user_id = make_user("100")
    payout = _create(store, user_id, "40")
    service.transition(store, payout_id=payout.id, new_status=APPROVED, actor_id=admin_id)
    r2 = service.transition(store, payout_id=payout.id, new_status=APPROVED, actor_id=admin_id)
    r3 = service.transition(store, payout_id=payout.id, new_status=COMPLETED, actor_id=admin_id)

    assert r2.wallet_delta == Decimal("0.00")
    assert r3.wallet_delta == Decimal("0.00")
    assert _balance(store, user_id) == Decimal("60.00")
    assert len(_ledger(store, user_id)) == 1


def test_revert_to_pending_refunds_and_clears_processed(store, make_user, admin_id):
    user_id = make_user("100")
    payout = _create(store, user_id, "40")
    service.transition(store, payout_id=payout.id, new_status=COMPLETED, actor_id=admin_id, admin_notes="sent")

    done = service.get_payout(store, payout.id)
    assert done.processed_by == admin_id
    assert done.processed_at is not None
    assert done.admin_notes == "sent"

    service.transition(store, payout_id=payout.id, new_status=PENDING, actor_id=admin_id)
    back = service.get_payout(store, payout.id)
    assert back.status == PENDING
    assert back.processed_at is None
    assert back.processed_by is None
    assert back.admin_notes is None
    assert _balance(store, user_id) == Decimal("100.00")
    assert _ledger(store, user_id)[0].type == PAYOUT_REVERTED


def test_rejected_then_approved_debits_again(store, make_user, admin_id):
    user_id = make_user("100")
    payout = _create(store, user_id, "40")
    for status in (APPROVED, REJECTED, APPROVED):
        service.transition(store, payout_id=payout.id, new_status=status, actor_id=admin_id)
    assert _balance(store, user_id) == Decimal("60.00")
    assert sum(t.amount for t in _ledger(store, user_id)) == Decimal("-40.00")


def test_transition_metrics(store, make_user, admin_id):
    user_id = make_user("100")
    payout = _create(store, user_id, "40")
    service.transition(store, payout_id=payout.id, new_status=APPROVED, actor_id=admin_id)
    assert metrics.get_counter(
        "payout_transitions_total", {"from": PENDING, "to": APPROVED, "effect": "debit"}
    ) == 1


# ---------------------------
# notifications
# ---------------------------

def test_notifications_after_create_and_non_pending_transitions(store, make_user, admin_id, dispatcher):
    user_id = make_user("100", name="Dee", email="dee@example.com")
    payout = _create(store, user_id, "40", dispatcher)
    service.transition(store, payout_id=payout.id, new_status=APPROVED, actor_id=admin_id, dispatcher=dispatcher, admin_notes="ok")
    service.transition(store, payout_id=payout.id, new_status=PENDING, actor_id=admin_id, dispatcher=dispatcher)
    service.transition(store, payout_id=payout.id, new_status=REJECTED, actor_id=admin_id, dispatcher=dispatcher)

    assert dispatcher.types() == ["new_payout_request_admin", "payout_approved", "payout_rejected"]

    _, created = dispatcher.sent[0]
    assert created["user_email"] == "dee@example.com"
    assert created["payment_details"]["account_number"] == "****5678"

    _, approved = dispatcher.sent[1]
    assert approved["amount"] == "40.00"
    assert approved["notes"] == "ok"


def test_failing_dispatcher_does_not_undo_transition(store, make_user, admin_id):
    class Broken:
        def send(self, event_type, payload):
            raise RuntimeError("mail service down")

    user_id = make_user("100")
    payout = _create(store, user_id, "40", Broken())
    service.transition(store, payout_id=payout.id, new_status=APPROVED, actor_id=admin_id, dispatcher=Broken())
    assert service.get_payout(store, payout.id).status == APPROVED
    assert _balance(store, user_id) == Decimal("60.00")


def test_reads_do_not_share_stored_payment_details(store, make_user):
    user_id = make_user("100")
    payout = _create(store, user_id, "40")

    fetched = service.get_payout(store, payout.id)
    fetched.payment_details["account_number"] = "00000000"
    service.list_payout_requests(store, user_id=user_id)[0].payment_details.clear()

    assert service.get_payout(store, payout.id).payment_details == BANK


def test_sub_cent_minimum_setting_falls_back_to_default(store, make_user):
    store.set_platform_setting(MIN_PAYOUT_AMOUNT_KEY, "10.555")
    user_id = make_user("100")
    with pytest.raises(BelowMinimum):
        _create(store, user_id, "40", min_payout_amount=None)
