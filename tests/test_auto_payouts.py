from decimal import Decimal

from app.payouts import service
from app.payouts.auto import run_auto_payouts
from app.platform_settings import AUTO_PAYOUT_ENABLED_KEY, AUTO_PAYOUT_THRESHOLD_KEY


def _enable(store, threshold="500"):
    store.set_platform_setting(AUTO_PAYOUT_ENABLED_KEY, "true")
    store.set_platform_setting(AUTO_PAYOUT_THRESHOLD_KEY, threshold)


def test_disabled_sweep_does_nothing(store, make_user, dispatcher):
    make_user("5000", kyc_status="approved")
    out = run_auto_payouts(store, dispatcher=dispatcher)
    assert out == {"processed": 0, "message": "Auto-payout is disabled", "results": []}


def test_sweep_creates_pending_requests_without_debit(store, make_user, dispatcher):
    _enable(store)
    rich = make_user("750", kyc_status="approved", name="Rich", email="rich@example.com")
    make_user("100", kyc_status="approved")  # below threshold
    make_user("900", kyc_status="pending")  # kyc not approved
    make_user("900", kyc_status="approved", user_status="suspended")

    out = run_auto_payouts(store, dispatcher=dispatcher)

    assert out["processed"] == 1
    assert [r["status"] for r in out["results"]] == ["created"]
    assert out["results"][0]["user_id"] == str(rich)

    (payout,) = service.list_payout_requests(store, user_id=rich)
    assert payout.status == "pending"
    assert payout.amount == Decimal("750.00")
    assert payout.payment_method == "bank_transfer"
    assert payout.payment_details["auto_generated"] is True
    assert "500" in payout.payment_details["reason"]

    # money only moves on approval
    assert service.get_wallet_balance(store, rich)["balance"] == Decimal("750.00")
    assert service.list_transactions(store, user_id=rich) == []
    assert "payout_created" in dispatcher.types()


def test_sweep_skips_users_with_pending_request(store, make_user, dispatcher):
    _enable(store)
    user_id = make_user("800", kyc_status="approved")
    service.create_payout(
        store,
        user_id=user_id,
        amount="100",
        payment_method="paypal",
        payment_details={},
        min_payout_amount=Decimal("10"),
    )

    out = run_auto_payouts(store, dispatcher=dispatcher)
    assert out["processed"] == 0
    assert out["results"][0]["status"] == "skipped_pending_exists"
    assert len(service.list_payout_requests(store, user_id=user_id)) == 1


def test_one_failure_does_not_stop_the_sweep(store, make_user, dispatcher, monkeypatch):
    _enable(store)
    a = make_user("600", kyc_status="approved")
    b = make_user("700", kyc_status="approved")

    from app.errors import TransientStoreError
    from app.payouts import auto

    real_create = auto.create_payout

    def flaky_create(store_, **kw):
        if kw["user_id"] == b:
            raise TransientStoreError("lock timeout")
        return real_create(store_, **kw)

    monkeypatch.setattr(auto, "create_payout", flaky_create)

    out = run_auto_payouts(store, dispatcher=dispatcher)
    by_user = {r["user_id"]: r for r in out["results"]}
    assert by_user[str(a)]["status"] == "created"
    assert by_user[str(b)]["status"] == "error"
    assert by_user[str(b)]["error"] == "STORE_UNAVAILABLE"
    assert out["processed"] == 1


class _BrokenDispatcher:
    def __init__(self):
        self.calls = 0

    def send(self, event_type, payload):
        self.calls += 1
        raise RuntimeError("mail service down")


def test_dispatcher_failure_does_not_stop_the_sweep(store, make_user):
    _enable(store)
    a = make_user("900", kyc_status="approved")
    b = make_user("800", kyc_status="approved")
    broken = _BrokenDispatcher()

    out = run_auto_payouts(store, dispatcher=broken)

    by_user = {r["user_id"]: r["status"] for r in out["results"]}
    assert by_user == {str(a): "created", str(b): "created"}
    assert out["processed"] == 2
    assert len(service.list_payout_requests(store, user_id=a)) == 1
    assert len(service.list_payout_requests(store, user_id=b)) == 1
    # admin notice and payout_created for each user, all swallowed
    assert broken.calls == 4


def test_store_error_in_pending_check_is_per_user(store, make_user, dispatcher, monkeypatch):
    _enable(store)
    a = make_user("600", kyc_status="approved")
    b = make_user("700", kyc_status="approved")

    from app.errors import TransientStoreError
    from app.payouts.memory import MemoryUnitOfWork

    real_list = MemoryUnitOfWork.list_payouts

    def flaky_list(self, *, user_id=None, status=None, limit=200):
        if user_id == a:
            raise TransientStoreError("lock timeout")
        return real_list(self, user_id=user_id, status=status, limit=limit)

    monkeypatch.setattr(MemoryUnitOfWork, "list_payouts", flaky_list)

    out = run_auto_payouts(store, dispatcher=dispatcher)
    by_user = {r["user_id"]: r for r in out["results"]}
    assert by_user[str(a)]["status"] == "error"
    assert by_user[str(a)]["error"] == "STORE_UNAVAILABLE"
    assert by_user[str(b)]["status"] == "created"
