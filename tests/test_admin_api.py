import uuid
from decimal import Decimal

from app.payouts import service
from app.platform_settings import AUTO_PAYOUT_ENABLED_KEY, AUTO_PAYOUT_THRESHOLD_KEY


def _pending(store, user_id, amount="40"):
    return service.create_payout(
        store,
        user_id=user_id,
        amount=amount,
        payment_method="bank_transfer",
        payment_details={"bank_name": "B", "account_number": "99887766", "account_name": "N"},
        min_payout_amount=Decimal("10"),
    )


def test_admin_routes_require_admin_role(client, auth, make_user):
    user_id = make_user("100")
    for method, path in [
        ("get", "/v1/admin/payouts"),
        ("get", "/v1/admin/wallets"),
        ("get", "/v1/admin/ledger/invariants"),
        ("post", "/v1/admin/payouts/auto-run"),
    ]:
        r = getattr(client, method)(path, headers=auth(user_id))
        assert r.status_code == 403, (path, r.text)
        assert r.json()["detail"] == "ADMIN_REQUIRED"


def test_admin_list_with_user_and_pending_totals(client, auth, store, make_user, admin_id):
    a = make_user("100", name="Ann", email="ann@example.com")
    b = make_user("100", name="Bo", email="bo@example.com")
    _pending(store, a, "40")
    p2 = _pending(store, b, "25")
    service.transition(store, payout_id=p2.id, new_status="approved", actor_id=admin_id)

    r = client.get("/v1/admin/payouts", headers=auth(admin_id))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["pending_count"] == 1
    assert Decimal(body["total_pending"]) == Decimal("40")
    names = {i["user_name"] for i in body["items"]}
    assert names == {"Ann", "Bo"}
    # admins see full payment details
    assert body["items"][0]["payment_details"]["account_number"] == "99887766"

    r = client.get("/v1/admin/payouts?status=approved", headers=auth(admin_id))
    assert [i["id"] for i in r.json()["items"]] == [str(p2.id)]


def test_admin_status_update(client, auth, store, make_user, admin_id, dispatcher):
    user_id = make_user("100")
    payout = _pending(store, user_id)

    r = client.post(
        f"/v1/admin/payouts/{payout.id}/status",
        json={"status": "approved", "admin_notes": "paid via bank"},
        headers=auth(admin_id),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["previous_status"] == "pending"
    assert body["status"] == "approved"
    assert Decimal(body["wallet_delta"]) == Decimal("-40")
    assert Decimal(body["balance_after"]) == Decimal("60")
    assert "payout_approved" in dispatcher.types()

    r = client.get(f"/v1/admin/payouts/{payout.id}/history", headers=auth(admin_id))
    (item,) = r.json()["items"]
    assert item["notes"] == "paid via bank"
    assert item["changed_by"] == str(admin_id)


def test_admin_status_update_errors(client, auth, store, make_user, admin_id):
    r = client.post(
        f"/v1/admin/payouts/{uuid.uuid4()}/status",
        json={"status": "approved"},
        headers=auth(admin_id),
    )
    assert r.status_code == 404, r.text

    user_id = make_user("100")
    payout = _pending(store, user_id, "90")
    client.post(
        f"/v1/admin/wallets/{user_id}/adjust",
        json={"amount": "20", "direction": "debit"},
        headers=auth(admin_id),
    )
    r = client.post(
        f"/v1/admin/payouts/{payout.id}/status",
        json={"status": "completed"},
        headers=auth(admin_id),
    )
    assert r.status_code == 409, r.text
    assert r.json()["code"] == "INSUFFICIENT_FUNDS"

    r = client.post(
        f"/v1/admin/payouts/{payout.id}/status",
        json={"status": "paid"},
        headers=auth(admin_id),
    )
    assert r.status_code == 422, r.text


def test_admin_wallets_open_adjust_and_invariants(client, auth, store, make_user, admin_id):
    user_id = make_user(name="Newbie", wallet=False)

    r = client.post(f"/v1/admin/wallets/{user_id}", json={"opening_balance": "12.50"}, headers=auth(admin_id))
    assert r.status_code == 201, r.text
    assert Decimal(r.json()["balance"]) == Decimal("12.50")

    r = client.post(f"/v1/admin/wallets/{user_id}", json={}, headers=auth(admin_id))
    assert r.status_code == 422, r.text

    r = client.post(
        f"/v1/admin/wallets/{user_id}/adjust",
        json={"amount": "7.50", "direction": "credit", "description": "bonus"},
        headers=auth(admin_id),
    )
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["balance"]) == Decimal("20")
    assert r.json()["transaction"]["type"] == "admin_credit"

    r = client.post(
        f"/v1/admin/wallets/{user_id}/adjust",
        json={"amount": "21", "direction": "debit"},
        headers=auth(admin_id),
    )
    assert r.status_code == 409, r.text

    r = client.get("/v1/admin/wallets", headers=auth(admin_id))
    (wallet,) = r.json()["wallets"]
    assert wallet["name"] == "Newbie"

    r = client.get(f"/v1/admin/wallets/transactions?user_id={user_id}", headers=auth(admin_id))
    assert [t["type"] for t in r.json()["items"]] == ["admin_credit"]

    r = client.get("/v1/admin/ledger/invariants", headers=auth(admin_id))
    assert r.status_code == 200, r.text
    assert r.json()["ok"] is True


def test_admin_auto_run(client, auth, store, make_user, admin_id):
    store.set_platform_setting(AUTO_PAYOUT_ENABLED_KEY, "true")
    store.set_platform_setting(AUTO_PAYOUT_THRESHOLD_KEY, "100")
    user_id = make_user("250", kyc_status="approved")

    r = client.post("/v1/admin/payouts/auto-run", headers=auth(admin_id))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["processed"] == 1
    assert body["results"][0]["user_id"] == str(user_id)
    assert body["results"][0]["status"] == "created"


def test_unhandled_error_is_generic_500(client, auth, make_user, monkeypatch):
    import routes.wallet as wallet_routes

    def blowup(*args, **kwargs):
        raise Exception("SOME_RANDOM_DB_BLOWUP_123")

    monkeypatch.setattr(wallet_routes.payouts, "get_wallet_balance", blowup)
    user_id = make_user("10")
    r = client.get("/v1/wallet/balance", headers=auth(user_id))
    assert r.status_code == 500, r.text
    assert r.json() == {"detail": "Internal server error"}
    assert "SOME_RANDOM_DB_BLOWUP_123" not in r.text
