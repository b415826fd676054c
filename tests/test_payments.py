import httpx

from conftest import CASHFREE_HOST, OXAPAY_HOST, auth, make_settings, profile, register


def plans(client):
    return client.get("/api/plans").json()["plans"]


def cashfree_ok(request):
    if request.method == "POST":
        body = request.read()
        assert body
        return httpx.Response(
            200,
            json={"payment_link": "https://pay.cashfree.com/link", "payment_session_id": "sess_1"},
        )
    return httpx.Response(200, json={"order_status": "ACTIVE"})


def start_cashfree(client, upstream, token, plan_id=1):
    upstream.on(CASHFREE_HOST, cashfree_ok)
    resp = client.post("/api/payments/cashfree", json={"plan_id": plan_id}, headers=auth(token))
    assert resp.status_code == 200, resp.text
    return resp.json()


def start_oxapay(client, upstream, token, plan_id=1):
    upstream.queue(
        OXAPAY_HOST,
        httpx.Response(200, json={"result": 100, "payLink": "https://oxapay.com/pay/1", "trackId": "T-1"}),
    )
    resp = client.post(
        "/api/payments/oxapay",
        json={"plan_id": plan_id, "return_url": "https://site/credits"},
        headers=auth(token),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_default_plans_are_seeded(client):
    items = plans(client)
    assert [(p["credits"], p["inr_price"]) for p in items] == [
        (50, 149.0),
        (100, 229.0),
        (200, 299.0),
        (500, 349.0),
        (1000, 499.0),
    ]
    # INR price / 83, rounded to cents
    assert items[0]["usd_price"] == 1.80
    assert items[-1]["usd_price"] == 6.01


def test_cashfree_checkout_records_pending_intent(client, upstream):
    token, user = register(client)
    data = start_cashfree(client, upstream, token)

    assert data["payment_link"] == "https://pay.cashfree.com/link"
    assert data["payment_session_id"] == "sess_1"
    assert data["amount"] == 149.0
    assert data["credits"] == 50
    user_id, credits, millis = data["order_id"].split("-")
    assert int(user_id) == user["id"]
    assert credits == "50"
    assert millis.isdigit()

    call = upstream.calls_to(CASHFREE_HOST)[0]
    assert str(call.url) == "https://api.cashfree.com/pg/orders"
    assert call.headers["x-client-id"] == "cf-app"
    assert call.headers["x-client-secret"] == "cf-secret"
    assert call.headers["x-api-version"] == "2022-09-01"
    body = upstream.bodies_to(CASHFREE_HOST)[0]
    assert body["order_id"] == data["order_id"]
    assert body["order_amount"] == 149.0
    assert body["order_currency"] == "INR"
    assert body["customer_details"] == {
        "customer_id": str(user["id"]),
        "customer_name": "Alice",
        "customer_email": "alice@example.com",
        "customer_phone": "9999999999",
    }

    history = client.get("/api/payments/history", headers=auth(token)).json()
    [item] = history["payment_requests"]
    assert item["status"] == "pending"
    assert item["plan"] == "50 Credits"
    assert item["order_id"] == data["order_id"]


def test_cashfree_checkout_uses_given_phone(client, upstream):
    token, _ = register(client)
    upstream.on(CASHFREE_HOST, cashfree_ok)
    client.post("/api/payments/cashfree", json={"plan_id": 2, "phone": " 9876543210 "}, headers=auth(token))
    body = upstream.bodies_to(CASHFREE_HOST)[0]
    assert body["customer_details"]["customer_phone"] == "9876543210"
    assert body["order_amount"] == 229.0


def test_cashfree_gateway_failure_rejects_intent(client, upstream):
    token, _ = register(client)
    upstream.queue(CASHFREE_HOST, httpx.Response(400, json={"message": "order_amount invalid"}))
    resp = client.post("/api/payments/cashfree", json={"plan_id": 1}, headers=auth(token))
    assert resp.status_code == 400
    assert resp.json()["message"] == "order_amount invalid"
    [item] = client.get("/api/payments/history", headers=auth(token)).json()["payment_requests"]
    assert item["status"] == "rejected"


def test_cashfree_response_without_link_is_failure(client, upstream):
    token, _ = register(client)
    upstream.queue(CASHFREE_HOST, httpx.Response(200, json={"payment_session_id": "s"}))
    resp = client.post("/api/payments/cashfree", json={"plan_id": 1}, headers=auth(token))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Failed to initiate Cashfree payment"


def test_cashfree_verify_credits_once(client, upstream):
    token, _ = register(client)
    order_id = start_cashfree(client, upstream, token)["order_id"]
    upstream.on(CASHFREE_HOST, lambda request: httpx.Response(200, json={"order_status": "PAID"}))

    resp = client.post("/api/payments/cashfree/verify", json={"order_id": order_id}, headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["credits_added"] == 50
    assert resp.json()["credits"] == 75
    assert str(upstream.calls_to(CASHFREE_HOST)[-1].url) == f"https://api.cashfree.com/pg/orders/{order_id}"

    again = client.post("/api/payments/cashfree/verify", json={"order_id": order_id}, headers=auth(token))
    assert again.json()["status"] == "already_processed"
    assert profile(client, token)["credits"] == 75


def test_cashfree_verify_pending_and_expired(client, upstream):
    token, _ = register(client)
    order_id = start_cashfree(client, upstream, token)["order_id"]

    upstream.queue(CASHFREE_HOST, httpx.Response(200, json={"order_status": "ACTIVE"}))
    resp = client.post("/api/payments/cashfree/verify", json={"order_id": order_id}, headers=auth(token))
    assert resp.json()["status"] == "pending"
    assert resp.json()["gateway_status"] == "ACTIVE"

    upstream.queue(CASHFREE_HOST, httpx.Response(200, json={"order_status": "EXPIRED"}))
    resp = client.post("/api/payments/cashfree/verify", json={"order_id": order_id}, headers=auth(token))
    assert resp.json()["status"] == "rejected"
    assert profile(client, token)["credits"] == 25


def test_cashfree_verify_gateway_error(client, upstream):
    token, _ = register(client)
    order_id = start_cashfree(client, upstream, token)["order_id"]
    upstream.queue(CASHFREE_HOST, httpx.Response(404, json={"message": "order not found"}))
    resp = client.post("/api/payments/cashfree/verify", json={"order_id": order_id}, headers=auth(token))
    assert resp.status_code == 400
    assert resp.json()["message"] == "order not found"


def test_verify_other_users_order_is_not_found(client, upstream):
    token, _ = register(client)
    order_id = start_cashfree(client, upstream, token)["order_id"]
    other, _ = register(client, email="mallory@example.com", name="Mallory")
    resp = client.post("/api/payments/cashfree/verify", json={"order_id": order_id}, headers=auth(other))
    assert resp.status_code == 404
    assert resp.json()["message"] == "Transaction record not found."


def test_unknown_plan(client, upstream):
    token, _ = register(client)
    resp = client.post("/api/payments/cashfree", json={"plan_id": 999}, headers=auth(token))
    assert resp.status_code == 404
    assert upstream.calls == []


def test_gateways_not_configured(make_client, tmp_path, upstream):
    client = make_client(
        make_settings(tmp_path, CASHFREE_APP_ID="", CASHFREE_SECRET_KEY="", OXAPAY_MERCHANT_ID="")
    )
    token, _ = register(client)
    resp = client.post("/api/payments/cashfree", json={"plan_id": 1}, headers=auth(token))
    assert resp.status_code == 503
    resp = client.post("/api/payments/oxapay", json={"plan_id": 1}, headers=auth(token))
    assert resp.status_code == 503
    assert upstream.calls == []


def test_oxapay_checkout(client, upstream):
    token, user = register(client)
    data = start_oxapay(client, upstream, token)

    assert data["payment_url"] == "https://oxapay.com/pay/1"
    assert data["track_id"] == "T-1"
    assert data["currency"] == "USD"
    assert data["amount"] == 1.80

    call = upstream.calls_to(OXAPAY_HOST)[0]
    assert str(call.url) == "https://api.oxapay.com/merchants/request"
    assert upstream.bodies_to(OXAPAY_HOST)[0] == {
        "merchant": "ox-merchant",
        "amount": 1.8,
        "currency": "USD",
        "lifeTime": 30,
        "feePaidByPayer": 0,
        "underPaidCover": 0,
        "returnUrl": "https://site/credits",
        "description": "Purchase 50 Credits - Alice",
        "orderId": data["order_id"],
        "email": "alice@example.com",
    }

    [item] = client.get("/api/payments/history", headers=auth(token)).json()["crypto_transactions"]
    assert item["status"] == "pending"
    assert item["gateway"] == "OXAPAY"
    assert item["user_id"] == user["id"]


def test_oxapay_checkout_rejected_by_gateway(client, upstream):
    token, _ = register(client)
    upstream.queue(OXAPAY_HOST, httpx.Response(200, json={"result": 102, "message": "Invalid merchant"}))
    resp = client.post("/api/payments/oxapay", json={"plan_id": 1}, headers=auth(token))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Payment Gateway Error: Invalid merchant"


def test_oxapay_verify_credits_once(client, upstream):
    token, _ = register(client)
    order_id = start_oxapay(client, upstream, token, plan_id=2)["order_id"]

    upstream.queue(OXAPAY_HOST, httpx.Response(200, json={"result": 100, "status": "Waiting"}))
    resp = client.post("/api/payments/oxapay/verify", json={"order_id": order_id}, headers=auth(token))
    assert resp.json()["status"] == "pending"

    upstream.queue(OXAPAY_HOST, httpx.Response(200, json={"result": 100, "status": "Paid"}))
    resp = client.post("/api/payments/oxapay/verify", json={"order_id": order_id}, headers=auth(token))
    assert resp.json()["status"] == "completed"
    assert resp.json()["credits"] == 125
    assert upstream.bodies_to(OXAPAY_HOST)[-1] == {"merchant": "ox-merchant", "trackId": "T-1"}

    calls = len(upstream.calls)
    again = client.post("/api/payments/oxapay/verify", json={"order_id": order_id}, headers=auth(token))
    assert again.json()["status"] == "already_processed"
    assert len(upstream.calls) == calls
    assert profile(client, token)["credits"] == 125


def test_history_requires_auth(client):
    assert client.get("/api/payments/history").status_code == 401
