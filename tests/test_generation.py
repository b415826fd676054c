import httpx

from conftest import A4F_HOST, a4f_urls, admin_token, auth, make_settings, profile, register


def generate(client, token, prompt="a red fox", count=1):
    return client.post(
        "/api/generate",
        json={"prompt": prompt, "number_of_images": count},
        headers=auth(token),
    )


def test_generate_charges_per_image(client, upstream):
    token, _ = register(client)
    upstream.queue(A4F_HOST, a4f_urls("https://api.a4f.co/img/1.png", "https://api.a4f.co/img/2.png"))

    resp = generate(client, token, count=2)

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["images"] == ["https://api.a4f.co/img/1.png", "https://api.a4f.co/img/2.png"]
    assert data["credits"] == 15
    assert data["charged"] == 10
    assert data["refunded"] == 0

    call = upstream.calls_to(A4F_HOST)[0]
    assert str(call.url) == "https://api.a4f.co/v1/images/generations"
    assert call.headers["authorization"] == "Bearer test-a4f-key"
    assert upstream.bodies_to(A4F_HOST)[0] == {
        "model": "provider-4/imagen-3.5",
        "prompt": "a red fox",
        "num_images": 2,
        "size": "1024x1024",
    }


def test_generate_accepts_camel_case_count(client, upstream):
    token, _ = register(client)
    upstream.queue(A4F_HOST, a4f_urls("u1", "u2"))
    resp = client.post(
        "/api/generate",
        json={"prompt": "fox", "numberOfImages": 2},
        headers=auth(token),
    )
    assert resp.status_code == 200
    assert upstream.bodies_to(A4F_HOST)[0]["num_images"] == 2


def test_count_is_clamped_to_six(client, upstream):
    token = admin_token(client)
    upstream.queue(A4F_HOST, a4f_urls(*[f"u{i}" for i in range(6)]))
    resp = generate(client, token, count=40)
    assert resp.status_code == 200
    assert upstream.bodies_to(A4F_HOST)[0]["num_images"] == 6
    assert resp.json()["credits"] == 999999 - 30


def test_non_numeric_count_means_one(client, upstream):
    token, _ = register(client)
    upstream.queue(A4F_HOST, a4f_urls("u1"))
    resp = generate(client, token, count="lots")
    assert resp.status_code == 200
    assert upstream.bodies_to(A4F_HOST)[0]["num_images"] == 1
    assert resp.json()["credits"] == 20


def test_zero_count_means_one(client, upstream):
    token, _ = register(client)
    upstream.queue(A4F_HOST, a4f_urls("u1"))
    generate(client, token, count=0)
    assert upstream.bodies_to(A4F_HOST)[0]["num_images"] == 1


def test_insufficient_credits_skips_provider(client, upstream):
    token, _ = register(client)
    resp = generate(client, token, count=6)
    assert resp.status_code == 402
    assert resp.json()["error"] == "insufficient_credits"
    assert upstream.calls_to(A4F_HOST) == []
    assert profile(client, token)["credits"] == 25


def test_invalid_prompt(client, upstream):
    token, _ = register(client)
    for prompt in ("", "   ", None, 42):
        resp = generate(client, token, prompt=prompt)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid prompt"
    assert upstream.calls_to(A4F_HOST) == []


def test_generate_requires_auth(client):
    resp = client.post("/api/generate", json={"prompt": "fox"})
    assert resp.status_code == 401


def test_missing_provider_key(make_client, tmp_path, upstream):
    client = make_client(make_settings(tmp_path, A4F_API_KEY=""))
    token, _ = register(client)
    resp = generate(client, token)
    assert resp.status_code == 503
    assert resp.json()["message"] == "Missing A4F_API_KEY"
    assert profile(client, token)["credits"] == 25


def test_top_up_requests_remaining_images(client, upstream):
    token, _ = register(client)
    upstream.queue(
        A4F_HOST,
        a4f_urls("u1"),
        a4f_urls("u1", "u2"),
        a4f_urls("u3"),
    )
    resp = generate(client, token, count=3)
    assert resp.status_code == 200
    assert resp.json()["images"] == ["u1", "u2", "u3"]
    assert [body["num_images"] for body in upstream.bodies_to(A4F_HOST)] == [3, 2, 1]
    assert resp.json()["credits"] == 10


def test_top_up_is_bounded_then_pads_backwards(client, upstream):
    token, _ = register(client)
    upstream.queue(A4F_HOST, a4f_urls("u1", "u2"))
    upstream.on(A4F_HOST, lambda request: a4f_urls("u2"))
    resp = generate(client, token, count=5)
    assert resp.status_code == 200
    # one initial request plus three top-ups
    assert len(upstream.calls_to(A4F_HOST)) == 4
    assert resp.json()["images"] == ["u1", "u2", "u2", "u1", "u2"]
    assert resp.json()["credits"] == 0


def test_failed_top_up_stops_loop(client, upstream):
    token, _ = register(client)
    upstream.queue(
        A4F_HOST,
        a4f_urls("u1", "u2"),
        httpx.Response(500, json={"message": "busy"}),
        a4f_urls("u3", "u4"),
    )
    resp = generate(client, token, count=4)
    assert resp.status_code == 200
    assert len(upstream.calls_to(A4F_HOST)) == 2
    assert resp.json()["images"] == ["u1", "u2", "u2", "u1"]


def test_partial_set_is_refunded_without_padding(make_client, tmp_path, upstream):
    client = make_client(make_settings(tmp_path, GENERATION_PAD_DUPLICATES=False))
    token, _ = register(client)
    upstream.queue(A4F_HOST, a4f_urls("u1", "u2"))
    upstream.on(A4F_HOST, lambda request: httpx.Response(503, json={"error": "down"}))
    resp = generate(client, token, count=4)
    assert resp.status_code == 200
    data = resp.json()
    assert data["images"] == ["u1", "u2"]
    assert data["charged"] == 10
    assert data["refunded"] == 10
    assert data["credits"] == 15


def test_provider_error_is_relayed_and_refunded(client, upstream):
    token, _ = register(client)
    upstream.queue(A4F_HOST, httpx.Response(401, json={"error": "Invalid API key"}))
    resp = generate(client, token, count=2)
    assert resp.status_code == 401
    assert resp.json() == {"error": "provider_error", "message": "Invalid API key"}
    assert profile(client, token)["credits"] == 25


def test_provider_error_without_json_uses_default_message(client, upstream):
    token, _ = register(client)
    upstream.queue(A4F_HOST, httpx.Response(500, text="boom"))
    resp = generate(client, token)
    assert resp.status_code == 500
    assert resp.json()["message"] == "Image provider error"


def test_no_images_is_bad_gateway(client, upstream):
    token, _ = register(client)
    upstream.on(A4F_HOST, lambda request: httpx.Response(200, json={"images": []}))
    resp = generate(client, token, count=2)
    assert resp.status_code == 502
    assert resp.json()["message"] == "Image provider returned no images"
    assert profile(client, token)["credits"] == 25


def test_malformed_provider_response(client, upstream):
    token, _ = register(client)
    upstream.queue(A4F_HOST, httpx.Response(200, text="<html>oops</html>"))
    resp = generate(client, token)
    assert resp.status_code == 502
    assert resp.json()["message"] == "Malformed provider response"
    assert profile(client, token)["credits"] == 25
