import httpx
import pytest


IMAGE_URL = "https://api.a4f.co/v1/files/image.png"


def test_proxy_streams_upstream_bytes(client, upstream):
    upstream.queue("api.a4f.co", httpx.Response(200, content=b"\x89PNG...", headers={"content-type": "image/png"}))
    resp = client.get("/api/proxy-image", params={"url": IMAGE_URL})
    assert resp.status_code == 200
    assert resp.content == b"\x89PNG..."
    assert resp.headers["content-type"] == "image/png"
    assert resp.headers["access-control-allow-origin"] == "*"
    assert str(upstream.calls[0].url) == IMAGE_URL


def test_proxy_defaults_to_jpeg(client, upstream):
    upstream.queue("a4f.co", httpx.Response(200, content=b"jpeg-bytes"))
    resp = client.get("/api/proxy-image", params={"url": "https://a4f.co/x.jpg"})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/jpeg"


@pytest.mark.parametrize(
    "params, message",
    [
        ({}, "Missing url"),
        ({"url": ""}, "Missing url"),
        ({"url": "not a url"}, "Invalid url"),
        ({"url": "https://[::1/x.png"}, "Invalid url"),
        ({"url": "http://api.a4f.co/x.png"}, "Forbidden host"),
        ({"url": "https://evil.example.com/x.png"}, "Forbidden host"),
        ({"url": "https://api.a4f.co.evil.com/x.png"}, "Forbidden host"),
    ],
)
def test_proxy_rejects_bad_urls(client, upstream, params, message):
    resp = client.get("/api/proxy-image", params=params)
    assert resp.status_code == 400
    assert resp.json()["message"] == message
    assert upstream.calls == []


def test_proxy_relays_upstream_status(client, upstream):
    upstream.queue("api.a4f.co", httpx.Response(404, text="gone"))
    resp = client.get("/api/proxy-image", params={"url": IMAGE_URL})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Upstream image error"
