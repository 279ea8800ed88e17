"""Tests for promo injection and product image lookup."""

import random

import pytest
import requests

import dealbot.media as media
from dealbot.promo import PROMOTIONAL_MESSAGES, add_promo, has_promo


# =========================
# PROMO
# =========================
class TestPromo:
    def test_appends_one_message(self):
        out = add_promo("Deal https://amzn.to/x", rng=random.Random(1))
        assert out.startswith("Deal https://amzn.to/x")
        assert sum(msg in out for msg in PROMOTIONAL_MESSAGES) == 1

    def test_not_added_twice(self):
        once = add_promo("Deal", rng=random.Random(2))
        assert add_promo(once, rng=random.Random(3)) == once

    def test_source_promo_counts(self):
        text = "Deal! Heavy Discount inside"
        assert has_promo(text)
        assert add_promo(text) == text

    def test_no_messages(self):
        assert add_promo("Deal", messages=()) == "Deal"


# =========================
# MEDIA
# =========================
class _FakeResponse:
    def __init__(self, text="", status=200, content=b""):
        self.text = text
        self.status_code = status
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class TestExtractImage:
    @pytest.mark.parametrize("page,expected", [
        ('<meta property="og:image" content="https://img.example/a.jpg">', "https://img.example/a.jpg"),
        ("<meta content='https://img.example/b.jpg' property='og:image'/>", "https://img.example/b.jpg"),
        ('<img id="landingImage" src="https://m.media-amazon.com/c.jpg">', "https://m.media-amazon.com/c.jpg"),
        ('<meta property="og:image" content="https://img.example/d.jpg?a=1&amp;b=2">',
         "https://img.example/d.jpg?a=1&b=2"),
        ("<meta property=og:image content=https://img.example/x.jpg>", "https://img.example/x.jpg"),
        ('<meta name="x" content="https://img.example/it\'s.jpg" data-k="1" property="og:image">',
         "https://img.example/it's.jpg"),
        ('<img class="a-dynamic-image" src="https://m.media-amazon.com/e.jpg" alt="" id="landingImage">',
         "https://m.media-amazon.com/e.jpg"),
        ('<meta property="og:image" content=""><img id="landingImage" src="https://m.media-amazon.com/f.jpg">',
         "https://m.media-amazon.com/f.jpg"),
        ("<html><body>nothing</body></html>", None),
        ("", None),
    ])
    def test_extract(self, page, expected):
        assert media.extract_image_url(page) == expected

    def test_first_url(self):
        assert media.first_url("buy https://a.com/x and https://b.com/y") == "https://a.com/x"
        assert media.first_url("no links") is None


class TestGetProductImage:
    def test_fetches_first_url(self, monkeypatch):
        calls = []

        def fake_get(url, headers=None, timeout=None):
            calls.append((url, headers, timeout))
            return _FakeResponse('<meta property="og:image" content="https://img.example/p.jpg">')

        monkeypatch.setattr(media.requests, "get", fake_get)
        assert media.get_product_image("deal https://www.flipkart.com/p/1") == "https://img.example/p.jpg"
        assert calls == [("https://www.flipkart.com/p/1", {"User-Agent": media.USER_AGENT}, media.PAGE_TIMEOUT_SEC)]

    def test_http_error_returns_none(self, monkeypatch, log_lines):
        monkeypatch.setattr(media.requests, "get", lambda *a, **k: _FakeResponse(status=503))
        assert media.get_product_image("https://www.flipkart.com/p/1") is None
        assert any(line.startswith("ERROR") for line in log_lines)

    def test_network_error_returns_none(self, monkeypatch):
        def fake_get(*a, **k):
            raise requests.ConnectionError("down")

        monkeypatch.setattr(media.requests, "get", fake_get)
        assert media.get_product_image("https://www.flipkart.com/p/1") is None

    def test_no_url_no_request(self, monkeypatch):
        def fake_get(*a, **k):
            raise AssertionError("should not fetch")

        monkeypatch.setattr(media.requests, "get", fake_get)
        assert media.get_product_image("just text") is None

    def test_download_image(self, monkeypatch):
        monkeypatch.setattr(media.requests, "get", lambda *a, **k: _FakeResponse(content=b"\x89PNG"))
        assert media.download_image("https://img.example/p.png") == b"\x89PNG"
