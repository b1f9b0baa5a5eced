"""Tests for the HTTP surface: /acquire, /webhook, health and CORS."""

import httpx
import pytest
from fastapi.testclient import TestClient

from pdfbot.acquirer import PDFAcquirer
from pdfbot.api import create_app, key_matches
from pdfbot.bot import ChatBot
from pdfbot.config import Config
from pdfbot.errors import ErrorKind
from pdfbot.fetcher import HTTPFetcher
from pdfbot.models import AcquisitionResult

from conftest import HTML_LOGIN, PDF_BYTES, FakeAcquirer, FakeDelivery, FakeRenderer, FakeTelegram


def make_config(**env) -> Config:
    return Config(environ=env)


def origin_acquirer(body: bytes, renderer: FakeRenderer):
    def handler(request):
        return httpx.Response(200, content=body)

    fetcher = HTTPFetcher(transport=httpx.MockTransport(handler))
    return PDFAcquirer(fetcher=fetcher, renderer=renderer)


@pytest.fixture
def success_acquirer():
    return FakeAcquirer(AcquisitionResult.success(PDF_BYTES, "direct"))


class TestAcquireEndpoint:
    def test_origin_pdf_returned_verbatim(self):
        renderer = FakeRenderer()
        client = TestClient(create_app(make_config(), acquirer=origin_acquirer(PDF_BYTES, renderer)))

        response = client.get("/acquire?url=https%3A%2F%2Fexample.com%2Fa.pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-length"] == str(len(PDF_BYTES))
        assert response.headers["x-pdf-source"] == "direct"
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.content == PDF_BYTES
        assert renderer.calls == []

    def test_html_login_page_uses_rendered_output(self):
        rendered = b"%PDF-1.4 rendered viewer"
        renderer = FakeRenderer(content=rendered)
        client = TestClient(create_app(make_config(), acquirer=origin_acquirer(HTML_LOGIN, renderer)))

        response = client.get("/acquire", params={"url": "https://example.com/a.pdf"})

        assert response.status_code == 200
        assert response.content == rendered
        assert response.headers["x-pdf-source"] == "rendered"
        assert renderer.calls == ["https://example.com/a.pdf"]

    @pytest.mark.parametrize("query", ["", "?url=", "?url=ftp%3A%2F%2Fexample.com%2Fa.pdf", "?url=not-a-url"])
    def test_bad_url_is_400(self, success_acquirer, query):
        client = TestClient(create_app(make_config(), acquirer=success_acquirer))

        response = client.get(f"/acquire{query}")

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert success_acquirer.requests == []

    def test_missing_or_wrong_key_is_401(self, success_acquirer):
        client = TestClient(create_app(make_config(API_KEY="s3cret"), acquirer=success_acquirer))
        url = "https://example.com/a.pdf"

        assert client.get("/acquire", params={"url": url}).status_code == 401
        assert client.get("/acquire", params={"url": url, "api_key": "nope"}).status_code == 401
        assert success_acquirer.requests == []

        assert client.get("/acquire", params={"url": url, "api_key": "s3cret"}).status_code == 200
        assert client.get("/acquire", params={"url": url}, headers={"X-API-Key": "s3cret"}).status_code == 200

    def test_timeout_is_504(self):
        acquirer = FakeAcquirer(AcquisitionResult.failure(ErrorKind.RENDER_TIMEOUT, "Render timeout after 90s"))
        client = TestClient(create_app(make_config(), acquirer=acquirer))

        response = client.get("/acquire", params={"url": "https://example.com/a.pdf"})

        assert response.status_code == 504
        body = response.json()
        assert body["success"] is False
        assert body["kind"] == "render_timeout"
        assert body["message"] == "Render timeout after 90s"

    def test_other_failure_is_500(self):
        acquirer = FakeAcquirer(AcquisitionResult.failure(ErrorKind.NAVIGATION, "HTTP 404: Failed to load", 404))
        client = TestClient(create_app(make_config(), acquirer=acquirer))

        response = client.get("/acquire", params={"url": "https://example.com/a.pdf"})

        assert response.status_code == 500
        assert response.json()["error"] == "Access denied or file not found at the URL."

    def test_non_get_is_405(self, success_acquirer):
        client = TestClient(create_app(make_config(), acquirer=success_acquirer))

        response = client.post("/acquire", params={"url": "https://example.com/a.pdf"})

        assert response.status_code == 405
        assert response.json()["success"] is False
        assert response.headers["access-control-allow-origin"] == "*"

    def test_options_preflight(self, success_acquirer):
        client = TestClient(create_app(make_config(), acquirer=success_acquirer))

        response = client.options("/acquire")

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"


class TestWebhook:
    def make_client(self, telegram, acquirer, delivery=None):
        bot = ChatBot(telegram, acquirer, delivery or FakeDelivery())
        return TestClient(create_app(make_config(), acquirer=acquirer, bot=bot))

    def test_start_command(self, success_acquirer):
        telegram = FakeTelegram()
        client = self.make_client(telegram, success_acquirer)

        response = client.post("/webhook", json={
            "update_id": 1,
            "message": {"chat": {"id": 7}, "from": {"first_name": "Lin"}, "text": "/start"},
        })

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert "Hello Lin" in telegram.messages[0][1]
        assert success_acquirer.requests == []

    def test_url_message_is_acquired_and_delivered(self, success_acquirer):
        telegram = FakeTelegram()
        delivery = FakeDelivery()
        client = self.make_client(telegram, success_acquirer, delivery)

        response = client.post("/webhook", json={
            "message": {"chat": {"id": 7}, "text": "https://example.com/docs/paper.pdf"},
        })

        assert response.json() == {"ok": True}
        assert delivery.jobs == [(7, PDF_BYTES, "paper.pdf")]

    def test_invalid_body_is_400(self, success_acquirer):
        client = self.make_client(FakeTelegram(), success_acquirer)

        assert client.post("/webhook", content=b"not json",
                           headers={"Content-Type": "application/json"}).status_code == 400
        assert client.post("/webhook", json=[1, 2, 3]).status_code == 400

    def test_unparseable_update_still_acknowledged(self, success_acquirer):
        telegram = FakeTelegram()
        client = self.make_client(telegram, success_acquirer)

        response = client.post("/webhook", json={"message": {"text": "no chat"}})

        assert response.status_code == 200
        assert telegram.messages == []

    def test_missing_token_is_500(self, success_acquirer):
        client = TestClient(create_app(make_config(), acquirer=success_acquirer))

        response = client.post("/webhook", json={"update_id": 1})

        assert response.status_code == 500
        assert response.json()["ok"] is False

    def test_webhook_get_reports_running(self, success_acquirer):
        client = TestClient(create_app(make_config(), acquirer=success_acquirer))
        assert client.get("/webhook").json()["ok"] is True


def test_health(success_acquirer):
    client = TestClient(create_app(make_config(), acquirer=success_acquirer))
    assert client.get("/health").json() == {"status": "ok"}


def test_key_matches():
    assert key_matches(None, None)
    assert key_matches("anything", "")
    assert not key_matches(None, "k")
    assert not key_matches("x", "k")
    assert key_matches("k", "k")


def test_unhandled_error_is_json_500_with_cors():
    acquirer = FakeAcquirer(error=ValueError("Invalid IPv6 URL"))
    client = TestClient(create_app(make_config(), acquirer=acquirer))

    response = client.get("/acquire", params={"url": "https://example.com/a.pdf"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}
    assert response.headers["access-control-allow-origin"] == "*"


def test_failure_body_carries_kind_and_upstream_status():
    acquirer = FakeAcquirer(AcquisitionResult.failure(ErrorKind.NAVIGATION, "HTTP 403: Failed to load", 403))
    client = TestClient(create_app(make_config(), acquirer=acquirer))

    body = client.get("/acquire", params={"url": "https://example.com/a.pdf"}).json()

    assert body["kind"] == "navigation"
    assert body["upstream_status"] == 403
    assert body["message"] == "HTTP 403: Failed to load"
