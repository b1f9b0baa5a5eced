"""Tests for request validation, result shapes and redirect chains."""

import pytest

from pdfbot.errors import ErrorKind, InvalidInput, TooManyRedirects
from pdfbot.models import (
    AcquisitionRequest,
    AcquisitionResult,
    RedirectChain,
    Update,
    truncate_url,
)


class TestAcquisitionRequest:
    @pytest.mark.parametrize("url", [
        "ftp://example.com/a.pdf",
        "file:///etc/passwd",
        "mailto:someone@example.com",
        "javascript:alert(1)",
        "example.com/a.pdf",
        "/relative/path.pdf",
        "https://",
    ])
    def test_rejects_non_http_urls(self, url):
        with pytest.raises(InvalidInput):
            AcquisitionRequest.parse(url)

    @pytest.mark.parametrize("url", [None, "", "   "])
    def test_rejects_missing_url(self, url):
        with pytest.raises(InvalidInput, match="URL parameter required"):
            AcquisitionRequest.parse(url)

    def test_accepts_http_and_https(self):
        assert AcquisitionRequest.parse("http://example.com/a.pdf").target_url == "http://example.com/a.pdf"
        request = AcquisitionRequest.parse("  https://example.com/a.pdf ", api_key="k")
        assert request.target_url == "https://example.com/a.pdf"
        assert request.api_key == "k"

    def test_invalid_input_kind(self):
        with pytest.raises(InvalidInput) as exc_info:
            AcquisitionRequest.parse("ftp://example.com")
        assert exc_info.value.kind == ErrorKind.INVALID_INPUT


class TestAcquisitionResult:
    def test_success_shape(self):
        result = AcquisitionResult.success(b"%PDF-1.4", "direct")
        assert result.ok
        assert result.status == "success"
        assert result.source_strategy == "direct"
        assert result.kind is None
        assert result.detail is None

    def test_failure_shape(self):
        result = AcquisitionResult.failure(ErrorKind.NAVIGATION, "HTTP 404", status_code=404)
        assert not result.ok
        assert result.status == "failure"
        assert result.content is None
        assert result.source_strategy is None
        assert result.status_code == 404


class TestRedirectChain:
    def test_follow_returns_new_chain(self):
        chain = RedirectChain.start("https://a.example/")
        followed = chain.follow("https://b.example/")
        assert chain.urls == ("https://a.example/",)
        assert followed.urls == ("https://a.example/", "https://b.example/")
        assert followed.current == "https://b.example/"
        assert followed.redirects == 1

    def test_allows_five_redirects(self):
        chain = RedirectChain.start("https://example.com/0")
        for i in range(1, 6):
            chain = chain.follow(f"https://example.com/{i}")
        assert len(chain.urls) == 6

    def test_sixth_redirect_fails(self):
        chain = RedirectChain.start("https://example.com/0")
        for i in range(1, 6):
            chain = chain.follow(f"https://example.com/{i}")
        with pytest.raises(TooManyRedirects):
            chain.follow("https://example.com/6")


class TestUpdate:
    def test_parses_message_with_from_alias(self):
        update = Update.model_validate({
            "update_id": 1,
            "message": {
                "message_id": 5,
                "chat": {"id": 42, "type": "private"},
                "from": {"id": 7, "first_name": "Ada", "is_bot": False},
                "text": "/start",
            },
        })
        message = update.effective_message
        assert message.chat.id == 42
        assert message.from_user.first_name == "Ada"
        assert message.text == "/start"

    def test_edited_message_is_effective(self):
        update = Update.model_validate({"edited_message": {"chat": {"id": 1}, "text": "hi"}})
        assert update.effective_message.text == "hi"

    def test_update_without_message(self):
        assert Update.model_validate({"update_id": 3}).effective_message is None


def test_truncate_url():
    assert truncate_url("https://a.example/") == "https://a.example/"
    long_url = "https://example.com/" + "x" * 100
    assert truncate_url(long_url) == long_url[:80] + "..."
