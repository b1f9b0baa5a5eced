"""Shared fakes for pipeline tests."""

import asyncio
from contextlib import asynccontextmanager

import pytest

from pdfbot.delivery import DeliveryOutcome
from pdfbot.models import AcquisitionResult

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"
HTML_LOGIN = b"<!DOCTYPE html><html><body><form>Please log in</form></body></html>"


class FakeFetcher:
    def __init__(self, content: bytes = None, error: Exception = None):
        self.content = content
        self.error = error
        self.calls = []

    async def fetch_direct(self, url):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.content


class FakeRenderer:
    def __init__(self, content: bytes = PDF_BYTES, error: Exception = None):
        self.content = content
        self.error = error
        self.calls = []

    async def render(self, url):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.content


class FakeAcquirer:
    def __init__(self, result: AcquisitionResult = None, error: Exception = None):
        self.result = result
        self.error = error
        self.requests = []

    async def acquire(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result


class FakeTelegram:
    """Records outbound calls instead of talking to Telegram."""

    def __init__(self):
        self.messages = []
        self.actions = []

    async def send_message(self, chat_id, text, parse_mode='HTML'):
        self.messages.append((chat_id, text))
        return {'ok': True}

    async def send_chat_action(self, chat_id, action='upload_document'):
        self.actions.append((chat_id, action))
        return {'ok': True}


class FakeDelivery:
    def __init__(self, outcome: DeliveryOutcome = None, error: Exception = None):
        self.outcome = outcome or DeliveryOutcome(ok=True)
        self.error = error
        self.jobs = []

    async def deliver(self, chat_id, content, filename, caption=None):
        self.jobs.append((chat_id, content, filename))
        if self.error is not None:
            raise self.error
        return self.outcome


class FakeBrowserResponse:
    def __init__(self, body: bytes, status: int = 200):
        self._body = body
        self.status = status
        self.ok = 200 <= status < 300

    async def body(self):
        return self._body


class FakePage:
    def __init__(self, goto_result=None, goto_error: Exception = None, printed: bytes = PDF_BYTES, goto_delay=0):
        self.goto_result = goto_result
        self.goto_error = goto_error
        self.goto_delay = goto_delay
        self.printed = printed
        self.goto_calls = []
        self.pdf_calls = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append({'url': url, 'wait_until': wait_until, 'timeout': timeout})
        if self.goto_delay:
            await asyncio.sleep(self.goto_delay)
        if self.goto_error is not None:
            raise self.goto_error
        return self.goto_result

    async def pdf(self, **kwargs):
        self.pdf_calls.append(kwargs)
        return self.printed


class FakeContext:
    def __init__(self, page: FakePage):
        self.page = page
        self.closed = False

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page: FakePage):
        self.page = page
        self.contexts = []
        self.closed = False

    async def new_context(self, **kwargs):
        context = FakeContext(self.page)
        context.options = kwargs
        self.contexts.append(context)
        return context

    async def close(self):
        self.closed = True


class SessionTracker:
    """Session factory that counts browser acquisitions and releases."""

    def __init__(self, browser: FakeBrowser):
        self.browser = browser
        self.acquired = 0
        self.released = 0

    def __call__(self):
        return self._session()

    @asynccontextmanager
    async def _session(self):
        self.acquired += 1
        try:
            yield self.browser
        finally:
            self.released += 1


@pytest.fixture
def telegram():
    return FakeTelegram()


class FakeChromium:
    def __init__(self, browser: FakeBrowser = None, error: Exception = None):
        self.browser = browser
        self.error = error
        self.launch_options = None

    async def launch(self, **kwargs):
        self.launch_options = kwargs
        if self.error is not None:
            raise self.error
        return self.browser


class FakePlaywright:
    """Stands in for `async_playwright()`: an async context manager exposing chromium."""

    def __init__(self, chromium: FakeChromium):
        self.chromium = chromium
        self.stopped = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.stopped = True
        return False
