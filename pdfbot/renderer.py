"""
Headless-browser fallback: navigate to the target page and either keep the
navigated PDF bytes or print the rendered page to PDF.

The browser is the expensive resource here. It is only ever held inside
`browser_session`, whose `finally` closes it on every exit path.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional

import structlog
from playwright.async_api import Browser
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .errors import NavigationError, RenderTimeoutError
from .fetcher import BROWSER_USER_AGENT, DOCUMENT_ACCEPT
from .models import truncate_url
from .verifier import is_well_formed, verify_pdf

logger = structlog.get_logger(__name__)

# Flags that keep Chromium alive in small containers and serverless sandboxes.
DEFAULT_LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
    '--no-first-run',
    '--no-zygote',
    '--single-process',
    '--disable-extensions',
    '--disable-background-networking',
    '--disable-background-timer-throttling',
    '--disable-renderer-backgrounding',
    '--font-render-hinting=none',
]

PDF_OPTIONS = {
    'format': 'A4',
    'print_background': True,
    'margin': {'top': '10mm', 'right': '10mm', 'bottom': '10mm', 'left': '10mm'},
}


@asynccontextmanager
async def browser_session(launch_args: Optional[List[str]] = None,
                          launch_timeout: float = 30.0) -> AsyncIterator[Browser]:
    """Launch a headless Chromium and close it when the block exits."""
    args = launch_args or DEFAULT_LAUNCH_ARGS
    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(
                headless=True,
                args=args,
                timeout=launch_timeout * 1000,
                chromium_sandbox=False,
            )
        except PlaywrightError as e:
            raise NavigationError(f"Browser launch failed: {e}")
        logger.debug("browser_launched", args=len(args))
        try:
            yield browser
        finally:
            await browser.close()
            logger.debug("browser_closed")


class BrowserRenderer:
    def __init__(
        self,
        navigation_timeout: float = 60.0,
        render_timeout: float = 90.0,
        launch_args: Optional[List[str]] = None,
        extra_headers: Dict[str, str] = None,
        session_factory: Callable = None,
    ):
        """Render fallback engine.

        Args:
            navigation_timeout: Seconds allowed for navigation to go network-idle.
            render_timeout: Seconds allowed for the whole fallback, launch included.
            launch_args: Chromium flags; DEFAULT_LAUNCH_ARGS when empty.
            extra_headers: Headers sent with every page request.
            session_factory: Zero-argument async context manager yielding a browser.
        """
        self.navigation_timeout = navigation_timeout
        self.render_timeout = render_timeout
        self.launch_args = list(launch_args) if launch_args else list(DEFAULT_LAUNCH_ARGS)
        self.extra_headers = {
            'Accept': DOCUMENT_ACCEPT,
            'Accept-Language': 'en-US,en;q=0.9',
        }
        if extra_headers:
            self.extra_headers.update(extra_headers)
        self._session_factory = session_factory or (lambda: browser_session(self.launch_args))

    async def render(self, url: str) -> bytes:
        """Return PDF bytes for the page at url.

        Raises:
            NavigationError, RenderTimeoutError, VerificationFailure
        """
        try:
            return await asyncio.wait_for(self._render(url), timeout=self.render_timeout)
        except asyncio.TimeoutError:
            raise RenderTimeoutError(f"Render timeout after {self.render_timeout}s")

    async def _render(self, url: str) -> bytes:
        logger.info("render_started", url=truncate_url(url))

        async with self._session_factory() as browser:
            context = await browser.new_context(
                user_agent=BROWSER_USER_AGENT,
                extra_http_headers=self.extra_headers,
                ignore_https_errors=True,
            )
            try:
                page = await context.new_page()
                try:
                    response = await page.goto(
                        url,
                        wait_until='networkidle',
                        timeout=self.navigation_timeout * 1000,
                    )
                except PlaywrightTimeoutError as e:
                    raise RenderTimeoutError(f"Navigation timeout after {self.navigation_timeout}s: {e}")
                except PlaywrightError as e:
                    raise NavigationError(f"Navigation failed: {e}")

                if response is None:
                    raise NavigationError("Navigation returned no response")
                if not response.ok:
                    raise NavigationError(f"HTTP {response.status}: Failed to load",
                                          status_code=response.status)

                try:
                    body = await response.body()
                except PlaywrightError as e:
                    logger.warning("render_body_unavailable", url=truncate_url(url), error=str(e))
                    body = b''

                if is_well_formed(body):
                    logger.info("render_captured_response", url=truncate_url(url), size=len(body))
                    return body

                logger.info("render_printing_page", url=truncate_url(url))
                try:
                    printed = await page.pdf(**PDF_OPTIONS)
                except PlaywrightError as e:
                    raise NavigationError(f"Print to PDF failed: {e}")
                return verify_pdf(printed)
            finally:
                await context.close()
