import asyncio
import time
from datetime import datetime, timezone
from typing import Dict, Optional
from urllib.parse import urljoin

import httpx
import structlog

from .errors import FetchTimeoutError, HttpStatusError, NetworkError
from .models import MAX_REDIRECTS, RedirectChain, truncate_url

logger = structlog.get_logger(__name__)

BROWSER_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
DOCUMENT_ACCEPT = 'application/pdf,text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8'

DEFAULT_HEADERS = {
    'User-Agent': BROWSER_USER_AGENT,
    'Accept': DOCUMENT_ACCEPT,
    'Accept-Language': 'en-US,en;q=0.9',
}


class FetchResult:
    def __init__(
        self,
        url: str,
        status_code: int,
        content: bytes = b'',
        headers: Dict[str, str] = None,
        chain: RedirectChain = None,
        fetch_time: float = 0.0,
        content_type: str = None,
    ):
        """Terminal 2xx response of a direct fetch plus the redirect chain that led to it."""
        self.url = url
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.chain = chain or RedirectChain.start(url)
        self.fetch_time = fetch_time
        self.content_type = content_type
        self.timestamp = datetime.now(timezone.utc)

    @property
    def final_url(self) -> str:
        return self.chain.current

    @property
    def size(self) -> int:
        return len(self.content)


class HTTPFetcher:
    def __init__(
        self,
        timeout: float = 30.0,
        max_redirects: int = MAX_REDIRECTS,
        headers: Dict[str, str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Direct GET with manual redirect following and a bounded overall wait.

        Args:
            timeout: Seconds allowed for the whole redirect chain including the body.
            max_redirects: Redirects followed before giving up.
            headers: Extra request headers merged over the browser-like defaults.
            transport: Optional httpx transport, used by tests.
        """
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.headers = dict(DEFAULT_HEADERS)
        if headers:
            self.headers.update(headers)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=False,
            headers=self.headers,
            transport=self._transport,
        )

    async def fetch(self, url: str) -> FetchResult:
        """Fetch a URL and return its terminal 2xx response.

        Raises:
            FetchTimeoutError, NetworkError, TooManyRedirects, HttpStatusError
        """
        start_time = time.time()
        try:
            return await asyncio.wait_for(self._fetch_chain(url, start_time), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("direct_fetch_timeout", url=truncate_url(url), timeout_seconds=self.timeout)
            raise FetchTimeoutError(f"Download timeout after {self.timeout}s")

    async def fetch_direct(self, url: str) -> bytes:
        result = await self.fetch(url)
        return result.content

    async def _fetch_chain(self, url: str, start_time: float) -> FetchResult:
        chain = RedirectChain.start(url, max_redirects=self.max_redirects)

        async with self._client() as client:
            while True:
                response = await self._get(client, chain.current)

                location = response.headers.get('location')
                if response.is_redirect and location:
                    try:
                        next_url = urljoin(chain.current, location)
                    except ValueError as e:
                        raise NetworkError(f"Invalid redirect location {location!r}: {e}")
                    chain = chain.follow(next_url)
                    logger.debug("following_redirect",
                                 url=truncate_url(chain.current),
                                 redirects=chain.redirects)
                    continue

                if not response.is_success:
                    payload = self._error_payload(response)
                    raise HttpStatusError(response.status_code,
                                          self._error_detail(response.status_code, payload),
                                          payload=payload)

                return FetchResult(
                    url=url,
                    status_code=response.status_code,
                    content=response.content,
                    headers=dict(response.headers),
                    chain=chain,
                    fetch_time=time.time() - start_time,
                    content_type=response.headers.get('content-type', '').lower(),
                )

    async def _get(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        try:
            return await client.get(url)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"Download timeout after {self.timeout}s: {e}")
        except httpx.InvalidURL as e:
            raise NetworkError(f"Invalid URL: {e}")
        except httpx.ConnectError as e:
            raise NetworkError(f"Connection error: {e}")
        except httpx.HTTPError as e:
            raise NetworkError(f"Request failed: {e}")

    def _error_payload(self, response: httpx.Response) -> Optional[Dict]:
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    def _error_detail(self, status_code: int, payload: Optional[Dict]) -> str:
        """Prefer the structured error text of a JSON body over a bare status line."""
        fallback = f"HTTP {status_code}"
        if payload:
            for key in ('message', 'error'):
                value = payload.get(key)
                if isinstance(value, str) and value:
                    return f"{fallback}: {value}"
        return fallback
