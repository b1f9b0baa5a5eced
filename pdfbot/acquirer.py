"""
Acquisition orchestration: direct fetch -> verify -> single render fallback.
"""

from urllib.parse import urlencode

import structlog

from .errors import AcquisitionError, ErrorKind, HttpStatusError
from .fetcher import HTTPFetcher
from .models import (
    SOURCE_DIRECT,
    SOURCE_HEADER,
    SOURCE_REMOTE,
    SOURCE_RENDERED,
    AcquisitionRequest,
    AcquisitionResult,
    truncate_url,
)
from .renderer import BrowserRenderer
from .verifier import verify_pdf

logger = structlog.get_logger(__name__)


class PDFAcquirer:
    """Runs one request through the direct path and, if needed, the browser fallback."""

    def __init__(self, fetcher: HTTPFetcher = None, renderer: BrowserRenderer = None):
        self.fetcher = fetcher or HTTPFetcher()
        self.renderer = renderer or BrowserRenderer()

    async def acquire(self, request: AcquisitionRequest) -> AcquisitionResult:
        url = request.target_url
        log = logger.bind(url=truncate_url(url))

        try:
            content = verify_pdf(await self.fetcher.fetch_direct(url))
            log.info("direct_fetch_succeeded", size=len(content))
            return AcquisitionResult.success(content, SOURCE_DIRECT)
        except AcquisitionError as e:
            # every direct-path failure escalates to the renderer
            log.warning("direct_fetch_failed", kind=e.kind.value, error=e.detail)
        except Exception as e:
            log.warning("direct_fetch_failed", kind="unexpected", error=str(e), exc_info=True)

        try:
            content = await self.renderer.render(url)
        except AcquisitionError as e:
            log.error("render_fallback_failed", kind=e.kind.value, error=e.detail)
            return AcquisitionResult.from_error(e)

        log.info("render_fallback_succeeded", size=len(content))
        return AcquisitionResult.success(content, SOURCE_RENDERED)


class RemoteAcquirer:
    """Calls a deployed /acquire endpoint instead of running the pipeline in-process."""

    def __init__(self, base_url: str, api_key: str = None, fetcher: HTTPFetcher = None):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.fetcher = fetcher or HTTPFetcher(timeout=90.0)

    def endpoint_url(self, request: AcquisitionRequest) -> str:
        params = {'url': request.target_url}
        api_key = request.api_key or self.api_key
        if api_key:
            params['api_key'] = api_key
        return f"{self.base_url}/acquire?{urlencode(params)}"

    async def acquire(self, request: AcquisitionRequest) -> AcquisitionResult:
        log = logger.bind(url=truncate_url(request.target_url))
        log.info("remote_acquire_started", endpoint=self.base_url)

        try:
            result = await self.fetcher.fetch(self.endpoint_url(request))
            content = verify_pdf(result.content)
        except AcquisitionError as e:
            log.error("remote_acquire_failed", kind=e.kind.value, error=e.detail)
            return remote_failure(e)

        strategy = result.headers.get(SOURCE_HEADER.lower())
        if strategy not in (SOURCE_DIRECT, SOURCE_RENDERED):
            strategy = SOURCE_REMOTE
        log.info("remote_acquire_succeeded", size=len(content), source=strategy)
        return AcquisitionResult.success(content, strategy)


def remote_failure(error: AcquisitionError) -> AcquisitionResult:
    """Rebuild the failure reported by a remote /acquire from its JSON error body."""
    if not isinstance(error, HttpStatusError):
        return AcquisitionResult.from_error(error)

    payload = error.payload
    try:
        kind = ErrorKind(payload.get('kind'))
    except ValueError:
        kind = None

    if kind is not None:
        upstream_status = payload.get('upstream_status')
        if not isinstance(upstream_status, int):
            upstream_status = None
        return AcquisitionResult.failure(kind, payload.get('message') or error.detail, upstream_status)

    if error.status_code == 504:
        return AcquisitionResult.failure(ErrorKind.TIMEOUT, error.detail, error.status_code)
    if error.status_code == 400:
        return AcquisitionResult.failure(ErrorKind.INVALID_INPUT, error.detail, error.status_code)
    return AcquisitionResult.from_error(error)
