"""
HTTP surface: the stateless /acquire endpoint, the Telegram webhook and
health checks.
"""

import hmac
from typing import Optional

import structlog
from fastapi import BackgroundTasks, FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .acquirer import PDFAcquirer, RemoteAcquirer
from .bot import ChatBot
from .config import Config
from .delivery import filename_from_url
from .errors import EXPLANATIONS, Category, ErrorKind, InvalidInput, classify
from .fetcher import HTTPFetcher
from .middleware import ErrorResponseMiddleware, PermissiveCORSMiddleware
from .models import SOURCE_HEADER, AcquisitionRequest, Update, truncate_url
from .renderer import BrowserRenderer
from .telegram import TelegramClient

logger = structlog.get_logger(__name__)

USAGE = 'GET /acquire?url=YOUR_ENCODED_URL'


def build_acquirer(config: Config) -> PDFAcquirer:
    fetcher = HTTPFetcher(
        timeout=float(config.get('fetcher', 'timeout', default=30)),
        max_redirects=int(config.get('fetcher', 'max_redirects', default=5)),
    )
    settings = config.renderer
    renderer = BrowserRenderer(
        navigation_timeout=float(settings.get('navigation_timeout', 60)),
        render_timeout=float(settings.get('render_timeout', 90)),
        launch_args=settings.get('launch_args') or [],
    )
    return PDFAcquirer(fetcher=fetcher, renderer=renderer)


def build_bot(config: Config, acquirer: PDFAcquirer = None) -> Optional[ChatBot]:
    """Chat bot wired from config; None when no bot token is configured."""
    if not config.bot_token:
        return None

    client = TelegramClient(
        token=config.bot_token,
        api_url=config.get('telegram', 'api_url', default='https://api.telegram.org'),
        timeout=float(config.get('telegram', 'timeout', default=10)),
        upload_timeout=float(config.get('telegram', 'upload_timeout', default=60)),
    )

    if config.acquisition_base_url:
        remote_fetcher = HTTPFetcher(timeout=float(config.get('acquisition', 'remote_timeout', default=90)))
        acquirer = RemoteAcquirer(config.acquisition_base_url, api_key=config.api_key or None,
                                  fetcher=remote_fetcher)
    return ChatBot(client, acquirer or build_acquirer(config))


def key_matches(supplied: Optional[str], required: Optional[str]) -> bool:
    """True when no key is configured, or the supplied one equals it."""
    if not required:
        return True
    if not supplied:
        return False
    return hmac.compare_digest(supplied.encode(), required.encode())


def status_for(kind: ErrorKind) -> int:
    if kind == ErrorKind.INVALID_INPUT:
        return 400
    if classify(kind) == Category.TIMEOUT:
        return 504
    return 500


def error_response(status_code: int, error: str, message: str = None, **extra) -> JSONResponse:
    body = {'success': False, 'error': error}
    if message:
        body['message'] = message
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def create_app(config: Config = None, acquirer=None, bot: ChatBot = None) -> FastAPI:
    """Build the application.

    Collaborators are created from config unless passed in; tests pass fakes.
    """
    config = config or Config()
    acquirer = acquirer or build_acquirer(config)
    if bot is None:
        bot = build_bot(config, acquirer)
    required_key = config.api_key or None

    app = FastAPI(title="pdfbot")
    app.state.acquirer = acquirer
    app.state.bot = bot

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={'success': False, 'error': exc.detail},
            headers=getattr(exc, 'headers', None),
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/acquire")
    async def acquire(
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        x_api_key: Optional[str] = Header(default=None),
    ):
        supplied_key = api_key or x_api_key
        if not key_matches(supplied_key, required_key):
            logger.warning("acquire_unauthorized", has_key=bool(supplied_key))
            return error_response(401, 'Invalid or missing API key')

        try:
            acquisition = AcquisitionRequest.parse(url, api_key=supplied_key)
        except InvalidInput as e:
            return error_response(400, e.detail, usage=USAGE)

        logger.info("acquire_requested", url=truncate_url(acquisition.target_url))
        result = await app.state.acquirer.acquire(acquisition)

        if not result.ok:
            status_code = status_for(result.kind)
            explanation = EXPLANATIONS[classify(result.kind, result.status_code)]
            extra = {'kind': result.kind.value}
            if result.status_code is not None:
                extra['upstream_status'] = result.status_code
            return error_response(status_code, explanation, result.detail, **extra)

        filename = filename_from_url(acquisition.target_url)
        return Response(
            content=result.content,
            media_type='application/pdf',
            headers={
                SOURCE_HEADER: result.source_strategy,
                'Content-Disposition': f'inline; filename="{filename}"',
            },
        )

    @app.get("/webhook")
    async def webhook_status():
        return {
            'ok': True,
            'message': 'Telegram PDF Bot is running!',
            'usage': 'Send a PDF URL to the bot on Telegram',
        }

    @app.post("/webhook")
    async def webhook(request: Request, background_tasks: BackgroundTasks):
        bot = app.state.bot
        if bot is None:
            logger.error("bot_token_missing")
            return JSONResponse(status_code=500, content={'ok': False, 'error': 'Bot token not configured'})

        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse(status_code=400, content={'ok': False, 'error': 'Failed to parse body'})
        if not isinstance(payload, dict):
            return JSONResponse(status_code=400, content={'ok': False, 'error': 'Invalid update body'})

        try:
            update = Update.model_validate(payload)
        except ValidationError as e:
            # still acknowledged
            logger.warning("update_unparseable", error=str(e))
            return {'ok': True}

        # processed after the response has been sent
        background_tasks.add_task(bot.handle_update, update)
        return {'ok': True}

    # the last one added is the outermost
    app.add_middleware(ErrorResponseMiddleware)
    app.add_middleware(PermissiveCORSMiddleware)
    return app
