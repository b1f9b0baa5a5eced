"""
Chat message handling: parse the command, acquire the PDF, deliver it or
explain why not.
"""

import html
import re
from dataclasses import dataclass
from typing import Optional

import structlog

from .delivery import DeliveryOutcome, DeliveryPipeline, filename_from_url
from .errors import EXPLANATIONS, Category, InvalidInput, explain
from .models import AcquisitionRequest, Message, Update, is_valid_url, truncate_url
from .telegram import TelegramAPIError, TelegramClient

logger = structlog.get_logger(__name__)

URL_PATTERN = re.compile(r'https?://[^\s]+', re.IGNORECASE)
ACQUIRE_COMMANDS = ('/pdf', '/acquire')

CMD_START = 'start'
CMD_HELP = 'help'
CMD_ACQUIRE = 'acquire'
CMD_NONE = 'none'

START_TEXT = (
    "👋 <b>Hello {name}!</b>\n\n"
    "🤖 I'm a <b>PDF Downloader Bot</b>.\n\n"
    "📎 <b>How to use:</b>\n"
    "Just send me any PDF link and I'll download it and send it to you!\n\n"
    "<b>Example:</b>\n"
    "<code>https://example.com/document.pdf</code>\n\n"
    "You can also use:\n"
    "<code>/pdf https://example.com/document.pdf</code>"
)

HELP_TEXT = (
    "📖 <b>Help</b>\n\n"
    "Send me a URL to any PDF file or webpage and I'll convert/download it as PDF.\n\n"
    "<b>Commands:</b>\n"
    "/start - Welcome message\n"
    "/help - This help message\n"
    "/pdf &lt;url&gt; - Download PDF from URL\n\n"
    "<b>Or just send a URL directly!</b>"
)

NO_URL_TEXT = (
    "❌ <b>No valid URL found!</b>\n\n"
    "Please send a valid HTTP/HTTPS URL.\n\n"
    "<b>Example:</b>\n"
    "<code>https://example.com/document.pdf</code>"
)

PROCESSING_TEXT = "⏳ <b>Processing your request...</b>\n\n🔗 URL: <code>{url}</code>"

FAILURE_TEXT = (
    "❌ <b>Failed to download PDF</b>\n\n"
    "{explanation}\n"
    "<i>{detail}</i>\n\n"
    "💡 <b>Tip:</b> Make sure the URL is a direct link to a PDF file."
)

DELIVERY_FAILURE_TEXT = (
    "📤 <b>The PDF was downloaded but could not be sent to you.</b>\n\n"
    "<i>{detail}</i>\n\n"
    "The file may be too large for Telegram. Please try again later."
)


@dataclass(frozen=True)
class Command:
    kind: str
    url: Optional[str] = None


def extract_url(text: str) -> Optional[str]:
    """Return the first http(s) URL in the text."""
    match = URL_PATTERN.search(text or '')
    return match.group(0) if match else None


def parse_command(text: str) -> Command:
    text = (text or '').strip()
    word = text.split(maxsplit=1)[0].lower() if text else ''
    # "/start@MyBot" addresses a specific bot in group chats
    word = word.split('@', 1)[0]

    if word == '/start':
        return Command(CMD_START)
    if word == '/help':
        return Command(CMD_HELP)
    if word in ACQUIRE_COMMANDS:
        argument = text[len(text.split(maxsplit=1)[0]):].strip()
        if is_valid_url(argument):
            return Command(CMD_ACQUIRE, argument)
        return Command(CMD_NONE)

    url = extract_url(text)
    if url:
        return Command(CMD_ACQUIRE, url)
    return Command(CMD_NONE)


class ChatBot:
    def __init__(self, client: TelegramClient, acquirer, delivery: DeliveryPipeline = None):
        """
        Args:
            client: Telegram client used for notices.
            acquirer: Anything with `async acquire(AcquisitionRequest) -> AcquisitionResult`.
            delivery: Upload pipeline; built on the same client when omitted.
        """
        self.client = client
        self.acquirer = acquirer
        self.delivery = delivery or DeliveryPipeline(client)

    async def handle_update(self, update: Update) -> None:
        """Process one inbound update. Runs after the webhook has been acknowledged."""
        message = update.effective_message
        if message is None:
            return

        try:
            await self.handle_message(message)
        except TelegramAPIError as e:
            logger.error("telegram_unreachable", chat_id=message.chat.id, error=str(e))
        except Exception as e:
            logger.error("update_failed", chat_id=message.chat.id, error=str(e), exc_info=True)

    async def handle_message(self, message: Message) -> None:
        chat_id = message.chat.id
        text = message.text or ''
        first_name = (message.from_user.first_name if message.from_user else None) or 'User'

        logger.info("message_received", chat_id=chat_id, text=text[:100])

        command = parse_command(text)
        if command.kind == CMD_START:
            await self.client.send_message(chat_id, START_TEXT.format(name=html.escape(first_name)))
            return
        if command.kind == CMD_HELP:
            await self.client.send_message(chat_id, HELP_TEXT)
            return
        if command.kind == CMD_NONE:
            await self.client.send_message(chat_id, NO_URL_TEXT)
            return

        await self.process_url(chat_id, command.url)

    async def process_url(self, chat_id, url: str) -> None:
        log = logger.bind(chat_id=chat_id, url=truncate_url(url))

        try:
            request = AcquisitionRequest.parse(url)
        except InvalidInput as e:
            log.warning("invalid_url", error=e.detail)
            await self.client.send_message(chat_id, NO_URL_TEXT)
            return

        await self._typing(chat_id)
        await self.client.send_message(chat_id, PROCESSING_TEXT.format(url=html.escape(truncate_url(url))))

        try:
            result = await self.acquirer.acquire(request)
        except Exception as e:
            log.error("acquisition_crashed", error=str(e), exc_info=True)
            await self._send_failure(chat_id, EXPLANATIONS[Category.GENERIC], str(e))
            return

        if not result.ok:
            log.error("acquisition_failed", kind=result.kind.value, error=result.detail)
            await self._send_failure(chat_id, explain(result.kind, result.status_code), result.detail)
            return

        log.info("acquisition_succeeded", source=result.source_strategy, size=result.size)
        try:
            outcome = await self.delivery.deliver(chat_id, result.content, filename_from_url(url))
        except Exception as e:
            log.error("delivery_crashed", error=str(e), exc_info=True)
            outcome = DeliveryOutcome(ok=False, detail=str(e))
        if not outcome.ok:
            await self.client.send_message(chat_id, DELIVERY_FAILURE_TEXT.format(
                detail=html.escape(outcome.detail or 'Upload failed'),
            ))

    async def _typing(self, chat_id) -> None:
        try:
            await self.client.send_chat_action(chat_id, 'upload_document')
        except TelegramAPIError as e:
            logger.warning("chat_action_failed", chat_id=chat_id, error=str(e))

    async def _send_failure(self, chat_id, explanation: str, detail: Optional[str]) -> None:
        await self.client.send_message(chat_id, FAILURE_TEXT.format(
            explanation=html.escape(explanation),
            detail=html.escape(detail or ''),
        ))
