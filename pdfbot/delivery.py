"""
Delivery of acquired PDFs to a Telegram chat.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlparse

import structlog

from .telegram import ChatId, TelegramAPIError, TelegramClient

logger = structlog.get_logger(__name__)

DEFAULT_FILENAME = 'document.pdf'
DEFAULT_CAPTION = '📄 Your PDF is ready!'
MAX_FILENAME_LENGTH = 64
PDF_SUFFIX = '.pdf'

_UNSAFE_CHARS = re.compile(r'[^a-zA-Z0-9._-]')


def sanitize_filename(name: str) -> str:
    """Replace unsafe characters, force a .pdf suffix and cap the length."""
    name = _UNSAFE_CHARS.sub('_', name or '')
    if not name:
        return DEFAULT_FILENAME

    if name.lower().endswith(PDF_SUFFIX):
        stem = name[:-len(PDF_SUFFIX)]
    else:
        stem = name
    stem = stem[:MAX_FILENAME_LENGTH - len(PDF_SUFFIX)]
    if not stem:
        return DEFAULT_FILENAME
    return stem + PDF_SUFFIX


def filename_from_url(url: str) -> str:
    """Derive a download filename from the last path segment of a URL."""
    try:
        path = urlparse(url).path
    except ValueError:
        return DEFAULT_FILENAME

    parts = [part for part in path.split('/') if part]
    if not parts:
        return DEFAULT_FILENAME
    return sanitize_filename(unquote(parts[-1]))


@dataclass(frozen=True)
class ChatDeliveryJob:
    chat_id: ChatId
    content: bytes
    filename: str
    caption: str = DEFAULT_CAPTION


@dataclass(frozen=True)
class DeliveryOutcome:
    ok: bool
    detail: Optional[str] = None


class DeliveryPipeline:
    def __init__(self, client: TelegramClient):
        self.client = client

    async def deliver(
        self,
        chat_id: ChatId,
        content: bytes,
        filename: str,
        caption: str = DEFAULT_CAPTION,
    ) -> DeliveryOutcome:
        job = ChatDeliveryJob(
            chat_id=chat_id,
            content=content,
            filename=sanitize_filename(filename),
            caption=caption,
        )
        return await self.run(job)

    async def run(self, job: ChatDeliveryJob) -> DeliveryOutcome:
        """Upload one job. Failures come back as an outcome, never as an exception."""
        log = logger.bind(chat_id=job.chat_id, filename=job.filename)

        try:
            await self.client.send_chat_action(job.chat_id, 'upload_document')
        except TelegramAPIError as e:
            log.warning("chat_action_failed", error=str(e))

        try:
            reply = await self.client.send_document(job.chat_id, job.content, job.filename, job.caption)
        except TelegramAPIError as e:
            log.error("delivery_failed", error=str(e), size=len(job.content))
            return DeliveryOutcome(ok=False, detail=str(e))

        if not reply.get('ok'):
            detail = reply.get('description') or 'Failed to send document'
            log.error("delivery_rejected", error=detail, size=len(job.content))
            return DeliveryOutcome(ok=False, detail=detail)

        log.info("delivery_succeeded", size=len(job.content))
        return DeliveryOutcome(ok=True)
