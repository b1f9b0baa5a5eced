"""
Request/result types shared by the fetcher, the acquirer and the HTTP layer.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from .errors import AcquisitionError, ErrorKind, InvalidInput, TooManyRedirects

ALLOWED_SCHEMES = ('http', 'https')
MAX_REDIRECTS = 5

SOURCE_DIRECT = 'direct'
SOURCE_RENDERED = 'rendered'
SOURCE_REMOTE = 'remote'

# Response header naming the strategy that produced an /acquire body
SOURCE_HEADER = 'X-PDF-Source'


def truncate_url(url: str, limit: int = 80) -> str:
    """Shorten a URL for logs and chat notices."""
    if not url or len(url) <= limit:
        return url or ''
    return url[:limit] + '...'


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ALLOWED_SCHEMES and bool(parsed.netloc)


@dataclass(frozen=True)
class AcquisitionRequest:
    target_url: str
    api_key: Optional[str] = None

    @classmethod
    def parse(cls, url: Optional[str], api_key: Optional[str] = None) -> 'AcquisitionRequest':
        """Validate the target URL before any network call is made."""
        if not url or not isinstance(url, str) or not url.strip():
            raise InvalidInput("URL parameter required")

        url = url.strip()
        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise InvalidInput(f"Malformed URL: {e}")

        if parsed.scheme not in ALLOWED_SCHEMES:
            raise InvalidInput(f"Invalid scheme: {parsed.scheme or 'none'}")
        if not parsed.netloc:
            raise InvalidInput("URL must be absolute")

        return cls(target_url=url, api_key=api_key or None)


class AcquisitionResult:
    """Either a verified PDF buffer or a classified failure, never both."""

    def __init__(
        self,
        content: bytes = None,
        source_strategy: str = None,
        kind: ErrorKind = None,
        detail: str = None,
        status_code: int = None,
    ):
        self.content = content
        self.source_strategy = source_strategy
        self.kind = kind
        self.detail = detail
        self.status_code = status_code

    @classmethod
    def success(cls, content: bytes, source_strategy: str) -> 'AcquisitionResult':
        return cls(content=content, source_strategy=source_strategy)

    @classmethod
    def failure(cls, kind: ErrorKind, detail: str, status_code: int = None) -> 'AcquisitionResult':
        return cls(kind=kind, detail=detail, status_code=status_code)

    @classmethod
    def from_error(cls, error: AcquisitionError) -> 'AcquisitionResult':
        return cls.failure(error.kind, error.detail, error.status_code)

    @property
    def ok(self) -> bool:
        return self.kind is None

    @property
    def status(self) -> str:
        return 'success' if self.ok else 'failure'

    @property
    def size(self) -> int:
        return len(self.content) if self.content else 0

    def __repr__(self):
        if self.ok:
            return f"<AcquisitionResult success {self.source_strategy} {self.size} bytes>"
        return f"<AcquisitionResult failure {self.kind.value}: {self.detail}>"


@dataclass(frozen=True)
class RedirectChain:
    """URLs visited by one direct fetch, initial URL first."""

    urls: Tuple[str, ...]
    max_redirects: int = MAX_REDIRECTS

    @classmethod
    def start(cls, url: str, max_redirects: int = MAX_REDIRECTS) -> 'RedirectChain':
        return cls(urls=(url,), max_redirects=max_redirects)

    @property
    def current(self) -> str:
        return self.urls[-1]

    @property
    def redirects(self) -> int:
        return len(self.urls) - 1

    def follow(self, url: str) -> 'RedirectChain':
        if self.redirects + 1 > self.max_redirects:
            raise TooManyRedirects(
                f"Too many redirects: more than {self.max_redirects} starting at {truncate_url(self.urls[0])}"
            )
        return RedirectChain(urls=self.urls + (url,), max_redirects=self.max_redirects)


# Telegram inbound update envelope

class Chat(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: Union[int, str]


class User(BaseModel):
    model_config = ConfigDict(extra='ignore')

    first_name: Optional[str] = None


class Message(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    message_id: Optional[int] = None
    chat: Chat
    text: Optional[str] = None
    from_user: Optional[User] = Field(default=None, alias='from')


class Update(BaseModel):
    model_config = ConfigDict(extra='ignore')

    update_id: Optional[int] = None
    message: Optional[Message] = None
    edited_message: Optional[Message] = None

    @property
    def effective_message(self) -> Optional[Message]:
        return self.message or self.edited_message
