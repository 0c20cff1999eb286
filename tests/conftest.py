"""Pytest fixtures for testing."""
import json
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from core.config import Settings
from core.store import InMemoryStore
from models.bookmark import Bookmark, Category
from services.classification_service import ClassificationItem

NETSCAPE_HEADER = (
    '<!DOCTYPE NETSCAPE-Bookmark-file-1>\n'
    '<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">\n'
    '<TITLE>Bookmarks</TITLE>\n'
    '<H1>Bookmarks</H1>\n'
)

SAMPLE_EXPORT = NETSCAPE_HEADER + """<DL><p>
    <DT><H3 ADD_DATE="1700000000">Work</H3>
    <DL><p>
        <DT><A HREF="https://github.com/" ADD_DATE="1700000100">GitHub</A>
        <DT><H3>Docs</H3>
        <DL><p>
            <DT><A HREF="https://docs.python.org/3/" ADD_DATE="1700000200">Python docs</A>
        </DL><p>
    </DL><p>
    <DT><A HREF="https://news.ycombinator.com/">Hacker News</A>
    <DT><A HREF="javascript:alert(1)">Bookmarklet</A>
</DL><p>
"""


class FakeClassifier:
    """
    In-process stand-in for the external classification call.

    `respond` maps a batch to either {bookmark id: category label} or an
    exception to raise. Every call is recorded in `calls`.
    """

    def __init__(self) -> None:
        self.calls: list[list[ClassificationItem]] = []
        self.respond: Callable[[list[ClassificationItem]], dict[str, str] | Exception] = (
            lambda items: {item.id: Category.DEVELOPMENT.value for item in items}
        )

    async def classify(self, items: list[ClassificationItem], categories: list[str]) -> str:
        self.calls.append(list(items))
        outcome = self.respond(items)
        if isinstance(outcome, Exception):
            raise outcome
        return json.dumps(
            {"results": [{"id": k, "category": v} for k, v in outcome.items()]},
        )


class RecordingCodeSender:
    """Captures the codes that would have been e-mailed."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    async def send_code(self, email: str, code: str, purpose: str) -> None:
        self.sent.append((email, code, purpose))

    def last_code(self, email: str, purpose: str) -> str:
        for sent_email, code, sent_purpose in reversed(self.sent):
            if sent_email == email and sent_purpose == purpose:
                return code
        raise AssertionError(f"No {purpose} code sent to {email}")


class RecordingSleep:
    """Replaces asyncio.sleep: returns immediately and records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def make_bookmark(now: datetime) -> Callable[..., Bookmark]:
    """Factory for bookmarks with sensible defaults."""
    counter = iter(range(1, 10_000))

    def _make(**overrides: object) -> Bookmark:
        n = next(counter)
        fields: dict[str, object] = {
            'title': f'Bookmark {n}',
            'url': f'https://example.com/{n}',
            'created_at': now,
            'last_updated_at': now,
        }
        fields.update(overrides)
        return Bookmark(**fields)

    return _make


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: no Redis, no pacing delays."""
    return Settings(
        openai_api_key='test-key',
        classification_batch_delay=0.0,
        classification_quota_backoff=0.0,
        classification_error_delay=0.0,
        redis_enabled=False,
        require_email_verification=True,
    )


@pytest.fixture
def users_store() -> InMemoryStore:
    """Users namespace."""
    return InMemoryStore('users')


@pytest.fixture
def sessions_store() -> InMemoryStore:
    """Sessions namespace."""
    return InMemoryStore('sessions')


@pytest.fixture
def backups_store() -> InMemoryStore:
    """Backups namespace."""
    return InMemoryStore('backups')


@pytest.fixture
def fake_classifier() -> FakeClassifier:
    """Classifier that labels everything as development by default."""
    return FakeClassifier()


@pytest.fixture
def code_sender() -> RecordingCodeSender:
    """Code sender that records instead of logging."""
    return RecordingCodeSender()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep replacement recording requested delays."""
    return RecordingSleep()


@pytest.fixture
async def client(
    settings: Settings,
    fake_classifier: FakeClassifier,
    code_sender: RecordingCodeSender,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client backed by fresh in-memory stores."""
    from api.main import app, init_app_state

    init_app_state(app, settings, classifier=fake_classifier, code_sender=code_sender)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client
