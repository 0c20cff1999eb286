"""
AI classification of bookmarks into the fixed category vocabulary.

Unclassified bookmarks are sent to an external chat-completion call in small
batches. The run is paced to stay under the provider's quota, retries quota
errors with an escalating delay and other errors with a short fixed one, and
abandons a batch (leaving its bookmarks unclassified) instead of failing the
whole run. Whatever is still unclassified at the end is parked in the review
folder.
"""
import asyncio
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from core.config import Settings
from core.retry import Backoff, RetryPolicy, Sleep, run_in_batches
from models.bookmark import (
    DEFAULT_CATEGORY,
    REVIEW_FOLDER,
    Bookmark,
    Category,
    utc_now,
)
from services.exceptions import MissingCredentialError, QuotaExceededError

logger = logging.getLogger(__name__)

# Substrings providers put in quota errors that are not typed as RateLimitError
QUOTA_MARKERS = ("429", "RESOURCE_EXHAUSTED")

SYSTEM_PROMPT = """You are an assistant that classifies browser bookmarks.
Assign EXACTLY one category to each bookmark, chosen from the list you are given.
If you are unsure, use the catch-all category.
Respond ONLY with a JSON object of the form:
{"results": [{"id": "<bookmark id>", "category": "<category name>"}]}"""


class ClassificationItem(BaseModel):
    """What the classifier sees of a bookmark."""

    id: str
    title: str
    url: str


class ClassificationResult(BaseModel):
    """One entry of the classifier's answer. The category is checked afterwards."""

    id: str
    category: Any = None


class ClassificationResponse(BaseModel):
    """Expected JSON shape of the classifier's answer."""

    results: list[ClassificationResult] = Field(default_factory=list)


class BookmarkClassifier(Protocol):
    """External text-classification call."""

    async def classify(self, items: list[ClassificationItem], categories: list[str]) -> str:
        """Return the raw JSON answer for one batch."""
        ...


def build_prompt(items: list[ClassificationItem], categories: list[str]) -> str:
    """User message for one batch: the vocabulary, the fallback and the bookmarks."""
    payload = json.dumps([item.model_dump() for item in items], ensure_ascii=False)
    return (
        f"Categories: {', '.join(categories)}.\n"
        f'If you are unsure, use "{DEFAULT_CATEGORY.value}".\n'
        f"Bookmarks to classify (id, title, url):\n{payload}"
    )


class OpenAIClassifier:
    """BookmarkClassifier backed by OpenAI chat completions in JSON mode."""

    def __init__(self, api_key: str, model: str, client: AsyncOpenAI | None = None) -> None:
        if not api_key:
            raise MissingCredentialError()
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model

    async def classify(self, items: list[ClassificationItem], categories: list[str]) -> str:
        """Send one batch and return the message content (empty string if none)."""
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(items, categories)},
            ],
            response_format={"type": "json_object"},
            temperature=0,
        )
        return response.choices[0].message.content or ""


def is_quota_error(error: Exception) -> bool:
    """True if the error signals an exhausted rate limit or quota."""
    if isinstance(error, (QuotaExceededError, openai.RateLimitError)):
        return True
    message = str(error)
    return any(marker in message for marker in QUOTA_MARKERS)


def classification_backoff(quota_step: float, error_delay: float) -> Backoff:
    """Quota errors wait quota_step * attempt seconds; any other error waits error_delay."""

    def backoff(attempt: int, error: Exception) -> float:
        if is_quota_error(error):
            return quota_step * attempt
        return error_delay

    return backoff


def _is_retryable(error: Exception) -> bool:
    return not isinstance(error, MissingCredentialError)


def parse_classification_response(text: str) -> dict[str, Category]:
    """
    Map bookmark id -> category from the classifier's JSON answer.

    Entries whose category is not in the vocabulary are ignored. An empty answer
    yields no assignments.

    Raises:
        pydantic.ValidationError: If the answer is not JSON of the expected shape.
    """
    if not text.strip():
        return {}
    response = ClassificationResponse.model_validate_json(text)
    assignments: dict[str, Category] = {}
    for result in response.results:
        category = Category.parse(result.category)
        if category is not None:
            assignments[result.id] = category
    return assignments


def select_for_classification(bookmarks: Sequence[Bookmark]) -> list[Bookmark]:
    """Bookmarks with no category or parked in the review folder. Others are never re-sent."""
    return [bookmark for bookmark in bookmarks if bookmark.needs_review]


def park_for_review(bookmark: Bookmark) -> Bookmark:
    """Prepend the review folder to an unclassified bookmark's path, at most once."""
    if REVIEW_FOLDER in bookmark.folder_path:
        return bookmark
    return bookmark.model_copy(update={"folder_path": (REVIEW_FOLDER, *bookmark.folder_path)})


def assign_category(bookmark: Bookmark, category: Category, now: datetime) -> Bookmark:
    """Set the category and take the bookmark out of the review folder."""
    return bookmark.model_copy(
        update={
            "category": category,
            "folder_path": tuple(s for s in bookmark.folder_path if s != REVIEW_FOLDER),
            "last_updated_at": now,
        },
    )


@dataclass(frozen=True)
class ClassificationReport:
    """Outcome of a classification run."""

    bookmarks: list[Bookmark]
    submitted: int
    classified: int
    failed_batches: int


class ClassificationEngine:
    """Batched, rate-limited, fail-soft classification run."""

    def __init__(
        self,
        classifier: BookmarkClassifier | None,
        *,
        batch_size: int = 3,
        batch_delay: float = 4.0,
        retry_policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._classifier = classifier
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=3,
            backoff=classification_backoff(quota_step=10.0, error_delay=2.0),
            retryable=_is_retryable,
        )
        self._sleep = sleep
        self._categories = [category.value for category in Category]

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        classifier: BookmarkClassifier | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> "ClassificationEngine":
        """
        Build an engine from configuration.

        Without an explicit classifier, an OpenAIClassifier is created when an API
        key is configured; otherwise the engine has no classifier and every run
        fails with MissingCredentialError.
        """
        if classifier is None and settings.openai_api_key:
            classifier = OpenAIClassifier(
                api_key=settings.openai_api_key, model=settings.classification_model,
            )
        return cls(
            classifier,
            batch_size=settings.classification_batch_size,
            batch_delay=settings.classification_batch_delay,
            retry_policy=RetryPolicy(
                max_attempts=settings.classification_max_attempts,
                backoff=classification_backoff(
                    quota_step=settings.classification_quota_backoff,
                    error_delay=settings.classification_error_delay,
                ),
                retryable=_is_retryable,
            ),
            sleep=sleep,
        )

    async def classify(
        self,
        bookmarks: Sequence[Bookmark],
        now: datetime | None = None,
    ) -> ClassificationReport:
        """
        Classify the bookmarks that need it and return the updated collection.

        Only bookmarks selected by select_for_classification are sent. Batches run
        in order with a pause between them. Returned bookmarks keep the input order;
        a bookmark is either assigned a category from the vocabulary or, if it
        still has none, parked in the review folder.

        Raises:
            MissingCredentialError: If no classifier is configured. Raised before
                any batch is sent.
        """
        if self._classifier is None:
            raise MissingCredentialError()

        pending = select_for_classification(bookmarks)
        if not pending:
            return ClassificationReport(
                bookmarks=list(bookmarks), submitted=0, classified=0, failed_batches=0,
            )

        classifier = self._classifier
        categories = self._categories

        async def classify_batch(batch: list[Bookmark]) -> dict[str, Category]:
            items = [ClassificationItem(id=b.id, title=b.title, url=b.url) for b in batch]
            return parse_classification_response(await classifier.classify(items, categories))

        outcomes = await run_in_batches(
            pending,
            self._batch_size,
            classify_batch,
            self._retry_policy,
            pause=self._batch_delay,
            sleep=self._sleep,
        )

        pending_ids = {bookmark.id for bookmark in pending}
        assigned: dict[str, Category] = {}
        failed_batches = 0
        for outcome in outcomes:
            if not outcome.succeeded:
                failed_batches += 1
                continue
            for bookmark_id, category in (outcome.result or {}).items():
                if bookmark_id in pending_ids:
                    assigned[bookmark_id] = category

        if now is None:
            now = utc_now()
        updated: list[Bookmark] = []
        for bookmark in bookmarks:
            if bookmark.id in assigned:
                updated.append(assign_category(bookmark, assigned[bookmark.id], now))
            elif bookmark.id in pending_ids and bookmark.category is None:
                updated.append(park_for_review(bookmark))
            else:
                updated.append(bookmark)

        logger.info(
            "Classification run finished: %d submitted, %d classified, %d/%d batches failed",
            len(pending), len(assigned), failed_batches, len(outcomes),
        )
        return ClassificationReport(
            bookmarks=updated,
            submitted=len(pending),
            classified=len(assigned),
            failed_batches=failed_batches,
        )
