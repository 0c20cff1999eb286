"""
Link liveness checking.

A LinkCheckRun checks bookmark URLs in sequential batches and yields each
batch's results as soon as the batch settles, so the caller can apply them to
the collection incrementally and stop between batches.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Collection, Iterable, Sequence
from dataclasses import dataclass

import httpx

from core.retry import chunked
from models.bookmark import Bookmark, LinkStatus

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; BookmarkHub/1.0)"
DEFAULT_TIMEOUT = 5.0
DEFAULT_BATCH_SIZE = 5


@dataclass(frozen=True)
class LinkTarget:
    """A bookmark to check."""

    id: str
    url: str


@dataclass(frozen=True)
class LinkCheckResult:
    """Outcome of checking one URL."""

    id: str
    url: str
    status: LinkStatus
    http_code: int | None = None
    message: str | None = None


class CancellationToken:
    """Cooperative stop flag, checked by a run before it starts each batch."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        """Request that no further batch be started."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._cancelled


async def check_url(
    client: httpx.AsyncClient,
    target: LinkTarget,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    dead_on_status: Collection[int] = (),
) -> LinkCheckResult:
    """
    Check a URL with a HEAD request.

    Never raises. Any exception (timeout, connection failure, invalid URL) is
    reported as SUSPECT rather than DEAD: a failed request does not prove the
    page is gone. A completed response is OK, unless its status code is listed in
    `dead_on_status`, in which case it is DEAD.

    Args:
        client:
            Shared HTTP client for the run.
        target:
            Bookmark id and URL.
        timeout:
            Upper bound in seconds for the whole check.
        dead_on_status:
            Status codes that mark the link as dead (none by default).
    """
    try:
        response = await asyncio.wait_for(client.head(target.url), timeout=timeout)
    except (TimeoutError, httpx.TimeoutException):
        return LinkCheckResult(
            id=target.id, url=target.url, status=LinkStatus.SUSPECT,
            message="Request timed out",
        )
    except Exception as e:
        return LinkCheckResult(
            id=target.id, url=target.url, status=LinkStatus.SUSPECT,
            message=f"Request failed: {e or type(e).__name__}",
        )

    if response.status_code in dead_on_status:
        return LinkCheckResult(
            id=target.id, url=target.url, status=LinkStatus.DEAD,
            http_code=response.status_code, message=f"HTTP {response.status_code}",
        )
    return LinkCheckResult(
        id=target.id, url=target.url, status=LinkStatus.OK, http_code=response.status_code,
    )


class LinkCheckRun:
    """
    Finite stream of link-check result batches.

    Iterating with `async for` checks the targets batch by batch: checks within a
    batch run concurrently, and the next batch starts only after the previous
    one has settled and been yielded, so at most `batch_size` requests are in
    flight. Each `async for` starts a fresh pass over the targets.

    Stopping is cooperative: after stop() (or cancelling the token), the batch
    in flight completes and no further batch is started. A consumer that breaks
    out of the loop early should wrap the iterator in `contextlib.aclosing` so
    the HTTP client is closed promptly.
    """

    def __init__(
        self,
        targets: Sequence[LinkTarget],
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        token: CancellationToken | None = None,
        dead_on_status: Collection[int] = (),
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"Batch size must be at least 1 (got {batch_size})")
        self._targets = list(targets)
        self._batch_size = batch_size
        self._timeout = timeout
        self._client = client
        self._dead_on_status = frozenset(dead_on_status)
        self.token = token or CancellationToken()

    def __len__(self) -> int:
        return len(self._targets)

    def stop(self) -> None:
        """Stop after the current batch."""
        self.token.cancel()

    def __aiter__(self) -> AsyncIterator[list[LinkCheckResult]]:
        return self._run()

    async def _run(self) -> AsyncIterator[list[LinkCheckResult]]:
        if self._client is not None:
            async for batch in self._batches(self._client):
                yield batch
            return
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self._timeout,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            async for batch in self._batches(client):
                yield batch

    async def _batches(self, client: httpx.AsyncClient) -> AsyncIterator[list[LinkCheckResult]]:
        checked = 0
        for batch in chunked(self._targets, self._batch_size):
            if self.token.cancelled:
                logger.info(
                    "Link check stopped after %d of %d links", checked, len(self._targets),
                )
                return
            results = await asyncio.gather(
                *(check_url(client, target, self._timeout, self._dead_on_status)
                  for target in batch),
            )
            checked += len(results)
            yield list(results)


def select_link_check_candidates(bookmarks: Iterable[Bookmark]) -> list[LinkTarget]:
    """Targets for a fresh run: only bookmarks whose status is still UNKNOWN."""
    return [
        LinkTarget(id=bookmark.id, url=bookmark.url)
        for bookmark in bookmarks
        if bookmark.link_status is LinkStatus.UNKNOWN
    ]


def apply_link_results(
    bookmarks: Sequence[Bookmark],
    results: Iterable[LinkCheckResult],
) -> list[Bookmark]:
    """
    Return a new collection with a batch of results applied.

    Results only move a bookmark out of UNKNOWN; results for unknown ids or for
    bookmarks that already have a status are ignored.
    """
    by_id = {result.id: result for result in results}
    updated: list[Bookmark] = []
    for bookmark in bookmarks:
        result = by_id.get(bookmark.id)
        if result is None or bookmark.link_status is not LinkStatus.UNKNOWN:
            updated.append(bookmark)
            continue
        updated.append(
            bookmark.model_copy(
                update={
                    "link_status": result.status,
                    "link_status_code": result.http_code,
                    "link_status_message": result.message,
                },
            ),
        )
    return updated


def reset_link_status(
    bookmarks: Sequence[Bookmark],
    ids: Collection[str] | None = None,
) -> list[Bookmark]:
    """Put bookmarks (all, or those in `ids`) back to UNKNOWN so the next run re-checks them."""
    updated: list[Bookmark] = []
    for bookmark in bookmarks:
        if ids is not None and bookmark.id not in ids:
            updated.append(bookmark)
            continue
        updated.append(
            bookmark.model_copy(
                update={
                    "link_status": LinkStatus.UNKNOWN,
                    "link_status_code": None,
                    "link_status_message": None,
                },
            ),
        )
    return updated
