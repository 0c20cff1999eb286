"""Bookmark collection endpoints."""
import asyncio
from contextlib import aclosing
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from api.dependencies import get_app_settings, get_classification_engine, get_collection
from core.config import Settings
from models.bookmark import BookmarkSource, Category, LinkStatus, utc_now
from schemas.bookmark import (
    BookmarkListResponse,
    BookmarkResponse,
    CategoryCount,
    ClassificationResponse,
    DuplicateGroupResponse,
    ImportResponse,
    ImportSummaryResponse,
    LinkCheckRequest,
    LinkCheckResponse,
    LinkStatusResetRequest,
    SmartCollectionResponse,
    StatsResponse,
)
from services.bookmark_exporter import (
    HTML_EXPORT_FILENAME,
    JSON_EXPORT_FILENAME,
    export_html,
    export_json,
)
from services.bookmark_parser import parse_bookmarks
from services.classification_service import ClassificationEngine
from services.collection_service import BookmarkCollection
from services.exceptions import BookmarkParseError, MissingCredentialError
from services.import_service import ImportMode, find_duplicates
from services.link_checker import LinkCheckRun, select_link_check_candidates
from services.smart_collections import (
    compute_stats,
    filter_collection,
    get_smart_collection,
    review_queue,
)

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.get("/", response_model=BookmarkListResponse)
async def list_bookmarks(
    q: str | None = Query(default=None, description="Case-insensitive match on title or url"),
    category: Category | None = Query(default=None, description="Filter by category"),
    source: BookmarkSource | None = Query(default=None, description="Filter by source browser"),
    favorites_only: bool = Query(default=False, description="Only favorites"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=50, ge=1, le=500, description="Pagination limit"),
    collection: BookmarkCollection = Depends(get_collection),
) -> BookmarkListResponse:
    """
    List the collection in its stored order.

    - **q**: Text search across title and url (case-insensitive)
    - **category** / **source**: Exact filters
    - **favorites_only**: Only bookmarks marked as favorite
    """
    bookmarks = list(collection.bookmarks)
    if q:
        needle = q.lower()
        bookmarks = [b for b in bookmarks if needle in b.title.lower() or needle in b.url.lower()]
    if category is not None:
        bookmarks = [b for b in bookmarks if b.category is category]
    if source is not None:
        bookmarks = [b for b in bookmarks if b.source is source]
    if favorites_only:
        bookmarks = [b for b in bookmarks if b.is_favorite]

    total = len(bookmarks)
    items = [BookmarkResponse.model_validate(b) for b in bookmarks[offset:offset + limit]]
    return BookmarkListResponse(
        items=items,
        total=total,
        offset=offset,
        limit=limit,
        has_more=offset + len(items) < total,
    )


@router.post("/import", response_model=ImportResponse)
async def import_bookmarks(
    request: Request,
    source: BookmarkSource = Query(default=BookmarkSource.OTHER, description="Browser the file came from"),  # noqa: E501
    mode: ImportMode = Query(default=ImportMode.MERGE, description="'merge' appends new URLs, 'replace' discards the collection"),  # noqa: E501
    confirm: bool = Query(default=False, description="Required to replace a non-empty collection"),  # noqa: E501
    collection: BookmarkCollection = Depends(get_collection),
) -> ImportResponse:
    """
    Import a Netscape bookmark file sent as the raw request body.

    A replace import over a non-empty collection must be confirmed, since it
    discards every existing bookmark.
    """
    body = await request.body()
    now = utc_now()
    try:
        # Parsing large exports is CPU bound, keep it off the event loop
        incoming = await asyncio.to_thread(
            parse_bookmarks, body.decode("utf-8", errors="replace"), source, now=now,
        )
    except BookmarkParseError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if mode is ImportMode.REPLACE and len(collection) and not confirm:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Replacing would discard {len(collection)} bookmarks. "
                   "Repeat with confirm=true to proceed.",
        )
    result = collection.import_parsed(incoming, source, mode, now=now)
    return ImportResponse.model_validate(result)


@router.get("/duplicates", response_model=list[DuplicateGroupResponse])
async def list_duplicates(
    collection: BookmarkCollection = Depends(get_collection),
) -> list[DuplicateGroupResponse]:
    """Groups of bookmarks whose URLs only differ by a trailing slash (or not at all)."""
    return [
        DuplicateGroupResponse(
            normalized_url=group.normalized_url,
            bookmarks=[BookmarkResponse.model_validate(b) for b in group.bookmarks],
        )
        for group in find_duplicates(collection.bookmarks)
    ]


@router.get("/stats", response_model=StatsResponse)
async def get_stats(collection: BookmarkCollection = Depends(get_collection)) -> StatsResponse:
    """Dashboard counts."""
    stats = compute_stats(collection.bookmarks)
    return StatsResponse(
        total=stats.total,
        favorites=stats.favorites,
        uncategorized=stats.uncategorized,
        suspects=stats.suspects,
        top_categories=[CategoryCount(name=n, count=c) for n, c in stats.top_categories],
        by_source=[CategoryCount(name=n, count=c) for n, c in stats.by_source.items()],
    )


@router.get("/import-summary", response_model=ImportSummaryResponse)
async def get_import_summary(
    collection: BookmarkCollection = Depends(get_collection),
) -> ImportSummaryResponse:
    """The last replace import and the merges applied since."""
    return ImportSummaryResponse.model_validate(collection.import_summary)


@router.get("/collections/{collection_id}", response_model=SmartCollectionResponse)
async def get_smart_collection_items(
    collection_id: str,
    collection: BookmarkCollection = Depends(get_collection),
) -> SmartCollectionResponse:
    """Members of a predefined smart collection (recent, favorites, uncategorized, suspects)."""
    smart = get_smart_collection(collection_id)
    if smart is None:
        raise HTTPException(status_code=404, detail="Smart collection not found")
    return SmartCollectionResponse(
        id=smart.id,
        name=smart.name,
        description=smart.description,
        items=[BookmarkResponse.model_validate(b) for b in filter_collection(collection.bookmarks, smart)],  # noqa: E501
    )


@router.get("/review", response_model=list[BookmarkResponse])
async def get_review_queue(
    collection: BookmarkCollection = Depends(get_collection),
) -> list[BookmarkResponse]:
    """Bookmarks awaiting a manual decision."""
    return [BookmarkResponse.model_validate(b) for b in review_queue(collection.bookmarks)]


@router.post("/classify", response_model=ClassificationResponse)
async def classify_bookmarks(
    collection: BookmarkCollection = Depends(get_collection),
    engine: ClassificationEngine = Depends(get_classification_engine),
) -> ClassificationResponse:
    """
    Classify every unclassified bookmark.

    Batches that keep failing are skipped; their bookmarks end up in the review
    folder instead of failing the request.
    """
    snapshot = collection.bookmarks
    try:
        report = await engine.classify(snapshot)
    except MissingCredentialError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    changed = [new for old, new in zip(snapshot, report.bookmarks, strict=True) if new is not old]
    collection.apply_classification(changed)
    return ClassificationResponse(
        submitted=report.submitted,
        classified=report.classified,
        failed_batches=report.failed_batches,
        needs_review=len(review_queue(collection.bookmarks)),
    )


@router.post("/link-check", response_model=LinkCheckResponse)
async def check_links(
    data: LinkCheckRequest | None = None,
    collection: BookmarkCollection = Depends(get_collection),
    settings: Settings = Depends(get_app_settings),
) -> LinkCheckResponse:
    """
    Check the links that have not been checked yet.

    Results are applied to the collection batch by batch, so a run stopped via
    /bookmarks/link-check/stop keeps everything checked before it stopped.
    """
    if collection.active_link_check is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A link check is already running")  # noqa: E501
    targets = select_link_check_candidates(collection.bookmarks)
    if data is not None and data.limit is not None:
        targets = targets[:data.limit]

    run = LinkCheckRun(
        targets,
        batch_size=settings.link_check_batch_size,
        timeout=settings.link_check_timeout,
    )
    counts = {status_: 0 for status_ in LinkStatus}
    collection.active_link_check = run
    try:
        async with aclosing(aiter(run)) as batches:
            async for results in batches:
                collection.apply_link_results(results)
                for result in results:
                    counts[result.status] += 1
    finally:
        collection.active_link_check = None

    checked = sum(counts.values())
    return LinkCheckResponse(
        checked=checked,
        ok=counts[LinkStatus.OK],
        suspect=counts[LinkStatus.SUSPECT],
        dead=counts[LinkStatus.DEAD],
        stopped=checked < len(run),
    )


@router.post("/link-check/stop", status_code=204)
async def stop_link_check(collection: BookmarkCollection = Depends(get_collection)) -> None:
    """Stop the running link check after its current batch."""
    if collection.active_link_check is None:
        raise HTTPException(status_code=404, detail="No link check is running")
    collection.active_link_check.stop()


@router.post("/link-status/reset", status_code=204)
async def reset_link_status(
    data: LinkStatusResetRequest | None = None,
    collection: BookmarkCollection = Depends(get_collection),
) -> None:
    """Mark links as unchecked again so the next run re-checks them."""
    ids = data.ids if data is not None else None
    collection.reset_link_status(set(ids) if ids is not None else None)


@router.get("/export")
async def export_bookmarks(
    format: Literal["json", "html"] = Query(default="json", description="Export format"),  # noqa: A002
    collection: BookmarkCollection = Depends(get_collection),
) -> Response:
    """Download the collection as JSON or as a Netscape bookmark file."""
    if format == "html":
        return Response(
            content=export_html(collection.bookmarks),
            media_type="text/html; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{HTML_EXPORT_FILENAME}"'},
        )
    return Response(
        content=export_json(collection.bookmarks),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{JSON_EXPORT_FILENAME}"'},
    )


@router.delete("/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: str,
    collection: BookmarkCollection = Depends(get_collection),
) -> None:
    """Delete a bookmark."""
    if not collection.delete(bookmark_id):
        raise HTTPException(status_code=404, detail="Bookmark not found")


@router.post("/{bookmark_id}/favorite", response_model=BookmarkResponse)
async def toggle_favorite(
    bookmark_id: str,
    collection: BookmarkCollection = Depends(get_collection),
) -> BookmarkResponse:
    """Toggle the favorite flag."""
    bookmark = collection.toggle_favorite(bookmark_id)
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return BookmarkResponse.model_validate(bookmark)
