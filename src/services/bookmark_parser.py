"""Parser for Netscape-format bookmark exports (Chrome, Edge, Firefox, Safari, ...)."""
import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from urllib.parse import urlparse

from bs4 import BeautifulSoup, ParserRejectedMarkup, Tag

from models.bookmark import DEFAULT_TITLE, Bookmark, BookmarkSource, utc_now
from services.exceptions import BookmarkParseError

logger = logging.getLogger(__name__)

# Bookmarklets and Firefox smart queries are not pages.
NON_NAVIGABLE_SCHEMES = ("javascript:", "place:")

FOLDER_CONTAINERS = frozenset({"dl", "ul"})
FOLDER_HEADINGS = frozenset({"h3", "dt"})
DEFAULT_FOLDER_NAME = "Folder"


def parse_bookmarks(
    html_content: str,
    source: BookmarkSource,
    now: datetime | None = None,
) -> list[Bookmark]:
    """
    Convert a Netscape bookmark export into a flat list of bookmarks.

    Every anchor with a navigable href becomes one unclassified bookmark whose
    folder_path is rebuilt from the enclosing <H3>/<DL> structure, outermost
    folder first. Anchors with a missing or unusable href are skipped.

    The builtin "html.parser" builder is used on purpose: it keeps the unclosed
    <DT> and <p> tags of the format nested, so each folder's <DL> stays the next
    sibling of its <H3>.

    Args:
        html_content:
            Raw HTML of the export.
        source:
            Browser the file was exported from.
        now:
            Import time; used for last_updated_at and as created_at when an
            anchor has no usable ADD_DATE. Defaults to the current time.

    Returns:
        Bookmarks in document order.

    Raises:
        BookmarkParseError: If the document is empty or cannot be parsed at all.
    """
    if not html_content or not html_content.strip():
        raise BookmarkParseError("Bookmark file is empty")
    try:
        soup = BeautifulSoup(html_content, "html.parser")
    except ParserRejectedMarkup as e:
        raise BookmarkParseError(f"Could not parse bookmark file: {e}") from e
    if soup.find() is None:
        raise BookmarkParseError("Bookmark file does not contain any HTML elements")

    if now is None:
        now = utc_now()

    bookmarks: list[Bookmark] = []
    anchors = 0
    for anchor, folder_path in iter_anchors(soup):
        anchors += 1
        url = normalize_href(anchor.get("href"))
        if url is None:
            logger.debug("Skipping anchor without a navigable href: %r", anchor.get("href"))
            continue
        bookmarks.append(
            Bookmark(
                title=anchor.get_text(strip=True) or DEFAULT_TITLE,
                url=url,
                folder_path=folder_path,
                source=source,
                created_at=parse_add_date(anchor.get("add_date"), default=now),
                last_updated_at=now,
            ),
        )

    logger.info(
        "Parsed %d bookmarks from %d anchors (source=%s)",
        len(bookmarks), anchors, source.value,
    )
    return bookmarks


def normalize_href(href: object) -> str | None:
    """
    Return the href as a bookmark URL, or None if it should be dropped.

    Dropped: missing or blank hrefs, non-navigable schemes (javascript:, place:),
    hrefs without a scheme and strings urlparse rejects.
    """
    if not isinstance(href, str):
        return None
    url = href.strip()
    if not url:
        return None
    if url.lower().startswith(NON_NAVIGABLE_SCHEMES):
        return None
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme:
        return None
    return url


def iter_anchors(root: Tag) -> Iterator[tuple[Tag, tuple[str, ...]]]:
    """
    Yield every anchor in document order with its folder path.

    Each <DL>/<UL> whose preceding sibling element is an <H3> (or <DT>) opens a
    folder named by that element's text; paths read outer to inner. The tree is
    walked once with an explicit stack, since unclosed <DT>s nest every later
    entry of a folder one level deeper.
    """
    stack: list[tuple[Tag, tuple[str, ...]]] = [(root, ())]
    while stack:
        tag, path = stack.pop()
        if tag.name == "a":
            yield tag, path
        elif tag.name in FOLDER_CONTAINERS:
            heading = _previous_element_sibling(tag)
            if heading is not None and heading.name in FOLDER_HEADINGS:
                path = (*path, heading.get_text(strip=True) or DEFAULT_FOLDER_NAME)
        children = [child for child in tag.children if isinstance(child, Tag)]
        stack.extend((child, path) for child in reversed(children))


def parse_add_date(value: object, default: datetime) -> datetime:
    """Convert an ADD_DATE attribute (epoch seconds) to a UTC datetime, else default."""
    if not isinstance(value, str) or not value.strip():
        return default
    try:
        return datetime.fromtimestamp(int(value.strip()), tz=UTC)
    except (ValueError, OverflowError, OSError):
        return default


def _previous_element_sibling(tag: Tag) -> Tag | None:
    for sibling in tag.previous_siblings:
        if isinstance(sibling, Tag):
            return sibling
    return None
