"""Export of the collection as JSON or as a flat Netscape bookmark file."""
from collections.abc import Sequence
from html import escape

from pydantic import TypeAdapter

from models.bookmark import Bookmark

JSON_EXPORT_FILENAME = "bookmarks_central_backup.json"
HTML_EXPORT_FILENAME = "bookmarks_export.html"

NETSCAPE_PREAMBLE = """<!DOCTYPE NETSCAPE-Bookmark-file-1>
<!-- This is an automatically generated file.
     It will be read and overwritten.
     DO NOT EDIT! -->
<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">
<TITLE>Bookmarks</TITLE>
<H1>Bookmarks</H1>
<DL><p>
"""
NETSCAPE_CLOSING = "</DL><p>\n"

_bookmarks_adapter = TypeAdapter(list[Bookmark])


def export_json(bookmarks: Sequence[Bookmark]) -> str:
    """Pretty-printed JSON array of the bookmarks with camelCase keys."""
    return _bookmarks_adapter.dump_json(list(bookmarks), by_alias=True, indent=2).decode("utf-8")


def export_html(bookmarks: Sequence[Bookmark]) -> str:
    """
    Netscape bookmark file with one flat <DT><A> line per bookmark.

    Folders are not reconstructed. The category goes in TAGS, and the creation
    time goes in ADD_DATE as epoch seconds. URLs, categories and titles are
    HTML-escaped, so the file re-imports to the same URLs and titles.
    """
    lines = [NETSCAPE_PREAMBLE]
    for bookmark in bookmarks:
        add_date = int(bookmark.created_at.timestamp())
        tags = bookmark.category.value if bookmark.category else ""
        lines.append(
            f'    <DT><A HREF="{escape(bookmark.url)}" ADD_DATE="{add_date}" '
            f'TAGS="{escape(tags)}">{escape(bookmark.title)}</A>\n',
        )
    lines.append(NETSCAPE_CLOSING)
    return "".join(lines)
