"""Plain-text extraction from Notion objects.

Used to name manifest entries and to build the text that gets embedded.
"""

from __future__ import annotations

from typing import Any


def rich_text_plain(segments: list[dict[str, Any]] | None) -> str:
    """Concatenate the ``plain_text`` (or ``text.content``) of rich-text segments."""
    parts: list[str] = []
    for seg in segments or []:
        if not isinstance(seg, dict):
            continue
        text = seg.get("plain_text")
        if text is None:
            text = (seg.get("text") or {}).get("content", "")
        parts.append(text or "")
    return "".join(parts)


def page_title(page: dict[str, Any]) -> str:
    """Return the plain-text title of a page (the value of its ``title`` property)."""
    for prop in (page.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return rich_text_plain(prop.get("title"))
    return ""


def database_title(database: dict[str, Any]) -> str:
    return rich_text_plain(database.get("title"))


def database_description(database: dict[str, Any]) -> str:
    return rich_text_plain(database.get("description"))


def block_text(block: dict[str, Any]) -> str:
    """Return the readable text of a block.

    Covers every block type whose payload carries ``rich_text``, plus
    captions, child page / database titles and equations.  Blocks with no
    text (dividers, images without captions...) return ``""``.
    """
    btype = block.get("type")
    if not btype:
        return ""
    data = block.get(btype)
    if not isinstance(data, dict):
        return ""

    parts: list[str] = []
    if "rich_text" in data:
        parts.append(rich_text_plain(data.get("rich_text")))
    if "caption" in data:
        parts.append(rich_text_plain(data.get("caption")))
    if btype in ("child_page", "child_database") and isinstance(data.get("title"), str):
        parts.append(data["title"])
    if btype == "equation" and isinstance(data.get("expression"), str):
        parts.append(data["expression"])
    if btype == "table_row":
        for cell in data.get("cells") or []:
            parts.append(rich_text_plain(cell))
    return "\n".join(p for p in parts if p)
