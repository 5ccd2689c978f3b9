"""Display titles for entities.

Pure projections from record content to a short title. They never raise:
anything unexpected falls back to a generic label.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from propgraph.config import settings


class PrimaryFieldLike(Protocol):
    id: Any
    is_primary: bool


def _text(content: Mapping[str, Any], *keys: str) -> str | None:
    """First non-blank string among ``keys``."""
    for key in keys:
        value = content.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


# block type -> (content keys to try, fallback label)
_BLOCK_TITLE_KEYS: dict[str, tuple[tuple[str, ...], str]] = {
    "task": (("title",), "Task block"),
    "table": (("title",), "Table"),
    "timeline": ((), "Timeline"),
    "image": (("alt", "filename"), "Image"),
    "file": (("filename",), "File"),
    "video": (("title",), "Video"),
    "embed": (("title",), "Embed"),
    "link": (("title", "url"), "Link"),
    "divider": ((), "Divider"),
    "section": (("title",), "Section"),
    "doc_reference": (("title",), "Document reference"),
    "pdf": (("filename",), "PDF"),
    "chart": (("title",), "Chart"),
}


def block_title(
    block_type: str,
    content: Mapping[str, Any] | None,
    *,
    max_length: int | None = None,
) -> str:
    """Title for a block, keyed on its type and the shape of its content."""
    limit = max_length or settings.title_max_length
    content = content if isinstance(content, Mapping) else {}

    if block_type == "text":
        text = content.get("text", content.get("content", ""))
        if isinstance(text, str):
            return text.strip()[:limit] or "Text block"
        return "Text block"

    if block_type in _BLOCK_TITLE_KEYS:
        keys, fallback = _BLOCK_TITLE_KEYS[block_type]
        return _text(content, *keys) or fallback

    return f"{block_type or 'Untitled'} block"


def table_row_title(
    data: Mapping[str, Any] | None,
    fields: Iterable[PrimaryFieldLike] = (),
    *,
    max_length: int | None = None,
) -> str:
    """Title for a table row.

    Primary field value, else the first non-blank string cell (truncated),
    else ``"Table row"``.
    """
    limit = max_length or settings.title_max_length
    data = data if isinstance(data, Mapping) else {}

    primary = next((f for f in fields if f.is_primary), None)
    if primary is not None:
        value = data.get(str(primary.id))
        if isinstance(value, str) and value.strip():
            return value

    for value in data.values():
        if isinstance(value, str) and value.strip():
            return value[:limit]

    return "Table row"


def table_id_from_block_content(content: Mapping[str, Any] | None) -> str | None:
    """Table id referenced by a table block (``tableId``, ``table_id`` or ``table``)."""
    if not isinstance(content, Mapping):
        return None
    return _text(content, "tableId", "table_id", "table")
