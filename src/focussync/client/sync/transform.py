"""Conversion between local records and remote rows.

This module provides:
- item_to_row / row_to_item: Items (ids <-> names for tags, category, project)
- prompt_to_row / row_to_prompt: Prompts (no id-valued fields)
- ParsedItem, ParsedPrompt: Intermediate records parsed from rows
- favicon_url: Favicon service URL for bookmarks

Locally, items reference metadata by id; the sheet shows names so people
can read and edit it. Pushing renders names from a metadata snapshot;
pulling yields names that the resolver turns back into ids.

Parsing is lenient. Sheet cells are edited by hand, so
malformed values fall back to safe defaults instead of raising:
- unparsable UpdatedAt -> now
- unparsable Deadline -> None
- Quality outside 1..5 -> None
- unknown Type / Priority -> passed through as-is

All functions are pure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from urllib.parse import quote, urlsplit

from focussync.client.rows import ItemRow, PromptRow
from focussync.core.models import Item, MetadataLookup, Prompt
from focussync.core.timestamps import format_date, format_iso, now_utc, parse_date, parse_iso

TRUE = "TRUE"
FALSE = "FALSE"

FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={domain}&sz=32"


def _flag(value: bool) -> str:
    return TRUE if value else FALSE


def _parse_flag(text: str) -> bool:
    return text.strip().upper() == TRUE


def split_names(text: str) -> list[str]:
    """Split a comma-separated name list, dropping empty entries."""
    return [name.strip() for name in text.split(",") if name.strip()]


def favicon_url(url: str) -> str | None:
    """Build the favicon service URL for a bookmark.

    Returns:
        Favicon URL, or None if the URL has no host.
    """
    host = urlsplit(url).hostname
    if not host:
        return None
    return FAVICON_SERVICE.format(domain=quote(host))


# === Items ===


@dataclass
class ParsedItem:
    """Item parsed from a row, before name -> id resolution."""

    id: str
    type: str
    title: str
    content: str
    url: str | None
    priority: str | None
    deadline: date | None
    completed: bool
    tag_names: list[str] = field(default_factory=list)
    category_name: str | None = None
    project_name: str | None = None
    updated_at: datetime = field(default_factory=now_utc)
    row_index: int | None = None


def item_to_row(item: Item, metadata: MetadataLookup | None = None) -> ItemRow:
    """Convert a local item to a remote row.

    Tag, category and project ids are rendered as names from ``metadata``.
    Ids missing from the snapshot are dropped; without a snapshot all name
    columns are empty.
    """
    tag_names = ""
    category_name = ""
    project_name = ""

    if metadata is not None:
        names_by_id = {tag.id: tag.name for tag in metadata.tags}
        tag_names = ",".join(
            names_by_id[tag_id] for tag_id in item.tags if tag_id in names_by_id
        )
        if item.category_id:
            category_name = next(
                (c.name for c in metadata.categories if c.id == item.category_id), ""
            )
        if item.project_id:
            project_name = next(
                (p.name for p in metadata.projects if p.id == item.project_id), ""
            )

    return ItemRow(
        id=item.id,
        type=item.type,
        title=item.title,
        content=item.content or "",
        url=item.url or "",
        priority=item.priority or "",
        deadline=format_date(item.deadline) if item.deadline else "",
        completed=_flag(item.completed),
        tags=tag_names,
        category=category_name,
        project=project_name,
        updated_at=format_iso(item.updated_at),
    )


def row_to_item(row: ItemRow) -> ParsedItem:
    """Parse a remote row into an intermediate item.

    Names are left unresolved; see focussync.client.sync.resolver.
    """
    return ParsedItem(
        id=row.id,
        type=row.type or "note",
        title=row.title,
        content=row.content,
        url=row.url or None,
        priority=row.priority or None,
        deadline=parse_date(row.deadline),
        completed=_parse_flag(row.completed),
        tag_names=split_names(row.tags),
        category_name=row.category or None,
        project_name=row.project or None,
        updated_at=parse_iso(row.updated_at) or now_utc(),
        row_index=row.row_index,
    )


# === Prompts ===


@dataclass
class ParsedPrompt:
    """Prompt parsed from a row."""

    id: str
    title: str
    description: str
    prompt: str
    type: str
    category: str | None
    tags: list[str]
    note: str
    approved: bool
    favorite: bool
    quality: int | None
    text_demo: str | None
    url_demo: str | None
    updated_at: datetime = field(default_factory=now_utc)
    row_index: int | None = None


def _parse_quality(text: str) -> int | None:
    try:
        value = int(text.strip())
    except ValueError:
        return None
    return value if 1 <= value <= 5 else None


def prompt_to_row(prompt: Prompt) -> PromptRow:
    """Convert a local prompt to a remote row.

    ``file_demo`` is a local attachment and never leaves the device.
    """
    return PromptRow(
        id=prompt.id,
        title=prompt.title,
        description=prompt.description or "",
        prompt=prompt.prompt or "",
        type=prompt.type,
        category=prompt.category or "",
        tags=",".join(prompt.tags),
        note=prompt.note or "",
        approved=_flag(prompt.approved),
        favorite=_flag(prompt.favorite),
        quality=str(prompt.quality) if prompt.quality else "",
        text_demo=prompt.text_demo or "",
        url_demo=prompt.url_demo or "",
        updated_at=format_iso(prompt.updated_at),
    )


def row_to_prompt(row: PromptRow) -> ParsedPrompt:
    """Parse a remote row into an intermediate prompt."""
    return ParsedPrompt(
        id=row.id,
        title=row.title,
        description=row.description,
        prompt=row.prompt,
        type=row.type or "text",
        category=row.category or None,
        tags=split_names(row.tags),
        note=row.note,
        approved=_parse_flag(row.approved),
        favorite=_parse_flag(row.favorite),
        quality=_parse_quality(row.quality),
        text_demo=row.text_demo or None,
        url_demo=row.url_demo or None,
        updated_at=parse_iso(row.updated_at) or now_utc(),
        row_index=row.row_index,
    )
