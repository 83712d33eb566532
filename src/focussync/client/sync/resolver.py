"""Name -> id resolution for metadata referenced by pulled items.

This module provides:
- resolve_tag_names: Tag names -> tag ids
- resolve_category_name: Category name -> category id
- resolve_project_name: Project name -> project id

Resolution is an upsert by name: lookups are case-insensitive and missing
records are created on the spot, then appended to the caller's cache so
that later rows of the same pull reuse them. Nothing is ever deleted or
renamed; the first casing seen wins ("Work" then "work" -> one tag "Work").
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from focussync.client.state import LocalStore
    from focussync.core.models import Category, Project, Tag

logger = logging.getLogger(__name__)

# Default colors for auto-created metadata
DEFAULT_TAG_COLORS = ["#3b82f6", "#ef4444", "#22c55e", "#f59e0b", "#8b5cf6"]
DEFAULT_PROJECT_COLORS = ["#06b6d4", "#ec4899", "#14b8a6", "#f97316", "#6366f1"]
DEFAULT_CATEGORY_ICON = "folder"

_Named = TypeVar("_Named", "Tag", "Category", "Project")


def resolve_tag_names(
    store: LocalStore,
    names: list[str],
    tags_cache: list[Tag],
) -> list[str]:
    """Resolve tag names to ids, creating missing tags.

    A new tag gets the palette color at the position of the name in this
    call, so the same name list always produces the same colors.

    Args:
        store: Local store used to create missing tags.
        names: Tag names from a remote row.
        tags_cache: Known tags. New tags are appended.

    Returns:
        Tag ids in the order of ``names``, without duplicates.
    """
    tag_ids: list[str] = []
    for name in names:
        tag = _find(tags_cache, name)
        if tag is None:
            color = DEFAULT_TAG_COLORS[len(tag_ids) % len(DEFAULT_TAG_COLORS)]
            tag = store.create_tag(name, color)
            tags_cache.append(tag)
            logger.debug("Created tag %r from remote data", name)
        if tag.id not in tag_ids:
            tag_ids.append(tag.id)
    return tag_ids


def resolve_category_name(
    store: LocalStore,
    name: str | None,
    categories_cache: list[Category],
) -> str | None:
    """Resolve a category name to an id, creating it if missing.

    Returns:
        Category id, or None for an empty name.
    """
    if not name:
        return None
    category = _find(categories_cache, name)
    if category is None:
        category = store.create_category(name, icon=DEFAULT_CATEGORY_ICON, parent_id=None)
        categories_cache.append(category)
        logger.debug("Created category %r from remote data", name)
    return category.id


def resolve_project_name(
    store: LocalStore,
    name: str | None,
    projects_cache: list[Project],
) -> str | None:
    """Resolve a project name to an id, creating it if missing.

    A new project gets the palette color indexed by the number of known
    projects.

    Returns:
        Project id, or None for an empty name.
    """
    if not name:
        return None
    project = _find(projects_cache, name)
    if project is None:
        color = DEFAULT_PROJECT_COLORS[len(projects_cache) % len(DEFAULT_PROJECT_COLORS)]
        project = store.create_project(name, color)
        projects_cache.append(project)
        logger.debug("Created project %r from remote data", name)
    return project.id


def _find(records: list[_Named], name: str) -> _Named | None:
    key = name.casefold()
    return next((r for r in records if r.name.casefold() == key), None)
