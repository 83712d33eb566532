"""Tests for name -> id resolution of metadata."""

from __future__ import annotations

from focussync.client.state import LocalStore
from focussync.client.sync.resolver import (
    DEFAULT_PROJECT_COLORS,
    DEFAULT_TAG_COLORS,
    resolve_category_name,
    resolve_project_name,
    resolve_tag_names,
)


class TestResolveTagNames:
    """Tests for resolve_tag_names."""

    def test_creates_missing_tags(self, store: LocalStore) -> None:
        cache = store.list_tags()

        ids = resolve_tag_names(store, ["python", "docs"], cache)

        tags = {tag.id: tag for tag in store.list_tags()}
        assert [tags[i].name for i in ids] == ["python", "docs"]
        assert [tags[i].color for i in ids] == DEFAULT_TAG_COLORS[:2]
        assert len(cache) == 2

    def test_reuses_existing_tags_case_insensitively(self, store: LocalStore) -> None:
        existing = store.create_tag("Work", "#000")

        ids = resolve_tag_names(store, ["work", "WORK"], store.list_tags())

        assert ids == [existing.id]
        assert [tag.name for tag in store.list_tags()] == ["Work"]

    def test_idempotent(self, store: LocalStore) -> None:
        """Resolving twice creates nothing the second time."""
        cache = store.list_tags()
        first = resolve_tag_names(store, ["a", "b"], cache)
        second = resolve_tag_names(store, ["a", "b"], store.list_tags())

        assert first == second
        assert len(store.list_tags()) == 2

    def test_cache_shared_across_rows(self, store: LocalStore) -> None:
        """A tag created for one row is reused for the next."""
        cache = store.list_tags()
        first = resolve_tag_names(store, ["new"], cache)
        second = resolve_tag_names(store, ["New"], cache)

        assert first == second

    def test_empty_names(self, store: LocalStore) -> None:
        assert resolve_tag_names(store, [], store.list_tags()) == []


class TestResolveCategoryName:
    """Tests for resolve_category_name."""

    def test_empty_name_is_none(self, store: LocalStore) -> None:
        assert resolve_category_name(store, None, []) is None
        assert resolve_category_name(store, "", []) is None
        assert store.list_categories() == []

    def test_creates_with_default_icon(self, store: LocalStore) -> None:
        cache = store.list_categories()

        category_id = resolve_category_name(store, "Reading", cache)

        category = store.list_categories()[0]
        assert category.id == category_id
        assert category.icon == "folder"
        assert category.parent_id is None
        assert cache == [category]

    def test_finds_existing(self, store: LocalStore) -> None:
        existing = store.create_category("Reading", icon="book")

        assert resolve_category_name(store, "reading", store.list_categories()) == existing.id


class TestResolveProjectName:
    """Tests for resolve_project_name."""

    def test_empty_name_is_none(self, store: LocalStore) -> None:
        assert resolve_project_name(store, None, []) is None

    def test_color_indexed_by_known_projects(self, store: LocalStore) -> None:
        store.create_project("Existing", "#000")
        cache = store.list_projects()

        project_id = resolve_project_name(store, "Learning", cache)

        created = next(p for p in store.list_projects() if p.id == project_id)
        assert created.color == DEFAULT_PROJECT_COLORS[1]

    def test_finds_existing(self, store: LocalStore) -> None:
        existing = store.create_project("Learning", "#000")

        assert resolve_project_name(store, "LEARNING", store.list_projects()) == existing.id
