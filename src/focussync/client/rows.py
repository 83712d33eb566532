"""Remote row schemas.

This module provides:
- ItemRow: One row of the remote items sheet
- PromptRow: One row of the remote prompts sheet
- RowError: Raised when a row lacks its ID

Rows are spreadsheet data that users edit by hand. Every cell is read as
text (booleans as ``TRUE``/``FALSE``, empty cells as ``""``); interpretation
of the text is left to the transformers. Columns the schema does not know
are kept in ``extra`` so newer sheets do not break older clients.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Self

ROW_INDEX_KEY = "_rowIndex"


class RowError(ValueError):
    """Remote row cannot be used (missing ID)."""


def cell_text(value: Any) -> str:
    """Render a cell value as text.

    JSON booleans become ``TRUE``/``FALSE`` (the sheet's own rendering),
    integral floats lose their ``.0``, None becomes an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class _SheetRow:
    """Shared column mapping for row dataclasses."""

    COLUMNS: ClassVar[dict[str, str]] = {}

    id: str
    row_index: int | None
    extra: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create a row from the remote JSON object.

        Raises:
            RowError: If the row has no ID.
        """
        row_id = cell_text(data.get("ID")).strip()
        if not row_id:
            raise RowError(f"Row without ID: {data!r}")

        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            attr = cls.COLUMNS.get(key)
            if attr is not None:
                values[attr] = cell_text(value)
            elif key != ROW_INDEX_KEY:
                extra[key] = value
        values["id"] = row_id

        row_index = data.get(ROW_INDEX_KEY)
        return cls(
            **values,
            row_index=row_index if isinstance(row_index, int) else None,
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the remote JSON object (column name -> text)."""
        data: dict[str, Any] = dict(self.extra)
        for column, attr in self.COLUMNS.items():
            data[column] = getattr(self, attr)
        return data


@dataclass
class ItemRow(_SheetRow):
    """Row of the remote items sheet."""

    COLUMNS: ClassVar[dict[str, str]] = {
        "ID": "id",
        "Type": "type",
        "Title": "title",
        "Content": "content",
        "URL": "url",
        "Priority": "priority",
        "Deadline": "deadline",
        "Completed": "completed",
        "Tags": "tags",
        "Category": "category",
        "Project": "project",
        "UpdatedAt": "updated_at",
    }

    id: str
    type: str = ""
    title: str = ""
    content: str = ""
    url: str = ""
    priority: str = ""
    deadline: str = ""
    completed: str = ""
    tags: str = ""
    category: str = ""
    project: str = ""
    updated_at: str = ""
    row_index: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class PromptRow(_SheetRow):
    """Row of the remote prompts sheet."""

    COLUMNS: ClassVar[dict[str, str]] = {
        "ID": "id",
        "Title": "title",
        "Description": "description",
        "Prompt": "prompt",
        "Type": "type",
        "Category": "category",
        "Tags": "tags",
        "Note": "note",
        "Approved": "approved",
        "Favorite": "favorite",
        "Quality": "quality",
        "TextDemo": "text_demo",
        "URLDemo": "url_demo",
        "UpdatedAt": "updated_at",
    }

    id: str
    title: str = ""
    description: str = ""
    prompt: str = ""
    type: str = ""
    category: str = ""
    tags: str = ""
    note: str = ""
    approved: str = ""
    favorite: str = ""
    quality: str = ""
    text_demo: str = ""
    url_demo: str = ""
    updated_at: str = ""
    row_index: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


