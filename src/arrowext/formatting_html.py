"""HTML formatting utilities for arrowext objects shown in Jupyter."""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from arrowext.registry import ExtensionRegistry
    from arrowext.schemas.tensor_metadata import TensorMetadata
    from arrowext.variable_shape_tensor import VariableShapeTensorArray

MAX_PREVIEW_ROWS = 10
NOT_SET = "—"


@dataclass(frozen=True)
class CSSStyles:
    """Centralized CSS styles for HTML rendering."""

    box: str = (
        "font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; "
        "border: 1px solid rgba(128, 128, 128, 0.3); border-radius: 6px; padding: 12px;"
    )
    header: str = (
        "padding: 8px 12px; margin: -12px -12px 10px -12px; "
        "border-bottom: 1px solid rgba(128, 128, 128, 0.3); background: rgba(128, 128, 128, 0.05);"
    )
    cell: str = (
        "padding: 6px; border-bottom: 1px solid rgba(128, 128, 128, 0.2); "
        "font-family: 'SF Mono', Monaco, Consolas, monospace; font-size: 12px; text-align: left;"
    )
    heading: str = "padding: 6px; font-weight: 600; text-align: left;"


@dataclass(frozen=True)
class RegistryRow:
    """One registered extension as shown in the registry table."""

    layout: str
    extension_name: str
    factory: str


class TableBuilder:
    """Utility class for building HTML tables."""

    def __init__(self, headers: list[str], table_id: str):
        self.headers = headers
        self.table_id = table_id
        self.rows: list[str] = []

    def add_row(self, *cells: object) -> None:
        """Add a table row, cell values are escaped."""
        css = CSSStyles()
        cells_html = "".join(f'<td style="{css.cell}">{html.escape(str(cell))}</td>' for cell in cells)
        self.rows.append(f"<tr>{cells_html}</tr>")

    def build(self) -> str:
        """Build the complete HTML table."""
        css = CSSStyles()
        header_html = "".join(f'<th style="{css.heading}" scope="col">{name}</th>' for name in self.headers)
        if self.rows:
            body = "\n".join(self.rows)
        else:
            body = f'<tr><td colspan="{len(self.headers)}" style="opacity: 0.5;">No data available</td></tr>'
        return (
            f'<table id="{self.table_id}" style="width: 100%; border-collapse: collapse;">\n'
            f"<thead><tr>{header_html}</tr></thead>\n"
            f"<tbody>\n{body}\n</tbody>\n"
            f"</table>"
        )


def make_html_container(header_title: str, content: str, header_id: str = "header") -> str:
    """Create an HTML container with a header."""
    css = CSSStyles()
    return (
        f'<div style="{css.box}" role="region" aria-labelledby="{header_id}">\n'
        f'<header style="{css.header}" id="{header_id}">'
        f'<h3 style="font-size: 1.1em; margin: 0;">{html.escape(header_title)}</h3></header>\n'
        f"{content}\n"
        f"</div>"
    )


def make_metadata_section(metadata_items: list[tuple[str, object]]) -> str:
    """Create a key/value display section, values are escaped."""
    items_html = "\n".join(
        f"<strong>{html.escape(key)}:</strong> {html.escape(str(value))}<br>" for key, value in metadata_items
    )
    return f'<div style="margin-bottom: 10px;">\n{items_html}\n</div>'


def format_sequence_or_dash(values: tuple | None) -> str:
    """Join a metadata member for display, None entries shown as '?'."""
    if values is None:
        return NOT_SET
    return ", ".join("?" if value is None else str(value) for value in values)


def _metadata_items(metadata: TensorMetadata) -> list[tuple[str, object]]:
    ndim = metadata.get_ndim()
    return [
        ("Dimension Names", format_sequence_or_dash(metadata.dim_names)),
        ("Permutation", format_sequence_or_dash(metadata.permutation)),
        ("Uniform Shape", format_sequence_or_dash(metadata.uniform_shape)),
        ("Axes", NOT_SET if ndim is None else ndim),
        ("Valid", metadata.is_valid()),
    ]


def tensor_metadata_repr_html(metadata: TensorMetadata) -> str:
    """Return an HTML representation of tensor metadata for Jupyter notebooks."""
    return make_html_container("TensorMetadata", make_metadata_section(_metadata_items(metadata)), "metadata-header")


def tensor_array_repr_html(array: VariableShapeTensorArray) -> str:
    """Return an HTML representation of a tensor array for Jupyter notebooks."""
    table = TableBuilder(headers=["Index", "Shape", "Values"], table_id="tensor-preview")
    for index in range(min(array.size(), MAX_PREVIEW_ROWS)):
        element = array.at(index)
        if element.is_valid:
            table.add_row(index, "×".join(str(extent) for extent in element.shape), len(element.data))
        else:
            table.add_row(index, "null", NOT_SET)

    items = [
        ("Name", array.name or NOT_SET),
        ("Size", f"{array.size():,}"),
        ("Nulls", f"{array.null_count:,}"),
        ("Value Type", array.data_child.type.value_type),
        *_metadata_items(array.metadata),
    ]
    content = make_metadata_section(items) + table.build()
    return make_html_container("VariableShapeTensorArray", content, "tensor-array-header")


def registry_repr_html(registry: ExtensionRegistry) -> str:
    """Return an HTML representation of the extension registry for Jupyter notebooks."""
    rows = registry._repr_rows()
    table = TableBuilder(
        headers=[
            f'Extension <span style="opacity: 0.6; font-weight: 500;">({len(rows)})</span>',
            "Layout",
            "Factory",
        ],
        table_id="registry-table",
    )
    for row in rows:
        table.add_row(row.extension_name, row.layout, row.factory)
    return make_html_container("ExtensionRegistry", table.build(), "registry-header")
