"""JSON extension arrays.

A JSON array is a string array whose values are JSON documents. It carries no extension metadata and can
sit on three storage layouts:

- ``string``: 32-bit offsets, the usual choice.
- ``large_string``: 64-bit offsets, for more than 2 GiB of text.
- ``string_view``: inline short values with references to external buffers for long ones.

All three share the ``arrow.json`` name, so readers must dispatch on layout and name together.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from collections.abc import Mapping
from typing import TYPE_CHECKING
from typing import Any
from typing import ClassVar

import pyarrow as pa

from arrowext.constants import JSON_EXTENSION_NAME
from arrowext.constants import BaseLayout
from arrowext.exceptions import WrongTypeError
from arrowext.extension import ArrayHandle
from arrowext.extension import ExtensionArray

if TYPE_CHECKING:
    from arrowext.registry import ExtensionRegistry


JSON_STORAGE_TYPES: dict[BaseLayout, pa.DataType] = {
    BaseLayout.STRING: pa.string(),
    BaseLayout.LARGE_STRING: pa.large_string(),
    BaseLayout.STRING_VIEW: pa.string_view(),
}


class JsonArray(ExtensionArray):
    """Array of JSON documents stored as text.

    Args:
        storage: String, large string or string view array.
        name: Name of the field describing the array.
        annotations: Extra field metadata stored beside the extension tag.

    Raises:
        WrongTypeError: If ``storage`` isn't one of the supported string layouts.
    """

    extension_name: ClassVar[str] = JSON_EXTENSION_NAME

    def __init__(
        self,
        storage: pa.Array,
        name: str | None = None,
        annotations: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(storage, name=name, annotations=annotations)
        if self.base_layout not in JSON_STORAGE_TYPES:
            msg = "JSON arrays must be stored as text"
            raise WrongTypeError(msg, str(storage.type), "string, large_string or string_view")

    @classmethod
    def from_values(
        cls,
        values: Iterable[Any],
        layout: BaseLayout = BaseLayout.STRING,
        name: str | None = None,
        annotations: Mapping[str, str] | None = None,
    ) -> JsonArray:
        """Serialize Python objects into a JSON array, None becomes a null element."""
        if layout not in JSON_STORAGE_TYPES:
            msg = f"Unsupported JSON storage layout '{layout}'"
            raise ValueError(msg)

        texts = [None if value is None else json.dumps(value, separators=(",", ":")) for value in values]
        storage = pa.array(texts, type=JSON_STORAGE_TYPES[layout])
        return cls(storage, name=name, annotations=annotations)

    @classmethod
    def from_handle(cls, handle: ArrayHandle) -> JsonArray:
        """Build a view from a registry handle."""
        return cls(handle.storage, name=handle.name, annotations=handle.annotations)

    def at(self, index: int) -> str | None:
        """Get the JSON text at ``index``, None when null.

        Raises:
            IndexError: If ``index`` is out of range.
        """
        self._check_index(index)
        return self._storage[index].as_py()

    def value(self, index: int) -> Any:  # noqa: ANN401
        """Get the parsed JSON document at ``index``, None when null."""
        text = self.at(index)
        return None if text is None else json.loads(text)

    def __repr__(self) -> str:
        """Return a string representation of the array."""
        return f"JsonArray(name={self._name!r}, size={self.size()}, layout={self.base_layout})"


def register_json_extension(registry: ExtensionRegistry) -> None:
    """Register the JSON factory for each of its storage layouts."""
    for layout in JSON_STORAGE_TYPES:
        registry.register(layout, JSON_EXTENSION_NAME, JsonArray.from_handle)
