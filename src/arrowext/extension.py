"""Building blocks shared by the extension array views.

Arrow tags an extension array through the metadata of the field that describes it: the
``ARROW:extension:name`` key carries the extension name and ``ARROW:extension:metadata`` the serialized
extension metadata. Every other key is a free-form annotation.
"""

from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Iterator
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from typing import ClassVar

import pyarrow as pa

from arrowext.constants import EXTENSION_METADATA_KEY
from arrowext.constants import EXTENSION_NAME_KEY
from arrowext.constants import RESERVED_METADATA_KEYS
from arrowext.constants import BaseLayout
from arrowext.constants import base_layout_of

logger = logging.getLogger(__name__)


def build_field_metadata(
    extension_name: str,
    extension_metadata: str | None = None,
    annotations: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge caller annotations with the keys identifying an extension.

    Args:
        extension_name: Name of the extension type.
        extension_metadata: Serialized extension metadata, omitted when None.
        annotations: Extra key/value pairs to carry along.

    Returns:
        Field metadata with the annotations first and the extension keys last.

    Raises:
        ValueError: If an annotation uses one of the reserved extension keys.
    """
    metadata = dict(annotations or {})
    clashing = RESERVED_METADATA_KEYS.intersection(metadata)
    if clashing:
        msg = f"Annotations can't override reserved keys {sorted(clashing)}"
        raise ValueError(msg)

    metadata[EXTENSION_NAME_KEY] = extension_name
    if extension_metadata is not None:
        metadata[EXTENSION_METADATA_KEY] = extension_metadata
    return metadata


def _decode_metadata(metadata: Mapping[bytes, bytes] | None) -> dict[str, str]:
    if not metadata:
        return {}
    return {key.decode(): value.decode() for key, value in metadata.items()}


@dataclass(frozen=True, slots=True)
class ArrayHandle:
    """A raw Arrow array together with the field describing it.

    This is what the registry hands to an extension factory. Arrays that pyarrow already wrapped as
    ``pa.ExtensionArray`` are accepted too: their extension name comes from the type.

    Attributes:
        array: The array as received.
        field: The field describing the array.
    """

    array: pa.Array
    field: pa.Field

    @classmethod
    def from_array(cls, array: pa.Array | pa.ChunkedArray, field: pa.Field | None = None) -> ArrayHandle:
        """Build a handle, defaulting to an unnamed field of the array's type."""
        if isinstance(array, pa.ChunkedArray):
            array = array.combine_chunks()
        if field is None:
            field = pa.field("", array.type)
        return cls(array=array, field=field)

    @property
    def field_metadata(self) -> dict[str, str]:
        """Field metadata decoded to text."""
        return _decode_metadata(self.field.metadata)

    @property
    def extension_name(self) -> str | None:
        """Extension name carried by the array, None when untagged."""
        if isinstance(self.array.type, pa.BaseExtensionType):
            return self.array.type.extension_name
        return self.field_metadata.get(EXTENSION_NAME_KEY)

    @property
    def extension_metadata(self) -> str:
        """Serialized extension metadata, empty when absent.

        Field metadata wins. For arrays pyarrow already wrapped, the type's own ``__arrow_ext_serialize__`` is
        used otherwise. Extension types that don't expose it, as some C++-backed ones, read as empty and a
        warning is logged.
        """
        serialized = self.field_metadata.get(EXTENSION_METADATA_KEY)
        if serialized is None and isinstance(self.array.type, pa.BaseExtensionType):
            serialize = getattr(self.array.type, "__arrow_ext_serialize__", None)
            if serialize is None:
                logger.warning(
                    "Extension type %s doesn't expose its serialized metadata, reading it as empty",
                    self.array.type.extension_name,
                )
            else:
                serialized = serialize().decode()
        return serialized or ""

    @property
    def annotations(self) -> dict[str, str]:
        """Field metadata other than the extension keys."""
        return {key: value for key, value in self.field_metadata.items() if key not in RESERVED_METADATA_KEYS}

    @property
    def storage(self) -> pa.Array:
        """The array with any pyarrow extension wrapping removed."""
        if isinstance(self.array, pa.ExtensionArray):
            return self.array.storage
        return self.array

    @property
    def base_layout(self) -> BaseLayout:
        """Physical layout of the storage."""
        return base_layout_of(self.storage.type)

    @property
    def name(self) -> str | None:
        """Field name, None when empty."""
        return self.field.name or None


class ExtensionArray(ABC):
    """Abstract base class for typed views over extension-tagged Arrow storage.

    Subclasses set ``extension_name``, keep their storage in ``self._storage`` and implement ``at``.
    """

    extension_name: ClassVar[str]

    def __init__(self, storage: pa.Array, name: str | None = None, annotations: Mapping[str, str] | None = None):
        self._storage = storage
        self._name = name
        self._annotations = dict(annotations or {})
        self._field_metadata = build_field_metadata(
            self.extension_name, self._serialize_metadata(), self._annotations
        )

    def _serialize_metadata(self) -> str | None:
        """Serialized extension metadata, None for extensions that carry none."""
        return None

    @abstractmethod
    def at(self, index: int) -> Any:  # noqa: ANN401
        """Bounds-checked element access."""

    @property
    def storage(self) -> pa.Array:
        """The Arrow array backing this view."""
        return self._storage

    @property
    def name(self) -> str | None:
        """Name of the field describing this array."""
        return self._name

    @property
    def annotations(self) -> dict[str, str]:
        """Free-form key/value pairs carried beside the extension tag."""
        return dict(self._annotations)

    @property
    def field(self) -> pa.Field:
        """Field describing the storage, tagged with the extension keys."""
        return pa.field(self._name or "", self._storage.type, metadata=self._field_metadata)

    @property
    def base_layout(self) -> BaseLayout:
        """Physical layout of the storage."""
        return base_layout_of(self._storage.type)

    @property
    def null_count(self) -> int:
        """Number of null elements."""
        return self._storage.null_count

    def size(self) -> int:
        """Number of elements."""
        return len(self._storage)

    def empty(self) -> bool:
        """Whether the array has no elements."""
        return self.size() == 0

    def is_null(self, index: int) -> bool:
        """Whether the element at ``index`` is null."""
        self._check_index(index)
        return not self._storage[index].is_valid

    def to_handle(self) -> ArrayHandle:
        """Raw handle of this view, suitable for :meth:`ExtensionRegistry.decode`."""
        return ArrayHandle(array=self._storage, field=self.field)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.size():
            msg = f"Index {index} is out of range for {type(self).__name__} of size {self.size()}"
            raise IndexError(msg)

    def __len__(self) -> int:
        """Length magic."""
        return self.size()

    def __getitem__(self, index: int) -> Any:  # noqa: ANN401
        """Same as ``at``."""
        return self.at(index)

    def __iter__(self) -> Iterator[Any]:
        """Iterate over elements in index order."""
        for index in range(self.size()):
            yield self.at(index)
