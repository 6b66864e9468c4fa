"""Variable-shape tensor extension array.

Each element is one tensor, stored as a struct with two children:

- ``data``: a list array holding the tensor values flattened, one list per element.
- ``shape``: a fixed-size list array of integers, one vector of ``ndim`` extents per element.

The struct validity bitmap decides whether an element is null, regardless of what the children hold.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import ClassVar

import numpy as np
import pyarrow as pa

from arrowext import settings
from arrowext.constants import TENSOR_DATA_FIELD_NAME
from arrowext.constants import TENSOR_SHAPE_FIELD_NAME
from arrowext.constants import VARIABLE_SHAPE_TENSOR_EXTENSION_NAME
from arrowext.constants import BaseLayout
from arrowext.exceptions import InvalidExtensionArrayError
from arrowext.exceptions import ShapeError
from arrowext.exceptions import WrongTypeError
from arrowext.extension import ArrayHandle
from arrowext.extension import ExtensionArray
from arrowext.schemas.tensor_metadata import TensorMetadata

if TYPE_CHECKING:
    from numpy.typing import ArrayLike
    from numpy.typing import NDArray

    from arrowext.registry import ExtensionRegistry


logger = logging.getLogger(__name__)

_INT32_MAX = np.iinfo("int32").max


@dataclass(frozen=True, slots=True)
class TensorElement:
    """One element of a variable-shape tensor array.

    Attributes:
        data: Flattened tensor values, a zero-copy slice of the data child. None when null.
        shape: Extent of each axis. None when null.
    """

    data: pa.Array | None
    shape: tuple[int, ...] | None

    @property
    def is_valid(self) -> bool:
        """Whether the element is not null."""
        return self.shape is not None

    def as_dict(self) -> dict[str, list] | None:
        """The element as a ``{"data": ..., "shape": ...}`` record, None when null."""
        if not self.is_valid:
            return None
        data = self.data.to_pylist() if self.data is not None else []
        return {TENSOR_DATA_FIELD_NAME: data, TENSOR_SHAPE_FIELD_NAME: list(self.shape)}

    def to_numpy(self) -> NDArray | None:
        """The flattened values reshaped to the element shape, None when null."""
        if not self.is_valid:
            return None
        return np.asarray(self.data.to_numpy(zero_copy_only=False)).reshape(self.shape)


def _check_children(ndim: int, data: pa.Array, shape: pa.Array, metadata: TensorMetadata) -> None:
    """Raise if the children and metadata can't form a tensor array of ``ndim`` axes."""
    if ndim < 0:
        msg = "Number of tensor axes can't be negative"
        raise ShapeError(msg, ("ndim", "Minimum"), (ndim, 0))

    if not (pa.types.is_list(data.type) or pa.types.is_large_list(data.type)):
        msg = f"Child '{TENSOR_DATA_FIELD_NAME}' must be a list array"
        raise WrongTypeError(msg, str(data.type), "list<T> or large_list<T>")

    if not pa.types.is_fixed_size_list(shape.type) or not pa.types.is_integer(shape.type.value_type):
        msg = f"Child '{TENSOR_SHAPE_FIELD_NAME}' must be a fixed-size list of integers"
        raise WrongTypeError(msg, str(shape.type), f"fixed_size_list<int32>[{ndim}]")

    if shape.type.list_size != ndim:
        msg = f"Child '{TENSOR_SHAPE_FIELD_NAME}' list size doesn't match the number of axes"
        raise ShapeError(msg, ("list_size", "ndim"), (shape.type.list_size, ndim))

    if len(data) != len(shape):
        msg = "Children have different lengths"
        raise ShapeError(msg, (TENSOR_DATA_FIELD_NAME, TENSOR_SHAPE_FIELD_NAME), (len(data), len(shape)))

    metadata_ndim = metadata.get_ndim()
    if metadata_ndim is not None and metadata_ndim != ndim:
        msg = "Metadata declares a different number of axes than the array"
        raise ShapeError(msg, ("metadata", "ndim"), (metadata_ndim, ndim))


def _validity_mask(validity: Sequence[bool] | ArrayLike | pa.Array | None, size: int) -> pa.Array | None:
    """Convert a validity argument to the null mask Arrow expects, None when all valid."""
    if validity is None:
        return None
    if isinstance(validity, (pa.Array, pa.ChunkedArray)):
        validity = validity.to_pylist()

    valid = np.asarray(validity, dtype=bool)
    if valid.ndim != 1 or valid.size != size:
        msg = "Validity doesn't match the number of elements"
        raise ShapeError(msg, ("validity", "elements"), (valid.size, size))

    if valid.all():
        return None
    return pa.array(~valid, type=pa.bool_())


class VariableShapeTensorArray(ExtensionArray):
    """Array of tensors that share their number of axes but not their shape.

    Children and metadata are checked once, at construction. Metadata failing
    :meth:`TensorMetadata.is_valid` is still accepted, only its axis count has to match ``ndim``.

    Args:
        ndim: Number of axes of every tensor.
        data: List array of flattened tensor values.
        shape: Fixed-size list array with one shape vector per tensor.
        metadata: Metadata shared by all tensors.
        validity: Per-element validity, True meaning valid. Defaults to all valid.
        name: Name of the field describing the array.
        annotations: Extra field metadata stored beside the extension tag.

    Raises:
        WrongTypeError: If a child has the wrong Arrow layout.
        ShapeError: If lengths or axis counts disagree.
        ValueError: If ``annotations`` uses a reserved extension key.

    Examples:
        >>> data = pa.array([[1, 2, 3, 4, 5, 6], [7, 8]])
        >>> shape = pa.FixedSizeListArray.from_arrays(pa.array([2, 3, 1, 2], pa.int32()), 2)
        >>> tensors = VariableShapeTensorArray(2, data, shape, TensorMetadata(dim_names=["H", "W"]))
        >>> tensors.at(1).shape
        (1, 2)
    """

    extension_name: ClassVar[str] = VARIABLE_SHAPE_TENSOR_EXTENSION_NAME
    DATA_FIELD_NAME: ClassVar[str] = TENSOR_DATA_FIELD_NAME
    SHAPE_FIELD_NAME: ClassVar[str] = TENSOR_SHAPE_FIELD_NAME

    def __init__(
        self,
        ndim: int,
        data: pa.Array,
        shape: pa.Array,
        metadata: TensorMetadata,
        validity: Sequence[bool] | ArrayLike | None = None,
        name: str | None = None,
        annotations: Mapping[str, str] | None = None,
    ) -> None:
        _check_children(ndim, data, shape, metadata)
        mask = _validity_mask(validity, len(data))

        names = [self.DATA_FIELD_NAME, self.SHAPE_FIELD_NAME]
        storage = pa.StructArray.from_arrays([data, shape], names=names, mask=mask)
        self._attach(storage, ndim, metadata, name, annotations)

    def _attach(
        self,
        storage: pa.StructArray,
        ndim: int,
        metadata: TensorMetadata,
        name: str | None,
        annotations: Mapping[str, str] | None,
    ) -> None:
        self._ndim = ndim
        self._metadata = metadata
        self._data_child = storage.field(self.DATA_FIELD_NAME)
        self._shape_child = storage.field(self.SHAPE_FIELD_NAME)
        super().__init__(storage, name=name, annotations=annotations)

        if logger.isEnabledFor(logging.DEBUG) and not metadata.is_valid():
            logger.debug("Tensor array %r built over invalid metadata: %s", name, metadata.find_problems())

    def _serialize_metadata(self) -> str:
        return self._metadata.to_json()

    @classmethod
    def from_storage(
        cls,
        storage: pa.Array,
        metadata: TensorMetadata,
        name: str | None = None,
        annotations: Mapping[str, str] | None = None,
    ) -> VariableShapeTensorArray:
        """Wrap an existing struct array without copying its buffers.

        The number of axes is taken from the shape child and validity from the struct null bitmap.

        Args:
            storage: Struct array with ``data`` and ``shape`` children.
            metadata: Metadata shared by all tensors.
            name: Name of the field describing the array.
            annotations: Extra field metadata stored beside the extension tag.

        Returns:
            A tensor array viewing ``storage``.

        Raises:
            WrongTypeError: If ``storage`` isn't a struct with the expected children.
            ShapeError: If lengths or axis counts disagree.
        """
        expected = f"struct<{cls.DATA_FIELD_NAME}: list<T>, {cls.SHAPE_FIELD_NAME}: fixed_size_list<int32>[ndim]>"
        if not pa.types.is_struct(storage.type):
            msg = "Tensor storage must be a struct array"
            raise WrongTypeError(msg, str(storage.type), expected)

        for child_name in (cls.DATA_FIELD_NAME, cls.SHAPE_FIELD_NAME):
            if storage.type.get_field_index(child_name) < 0:
                msg = f"Tensor storage is missing child '{child_name}'"
                raise WrongTypeError(msg, str(storage.type), expected)

        data = storage.field(cls.DATA_FIELD_NAME)
        shape = storage.field(cls.SHAPE_FIELD_NAME)
        ndim = shape.type.list_size if pa.types.is_fixed_size_list(shape.type) else 0
        _check_children(ndim, data, shape, metadata)

        view = cls.__new__(cls)
        view._attach(storage, ndim, metadata, name, annotations)
        return view

    @classmethod
    def from_handle(cls, handle: ArrayHandle) -> VariableShapeTensorArray:
        """Build a view from a registry handle, parsing its serialized metadata.

        Raises:
            MetadataParseError: If the serialized metadata is malformed.
        """
        metadata = TensorMetadata.from_json(handle.extension_metadata or "{}")
        if not metadata.is_valid() and settings.warn_invalid_metadata():
            logger.warning("Decoded tensor array %r has invalid metadata: %s", handle.name, metadata.find_problems())
        return cls.from_storage(handle.storage, metadata, name=handle.name, annotations=handle.annotations)

    @classmethod
    def from_numpy(
        cls,
        tensors: Sequence[ArrayLike | None],
        metadata: TensorMetadata | None = None,
        name: str | None = None,
        annotations: Mapping[str, str] | None = None,
        value_type: pa.DataType | None = None,
    ) -> VariableShapeTensorArray:
        """Build a tensor array from numpy arrays, None entries become null elements.

        Args:
            tensors: Tensors sharing the same number of axes.
            metadata: Metadata shared by all tensors, empty by default.
            name: Name of the field describing the array.
            annotations: Extra field metadata stored beside the extension tag.
            value_type: Arrow type of the values, inferred from numpy when omitted.

        Returns:
            A new tensor array.

        Raises:
            ShapeError: If tensors disagree on their number of axes, or it can't be inferred.
        """
        metadata = metadata if metadata is not None else TensorMetadata()
        arrays = [None if tensor is None else np.asarray(tensor) for tensor in tensors]
        present = [array for array in arrays if array is not None]

        ndims = sorted({array.ndim for array in present})
        if len(ndims) > 1:
            msg = "Tensors must all have the same number of axes"
            raise ShapeError(msg, ("min ndim", "max ndim"), (ndims[0], ndims[-1]))
        ndim = ndims[0] if ndims else metadata.get_ndim()
        if ndim is None:
            msg = "Can't infer the number of axes without tensors or metadata"
            raise ShapeError(msg)
        if ndim == 0:
            msg = "Zero-dimensional tensors need explicitly built children"
            raise ShapeError(msg)

        values = np.concatenate([array.ravel() for array in present]) if present else np.array([])
        value_type = value_type if value_type is not None else pa.from_numpy_dtype(values.dtype)

        offsets = np.zeros(len(arrays) + 1, dtype=np.int64)
        offsets[1:] = np.cumsum([0 if array is None else array.size for array in arrays])
        shapes = [extent for array in arrays for extent in (array.shape if array is not None else (0,) * ndim)]

        flat_values = pa.array(values, type=value_type)
        if offsets[-1] > _INT32_MAX:
            data = pa.LargeListArray.from_arrays(pa.array(offsets), flat_values)
        else:
            data = pa.ListArray.from_arrays(pa.array(offsets.astype(np.int32)), flat_values)
        shape = pa.FixedSizeListArray.from_arrays(pa.array(shapes, pa.int32()), type=pa.list_(pa.int32(), ndim))

        validity = [array is not None for array in arrays]
        return cls(ndim, data, shape, metadata, validity=validity, name=name, annotations=annotations)

    @property
    def ndim(self) -> int | None:
        """Number of axes declared by the metadata, None when it declares none."""
        return self._metadata.get_ndim()

    @property
    def metadata(self) -> TensorMetadata:
        """Metadata shared by all tensors."""
        return self._metadata

    def get_metadata(self) -> TensorMetadata:
        """Same as ``metadata``."""
        return self._metadata

    @property
    def data_child(self) -> pa.Array:
        """List array of flattened tensor values."""
        return self._data_child

    @property
    def shape_child(self) -> pa.FixedSizeListArray:
        """Fixed-size list array of shape vectors."""
        return self._shape_child

    def at(self, index: int) -> TensorElement:
        """Get the tensor at ``index``.

        Args:
            index: Position in ``[0, size())``. Negative indices are not accepted.

        Returns:
            The element, with ``data`` and ``shape`` set to None when it is null. A null data entry
            in a valid slot reads as empty values.

        Raises:
            IndexError: If ``index`` is out of range.
        """
        self._check_index(index)
        if not self._storage[index].is_valid:
            return TensorElement(data=None, shape=None)

        data = self._data_child[index].values
        if data is None:
            data = pa.array([], type=self._data_child.type.value_type)
        shape = self._shape_child[index].values
        return TensorElement(
            data=data,
            shape=tuple(shape.to_pylist()) if shape is not None else (),
        )

    def is_valid(self) -> bool:
        """Whether the children agree with the axis count and the metadata is valid.

        Construction only enforces the axis count agreement, so an array built over metadata failing
        :meth:`TensorMetadata.is_valid` reports False here.
        """
        try:
            _check_children(self._ndim, self._data_child, self._shape_child, self._metadata)
        except InvalidExtensionArrayError:
            return False
        return self._metadata.is_valid()

    def slice(self, offset: int = 0, length: int | None = None) -> VariableShapeTensorArray:
        """Zero-copy view over a range of elements, sharing metadata, name and annotations."""
        return self.from_storage(
            self._storage.slice(offset, length), self._metadata, name=self._name, annotations=self._annotations
        )

    def to_pylist(self) -> list[dict[str, list] | None]:
        """All elements as ``{"data": ..., "shape": ...}`` records."""
        return [element.as_dict() for element in self]

    def to_numpy_list(self) -> list[NDArray | None]:
        """All elements reshaped to numpy arrays."""
        return [element.to_numpy() for element in self]

    def __repr__(self) -> str:
        """Return a string representation of the array."""
        return (
            f"VariableShapeTensorArray("
            f"name={self._name!r}, "
            f"size={self.size()}, "
            f"ndim={self._ndim}, "
            f"value_type={self._data_child.type.value_type}, "
            f"metadata={self._metadata.to_json()})"
        )

    def _repr_html_(self) -> str:
        """Return an HTML representation of the array for Jupyter notebooks."""
        from arrowext.formatting_html import tensor_array_repr_html

        return tensor_array_repr_html(self)


def register_variable_shape_tensor_extension(registry: ExtensionRegistry) -> None:
    """Register the tensor factory for struct storage."""
    registry.register(BaseLayout.STRUCT, VARIABLE_SHAPE_TENSOR_EXTENSION_NAME, VariableShapeTensorArray.from_handle)
