"""Constant values used across arrowext."""

from enum import StrEnum

import pyarrow as pa

EXTENSION_NAME_KEY = "ARROW:extension:name"
EXTENSION_METADATA_KEY = "ARROW:extension:metadata"
RESERVED_METADATA_KEYS = frozenset({EXTENSION_NAME_KEY, EXTENSION_METADATA_KEY})

JSON_EXTENSION_NAME = "arrow.json"
VARIABLE_SHAPE_TENSOR_EXTENSION_NAME = "arrow.variable_shape_tensor"

TENSOR_DATA_FIELD_NAME = "data"
TENSOR_SHAPE_FIELD_NAME = "shape"


class BaseLayout(StrEnum):
    """Physical Arrow layouts an extension type can be stored as."""

    NULL = "null"
    BOOL = "bool"
    PRIMITIVE = "primitive"
    BINARY = "binary"
    LARGE_BINARY = "large_binary"
    STRING = "string"
    LARGE_STRING = "large_string"
    STRING_VIEW = "string_view"
    LIST = "list"
    LARGE_LIST = "large_list"
    FIXED_SIZE_LIST = "fixed_size_list"
    STRUCT = "struct"
    MAP = "map"
    OTHER = "other"


_LAYOUT_PREDICATES = (
    (pa.types.is_null, BaseLayout.NULL),
    (pa.types.is_boolean, BaseLayout.BOOL),
    (pa.types.is_string, BaseLayout.STRING),
    (pa.types.is_large_string, BaseLayout.LARGE_STRING),
    (pa.types.is_string_view, BaseLayout.STRING_VIEW),
    (pa.types.is_binary, BaseLayout.BINARY),
    (pa.types.is_large_binary, BaseLayout.LARGE_BINARY),
    (pa.types.is_map, BaseLayout.MAP),
    (pa.types.is_list, BaseLayout.LIST),
    (pa.types.is_large_list, BaseLayout.LARGE_LIST),
    (pa.types.is_fixed_size_list, BaseLayout.FIXED_SIZE_LIST),
    (pa.types.is_struct, BaseLayout.STRUCT),
    (pa.types.is_primitive, BaseLayout.PRIMITIVE),
)


def base_layout_of(data_type: pa.DataType) -> BaseLayout:
    """Classify a storage type into its base layout.

    Extension types are classified by their storage type.
    """
    if isinstance(data_type, pa.BaseExtensionType):
        data_type = data_type.storage_type
    for predicate, layout in _LAYOUT_PREDICATES:
        if predicate(data_type):
            return layout
    return BaseLayout.OTHER
