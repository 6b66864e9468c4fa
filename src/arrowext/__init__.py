"""Arrow extension arrays: variable-shape tensors and JSON text."""

from __future__ import annotations

from importlib import metadata

from arrowext.constants import BaseLayout
from arrowext.extension import ArrayHandle
from arrowext.json_array import JsonArray
from arrowext.registry import ExtensionRegistry
from arrowext.registry import decode_array
from arrowext.registry import decode_record_batch
from arrowext.registry import get_extension_registry
from arrowext.registry import register_default_extensions
from arrowext.registry import register_extension
from arrowext.schemas.tensor_metadata import TensorMetadata
from arrowext.variable_shape_tensor import TensorElement
from arrowext.variable_shape_tensor import VariableShapeTensorArray

try:
    __version__ = metadata.version("arrowext")
except metadata.PackageNotFoundError:
    __version__ = "unknown"


__all__ = [
    "__version__",
    "ArrayHandle",
    "BaseLayout",
    "ExtensionRegistry",
    "JsonArray",
    "TensorElement",
    "TensorMetadata",
    "VariableShapeTensorArray",
    "decode_array",
    "decode_record_batch",
    "get_extension_registry",
    "register_default_extensions",
    "register_extension",
]
