"""Fixtures shared by the unit tests."""

from __future__ import annotations

import pytest

from arrowext.registry import ExtensionRegistry
from arrowext.registry import register_default_extensions
from arrowext.schemas.tensor_metadata import TensorMetadata
from arrowext.variable_shape_tensor import VariableShapeTensorArray
from tests.unit.helpers import make_data_child
from tests.unit.helpers import make_shape_child


@pytest.fixture
def empty_metadata() -> TensorMetadata:
    """Metadata with every member absent."""
    return TensorMetadata()


@pytest.fixture
def three_vectors(empty_metadata: TensorMetadata) -> VariableShapeTensorArray:
    """Three 1-D tensors of two values each."""
    data = make_data_child([1, 2, 3, 4, 5, 6], [0, 2, 4, 6])
    shape = make_shape_child([2, 2, 2], 1)
    return VariableShapeTensorArray(1, data, shape, empty_metadata)


@pytest.fixture
def registry() -> ExtensionRegistry:
    """A fresh registry holding the built-in extensions."""
    registry = ExtensionRegistry()
    register_default_extensions(registry)
    return registry
