"""Helper methods used in unit tests."""

from __future__ import annotations

import pyarrow as pa


def make_shape_child(flat_shapes: list[int], ndim: int) -> pa.FixedSizeListArray:
    """Shape child with ``ndim`` int32 extents per element."""
    return pa.FixedSizeListArray.from_arrays(pa.array(flat_shapes, pa.int32()), ndim)


def make_data_child(values: list, offsets: list[int]) -> pa.ListArray:
    """Data child splitting ``values`` at ``offsets``."""
    return pa.ListArray.from_arrays(pa.array(offsets, pa.int32()), pa.array(values))
