"""Schemas for Arrow extension metadata."""

from arrowext.schemas.tensor_metadata import TensorMetadata

__all__ = ["TensorMetadata"]
