"""Metadata of the variable-shape tensor extension type.

The metadata is a small JSON object with up to three optional members:

- ``dim_names``: one name per tensor axis.
- ``permutation``: physical to logical axis mapping.
- ``uniform_shape``: per-axis extent shared by all tensors, ``null`` where the extent varies.

Parsing only checks that the text is well-formed. Whether the members are consistent with each other is
a separate question answered by :meth:`TensorMetadata.is_valid`.
"""

from __future__ import annotations

import json

from pydantic import Field
from pydantic import StrictInt
from pydantic import StrictStr
from pydantic import ValidationError

from arrowext.exceptions import MetadataParseError
from arrowext.schemas.core import FrozenMetadataModel


class TensorMetadata(FrozenMetadataModel):
    """Metadata shared by every tensor of a variable-shape tensor array.

    Every member is optional. When more than one is present they must agree on length, which defines the
    number of tensor axes. Members are stored as tuples, lists given by callers are converted.

    Examples:
        >>> meta = TensorMetadata(dim_names=["C", "H", "W"])
        >>> meta.get_ndim()
        3
        >>> meta.to_json()
        '{"dim_names":["C","H","W"]}'
    """

    dim_names: tuple[StrictStr, ...] | None = Field(default=None, description="Name of each axis.")
    permutation: tuple[StrictInt, ...] | None = Field(default=None, description="Physical to logical axes.")
    uniform_shape: tuple[StrictInt | None, ...] | None = Field(
        default=None, description="Known extent of each axis, None where unknown."
    )

    def get_ndim(self) -> int | None:
        """Number of axes declared by the first present member.

        Members are consulted in the order ``dim_names``, ``permutation``, ``uniform_shape``.

        Returns:
            The axis count, or None when no member is present.
        """
        for value in (self.dim_names, self.permutation, self.uniform_shape):
            if value is not None:
                return len(value)
        return None

    def find_problems(self) -> list[str]:
        """Describe every reason this metadata is invalid.

        Returns:
            Human readable problems, empty when the metadata is valid.
        """
        problems = []

        lengths = {name: len(value) for name, value in self if value is not None}
        if len(set(lengths.values())) > 1:
            sizes = ", ".join(f"{name}={length}" for name, length in lengths.items())
            problems.append(f"Members disagree on the number of axes ({sizes})")

        ndim = self.get_ndim()

        if self.permutation is not None:
            if not self.permutation:
                problems.append("permutation must not be empty")
            elif sorted(self.permutation) != list(range(len(self.permutation))):
                problems.append(f"permutation {list(self.permutation)} is not a permutation of range({ndim})")

        if self.uniform_shape is not None:
            bad_extents = [extent for extent in self.uniform_shape if extent is not None and extent <= 0]
            if bad_extents:
                problems.append(f"uniform_shape has non-positive extents {bad_extents}")

        return problems

    def is_valid(self) -> bool:
        """Check all metadata invariants without raising."""
        return not self.find_problems()

    def to_json(self) -> str:
        """Serialize to compact JSON with members in canonical order.

        Absent members are omitted and unknown extents are written as ``null``.
        """
        payload = {name: list(value) for name, value in self if value is not None}
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str | bytes) -> TensorMetadata:
        """Parse metadata from its JSON form.

        Members may appear in any order and unknown members are ignored. No semantic validation is
        done, call :meth:`is_valid` for that.

        Args:
            text: JSON object text.

        Returns:
            The parsed metadata.

        Raises:
            MetadataParseError: If the text is not a well-formed metadata object.
        """
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            msg = f"Malformed variable-shape tensor metadata {text!r}: {e.errors()[0]['msg']}"
            raise MetadataParseError(msg) from e

    def _repr_html_(self) -> str:
        """Return an HTML representation of the metadata for Jupyter notebooks."""
        from arrowext.formatting_html import tensor_metadata_repr_html

        return tensor_metadata_repr_html(self)
