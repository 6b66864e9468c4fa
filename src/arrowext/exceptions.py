"""Custom exceptions raised by the Arrow extension arrays."""

from __future__ import annotations


class ArrowExtError(Exception):
    """Base exceptions class."""


class MetadataParseError(ArrowExtError, ValueError):
    """Raised when serialized extension metadata is not well-formed."""


class InvalidExtensionArrayError(ArrowExtError):
    """Raised when an extension array can't be built from the given children."""


class ShapeError(InvalidExtensionArrayError):
    """Raised when lengths or sizes of two or more things don't match.

    Args:
        message: Message to show with the exception.
        names: Names of the compared things for the `message`.
        shapes: Their lengths or sizes for the `message`.
    """

    def __init__(
        self,
        message: str,
        names: tuple[str, str] | None = None,
        shapes: tuple[int, int] | None = None,
    ):
        if names is not None and shapes is not None:
            pairs = zip(names, shapes, strict=True)
            message = f"{message} - " + " <> ".join(f"{name}: {shape}" for name, shape in pairs)

        super().__init__(message)


class WrongTypeError(InvalidExtensionArrayError):
    """Raised when a child array has an unexpected Arrow type.

    Args:
        message: Message to show with the exception.
        name: String form of the received type for the `message`.
        expected: String form of the expected type for the `message`.
    """

    def __init__(self, message: str, name: str | None = None, expected: str | None = None):
        if name is not None and expected is not None:
            message = f"{message} - Got: {name} Expected: {expected}"

        super().__init__(message)


class EnvironmentFormatError(ArrowExtError):
    """Raised when an environment variable is of the wrong format."""

    def __init__(self, name: str, format: str, msg: str = ""):  # noqa: A002
        self.message = f"Environment variable: {name} not of expected format: {format}. "
        self.message += f"\n{msg}" if msg else ""
        super().__init__(self.message)
