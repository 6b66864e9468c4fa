"""Extension registry for turning tagged Arrow arrays into typed views.

This module maps ``(base layout, extension name)`` pairs to factories building typed views over raw Arrow
storage. The same extension name may be registered under several layouts (the JSON extension is stored as
string, large string or string view), so lookups always use both.

Key points

- ``ExtensionRegistry`` is a plain class, tests can build and populate their own instance
- The process-wide instance is created once, on first use, and populated by an explicit initialization
  step rather than as a side effect of importing the extension modules
- Registration is serialized by a lock, lookups are not

Use the top-level helpers for convenience: ``decode_array``, ``decode_record_batch``, ``register_extension``,
``is_extension_registered``, ``list_extensions``, ``get_extension_registry``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING
from typing import TypeAlias

import pyarrow as pa

from arrowext import settings
from arrowext.constants import BaseLayout
from arrowext.extension import ArrayHandle
from arrowext.extension import ExtensionArray
from arrowext.json_array import register_json_extension
from arrowext.variable_shape_tensor import register_variable_shape_tensor_extension

if TYPE_CHECKING:
    from arrowext.formatting_html import RegistryRow


__all__ = [
    "ExtensionFactory",
    "ExtensionRegistry",
    "register_default_extensions",
    "get_extension_registry",
    "reset_extension_registry",
    "register_extension",
    "is_extension_registered",
    "list_extensions",
    "decode_array",
    "decode_record_batch",
]

logger = logging.getLogger(__name__)

ExtensionFactory: TypeAlias = Callable[[ArrayHandle], ExtensionArray]
ExtensionKey: TypeAlias = tuple[BaseLayout, str]


class ExtensionRegistry:
    """Registry of extension factories keyed by base layout and extension name.

    Registration is protected by an internal re-entrant lock. Lookups read the underlying dict without
    locking, so every registration should be done before arrays are decoded.
    """

    def __init__(self) -> None:
        self._factories: dict[ExtensionKey, ExtensionFactory] = {}
        self._registry_lock = threading.RLock()

    def register(self, base_layout: BaseLayout, extension_name: str, factory: ExtensionFactory) -> ExtensionKey:
        """Register a factory for an extension stored with a given layout.

        Args:
            base_layout: Physical layout of the storage the factory accepts.
            extension_name: Extension name the factory handles.
            factory: Callable building a typed view from an ``ArrayHandle``.

        Returns:
            The key the factory was registered under.

        Raises:
            ValueError: If a factory is already registered for the same key.
        """
        key = (BaseLayout(base_layout), extension_name)
        with self._registry_lock:
            if key in self._factories:
                msg = f"Extension '{extension_name}' is already registered for layout '{key[0]}'."
                raise ValueError(msg)
            self._factories[key] = factory
        logger.debug("Registered extension %s for layout %s", extension_name, key[0])
        return key

    def get(self, base_layout: BaseLayout, extension_name: str) -> ExtensionFactory:
        """Get the factory registered for a layout and extension name.

        Raises:
            KeyError: If no factory is registered for the key.
        """
        key = (BaseLayout(base_layout), extension_name)
        if key not in self._factories:
            msg = f"Extension '{extension_name}' is not registered for layout '{key[0]}'."
            raise KeyError(msg)
        return self._factories[key]

    def unregister(self, base_layout: BaseLayout, extension_name: str) -> None:
        """Unregister the factory for a layout and extension name.

        Raises:
            KeyError: If no factory is registered for the key.
        """
        key = (BaseLayout(base_layout), extension_name)
        with self._registry_lock:
            if key not in self._factories:
                msg = f"Extension '{extension_name}' is not registered for layout '{key[0]}'."
                raise KeyError(msg)
            del self._factories[key]

    def is_registered(self, base_layout: BaseLayout, extension_name: str) -> bool:
        """Check if a factory is registered for a layout and extension name."""
        return (BaseLayout(base_layout), extension_name) in self._factories

    def list_all_extensions(self) -> list[ExtensionKey]:
        """Get all registered ``(layout, extension name)`` keys."""
        return list(self._factories)

    def clear(self) -> None:
        """Clear all registered factories (useful for testing)."""
        with self._registry_lock:
            self._factories.clear()

    def decode(self, array: pa.Array | pa.ChunkedArray, field: pa.Field | None = None) -> ExtensionArray | pa.Array:
        """Turn an extension-tagged array into its typed view.

        Args:
            array: Raw Arrow array, possibly already wrapped as ``pa.ExtensionArray``.
            field: Field describing the array, carrying the extension tag in its metadata.

        Returns:
            The typed view when a factory matches. Untagged arrays are returned as they are, tagged
            arrays without a matching factory are returned as their storage.
        """
        handle = ArrayHandle.from_array(array, field)
        extension_name = handle.extension_name
        if extension_name is None:
            return handle.array

        key = (handle.base_layout, extension_name)
        factory = self._factories.get(key)
        if factory is None:
            logger.info("No factory for extension %s on layout %s, using storage", extension_name, key[0])
            return handle.storage
        return factory(handle)

    def __repr__(self) -> str:
        """Return a string representation of the registry."""
        keys = sorted(f"{name}[{layout}]" for layout, name in self._factories)
        return f"ExtensionRegistry(extensions={keys})"

    def _repr_rows(self) -> list[RegistryRow]:
        from arrowext.formatting_html import RegistryRow

        return [
            RegistryRow(layout=layout, extension_name=name, factory=getattr(factory, "__qualname__", repr(factory)))
            for (layout, name), factory in sorted(self._factories.items())
        ]

    def _repr_html_(self) -> str:
        """Return an HTML representation of the registry for Jupyter notebooks."""
        from arrowext.formatting_html import registry_repr_html

        return registry_repr_html(self)


def register_default_extensions(registry: ExtensionRegistry) -> None:
    """Register the built-in JSON and variable-shape tensor extensions."""
    register_json_extension(registry)
    register_variable_shape_tensor_extension(registry)


_global_registry: ExtensionRegistry | None = None
_global_lock = threading.Lock()


def get_extension_registry() -> ExtensionRegistry:
    """Get the process-wide registry, creating and populating it on first use.

    Creation uses double-checked locking so concurrent first calls build a single instance. The
    built-in extensions are registered unless ``ARROWEXT__REGISTER_DEFAULTS`` is false.
    """
    global _global_registry  # noqa: PLW0603

    if _global_registry is None:
        with _global_lock:
            if _global_registry is None:
                registry = ExtensionRegistry()
                if settings.register_defaults():
                    register_default_extensions(registry)
                logger.debug("Created global extension registry: %r", registry)
                _global_registry = registry
    return _global_registry


def reset_extension_registry() -> None:
    """Drop the process-wide registry (useful for testing)."""
    global _global_registry  # noqa: PLW0603

    with _global_lock:
        _global_registry = None


def register_extension(base_layout: BaseLayout, extension_name: str, factory: ExtensionFactory) -> ExtensionKey:
    """Register a factory in the global registry."""
    return get_extension_registry().register(base_layout, extension_name, factory)


def is_extension_registered(base_layout: BaseLayout, extension_name: str) -> bool:
    """Check if a factory is registered in the global registry."""
    return get_extension_registry().is_registered(base_layout, extension_name)


def list_extensions() -> list[ExtensionKey]:
    """List all keys of the global registry.

    The order is implementation-defined and may change; do not rely on it for stable sorting.
    """
    return get_extension_registry().list_all_extensions()


def decode_array(array: pa.Array | pa.ChunkedArray, field: pa.Field | None = None) -> ExtensionArray | pa.Array:
    """Decode an array with the global registry, see :meth:`ExtensionRegistry.decode`."""
    return get_extension_registry().decode(array, field)


def decode_record_batch(
    batch: pa.RecordBatch | pa.Table, registry: ExtensionRegistry | None = None
) -> dict[str, ExtensionArray | pa.Array]:
    """Decode every column of a record batch or table.

    Args:
        batch: Record batch or table whose schema fields carry the extension tags.
        registry: Registry to use, the global one by default.

    Returns:
        Column name to typed view, or to the raw array for untagged columns.
    """
    registry = registry if registry is not None else get_extension_registry()
    return {
        field.name: registry.decode(column, field)
        for field, column in zip(batch.schema, batch.columns, strict=True)
    }
