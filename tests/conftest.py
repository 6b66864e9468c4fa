"""Test configuration before everything runs."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from arrowext.registry import reset_extension_registry


@pytest.fixture(autouse=True)
def fresh_global_registry() -> Iterator[None]:
    """Make every test start without a process-wide registry."""
    reset_extension_registry()
    yield
    reset_extension_registry()
