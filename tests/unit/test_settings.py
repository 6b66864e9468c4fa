"""Tests for the arrowext environment settings."""

import os
from unittest.mock import patch

import pytest

from arrowext import settings
from arrowext.exceptions import EnvironmentFormatError
from arrowext.settings import ArrowExtSettings


class TestSettings:
    """Test the settings module functions."""

    def test_defaults(self) -> None:
        """Both switches are on by default."""
        with patch.dict(os.environ, {}, clear=True):
            current = ArrowExtSettings()

        assert current.register_defaults is True
        assert current.warn_invalid_metadata is True

    @pytest.mark.parametrize(
        ("env_var", "property_name"),
        [
            ("ARROWEXT__REGISTER_DEFAULTS", "register_defaults"),
            ("ARROWEXT__WARN_INVALID_METADATA", "warn_invalid_metadata"),
        ],
    )
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("true", True), ("1", True), ("YES", True), ("on", True), ("false", False), ("0", False), ("no", False)],
    )
    def test_boolean_parsing(self, env_var: str, property_name: str, value: str, expected: bool) -> None:
        """Boolean variables accept the usual spellings."""
        with patch.dict(os.environ, {env_var: value}):
            assert getattr(ArrowExtSettings(), property_name) is expected

    def test_helpers(self) -> None:
        """Module helpers read the environment on every call."""
        with patch.dict(os.environ, {"ARROWEXT__REGISTER_DEFAULTS": "off"}):
            assert settings.register_defaults() is False
        with patch.dict(os.environ, {"ARROWEXT__WARN_INVALID_METADATA": "on"}):
            assert settings.warn_invalid_metadata() is True

    def test_case_sensitive(self) -> None:
        """Lower-case variable names are not picked up."""
        with patch.dict(os.environ, {"arrowext__register_defaults": "false"}):
            assert ArrowExtSettings().register_defaults is True

    def test_invalid_value(self) -> None:
        """Values that aren't booleans raise a formatted error."""
        with (
            patch.dict(os.environ, {"ARROWEXT__REGISTER_DEFAULTS": "maybe"}),
            pytest.raises(EnvironmentFormatError, match="ARROWEXT__REGISTER_DEFAULTS not of expected format: bool"),
        ):
            settings.get_settings()

    def test_environment_isolation(self) -> None:
        """Environment changes don't leak out of their context."""
        original = ArrowExtSettings().warn_invalid_metadata

        with patch.dict(os.environ, {"ARROWEXT__WARN_INVALID_METADATA": str(not original)}):
            assert ArrowExtSettings().warn_invalid_metadata is (not original)

        assert ArrowExtSettings().warn_invalid_metadata == original
