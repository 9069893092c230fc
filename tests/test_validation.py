"""
Tests for the validation utilities.

Catalog and still-image paths, guide fractions and set filters all pass
through these helpers before reaching the recognition pipeline.
"""

import pytest
from pathlib import Path

from lorcana_scanner.utils.validation import (
    validate_file_path,
    validate_numeric_range,
    validate_enum_value,
)
from lorcana_scanner.utils.error_handler import ConfigurationError


class TestValidateFilePath:
    """Test file path validation functionality."""

    def test_validate_file_path_valid(self, tmp_path):
        """Test validation of valid file path."""
        test_file = tmp_path / "cards.json"
        test_file.write_text("[]")

        result = validate_file_path(test_file)
        assert isinstance(result, Path)
        assert result == test_file.resolve()

    def test_validate_file_path_string(self, tmp_path):
        """Test validation of file path as string."""
        test_file = tmp_path / "cards.csv"
        test_file.write_text("name\n")

        result = validate_file_path(str(test_file), must_exist=True)
        assert result == test_file.resolve()

    def test_validate_file_path_missing(self, tmp_path):
        """Test validation when file must exist but doesn't exist."""
        missing = tmp_path / "missing.json"

        with pytest.raises(ConfigurationError) as exc_info:
            validate_file_path(missing, must_exist=True)

        error = exc_info.value
        assert "File does not exist" in error.message
        assert error.details["file_path"] == str(missing)
        assert error.details["must_exist"] is True

    def test_validate_file_path_directory_is_not_a_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            validate_file_path(tmp_path, must_exist=True)

    def test_validate_file_path_missing_allowed(self, tmp_path):
        """A missing file is fine when existence is not required."""
        result = validate_file_path(tmp_path / "later.json")
        assert result.name == "later.json"

    def test_validate_file_path_invalid_path(self):
        """Test validation of invalid file path."""
        invalid_path = "/invalid/path/with/invalid/chars/\0"

        with pytest.raises(ConfigurationError) as exc_info:
            validate_file_path(invalid_path, must_exist=True)

        error = exc_info.value
        assert "Invalid file path" in error.message
        assert error.details["file_path"] == invalid_path


class TestValidateNumericRange:
    """Test numeric range validation functionality."""

    @pytest.mark.parametrize("value", [-100, 0, 100, 3.14, -2.5])
    def test_validate_numeric_range_no_bounds(self, value):
        assert validate_numeric_range(value) == value

    @pytest.mark.parametrize("value", [0.0, 0.18, 1.0])
    def test_validate_numeric_range_unit_interval(self, value):
        """Bounds are inclusive."""
        assert validate_numeric_range(value, 0.0, 1.0) == value

    def test_validate_numeric_range_below_minimum(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_numeric_range(-0.1, 0.0, 1.0, field_name="guide.x")

        error = exc_info.value
        assert "guide.x -0.1 is below minimum 0.0" in error.message
        assert error.details["field_name"] == "guide.x"
        assert error.details["min_value"] == 0.0
        assert error.details["max_value"] == 1.0

    def test_validate_numeric_range_above_maximum(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_numeric_range(1.2, max_value=1.0)

        error = exc_info.value
        assert "above maximum 1.0" in error.message
        assert error.details["value"] == 1.2
        assert error.details["min_value"] is None


class TestValidateEnumValue:
    """Test enum value validation functionality."""

    def test_validate_enum_value_valid(self):
        """Test validation of valid set filters."""
        allowed_values = ["all", "1", "2", "7"]

        for value in allowed_values:
            assert validate_enum_value(value, allowed_values) == value

    def test_validate_enum_value_invalid(self):
        """Test validation of invalid enum values."""
        allowed_values = ["all", "1", "2"]

        with pytest.raises(ConfigurationError) as exc_info:
            validate_enum_value("9", allowed_values, field_name="set_filter")

        error = exc_info.value
        assert "set_filter '9' is not allowed" in error.message
        assert error.details["value"] == "9"
        assert error.details["allowed_values"] == allowed_values

    def test_validate_enum_value_accepts_iterables(self, sample_catalog):
        """Any iterable works, including generators of catalog entries."""
        card = sample_catalog[0]
        assert validate_enum_value(card, (c for c in sample_catalog[:3]), "candidate") is card
