"""
Input validation utilities for the card scanner.

These helpers keep malformed geometry, catalog paths and set filters from
reaching the recognition pipeline, where they would surface as silent
mis-crops or empty matches instead of clear errors.
"""

from typing import Any, Iterable, Optional, Union
from pathlib import Path

from .error_handler import ConfigurationError


def validate_file_path(file_path: Union[str, Path], must_exist: bool = False) -> Path:
    """
    Validate and normalize a file path.

    Args:
        file_path: File path to validate
        must_exist: Whether the file must already exist

    Returns:
        Normalized Path object

    Raises:
        ConfigurationError: If path is invalid or file doesn't exist when required
    """
    try:
        # Path.is_file() reports False for NUL bytes rather than raising
        if "\0" in str(file_path):
            raise ValueError("embedded null byte")

        path = Path(file_path)

        # Check existence before resolve() so the message shows the given path
        if must_exist and not path.is_file():
            raise ConfigurationError(
                f"File does not exist: {path}",
                details={"file_path": str(path), "must_exist": must_exist}
            )

        return path.resolve()

    except ConfigurationError:
        raise
    except (TypeError, ValueError, OSError) as e:
        raise ConfigurationError(
            f"Invalid file path: {file_path}",
            details={"file_path": str(file_path), "error": str(e)}
        )


def validate_numeric_range(
    value: Union[int, float],
    min_value: Optional[Union[int, float]] = None,
    max_value: Optional[Union[int, float]] = None,
    field_name: str = "value"
) -> Union[int, float]:
    """
    Validate a numeric value is within specified range.

    Args:
        value: Numeric value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive)
        field_name: Name of the field for error messages

    Returns:
        The validated value

    Raises:
        ConfigurationError: If value is outside the allowed range
    """
    if min_value is not None and value < min_value:
        raise ConfigurationError(
            f"{field_name} {value} is below minimum {min_value}",
            details={
                "field_name": field_name,
                "value": value,
                "min_value": min_value,
                "max_value": max_value
            }
        )

    if max_value is not None and value > max_value:
        raise ConfigurationError(
            f"{field_name} {value} is above maximum {max_value}",
            details={
                "field_name": field_name,
                "value": value,
                "min_value": min_value,
                "max_value": max_value
            }
        )

    return value


def validate_enum_value(
    value: Any,
    allowed_values: Iterable[Any],
    field_name: str = "value"
) -> Any:
    """
    Validate a value is one of the allowed values.

    Raises:
        ConfigurationError: If value is not in the allowed collection
    """
    allowed = list(allowed_values)
    if value not in allowed:
        raise ConfigurationError(
            f"{field_name} '{value}' is not allowed. Allowed values: {allowed}",
            details={
                "field_name": field_name,
                "value": value,
                "allowed_values": allowed
            }
        )

    return value
