"""Input validation for the operations exposed to the chat/UI layer."""

from pathlib import Path

from .errors import ValidationError

MAX_QUERY_LENGTH = 1000
MAX_SEARCH_K = 100


def validate_search_query(query) -> str:
    """Return the trimmed query or raise ValidationError."""
    if not query or not isinstance(query, str):
        raise ValidationError("Invalid search query: must be a non-empty string")

    trimmed = query.strip()
    if not trimmed:
        raise ValidationError("Invalid search query: cannot be empty")
    if len(trimmed) > MAX_QUERY_LENGTH:
        raise ValidationError(
            f"Invalid search query: maximum length is {MAX_QUERY_LENGTH} characters"
        )
    return trimmed


def validate_positive_number(value, field_name: str = "value", maximum: float | None = None) -> int:
    """Return ``value`` as an int when it is a positive number within ``maximum``."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field_name}: must be a number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}: must be a number") from None

    if number <= 0:
        raise ValidationError(f"Invalid {field_name}: must be positive")
    if maximum is not None and number > maximum:
        raise ValidationError(f"Invalid {field_name}: exceeds maximum value of {maximum}")
    return number


def validate_directory(path, field_name: str = "path") -> Path:
    """Resolve ``path``, rejecting paths that exist but are not directories."""
    if not path or not isinstance(path, (str, Path)):
        raise ValidationError(f"Invalid {field_name}: must be a non-empty path")
    if "\0" in str(path):
        raise ValidationError(f"Invalid {field_name}: contains a null byte")

    resolved = Path(path).expanduser().resolve()
    if resolved.exists() and not resolved.is_dir():
        raise ValidationError(f"Invalid {field_name}: {resolved} is not a directory")
    return resolved
