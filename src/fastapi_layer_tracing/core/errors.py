"""Normalization of raised values for span error reporting."""

from typing import Any


def as_error_and_message(error: Any) -> tuple[BaseException | str, str]:
    """Convert a raised value into an error and error message pair.

    Args:
        error: Any raised or rejected value.

    Returns:
        The exception itself and its message, or the value's string
        representation twice when it is not an exception.
    """
    if isinstance(error, BaseException):
        return error, str(error)
    text = str(error)
    return text, text
