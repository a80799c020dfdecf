"""Value extraction from AWS JSON responses.

Expressions use JMESPath, the same language as the AWS CLI ``--query``
option, so an expression that works in a tutorial's ``aws ... --query``
call works here unchanged.
"""

from collections.abc import Iterator
from typing import Any

import jmespath
from jmespath.exceptions import JMESPathError

from tutorial_runner.exceptions import ExtractionError

_EMPTY_VALUES = ("", "None", "null")


def query(data: Any, expression: str) -> Any:
    """Evaluate a JMESPath expression against a response.

    Args:
        data: Parsed JSON response.
        expression: JMESPath expression (e.g. ``"Vpc.VpcId"``).

    Returns:
        The matched value, or None when nothing matches.

    Raises:
        ExtractionError: If the expression is invalid.

    Example:
        >>> query({"Vpc": {"VpcId": "vpc-123"}}, "Vpc.VpcId")
        'vpc-123'
    """
    try:
        return jmespath.search(expression, data)
    except JMESPathError as e:
        raise ExtractionError(f"Invalid query expression '{expression}': {e}", expression) from e


def is_empty(value: Any) -> bool:
    """Check whether an extracted value counts as missing.

    The AWS CLI prints ``None`` for absent values in text output, so that
    string is treated as missing too.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() in _EMPTY_VALUES
    if isinstance(value, list | dict):
        return not value
    return False


def require(data: Any, expression: str, description: str | None = None) -> Any:
    """Evaluate a JMESPath expression and fail if the value is missing.

    Args:
        data: Parsed JSON response.
        expression: JMESPath expression.
        description: What is being extracted, for the error message.

    Returns:
        The matched value.

    Raises:
        ExtractionError: If the value is missing or empty.

    Example:
        >>> require({"BrokerId": "b-1234"}, "BrokerId", "broker ID")
        'b-1234'
    """
    value = query(data, expression)
    if is_empty(value):
        what = description or expression
        raise ExtractionError(f"Failed to extract {what} from response", expression)
    return value


def _walk(data: Any, key: str) -> Iterator[Any]:
    if isinstance(data, dict):
        for item_key, item in data.items():
            if item_key == key:
                yield item
            yield from _walk(item, key)
    elif isinstance(data, list):
        for item in data:
            yield from _walk(item, key)


def find_key(data: Any, key: str) -> Any:
    """Find the first value stored under a key anywhere in a response.

    Searches depth-first in document order, for responses whose shape varies
    between API versions.

    Args:
        data: Parsed JSON response.
        key: Key to look for (e.g. ``"GroupId"``).

    Returns:
        The first value found, or None.

    Example:
        >>> find_key({"Reservations": [{"Instances": [{"InstanceId": "i-1"}]}]}, "InstanceId")
        'i-1'
    """
    return next(_walk(data, key), None)


def find_all(data: Any, key: str) -> list[Any]:
    """Find every value stored under a key anywhere in a response.

    Args:
        data: Parsed JSON response.
        key: Key to look for.

    Returns:
        Values in document order.
    """
    return list(_walk(data, key))
