"""Status polling for resources that become ready asynchronously.

Many AWS resources are created in a pending state. The poller repeatedly
fetches a description, extracts a status with a JMESPath expression and stops
when the status reaches a target value, a failure value, or the timeout.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Final

from tutorial_runner.aws.exceptions import TimeoutError
from tutorial_runner.constants import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_TIMEOUT
from tutorial_runner.exceptions import ExtractionError, ResourceFailedError
from tutorial_runner.utils.extract import query

logger: Final = logging.getLogger(__name__)


def _as_set(values: str | Iterable[str]) -> frozenset[str]:
    if isinstance(values, str):
        return frozenset({values})
    return frozenset(values)


def _status_values(status: Any, status_query: str) -> list[Any]:
    """Flatten a status to the scalar values it is made of.

    A projection such as ``Reservations[].Instances[].State.Name`` yields a
    list with one status per matched resource.

    Raises:
        ExtractionError: If the expression selects an object or nested lists.
    """
    values = status if isinstance(status, list) else [status]
    if any(isinstance(value, dict | list) for value in values):
        raise ExtractionError(
            f"Status expression '{status_query}' must select a value or a list of values, "
            f"got {status!r}",
            expression=status_query,
        )
    return values


async def wait_for_status(
    fetch: Callable[[], Awaitable[dict[str, Any]]],
    status_query: str,
    targets: str | Iterable[str],
    failure_states: str | Iterable[str] = (),
    interval: float = DEFAULT_POLL_INTERVAL,
    timeout: float = DEFAULT_POLL_TIMEOUT,
    description: str = "resource",
) -> dict[str, Any]:
    """Poll until a status reaches one of the target values.

    The first poll happens immediately; later polls are ``interval`` seconds
    apart.

    Args:
        fetch: Async callable returning the current description.
        status_query: JMESPath expression selecting the status, or a list of
            statuses that must all reach a target.
        targets: Status value(s) that end the wait successfully.
        failure_states: Status value(s) that end the wait with an error.
        interval: Seconds between polls. Defaults to 10.
        timeout: Maximum seconds to wait. Defaults to 900.
        description: What is being waited for, used in messages.

    Returns:
        The last fetched response (the one with the target status).

    Raises:
        ResourceFailedError: If a failure status is observed.
        ExtractionError: If the expression selects an object.
        TimeoutError: If no target status is observed before the timeout.

    Example:
        >>> response = await wait_for_status(
        ...     lambda: backend.call("mq", "describe_broker", BrokerId=broker_id),
        ...     status_query="BrokerState",
        ...     targets="RUNNING",
        ...     failure_states="CREATION_FAILED",
        ...     interval=60,
        ...     description="broker",
        ... )
    """
    target_set = _as_set(targets)
    failure_set = _as_set(failure_states)
    if not target_set:
        raise ValueError("At least one target status is required")

    deadline = time.monotonic() + timeout
    polls = 0
    last_status: Any = None

    logger.info(f"Waiting for {description} to reach {' or '.join(sorted(target_set))}...")

    while True:
        response = await fetch()
        polls += 1
        status = query(response, status_query)

        if status != last_status:
            logger.info(f"Current {description} state: {status}")
        else:
            logger.debug(f"{description} still {status} after {polls} polls")
        last_status = status

        values = _status_values(status, status_query)

        # A list status is reached when every element is; one failed element fails it
        if values and all(value in target_set for value in values):
            logger.info(f"{description} is now {status}")
            return response

        if any(value in failure_set for value in values):
            raise ResourceFailedError(
                f"{description} reached failure state {status}",
                status=str(status),
                description=description,
            )

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(
                f"{description} did not reach {'/'.join(sorted(target_set))} within "
                f"{timeout:.0f}s (last state: {status})",
                operation="wait_for_status",
                details={"polls": polls, "last_status": status},
            )

        await asyncio.sleep(min(interval, remaining))


async def wait_for_propagation(seconds: float, reason: str) -> None:
    """Sleep for a fixed time to let a change propagate.

    Some changes, IAM roles in particular, are not visible to other services
    immediately and cannot be polled for.

    Args:
        seconds: Seconds to wait.
        reason: What is propagating, used in the log message.
    """
    logger.info(f"Waiting {seconds:.0f} seconds for {reason} to propagate...")
    await asyncio.sleep(seconds)
