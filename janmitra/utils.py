"""
Utility functions for the civic reporting API.
"""

import asyncio
import logging
import math
from typing import Awaitable, Optional, TypeVar

from fastapi import Request

from janmitra.errors import RequestCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

TICKET_PREFIX = "TC-"
TICKET_OFFSET = 10000


def format_ticket_id(issue_id: int) -> str:
    """
    Derive the human-facing ticket id from an issue id.

    Args:
        issue_id: Generated primary key of the issue

    Returns:
        "TC-" followed by 10000 + issue_id, e.g. 1 -> "TC-10001"
    """
    return f"{TICKET_PREFIX}{TICKET_OFFSET + issue_id}"


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """Treat empty form fields as absent."""
    if value is None or value == "":
        return None
    return value


def parse_coordinate(value: Optional[str]) -> Optional[float]:
    """
    Coerce a lat/lon form field to a float.

    Blank, absent, unparseable and non-finite values all become None.
    """
    if value is None or not value.strip():
        return None
    try:
        number = float(value)
    except ValueError:
        logger.debug(f"Ignoring non-numeric coordinate: {value!r}")
        return None
    if not math.isfinite(number):
        return None
    return number


async def cancel_on_disconnect(
    request: Request,
    awaitable: Awaitable[T],
    poll_interval: float = 0.25,
) -> T:
    """
    Await a coroutine, cancelling it if the client disconnects first.

    Args:
        request: The incoming request whose connection is watched
        awaitable: The work to run
        poll_interval: Seconds between disconnect checks

    Returns:
        The awaitable's result

    Raises:
        RequestCancelled: if the client went away before the work finished
    """
    task = asyncio.ensure_future(awaitable)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.warning("Client disconnected, cancelling pending work")
                task.cancel()
                raise RequestCancelled("Client closed request")
    finally:
        if not task.done():
            task.cancel()
