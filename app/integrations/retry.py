"""Bounded calls to external collaborators"""

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


async def retry_once(
    operation: Callable[[], Awaitable[T]],
    timeout: float,
    name: str,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """Run ``operation`` with a timeout, retrying once on failure.

    The second failure propagates to the caller.
    """
    try:
        return await asyncio.wait_for(operation(), timeout=timeout)
    except (asyncio.TimeoutError,) + tuple(retry_on) as e:
        logger.warning("External call failed, retrying once", operation=name, error=str(e) or type(e).__name__)

    return await asyncio.wait_for(operation(), timeout=timeout)
