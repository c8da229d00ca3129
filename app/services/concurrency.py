import asyncio
from typing import Any, Awaitable, Iterable


async def gather_all(aws: Iterable[Awaitable[Any]]) -> list[Any]:
    """
    Runs a fan-out group and joins it.

    Results come back in submission order. The first failure propagates and
    the siblings still in flight are cancelled.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


async def gather_settled(aws: Iterable[Awaitable[Any]]) -> list[Any]:
    """Like gather_all, but each slot holds either the result or the raised exception."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    return list(await asyncio.gather(*tasks, return_exceptions=True))
