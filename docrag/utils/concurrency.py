"""Shared concurrency helpers for the ingestion pipeline.

1. **gather_settled** -- ``asyncio.gather`` that returns failures in place,
   so one failed embedding does not cancel the rest of its batch.

2. **batched** -- splits a sequence into fixed-size consecutive batches; the
   lifecycle manager embeds one batch concurrently, then pauses before the
   next one.  The batch size is the only concurrency bound.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Iterator, Sequence, TypeVar

_T = TypeVar("_T")


async def gather_settled(coros: list[Awaitable[_T]]) -> list[_T | BaseException]:
    """Run *coros* concurrently and return results or exceptions in input order."""
    return await asyncio.gather(*coros, return_exceptions=True)


def batched(items: Sequence[_T], size: int) -> Iterator[tuple[int, Sequence[_T]]]:
    """Yield ``(batch_number, batch)`` pairs of at most *size* items.

    Batch numbers start at 0.  A non-positive *size* yields everything as a
    single batch.
    """
    if size <= 0:
        size = max(len(items), 1)
    for batch_number, start in enumerate(range(0, len(items), size)):
        yield batch_number, items[start : start + size]
